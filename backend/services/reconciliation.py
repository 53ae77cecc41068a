import logging
from typing import Any, Dict, List, Optional

from schemas import Lead, LeadUpdate, StoreOrder
from services.matching import reference_tag
from services.order_actions import (
    create_full_refund,
    fulfill_order_with_tracking,
    mark_order_as_paid,
)
from services.order_updates import upsert_order_tags_and_note

logger = logging.getLogger("cod-sync")

STATUS_DELIVERED = "delivered"
STATUS_RETURNED = "returned"
STATUS_SHIPPED = "shipped"
STATUS_ORDER_PLACED = "order placed"

TAG_DELIVERED = "primecod-delivered"
TAG_FULFILLED = "cod-fulfilled"
TAG_RETURNED = "primecod-returned"
TAG_PROCESSING = "primecod-processing"

ACTION_FULFILL = "fulfill"
ACTION_MARK_PAID = "mark_paid"
ACTION_REFUND = "refund"
ACTION_NOTE_DELIVERED = "note_delivered"
ACTION_NOTE_RETURNED = "note_returned"
ACTION_NOTE_STATUS = "note_status"
STEP_NOTE_PAID = "note_paid"

UPDATE_FULFILLED = "fulfilled-with-tracking"
UPDATE_COD_PAID = "cod-payment-recorded"
UPDATE_MARKED_PAID = "marked-as-paid"
UPDATE_REFUNDED = "refunded"
UPDATE_STATUS = "status-updated"


def _is_fulfilled(order: StoreOrder, recheck_tagged: bool) -> bool:
    if order.fulfillment_status == "fulfilled":
        return True
    return not recheck_tagged and TAG_FULFILLED in order.tags


def _is_refunded(order: StoreOrder, recheck_tagged: bool) -> bool:
    if order.financial_status == "refunded":
        return True
    return not recheck_tagged and TAG_RETURNED in order.tags


def plan_actions(lead: Lead, order: StoreOrder, *, recheck_tagged: bool = False) -> List[str]:
    status = lead.shipping_status
    pending = order.financial_status == "pending"
    actions: List[str] = []

    if status == STATUS_DELIVERED:
        if lead.tracking_number and not _is_fulfilled(order, recheck_tagged):
            actions += [ACTION_FULFILL, ACTION_NOTE_DELIVERED]
        if pending:
            actions.append(ACTION_MARK_PAID)
        return actions

    if status == STATUS_RETURNED:
        if _is_refunded(order, recheck_tagged):
            return actions
        if pending:
            actions.append(ACTION_MARK_PAID)
        actions += [ACTION_REFUND, ACTION_NOTE_RETURNED]
        return actions

    return [ACTION_NOTE_STATUS]


def status_note(lead: Lead) -> str:
    """Status notes leave out the match method so reruns append nothing."""
    if lead.shipping_status == STATUS_SHIPPED:
        tracking = f" with tracking {lead.tracking_number}" if lead.tracking_number else ""
        return f"PrimeCOD: Order shipped{tracking}"
    if lead.shipping_status == STATUS_ORDER_PLACED:
        return "PrimeCOD: Order placed with supplier - awaiting shipment"
    return f"PrimeCOD: Order status '{lead.shipping_status}'"


def _annotate(
    client, order: StoreOrder, lead: Lead, tags: List[str], note: str, ref_tag_prefix: Optional[str]
) -> Dict[str, Any]:
    all_tags = list(tags)
    if ref_tag_prefix and lead.reference:
        all_tags.append(reference_tag(lead, ref_tag_prefix))
    return upsert_order_tags_and_note(client, order.id, tags=all_tags, note=note)


def reconcile(
    client,
    lead: Lead,
    order: StoreOrder,
    method: str,
    *,
    carrier: str,
    recheck_tagged: bool = False,
    dry_run: bool = False,
    ref_tag_prefix: Optional[str] = None,
) -> LeadUpdate:
    planned = plan_actions(lead, order, recheck_tagged=recheck_tagged)
    update = LeadUpdate(
        primecod_reference=lead.reference,
        shopify_order=order.label,
        shopify_order_id=order.id,
        match_method=method,
        status=lead.shipping_status,
        tracking_number=lead.tracking_number,
        planned_actions=planned,
        dry_run=dry_run,
    )
    if dry_run or not planned:
        return update

    steps: Dict[str, bool] = {}
    updates: List[str] = []
    results: Dict[str, Any] = {}

    if ACTION_FULFILL in planned:
        results[ACTION_FULFILL] = fulfill_order_with_tracking(
            client, order.id, lead.tracking_number, carrier
        )
        steps[ACTION_FULFILL] = results[ACTION_FULFILL]["success"]
        if steps[ACTION_FULFILL]:
            updates.append(UPDATE_FULFILLED)
            steps[ACTION_NOTE_DELIVERED] = _annotate(
                client,
                order,
                lead,
                [TAG_DELIVERED, TAG_FULFILLED],
                f"PrimeCOD: Package delivered with tracking {lead.tracking_number} (matched by {method})",
                ref_tag_prefix,
            )["success"]
        else:
            logger.error(
                "Fulfillment failed for order %s (lead %s): %s",
                order.label,
                lead.reference,
                results[ACTION_FULFILL].get("error"),
            )

    if ACTION_MARK_PAID in planned:
        steps[ACTION_MARK_PAID] = mark_order_as_paid(client, order.id)["success"]
        if steps[ACTION_MARK_PAID]:
            updates.append(UPDATE_COD_PAID if lead.shipping_status == STATUS_DELIVERED else UPDATE_MARKED_PAID)
        # the delivered note already carries the claim when fulfillment succeeded
        if steps[ACTION_MARK_PAID] and lead.shipping_status == STATUS_DELIVERED and not steps.get(ACTION_NOTE_DELIVERED):
            steps[STEP_NOTE_PAID] = _annotate(
                client,
                order,
                lead,
                [TAG_DELIVERED],
                "PrimeCOD: Package delivered - COD payment recorded",
                ref_tag_prefix,
            )["success"]

    if ACTION_REFUND in planned:
        steps[ACTION_REFUND] = create_full_refund(client, order.id)["success"]
        if steps[ACTION_REFUND]:
            updates.append(UPDATE_REFUNDED)
            tags = [TAG_RETURNED]
            note = f"PrimeCOD: Order returned - Paid and refunded (matched by {method})"
        else:
            # no completion tag, so the next run plans the refund again
            logger.error("Refund failed for order %s (lead %s)", order.label, lead.reference)
            tags = []
            note = "PrimeCOD: Order returned - refund failed, needs review"
        steps[ACTION_NOTE_RETURNED] = _annotate(client, order, lead, tags, note, ref_tag_prefix)["success"]

    if ACTION_NOTE_STATUS in planned:
        result = _annotate(client, order, lead, [TAG_PROCESSING], status_note(lead), ref_tag_prefix)
        steps[ACTION_NOTE_STATUS] = result["success"]
        if result["success"] and result["changed"]:
            updates.append(UPDATE_STATUS)

    update.steps = steps
    update.updates = updates
    return update
