import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from services.order_updates import parse_tags, upsert_order_tags_and_note
from shopify_client import order_gid
from vendors import ShopifyAPIError

logger = logging.getLogger("cod-sync")

OPEN_FULFILLMENT_STATUSES = {"OPEN", "IN_PROGRESS"}
REFUNDABLE_TRANSACTION_KINDS = {"SALE", "CAPTURE"}
DEFAULT_REFUND_NOTE = "COD order returned - automatic refund by PrimeCOD integration"

FULFILLMENT_ORDERS_QUERY = """
query GetFulfillmentOrders($orderId: ID!) {
  order(id: $orderId) {
    id
    name
    fulfillmentOrders(first: 10) {
      edges {
        node {
          id
          status
          lineItems(first: 50) {
            edges {
              node {
                id
                remainingQuantity
              }
            }
          }
        }
      }
    }
  }
}
"""

FULFILLMENT_CREATE_MUTATION = """
mutation fulfillmentCreate($fulfillment: FulfillmentInput!) {
  fulfillmentCreate(fulfillment: $fulfillment) {
    fulfillment {
      id
      status
      trackingInfo {
        number
        company
      }
    }
    userErrors {
      field
      message
    }
  }
}
"""

MARK_AS_PAID_MUTATION = """
mutation orderMarkAsPaid($input: OrderMarkAsPaidInput!) {
  orderMarkAsPaid(input: $input) {
    order {
      id
      displayFinancialStatus
    }
    userErrors {
      field
      message
    }
  }
}
"""

REFUND_ORDER_QUERY = """
query GetRefundableOrder($orderId: ID!) {
  order(id: $orderId) {
    id
    lineItems(first: 50) {
      edges {
        node {
          id
          quantity
          refundableQuantity
        }
      }
    }
    shippingLine {
      id
    }
    transactions(first: 20) {
      id
      kind
      status
      gateway
      amountSet {
        shopMoney {
          amount
          currencyCode
        }
      }
    }
  }
}
"""

REFUND_CREATE_MUTATION = """
mutation refundCreate($input: RefundInput!) {
  refundCreate(input: $input) {
    refund {
      id
      totalRefundedSet {
        presentmentMoney {
          amount
          currencyCode
        }
      }
    }
    userErrors {
      field
      message
    }
  }
}
"""


def _edges(connection: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if not isinstance(connection, dict):
        return []
    return [edge.get("node") or {} for edge in connection.get("edges") or []]


def _user_errors(payload: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if not isinstance(payload, dict):
        return []
    return payload.get("userErrors") or []


def _failure(error: str, **details: Any) -> Dict[str, Any]:
    return {"success": False, "error": error, **details}


def _pick_fulfillment_order(nodes: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    for node in nodes:
        if str(node.get("status") or "").upper() in OPEN_FULFILLMENT_STATUSES:
            return node
    return None


def fulfill_order_with_tracking(
    client,
    order_id: Any,
    tracking_number: str,
    carrier: str,
) -> Dict[str, Any]:
    logger.info("Fulfilling order %s with tracking %s", order_id, tracking_number)
    try:
        data = client.graphql(FULFILLMENT_ORDERS_QUERY, {"orderId": order_gid(order_id)})
        order = data.get("order")
        if not order:
            return _failure("Order not found", order_id=order_id)
        nodes = _edges(order.get("fulfillmentOrders"))
        if not nodes:
            return _failure("No fulfillment orders found", order_name=order.get("name"))
        fulfillment_order = _pick_fulfillment_order(nodes)
        if fulfillment_order is None:
            return _failure(
                "No open fulfillment orders",
                statuses=[node.get("status") for node in nodes],
            )
        line_items = [
            {"id": item["id"], "quantity": item.get("remainingQuantity") or 0}
            for item in _edges(fulfillment_order.get("lineItems"))
            if (item.get("remainingQuantity") or 0) > 0
        ]
        if not line_items:
            return _failure("Nothing left to fulfill", fulfillment_order_id=fulfillment_order.get("id"))
        variables = {
            "fulfillment": {
                "lineItemsByFulfillmentOrder": [
                    {
                        "fulfillmentOrderId": fulfillment_order["id"],
                        "fulfillmentOrderLineItems": line_items,
                    }
                ],
                "notifyCustomer": False,
                "trackingInfo": {"number": str(tracking_number), "company": carrier},
            }
        }
        data = client.graphql(FULFILLMENT_CREATE_MUTATION, variables)
    except ShopifyAPIError as exc:
        logger.error("Fulfillment of order %s failed: %s", order_id, exc)
        return _failure(str(exc))

    payload = data.get("fulfillmentCreate")
    errors = _user_errors(payload)
    if errors:
        return _failure("Fulfillment user errors", details=errors)
    fulfillment = (payload or {}).get("fulfillment") or {}
    if not fulfillment.get("id"):
        return _failure("Unexpected fulfillment response", details=data)
    logger.info("Fulfillment created for order %s: %s", order_id, fulfillment["id"])
    return {"success": True, "fulfillment_id": fulfillment["id"], "tracking_number": str(tracking_number)}


def mark_order_as_paid(client, order_id: Any) -> Dict[str, Any]:
    try:
        data = client.graphql(MARK_AS_PAID_MUTATION, {"input": {"id": order_gid(order_id)}})
    except ShopifyAPIError as exc:
        logger.error("Marking order %s as paid failed: %s", order_id, exc)
        return _failure(str(exc))
    payload = data.get("orderMarkAsPaid")
    errors = _user_errors(payload)
    if errors:
        logger.error("orderMarkAsPaid user errors for order %s: %s", order_id, errors)
        return _failure("Mark as paid user errors", details=errors)
    order = (payload or {}).get("order") or {}
    logger.info("Order %s marked as paid (%s)", order_id, order.get("displayFinancialStatus"))
    return {"success": True, "financial_status": order.get("displayFinancialStatus")}


def _refund_transactions(order: Dict[str, Any]) -> List[Dict[str, Any]]:
    transactions = []
    for txn in order.get("transactions") or []:
        if str(txn.get("kind")).upper() not in REFUNDABLE_TRANSACTION_KINDS:
            continue
        if str(txn.get("status")).upper() != "SUCCESS":
            continue
        money = ((txn.get("amountSet") or {}).get("shopMoney") or {})
        transactions.append(
            {
                "orderId": order["id"],
                "parentId": txn["id"],
                "gateway": txn.get("gateway") or "manual",
                "kind": "REFUND",
                "amount": money.get("amount") or "0",
            }
        )
    return transactions


def create_full_refund(client, order_id: Any, note: str = DEFAULT_REFUND_NOTE) -> Dict[str, Any]:
    try:
        data = client.graphql(REFUND_ORDER_QUERY, {"orderId": order_gid(order_id)})
        order = data.get("order")
        if not order:
            return _failure("Could not fetch order for refund", order_id=order_id)
        refund_line_items = [
            {
                "lineItemId": item["id"],
                "quantity": item.get("refundableQuantity") or 0,
                "restockType": "NO_RESTOCK",
            }
            for item in _edges(order.get("lineItems"))
            if (item.get("refundableQuantity") or 0) > 0
        ]
        refund_input: Dict[str, Any] = {
            "orderId": order["id"],
            "note": note,
            "notify": False,
            "refundLineItems": refund_line_items,
            "transactions": _refund_transactions(order),
        }
        if order.get("shippingLine"):
            refund_input["shipping"] = {"fullRefund": True}
        data = client.graphql(REFUND_CREATE_MUTATION, {"input": refund_input})
    except ShopifyAPIError as exc:
        logger.error("Refund of order %s failed: %s", order_id, exc)
        return _failure(str(exc))

    payload = data.get("refundCreate")
    errors = _user_errors(payload)
    if errors:
        logger.error("refundCreate user errors for order %s: %s", order_id, errors)
        return _failure("Refund user errors", details=errors)
    refund = (payload or {}).get("refund") or {}
    if not refund.get("id"):
        return _failure("Unexpected refund response", details=data)
    logger.info("Refund created for order %s: %s", order_id, refund["id"])
    return {"success": True, "refund_id": refund["id"]}


def _cancel_or_close(client, order_id: Any) -> Dict[str, Any]:
    try:
        client.cancel_order(order_id, reason="customer", email=False)
        return {"success": True, "method": "cancelled"}
    except ShopifyAPIError as exc:
        logger.warning("Cancelling order %s failed, closing instead: %s", order_id, exc)
    try:
        client.close_order(order_id)
        return {"success": True, "method": "closed"}
    except ShopifyAPIError as exc:
        logger.error("Closing order %s failed: %s", order_id, exc)
        return _failure(str(exc), method="needs_manual_action")


def handle_cod_return(client, order_id: Any) -> Dict[str, Any]:
    """Settle a returned or refused COD parcel.

    Money that was never collected is not refunded: a pending order is
    cancelled (or closed when cancelling is refused). Paid orders are refunded
    in full. Anything else is left for a person to review.
    """
    try:
        order = client.get_order(order_id)
    except ShopifyAPIError as exc:
        return _failure(str(exc))
    if order is None:
        return _failure(f"Order {order_id} not found", not_found=True)

    financial_status = order.get("financial_status")
    if financial_status == "pending":
        action = "cancel_order"
        outcome = _cancel_or_close(client, order_id)
        tags = ["cod-refused", "cod-not-collected", "cancelled"]
    elif financial_status in {"paid", "partially_refunded"}:
        action = "create_refund"
        outcome = create_full_refund(
            client, order_id, note="COD order returned - payment was collected but product returned"
        )
        tags = ["cod-returned", "cod-refunded", "returned"]
    else:
        action = "manual_review"
        outcome = _failure(f"Unusual financial status: {financial_status}", method="needs_manual_action")
        tags = ["cod-return-review"]

    note = "\n".join(
        [
            f"COD return processed {datetime.now(timezone.utc).isoformat()}",
            f"Original financial status: {financial_status}",
            f"Action taken: {action} ({outcome.get('method') or ('ok' if outcome['success'] else 'failed')})",
            f"Result: {'SUCCESS' if outcome['success'] else 'NEEDS MANUAL REVIEW'}",
        ]
    )
    annotation = upsert_order_tags_and_note(client, order_id, tags=tags, note=note)
    return {
        "success": outcome["success"],
        "action": action,
        "original_financial_status": financial_status,
        "outcome": outcome,
        "tags_updated": annotation["success"],
    }


def get_payment_status(client, order_id: Any) -> Optional[Dict[str, Any]]:
    order = client.get_order(order_id)
    if order is None:
        return None
    return {
        "order_id": int(order["id"]),
        "order_number": order.get("order_number"),
        "financial_status": order.get("financial_status"),
        "fulfillment_status": order.get("fulfillment_status"),
        "total_price": order.get("total_price"),
        "currency": order.get("currency"),
        "tags": parse_tags(order.get("tags")),
        "transactions": client.list_transactions(order_id),
    }
