import logging
from typing import Any, Dict, Iterable, List, Optional

from vendors import ShopifyAPIError

logger = logging.getLogger("cod-sync")

NOTE_SEPARATOR = "\n\n"


def parse_tags(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        items = str(value).split(",")
    seen: Dict[str, None] = {}
    for item in items:
        tag = item.strip()
        if tag:
            seen.setdefault(tag, None)
    return list(seen)


def merge_tags(existing: Any, new_tags: Iterable[str]) -> List[str]:
    return parse_tags(parse_tags(existing) + [str(tag) for tag in new_tags])


def append_note(existing: Optional[str], note: Optional[str]) -> str:
    current = existing or ""
    addition = (note or "").strip()
    if not addition or addition in current:
        return current
    if not current.strip():
        return addition
    return f"{current}{NOTE_SEPARATOR}{addition}"


def _missing_changes(order: Dict[str, Any], tags: List[str], note: Optional[str]) -> bool:
    current_tags = set(parse_tags(order.get("tags")))
    if any(tag not in current_tags for tag in tags):
        return True
    if note and note.strip() not in (order.get("note") or ""):
        return True
    return False


def upsert_order_tags_and_note(
    client,
    order_id: Any,
    tags: Iterable[str] = (),
    note: Optional[str] = None,
    *,
    max_attempts: int = 3,
) -> Dict[str, Any]:
    """Merge tags and append a note with read-modify-write plus read-back.

    The order resource has no concurrency token, so after each PUT the order is
    read again; a writer that raced us and dropped our changes triggers another
    attempt. Nothing is written when the order already holds the tags and note.
    """
    wanted_tags = parse_tags(list(tags))
    result: Dict[str, Any] = {
        "success": False,
        "changed": False,
        "attempts": 0,
        "tags": [],
        "error": None,
    }
    try:
        order = client.get_order(order_id)
        for attempt in range(1, max_attempts + 1):
            result["attempts"] = attempt
            if order is None:
                result["error"] = f"Order {order_id} not found"
                return result
            if not _missing_changes(order, wanted_tags, note):
                result["success"] = True
                result["tags"] = parse_tags(order.get("tags"))
                return result
            merged_tags = merge_tags(order.get("tags"), wanted_tags)
            fields: Dict[str, Any] = {"tags": ", ".join(merged_tags)}
            if note:
                fields["note"] = append_note(order.get("note"), note)
            client.update_order(order_id, fields)
            result["changed"] = True
            order = client.get_order(order_id)
            if order is not None and not _missing_changes(order, wanted_tags, note):
                result["success"] = True
                result["tags"] = parse_tags(order.get("tags"))
                return result
            logger.warning(
                "Order %s lost a tag/note update on attempt %s, retrying", order_id, attempt
            )
        result["error"] = f"Update of order {order_id} did not stick after {max_attempts} attempts"
    except ShopifyAPIError as exc:
        logger.error("Tag/note update failed for order %s: %s", order_id, exc)
        result["error"] = str(exc)
    return result
