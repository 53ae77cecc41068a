from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from schemas import Lead, StoreOrder
from services.order_updates import parse_tags


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_int(value: Any) -> Optional[int]:
    try:
        if value is None or value == "":
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse vendor timestamps; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    parsed: Optional[datetime] = None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        timestamp = value / 1000 if value > 10**12 else value
        parsed = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    elif isinstance(value, str):
        try:
            if value.isdigit():
                return parse_datetime(int(value))
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _address_phone(raw: Dict[str, Any], key: str) -> Optional[str]:
    address = raw.get(key)
    if isinstance(address, dict):
        return _text(address.get("phone"))
    return None


def format_lead(raw: Dict[str, Any]) -> Lead:
    status = _text(raw.get("shipping_status")) or "unknown"
    return Lead(
        reference=_text(raw.get("reference")) or _text(raw.get("id")) or "",
        email=_text(raw.get("email")),
        phone=_text(raw.get("phone")),
        shipping_status=status.lower(),
        confirmation_status=_text(raw.get("confirmation_status")),
        tracking_number=_text(raw.get("tracking_number")),
        created_at=parse_datetime(raw.get("created_at")),
        delivered_at=_text(raw.get("delivered_at")),
        returned_at=_text(raw.get("returned_at")),
        raw=raw,
    )


def format_order(raw: Dict[str, Any]) -> StoreOrder:
    customer = raw.get("customer") if isinstance(raw.get("customer"), dict) else {}
    line_items = raw.get("line_items")
    return StoreOrder(
        id=int(raw["id"]),
        order_number=_parse_int(raw.get("order_number")),
        name=_text(raw.get("name")),
        email=_text(raw.get("email")) or _text(raw.get("contact_email")),
        phone=_text(raw.get("phone")) or _text(customer.get("phone")),
        billing_phone=_address_phone(raw, "billing_address"),
        shipping_phone=_address_phone(raw, "shipping_address"),
        financial_status=_text(raw.get("financial_status")),
        fulfillment_status=_text(raw.get("fulfillment_status")),
        tags=parse_tags(raw.get("tags")),
        note=raw.get("note"),
        created_at=parse_datetime(raw.get("created_at")),
        currency=_text(raw.get("currency")),
        total_price=_text(raw.get("total_price")),
        line_items=line_items if isinstance(line_items, list) else [],
        raw=raw,
    )


def format_orders(raws: List[Dict[str, Any]]) -> List[StoreOrder]:
    return [format_order(raw) for raw in raws if isinstance(raw, dict) and raw.get("id") is not None]
