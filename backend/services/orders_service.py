import asyncio
from typing import Any, Callable, Dict, Optional

from services.order_actions import (
    create_full_refund,
    fulfill_order_with_tracking,
    get_payment_status,
    handle_cod_return,
    mark_order_as_paid,
)
from shopify_client import create_shopify_client


class OrderNotFoundError(LookupError):
    pass


def _with_existing_order(config, order_id: int, action: Callable[..., Dict[str, Any]], *args: Any) -> Dict[str, Any]:
    with create_shopify_client(config) as client:
        if client.get_order(order_id) is None:
            raise OrderNotFoundError(f"Order {order_id} not found")
        return action(client, order_id, *args)


async def fulfill_order(config, order_id: int, tracking_number: str, carrier: Optional[str] = None) -> Dict[str, Any]:
    return await asyncio.to_thread(
        _with_existing_order,
        config,
        order_id,
        fulfill_order_with_tracking,
        tracking_number,
        carrier or config.carrier_name,
    )


async def mark_paid(config, order_id: int) -> Dict[str, Any]:
    return await asyncio.to_thread(_with_existing_order, config, order_id, mark_order_as_paid)


async def refund_order(config, order_id: int) -> Dict[str, Any]:
    return await asyncio.to_thread(_with_existing_order, config, order_id, create_full_refund)


def _cod_return(config, order_id: int) -> Dict[str, Any]:
    with create_shopify_client(config) as client:
        result = handle_cod_return(client, order_id)
    if result.get("not_found"):
        raise OrderNotFoundError(result["error"])
    return result


async def cod_return(config, order_id: int) -> Dict[str, Any]:
    return await asyncio.to_thread(_cod_return, config, order_id)


def _payment_status(config, order_id: int) -> Dict[str, Any]:
    with create_shopify_client(config) as client:
        status = get_payment_status(client, order_id)
    if status is None:
        raise OrderNotFoundError(f"Order {order_id} not found")
    return status


async def payment_status(config, order_id: int) -> Dict[str, Any]:
    return await asyncio.to_thread(_payment_status, config, order_id)
