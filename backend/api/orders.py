import logging
from typing import Any, Awaitable, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from auth import require_sync_secret
from config import settings
from schemas import FulfillRequest, OrderActionResponse, PaymentStatusResponse
from services import orders_service
from services.orders_service import OrderNotFoundError

logger = logging.getLogger("cod-sync")

router = APIRouter(prefix="/api/orders", tags=["orders"], dependencies=[Depends(require_sync_secret)])


async def _run(order_id: int, action: str, call: Awaitable[Dict[str, Any]]) -> OrderActionResponse:
    try:
        result = await call
    except OrderNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Order action %s failed for %s: %s", action, order_id, exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return OrderActionResponse(order_id=order_id, action=action, success=bool(result.get("success")), result=result)


@router.post("/{order_id}/fulfill", response_model=OrderActionResponse)
async def fulfill(order_id: int, payload: FulfillRequest) -> OrderActionResponse:
    return await _run(
        order_id,
        "fulfill",
        orders_service.fulfill_order(settings, order_id, payload.tracking_number, payload.carrier),
    )


@router.post("/{order_id}/mark-paid", response_model=OrderActionResponse)
async def mark_paid(order_id: int) -> OrderActionResponse:
    return await _run(order_id, "mark_paid", orders_service.mark_paid(settings, order_id))


@router.post("/{order_id}/refund", response_model=OrderActionResponse)
async def refund(order_id: int) -> OrderActionResponse:
    return await _run(order_id, "refund", orders_service.refund_order(settings, order_id))


@router.post("/{order_id}/cod-return", response_model=OrderActionResponse)
async def cod_return(order_id: int) -> OrderActionResponse:
    return await _run(order_id, "cod_return", orders_service.cod_return(settings, order_id))


@router.get("/{order_id}/payment-status", response_model=PaymentStatusResponse)
async def read_payment_status(order_id: int) -> PaymentStatusResponse:
    try:
        data = await orders_service.payment_status(settings, order_id)
    except OrderNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Payment status lookup failed for %s: %s", order_id, exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return PaymentStatusResponse(**data)
