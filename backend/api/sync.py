import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from auth import require_sync_secret
from config import settings
from schemas import SyncReport, SyncWorkerStatusResponse
from services.sync_service import sync_orders
from services.sync_worker import sync_worker

logger = logging.getLogger("cod-sync")

router = APIRouter(prefix="/api", tags=["sync"], dependencies=[Depends(require_sync_secret)])


@router.get("/sync-orders", response_model=SyncReport)
async def run_sync_orders(
    dry_run: bool = Query(default=False),
    max_pages: int | None = Query(default=None, ge=1, le=50),
) -> SyncReport:
    try:
        return await sync_orders(settings, dry_run=dry_run, max_pages=max_pages)
    except Exception as exc:
        logger.exception("Sync failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@router.get("/sync/status", response_model=SyncWorkerStatusResponse)
async def get_status() -> SyncWorkerStatusResponse:
    return SyncWorkerStatusResponse(**sync_worker.get_status())


@router.post("/sync/start", response_model=SyncWorkerStatusResponse)
async def start_worker() -> SyncWorkerStatusResponse:
    try:
        await sync_worker.start()
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return SyncWorkerStatusResponse(**sync_worker.get_status())


@router.post("/sync/stop", response_model=SyncWorkerStatusResponse)
async def stop_worker() -> SyncWorkerStatusResponse:
    try:
        await sync_worker.stop()
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return SyncWorkerStatusResponse(**sync_worker.get_status())
