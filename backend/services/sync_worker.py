import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from config import settings
from schemas import SyncSummary
from services.sync_service import sync_orders

logger = logging.getLogger("cod-sync")

SYNC_INTERVAL_SECONDS = 6 * 60 * 60


class SyncWorker:
    def __init__(self, config, interval_seconds: Optional[int] = None) -> None:
        self.config = config
        self.interval_seconds = interval_seconds or config.sync_interval_seconds or SYNC_INTERVAL_SECONDS
        self._task: Optional[asyncio.Task] = None
        self._last_run_at: Optional[datetime] = None
        self._last_success_at: Optional[datetime] = None
        self._last_error: Optional[str] = None
        self._last_summary: Optional[SyncSummary] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if not self._task:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def run_once(self) -> None:
        self._last_run_at = datetime.now(timezone.utc)
        try:
            report = await sync_orders(self.config)
            self._last_summary = report.summary
            self._last_success_at = datetime.now(timezone.utc)
            self._last_error = None
        except Exception as exc:  # pragma: no cover - background guard
            self._last_error = str(exc)
            logger.exception("Scheduled sync failed: %s", exc)

    async def _run(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval_seconds)

    def get_status(self) -> Dict[str, Any]:
        return {
            "running": self.is_running,
            "interval_seconds": self.interval_seconds,
            "last_run_at": self._last_run_at,
            "last_success_at": self._last_success_at,
            "last_error": self._last_error,
            "last_summary": self._last_summary,
        }


sync_worker = SyncWorker(settings)
