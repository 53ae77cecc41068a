import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import info_router, orders_router, sync_router
from config import settings
from services.sync_worker import sync_worker

logger = logging.getLogger("cod-sync")

app = FastAPI(title="PrimeCOD Shopify Sync")

allow_origins = settings.allowed_origins or ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(info_router)
app.include_router(sync_router)
app.include_router(orders_router)


@app.on_event("startup")
async def _on_startup() -> None:
    if settings.sync_worker_enabled:
        await sync_worker.start()
    if not settings.sync_secret:
        logger.warning(
            "SYNC_SECRET is not set; sync and order endpoints accept unauthenticated requests."
        )
    if allow_origins == ["*"]:
        logger.warning(
            "CORS is set to allow all origins with credentials; set ALLOWED_ORIGINS to explicit values."
        )


@app.on_event("shutdown")
async def _on_shutdown() -> None:
    await sync_worker.stop()
