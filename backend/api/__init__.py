from .info import router as info_router
from .orders import router as orders_router
from .sync import router as sync_router

__all__ = [
    "info_router",
    "orders_router",
    "sync_router",
]
