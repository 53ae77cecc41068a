import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent / ".env")


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _get_list(name: str, fallback: str = "") -> List[str]:
    raw_value = os.getenv(name, fallback)
    if not raw_value:
        return []
    return [item.strip() for item in raw_value.split(",") if item.strip()]


def _get_bool(name: str, fallback: str = "false") -> bool:
    raw_value = os.getenv(name, fallback)
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    shopify_store: str = _require_env("SHOPIFY_STORE")
    shopify_access_token: str = _require_env("SHOPIFY_ACCESS_TOKEN")
    primecod_token: str = _require_env("PRIMECOD_TOKEN")
    shopify_api_version: str = os.getenv("SHOPIFY_API_VERSION", "2024-01")
    primecod_base_url: str = os.getenv(
        "PRIMECOD_BASE_URL", "https://api.primecod.app/api"
    )
    carrier_name: str = os.getenv("COD_CARRIER_NAME", "PrimeCOD")
    sync_max_pages: int = int(os.getenv("SYNC_MAX_PAGES", "3"))
    order_lookback_days: int = int(os.getenv("ORDER_LOOKBACK_DAYS", "60"))
    order_cache_max_pages: int = int(os.getenv("ORDER_CACHE_MAX_PAGES", "4"))
    match_window_hours: int = int(os.getenv("MATCH_WINDOW_HOURS", "48"))
    live_email_lookup: bool = _get_bool("LIVE_EMAIL_LOOKUP", "true")
    recheck_tagged_orders: bool = _get_bool("RECHECK_TAGGED_ORDERS")
    http_timeout_seconds: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))
    sync_interval_seconds: int = int(os.getenv("SYNC_INTERVAL_SECONDS", "21600"))
    sync_worker_enabled: bool = _get_bool("SYNC_WORKER_ENABLED")
    sync_secret: str | None = os.getenv("SYNC_SECRET") or None
    ref_tag_prefix: str = "primecod-ref-"
    allowed_origins: List[str] = field(
        default_factory=lambda: _get_list("ALLOWED_ORIGINS", "*")
    )


settings = Settings()
