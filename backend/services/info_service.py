from schemas import ApiInfoResponse
from vendors import SUPPORTED_VENDORS


def get_api_info(config) -> ApiInfoResponse:
    return ApiInfoResponse(
        shopify_store=config.shopify_store,
        shopify_api_version=config.shopify_api_version,
        carrier_name=config.carrier_name,
        sync_max_pages=config.sync_max_pages,
        order_lookback_days=config.order_lookback_days,
        match_window_hours=config.match_window_hours,
        sync_worker_enabled=config.sync_worker_enabled,
        supported_vendors=list(SUPPORTED_VENDORS),
    )
