from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Lead(BaseModel):
    reference: str
    email: Optional[str] = None
    phone: Optional[str] = None
    shipping_status: str = "unknown"
    confirmation_status: Optional[str] = None
    tracking_number: Optional[str] = None
    created_at: Optional[datetime] = None
    delivered_at: Optional[str] = None
    returned_at: Optional[str] = None
    raw: Optional[Dict[str, Any]] = None


class StoreOrder(BaseModel):
    id: int
    order_number: Optional[int] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    billing_phone: Optional[str] = None
    shipping_phone: Optional[str] = None
    financial_status: Optional[str] = None
    fulfillment_status: Optional[str] = None
    tags: List[str] = []
    note: Optional[str] = None
    created_at: Optional[datetime] = None
    currency: Optional[str] = None
    total_price: Optional[str] = None
    line_items: List[Dict[str, Any]] = []
    raw: Optional[Dict[str, Any]] = None

    @property
    def label(self) -> str:
        return str(self.order_number or self.name or self.id)


class MatchingStats(BaseModel):
    email_matches: int = 0
    phone_matches: int = 0
    partial_email_matches: int = 0
    fuzzy_email_matches: int = 0
    reference_matches: int = 0
    no_matches: int = 0
    total_attempts: int = 0


class SyncDebugInfo(BaseModel):
    emails_found: int = 0
    phones_found: int = 0
    cached_orders: int = 0
    cache_date_range: str = "No orders"
    cache_error: Optional[str] = None


class SyncSummary(BaseModel):
    duration_seconds: float = 0.0
    pages_processed: int = 0
    total_leads_processed: int = 0
    orders_updated: int = 0
    fulfilled_orders: int = 0
    paid_orders: int = 0
    refunded_orders: int = 0
    processing_orders: int = 0
    error_count: int = 0
    match_rate_percentage: float = 0.0


class LeadUpdate(BaseModel):
    primecod_reference: str
    shopify_order: str
    shopify_order_id: int
    match_method: str
    status: str
    tracking_number: Optional[str] = None
    updates: List[str] = []
    planned_actions: List[str] = []
    steps: Dict[str, bool] = {}
    dry_run: bool = False


class LeadError(BaseModel):
    primecod_reference: str
    error: str
    status: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class SyncReport(BaseModel):
    success: bool = True
    message: str
    dry_run: bool = False
    summary: SyncSummary
    matching_breakdown: MatchingStats
    debug_info: SyncDebugInfo
    detailed_updates: List[LeadUpdate] = []
    errors: List[LeadError] = []
    timestamp: datetime


class SyncWorkerStatusResponse(BaseModel):
    running: bool
    interval_seconds: int
    last_run_at: Optional[datetime]
    last_success_at: Optional[datetime]
    last_error: Optional[str]
    last_summary: Optional[SyncSummary] = None


class FulfillRequest(BaseModel):
    tracking_number: str = Field(..., min_length=1, description="Carrier tracking number")
    carrier: Optional[str] = Field(
        default=None, description="Tracking company, defaults to the configured COD carrier"
    )


class OrderActionResponse(BaseModel):
    order_id: int
    action: str
    success: bool
    result: Dict[str, Any]


class PaymentStatusResponse(BaseModel):
    order_id: int
    order_number: Optional[int]
    financial_status: Optional[str]
    fulfillment_status: Optional[str]
    total_price: Optional[str]
    currency: Optional[str]
    tags: List[str]
    transactions: List[Dict[str, Any]]


class ApiInfoResponse(BaseModel):
    shopify_store: str
    shopify_api_version: str
    carrier_name: str
    sync_max_pages: int
    order_lookback_days: int
    match_window_hours: int
    sync_worker_enabled: bool
    supported_vendors: List[str]
