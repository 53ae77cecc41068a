import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from primecod_client import PrimeCODClient, create_primecod_client
from schemas import (
    Lead,
    LeadError,
    MatchingStats,
    StoreOrder,
    SyncDebugInfo,
    SyncReport,
    SyncSummary,
)
from services.matching import MatchResult, build_matchers, find_claimed_order, match_lead
from services.reconciliation import (
    UPDATE_COD_PAID,
    UPDATE_FULFILLED,
    UPDATE_MARKED_PAID,
    UPDATE_REFUNDED,
    UPDATE_STATUS,
    reconcile,
)
from services.records import format_lead, format_order, format_orders
from shopify_client import ORDER_PAGE_LIMIT, ShopifyClient, create_shopify_client
from vendors import ShopifyAPIError

logger = logging.getLogger("cod-sync")

METHOD_STATS_FIELDS = {
    "email": "email_matches",
    "phone": "phone_matches",
    "partial_email": "partial_email_matches",
    "fuzzy_email": "fuzzy_email_matches",
    "reference": "reference_matches",
}


def preload_orders(shop: ShopifyClient, lookback_days: int, max_pages: int) -> List[StoreOrder]:
    since = datetime.now(timezone.utc) - timedelta(days=lookback_days)
    params = {
        "status": "any",
        "limit": ORDER_PAGE_LIMIT,
        "created_at_min": since.isoformat(),
    }
    orders = format_orders(list(shop.iter_orders(params, max_pages)))
    logger.info("Loaded %s recent Shopify orders for matching", len(orders))
    return orders


def _cache_date_range(orders: List[StoreOrder]) -> str:
    dates = sorted(order.created_at for order in orders if order.created_at is not None)
    if not dates:
        return "No orders"
    return f"{dates[0].date().isoformat()} to {dates[-1].date().isoformat()}"


def find_order_for_lead(
    shop: ShopifyClient,
    lead: Lead,
    orders: List[StoreOrder],
    config,
) -> Optional[MatchResult]:
    claimed = find_claimed_order(lead, orders, config.ref_tag_prefix)
    if claimed is not None:
        return MatchResult(order=claimed, method="reference")

    matchers = build_matchers(config.match_window_hours)
    result = match_lead(lead, orders, matchers)
    if result is not None or not (config.live_email_lookup and lead.email):
        return result

    try:
        live_orders = format_orders(shop.search_orders_by_email(lead.email))
    except ShopifyAPIError as exc:
        logger.warning("Live email lookup failed for lead %s: %s", lead.reference, exc)
        return None
    return match_lead(lead, live_orders, matchers)


def refresh_cached_order(shop: ShopifyClient, orders: List[StoreOrder], order_id: int) -> None:
    """Replace the cached copy of an order with its current state."""
    try:
        raw = shop.get_order(order_id)
    except ShopifyAPIError as exc:
        logger.warning("Could not refresh cached order %s: %s", order_id, exc)
        return
    if raw is None:
        return
    fresh = format_order(raw)
    for index, cached in enumerate(orders):
        if cached.id == order_id:
            orders[index] = fresh
            return
    orders.append(fresh)


def run_sync(
    shop: ShopifyClient,
    primecod: PrimeCODClient,
    config,
    *,
    dry_run: bool = False,
    max_pages: Optional[int] = None,
) -> SyncReport:
    started = time.monotonic()
    summary = SyncSummary()
    stats = MatchingStats()
    debug = SyncDebugInfo()
    updates = []
    errors = []
    handled_references = set()

    logger.info("Starting PrimeCOD -> Shopify sync (dry_run=%s)", dry_run)
    try:
        orders = preload_orders(shop, config.order_lookback_days, config.order_cache_max_pages)
    except ShopifyAPIError as exc:
        logger.error("Failed to load Shopify orders for caching: %s", exc)
        debug.cache_error = str(exc)
        orders = []
    debug.cached_orders = len(orders)
    debug.cache_date_range = _cache_date_range(orders)

    page_cap = max_pages or config.sync_max_pages
    for page, raw_leads in primecod.iter_lead_pages(page_cap):
        summary.pages_processed = page
        summary.total_leads_processed += len(raw_leads)
        logger.info("Processing %s leads from page %s/%s", len(raw_leads), page, page_cap)
        for raw_lead in raw_leads:
            lead = format_lead(raw_lead)
            if lead.reference:
                if lead.reference in handled_references:
                    logger.info("Lead %s already handled in this run, skipping", lead.reference)
                    continue
                handled_references.add(lead.reference)
            if lead.email:
                debug.emails_found += 1
            if lead.phone:
                debug.phones_found += 1
            stats.total_attempts += 1
            try:
                match = find_order_for_lead(shop, lead, orders, config)
                if match is None:
                    stats.no_matches += 1
                    logger.info("No Shopify match found for %s", lead.reference)
                    continue
                field = METHOD_STATS_FIELDS.get(match.method)
                if field:
                    setattr(stats, field, getattr(stats, field) + 1)
                update = reconcile(
                    shop,
                    lead,
                    match.order,
                    match.method,
                    carrier=config.carrier_name,
                    recheck_tagged=config.recheck_tagged_orders,
                    dry_run=dry_run,
                    ref_tag_prefix=config.ref_tag_prefix,
                )
            except Exception as exc:
                logger.exception("Error processing lead %s: %s", lead.reference, exc)
                errors.append(
                    LeadError(
                        primecod_reference=lead.reference,
                        error=str(exc),
                        status=lead.shipping_status,
                        email=lead.email,
                        phone=lead.phone,
                    )
                )
                continue

            if update.steps:
                refresh_cached_order(shop, orders, match.order.id)
            if update.updates or (dry_run and update.planned_actions):
                updates.append(update)
            if update.updates:
                summary.orders_updated += 1
                logger.info(
                    "Updated %s -> Shopify order %s (%s match): %s",
                    lead.reference,
                    update.shopify_order,
                    match.method,
                    ", ".join(update.updates),
                )
            if UPDATE_FULFILLED in update.updates:
                summary.fulfilled_orders += 1
            if UPDATE_COD_PAID in update.updates or UPDATE_MARKED_PAID in update.updates:
                summary.paid_orders += 1
            if UPDATE_REFUNDED in update.updates:
                summary.refunded_orders += 1
            if UPDATE_STATUS in update.updates:
                summary.processing_orders += 1

    summary.error_count = len(errors)
    summary.duration_seconds = round(time.monotonic() - started, 2)
    if stats.total_attempts:
        matched = stats.total_attempts - stats.no_matches - len(errors)
        summary.match_rate_percentage = round(100 * max(matched, 0) / stats.total_attempts, 1)

    return SyncReport(
        message=f"Sync completed in {summary.duration_seconds}s",
        dry_run=dry_run,
        summary=summary,
        matching_breakdown=stats,
        debug_info=debug,
        detailed_updates=updates,
        errors=errors,
        timestamp=datetime.now(timezone.utc),
    )


def _run_with_clients(config, dry_run: bool, max_pages: Optional[int]) -> SyncReport:
    with create_shopify_client(config) as shop, create_primecod_client(config) as primecod:
        return run_sync(shop, primecod, config, dry_run=dry_run, max_pages=max_pages)


async def sync_orders(config, *, dry_run: bool = False, max_pages: Optional[int] = None) -> SyncReport:
    return await asyncio.to_thread(_run_with_clients, config, dry_run, max_pages)
