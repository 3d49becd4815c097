"""Dashboard aggregation over every connected seller account.

For each account the aggregator issues the stats, orders, products,
questions, shipments, claims and visits calls concurrently. Each call has its
own deadline and settles on its own; a failed call is logged and contributes
zero (or an empty list) to the totals. Only the account list itself is fatal.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from seller_hub.config import settings
from seller_hub.models.dashboard import (
    AccountRevenue,
    AlertType,
    DashboardAlert,
    DashboardOverview,
    DashboardStats,
    PendingActionCounts,
    RecentOrder,
    ReportingPeriod,
    SalesChartPoint,
    TopProduct,
)
from seller_hub.models.seller import SellerAccount
from seller_hub.services.account_service import fetch_accounts
from seller_hub.services.errors import AccountNotConnectedError
from seller_hub.services.seller_api_client import SellerApiClient
from seller_hub.utils.concurrency import Settled, settle_all, with_deadline
from seller_hub.utils.envelope import extract_total, unwrap_envelope, unwrap_list
from seller_hub.utils.logger import logger
from seller_hub.utils.records import as_dict, as_float, as_int, as_text, parse_datetime, pick

PAID_STATUSES = {"paid", "confirmed"}
TOP_PRODUCTS_LIMIT = 5
RECENT_ORDERS_LIMIT = 5

# (type, icon, link, message template); insertion order is the display order.
ALERT_DEFINITIONS: List[Tuple[AlertType, str, str, str]] = [
    (AlertType.LOW_STOCK, "inventory", "/inventory", "{count} product(s) with low stock"),
    (AlertType.PENDING_QUESTIONS, "help_outline", "/questions", "{count} unanswered question(s)"),
    (AlertType.PENDING_SHIPMENTS, "local_shipping", "/shipments", "{count} order(s) ready to ship"),
    (AlertType.OPEN_CLAIMS, "report_problem", "/claims", "{count} open claim(s)"),
]


@dataclass
class AccountSnapshot:
    """Everything fetched for one account; missing pieces stay at zero."""

    account: SellerAccount
    stats: Dict[str, Any] = field(default_factory=dict)
    orders: List[Dict[str, Any]] = field(default_factory=list)
    products: List[Dict[str, Any]] = field(default_factory=list)
    pending_questions: int = 0
    pending_shipments: int = 0
    open_claims: int = 0
    visits: int = 0
    failed_metrics: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def _parse_stats(body: Any) -> Dict[str, Any]:
    stats = unwrap_envelope(body, "stats")
    if not isinstance(stats, dict):
        stats = as_dict(unwrap_envelope(body))
    return stats


def _parse_orders(body: Any) -> List[Dict[str, Any]]:
    orders = unwrap_list(body, "orders") or unwrap_list(body, "results")
    return [o for o in orders if isinstance(o, dict)]


def _parse_products(body: Any) -> List[Dict[str, Any]]:
    products = unwrap_list(body, "products") or unwrap_list(body, "items")
    return [p for p in products if isinstance(p, dict)]


def _parse_visits(body: Any) -> int:
    payload = unwrap_envelope(body, "visits")
    if payload is None:
        payload = unwrap_envelope(body)
    if isinstance(payload, (int, float, str)) and not isinstance(payload, bool):
        return as_int(payload)
    if isinstance(payload, list):
        return sum(as_int(pick(entry, "total", "visits", "count")) for entry in payload)
    if isinstance(payload, dict):
        total = pick(payload, "total", "totalVisits", "total_visits", "visits")
        if isinstance(total, list):
            return sum(as_int(pick(entry, "total", "visits", "count")) for entry in total)
        if total is None and isinstance(payload.get("results"), list):
            return sum(as_int(pick(entry, "total", "visits", "count")) for entry in payload["results"])
        return as_int(total)
    return 0


def _parse_reputation(body: Any) -> Optional[Dict[str, Any]]:
    reputation = unwrap_envelope(body, "reputation")
    if not isinstance(reputation, dict):
        reputation = unwrap_envelope(body)
    if isinstance(reputation, dict) and reputation:
        return reputation
    return None


def _order_amount(order: Dict[str, Any]) -> float:
    return as_float(pick(order, "total_amount", "totalAmount", "paid_amount", "paidAmount", "total"))


def _order_status(order: Dict[str, Any]) -> str:
    return str(pick(order, "status", default="")).lower()


def _order_date(order: Dict[str, Any]) -> Optional[datetime]:
    return parse_datetime(pick(order, "date_created", "dateCreated", "createdAt", "created_at"))


def _sales_count(product: Dict[str, Any]) -> int:
    return as_int(pick(product, "sold_quantity", "soldQuantity", "salesCount", "sales_count"))


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------

async def _fetch_account_snapshot(
    client: SellerApiClient,
    account: SellerAccount,
    period_days: int,
    *,
    fetch_timeout: Optional[float],
    orders_limit: int,
    products_limit: int,
    pending_limit: int,
) -> AccountSnapshot:
    fetches: List[Tuple[str, Callable[[Any], Any], Awaitable[Any]]] = [
        ("stats", _parse_stats, client.get_product_stats(account.id)),
        ("orders", _parse_orders, client.list_orders(account.id, limit=orders_limit)),
        ("products", _parse_products, client.list_products(account.id, limit=products_limit, sort="sales")),
        ("pending_questions", lambda body: extract_total(body, "questions"),
         client.list_questions(account.id, limit=pending_limit)),
        ("pending_shipments", lambda body: extract_total(body, "shipments"),
         client.list_shipments(account.id, limit=pending_limit)),
        ("open_claims", lambda body: extract_total(body, "claims"),
         client.list_claims(account.id, limit=pending_limit)),
        ("visits", _parse_visits, client.get_visits(account.id, days=period_days)),
    ]

    async def _fetch_and_parse(parse: Callable[[Any], Any], call: Awaitable[Any]) -> Any:
        body = await with_deadline(call, fetch_timeout)
        return parse(body)

    outcomes = await settle_all(_fetch_and_parse(parse, call) for _name, parse, call in fetches)

    snapshot = AccountSnapshot(account=account)
    for (metric, _parse, _call), outcome in zip(fetches, outcomes):
        if outcome.ok:
            setattr(snapshot, metric, outcome.value)
            continue
        snapshot.failed_metrics.append(metric)
        error = outcome.error
        if isinstance(error, asyncio.TimeoutError):
            reason = f"timed out after {fetch_timeout}s"
        else:
            reason = f"{type(error).__name__}: {error}"
        logger.warning(f"Dashboard fetch failed: account={account.id} metric={metric} error={reason}")
    return snapshot


async def _first_reputation(
    client: SellerApiClient,
    accounts: List[SellerAccount],
    fetch_timeout: Optional[float],
) -> Optional[Dict[str, Any]]:
    """Return the reputation of the first account, in list order, that has one.

    Accounts are asked one after another and share a single ``fetch_timeout``
    budget; once it is spent the remaining accounts are skipped.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + fetch_timeout if fetch_timeout and fetch_timeout > 0 else None

    for account in accounts:
        remaining = None
        if deadline is not None:
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning(f"Reputation budget of {fetch_timeout}s spent before account={account.id}")
                break
        try:
            body = await with_deadline(client.get_reputation(account.id), remaining)
            reputation = _parse_reputation(body)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Dashboard fetch failed: account={account.id} metric=reputation error={type(e).__name__}: {e}")
            continue
        if reputation is not None:
            reputation.setdefault("account_id", account.id)
            return reputation
    return None

# ---------------------------------------------------------------------------
# Fan-in
# ---------------------------------------------------------------------------

def _build_sales_chart(orders: List[Dict[str, Any]], window_start: datetime) -> List[SalesChartPoint]:
    buckets: Dict[date, Dict[str, Any]] = {}
    for order in orders:
        created = _order_date(order)
        if created is None or created < window_start:
            continue
        day = created.date()
        bucket = buckets.setdefault(day, {"revenue": 0.0, "orders": 0})
        bucket["orders"] += 1
        if _order_status(order) in PAID_STATUSES:
            bucket["revenue"] += _order_amount(order)

    return [
        SalesChartPoint(
            date=day.strftime("%d/%m"),
            iso_date=day.isoformat(),
            revenue=round(bucket["revenue"], 2),
            orders=bucket["orders"],
        )
        for day, bucket in sorted(buckets.items())
    ]


def _top_product(product: Dict[str, Any], account: SellerAccount) -> Optional[TopProduct]:
    product_id = as_text(pick(product, "id", "itemId", "item_id", "ml_item_id"))
    if product_id is None:
        return None
    sales = _sales_count(product)
    price = as_float(pick(product, "price"))
    available = pick(product, "available_quantity", "availableQuantity")
    try:
        return TopProduct(
            id=product_id,
            title=as_text(pick(product, "title")),
            thumbnail=as_text(pick(product, "thumbnail", "secure_thumbnail", "secureThumbnail")),
            price=price,
            sales_count=sales,
            revenue=round(price * sales, 2),
            available_quantity=as_int(available) if available is not None else None,
            status=as_text(pick(product, "status")),
            account_id=account.id,
            account_nickname=account.nickname,
        )
    except ValidationError as e:
        logger.warning(f"Skipping malformed product account={account.id} id={product_id}: {e}")
        return None


def _recent_order(order: Dict[str, Any], account: SellerAccount) -> Optional[RecentOrder]:
    order_id = as_text(pick(order, "id", "orderId", "order_id", "ml_order_id"))
    if order_id is None:
        return None
    created = _order_date(order)
    try:
        return RecentOrder(
            id=order_id,
            status=as_text(pick(order, "status")),
            buyer_nickname=as_text(pick(order, "buyer.nickname", "buyerNickname", "buyer_nickname")),
            total_amount=_order_amount(order),
            currency_id=as_text(pick(order, "currency_id", "currencyId")),
            date_created=created.isoformat() if created else None,
            account_id=account.id,
            account_nickname=account.nickname,
        )
    except ValidationError as e:
        logger.warning(f"Skipping malformed order account={account.id} id={order_id}: {e}")
        return None


def _build_top_products(snapshots: List[AccountSnapshot]) -> List[TopProduct]:
    ranked: List[TopProduct] = []
    for snapshot in snapshots:
        for product in snapshot.products:
            top_product = _top_product(product, snapshot.account)
            if top_product is not None:
                ranked.append(top_product)
    ranked.sort(key=lambda p: p.sales_count, reverse=True)
    return ranked[:TOP_PRODUCTS_LIMIT]


def _build_recent_orders(snapshots: List[AccountSnapshot]) -> List[RecentOrder]:
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    dated: List[Tuple[datetime, RecentOrder]] = []
    for snapshot in snapshots:
        for order in snapshot.orders:
            recent = _recent_order(order, snapshot.account)
            if recent is None:
                continue
            created = _order_date(order)
            dated.append((created or epoch, recent))
    dated.sort(key=lambda item: item[0], reverse=True)
    return [order for _created, order in dated[:RECENT_ORDERS_LIMIT]]


def _build_alerts(pending: PendingActionCounts) -> List[DashboardAlert]:
    counts = {
        AlertType.LOW_STOCK: pending.low_stock,
        AlertType.PENDING_QUESTIONS: pending.questions,
        AlertType.PENDING_SHIPMENTS: pending.shipments,
        AlertType.OPEN_CLAIMS: pending.claims,
    }
    alerts = []
    for alert_type, icon, link, template in ALERT_DEFINITIONS:
        count = counts[alert_type]
        if count > 0:
            alerts.append(
                DashboardAlert(
                    type=alert_type.value,
                    count=count,
                    message=template.format(count=count),
                    icon=icon,
                    link=link,
                )
            )
    return alerts


def _safe_ratio(numerator: float, denominator: float, scale: float = 1.0) -> float:
    if not denominator:
        return 0.0
    value = numerator / denominator * scale
    if value != value or value in (float("inf"), float("-inf")):
        return 0.0
    return round(value, 2)


async def aggregate_dashboard(
    client: SellerApiClient,
    accounts: List[SellerAccount],
    period_days: int,
    *,
    fetch_timeout: Optional[float] = None,
    max_concurrency: Optional[int] = None,
    orders_limit: Optional[int] = None,
    products_limit: Optional[int] = None,
    pending_limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> DashboardOverview:
    """Aggregate every account into a single :class:`DashboardOverview`.

    Never raises because of a per-account or per-metric failure; those count
    as zero. An empty ``accounts`` list returns the empty state without
    calling the seller API.
    """
    period = ReportingPeriod.validate(period_days)
    now = now or datetime.now(timezone.utc)

    if not accounts:
        return DashboardOverview.empty_state(period.value)

    if fetch_timeout is None:
        fetch_timeout = settings.DASHBOARD_FETCH_TIMEOUT_SECONDS
    semaphore = asyncio.Semaphore(max(1, max_concurrency or settings.DASHBOARD_MAX_CONCURRENT_ACCOUNTS))

    async def _snapshot(account: SellerAccount) -> AccountSnapshot:
        async with semaphore:
            return await _fetch_account_snapshot(
                client,
                account,
                period.value,
                fetch_timeout=fetch_timeout,
                orders_limit=orders_limit or settings.DASHBOARD_ORDERS_LIMIT,
                products_limit=products_limit or settings.DASHBOARD_PRODUCTS_LIMIT,
                pending_limit=pending_limit or settings.DASHBOARD_PENDING_LIMIT,
            )

    settled: List[Settled[AccountSnapshot]] = await settle_all(_snapshot(a) for a in accounts)

    snapshots: List[AccountSnapshot] = []
    for account, outcome in zip(accounts, settled):
        if outcome.ok:
            snapshots.append(outcome.value)
        else:
            logger.error(f"Dashboard aggregation failed for account={account.id}: {outcome.error}")
            snapshots.append(AccountSnapshot(account=account, failed_metrics=["all"]))

    reputation = await _first_reputation(client, accounts, fetch_timeout)

    stats = DashboardStats()
    revenue_by_account: List[AccountRevenue] = []
    all_orders: List[Dict[str, Any]] = []

    for snapshot in snapshots:
        account_revenue = sum(
            _order_amount(order) for order in snapshot.orders if _order_status(order) in PAID_STATUSES
        )
        account_orders = len(snapshot.orders)

        stats.total_revenue += account_revenue
        stats.total_orders += account_orders
        stats.total_products += as_int(pick(snapshot.stats, "totalProducts", "total_products", "total"))
        stats.active_products += as_int(pick(snapshot.stats, "activeProducts", "active_products", "active"))
        stats.paused_products += as_int(pick(snapshot.stats, "pausedProducts", "paused_products", "paused"))
        stats.low_stock += as_int(pick(snapshot.stats, "lowStockProducts", "low_stock_products", "lowStock", "low_stock"))
        stats.pending_questions += snapshot.pending_questions
        stats.pending_shipments += snapshot.pending_shipments
        stats.open_claims += snapshot.open_claims
        stats.total_visits += snapshot.visits

        revenue_by_account.append(
            AccountRevenue(
                account_id=snapshot.account.id,
                nickname=snapshot.account.nickname,
                revenue=round(account_revenue, 2),
                orders=account_orders,
            )
        )
        all_orders.extend(snapshot.orders)

    stats.total_revenue = round(stats.total_revenue, 2)
    stats.avg_ticket = _safe_ratio(stats.total_revenue, stats.total_orders)
    stats.conversion_rate = _safe_ratio(stats.total_orders, stats.total_visits, scale=100.0)

    pending = PendingActionCounts(
        low_stock=stats.low_stock,
        questions=stats.pending_questions,
        shipments=stats.pending_shipments,
        claims=stats.open_claims,
    )

    window_start = now - timedelta(days=period.value)
    failed_accounts = sum(1 for s in snapshots if s.failed_metrics)
    logger.info(
        "Dashboard aggregated: accounts=%s period_days=%s orders=%s revenue=%.2f degraded_accounts=%s",
        len(accounts),
        period.value,
        stats.total_orders,
        stats.total_revenue,
        failed_accounts,
    )

    return DashboardOverview(
        empty=False,
        period_days=period.value,
        accounts_count=len(accounts),
        generated_at=now,
        stats=stats,
        sales_chart=_build_sales_chart(all_orders, window_start),
        revenue_by_account=revenue_by_account,
        top_products=_build_top_products(snapshots),
        recent_orders=_build_recent_orders(snapshots),
        alerts=_build_alerts(pending),
        pending_actions=pending,
        reputation=reputation,
    )


async def build_dashboard(
    client: SellerApiClient,
    period_days: int,
    account_id: Optional[str] = None,
    **options: Any,
) -> DashboardOverview:
    """Load the user's accounts and aggregate them.

    Raises ``ValueError`` for an unsupported period,
    :class:`DashboardUnavailableError` when the account list cannot be loaded
    and :class:`AccountNotConnectedError` when ``account_id`` is not one of
    the user's accounts.
    """
    ReportingPeriod.validate(period_days)
    accounts = await fetch_accounts(client)

    if account_id:
        accounts = [a for a in accounts if a.id == str(account_id)]
        if not accounts:
            raise AccountNotConnectedError(str(account_id))

    return await aggregate_dashboard(client, accounts, period_days, **options)
