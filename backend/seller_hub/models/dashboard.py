from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
from enum import Enum, IntEnum


class ReportingPeriod(IntEnum):
    LAST_7_DAYS = 7
    LAST_15_DAYS = 15
    LAST_30_DAYS = 30
    LAST_60_DAYS = 60
    LAST_90_DAYS = 90

    @classmethod
    def validate(cls, period_days: int) -> "ReportingPeriod":
        try:
            return cls(int(period_days))
        except (TypeError, ValueError):
            allowed = ", ".join(str(p.value) for p in cls)
            raise ValueError(f"period_days must be one of {allowed}; got {period_days!r}")


class AlertType(str, Enum):
    LOW_STOCK = "low_stock"
    PENDING_QUESTIONS = "pending_questions"
    PENDING_SHIPMENTS = "pending_shipments"
    OPEN_CLAIMS = "open_claims"


class DashboardStats(BaseModel):
    total_revenue: float = 0.0
    total_orders: int = 0
    total_products: int = 0
    active_products: int = 0
    paused_products: int = 0
    low_stock: int = 0
    pending_questions: int = 0
    pending_shipments: int = 0
    open_claims: int = 0
    total_visits: int = 0
    avg_ticket: float = 0.0
    conversion_rate: float = 0.0


class SalesChartPoint(BaseModel):
    date: str  # dd/mm label
    iso_date: str
    revenue: float = 0.0
    orders: int = 0


class AccountRevenue(BaseModel):
    account_id: str
    nickname: Optional[str] = None
    revenue: float = 0.0
    orders: int = 0


class TopProduct(BaseModel):
    id: str
    title: Optional[str] = None
    thumbnail: Optional[str] = None
    price: float = 0.0
    sales_count: int = 0
    revenue: float = 0.0
    available_quantity: Optional[int] = None
    status: Optional[str] = None
    account_id: str
    account_nickname: Optional[str] = None


class RecentOrder(BaseModel):
    id: str
    status: Optional[str] = None
    buyer_nickname: Optional[str] = None
    total_amount: float = 0.0
    currency_id: Optional[str] = None
    date_created: Optional[str] = None
    account_id: str
    account_nickname: Optional[str] = None


class DashboardAlert(BaseModel):
    type: str
    count: int
    message: str
    icon: str
    link: str


class PendingActionCounts(BaseModel):
    low_stock: int = 0
    questions: int = 0
    shipments: int = 0
    claims: int = 0


class DashboardOverview(BaseModel):
    empty: bool = False
    period_days: int
    accounts_count: int = 0
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    stats: DashboardStats = Field(default_factory=DashboardStats)
    sales_chart: List[SalesChartPoint] = Field(default_factory=list)
    revenue_by_account: List[AccountRevenue] = Field(default_factory=list)
    top_products: List[TopProduct] = Field(default_factory=list)
    recent_orders: List[RecentOrder] = Field(default_factory=list)
    alerts: List[DashboardAlert] = Field(default_factory=list)
    pending_actions: PendingActionCounts = Field(default_factory=PendingActionCounts)
    reputation: Optional[Dict[str, Any]] = None

    @classmethod
    def empty_state(cls, period_days: int) -> "DashboardOverview":
        """Result for a user with no connected accounts."""
        return cls(empty=True, period_days=period_days, accounts_count=0)


class SyncSummary(BaseModel):
    run_id: str
    status: str
    total: int = 0
    successful: int = 0
    failed: int = 0
    message: Optional[str] = None


class SyncAndOverviewResponse(BaseModel):
    sync: SyncSummary
    overview: DashboardOverview


class SyncRunResponse(BaseModel):
    id: str
    status: str
    started_at: datetime
    finished_at: Optional[datetime]
    total_accounts: int
    successful: int
    failed: int
    error_message: Optional[str]

    class Config:
        from_attributes = True
