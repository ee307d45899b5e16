"""
Response schemas parsed once at the gateway boundary.

Backend payloads are loosely typed (Laravel returns ids as ints or uuids, booleans as 0/1);
services validate into these models so downstream code works against narrowed types.
"""
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

UserType = Literal["admin", "customer", "worker"]


def _as_str(v: Any) -> Any:
    if v is None or isinstance(v, str):
        return v
    return str(v)


class User(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    email: str = ""
    email_verified_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        return _as_str(v)


class UserProfile(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    user_type: UserType
    first_name: str = ""
    last_name: str = ""
    phone: str | None = None
    location: str | None = None
    city: str | None = None
    postcode: str | None = None
    postcode_p1: str | None = None
    postcode_p2: str | None = None
    postcode_p3: str | None = None
    country: str | None = None
    longitude: float | None = None
    latitude: float | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        return _as_str(v)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class AuthPayload(BaseModel):
    """Body of /auth/login, /auth/register and /auth/profile: { user, profile, token? }."""
    model_config = ConfigDict(extra="ignore")

    user: User
    profile: UserProfile
    token: str | None = None


class Notification(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: str
    type: str
    title: str = ""
    message: str = ""
    is_read: bool = False
    related_id: str | None = None
    related_type: str | None = None
    data: Any = None
    created_at: str | None = None

    @field_validator("id", "user_id", "related_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Any:
        return _as_str(v)


class CreateNotificationParams(BaseModel):
    user_id: str
    type: str
    title: str
    message: str
    related_id: str | None = None
    related_type: str | None = None

    @field_validator("user_id", "related_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Any:
        return _as_str(v)


class ListPage(BaseModel):
    """One cached page of a listing. Rebuilt on every fetch or optimistic mutation."""

    items: list[dict[str, Any]] = Field(default_factory=list)
    total_count: int = 0
    page: int = 1
    page_size: int = 10

    @model_validator(mode="after")
    def check_page_bounds(self) -> "ListPage":
        if self.page_size < 1:
            raise ValueError("page_size must be at least 1")
        if len(self.items) > self.page_size:
            raise ValueError(f"page holds {len(self.items)} items but page_size is {self.page_size}")
        return self

    @property
    def total_pages(self) -> int:
        if self.total_count <= 0:
            return 0
        return -(-self.total_count // self.page_size)


class PostcodeParts(BaseModel):
    p1: str = ""
    p2: str = ""
    p3: str = ""


class CheckoutSession(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    checkout_url: str = Field(alias="checkoutUrl")
    session_id: str = Field(alias="sessionId")
    amount: float | None = None


class PaymentReturn(BaseModel):
    """Query parameters the hosted payment page appends when it sends the user back."""

    session_id: str | None = None
    status: str | None = None
    offer_id: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "success" and bool(self.session_id) and bool(self.offer_id)


def _as_number(v: Any) -> Any:
    """Backend sends decimals as strings and nulls for empty aggregates; both become numbers."""
    if v is None or v == "":
        return 0
    if isinstance(v, (int, float)):
        return v
    try:
        return float(v)
    except (TypeError, ValueError):
        return 0


class AdminStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    total_users: int = Field(0, alias="totalUsers")
    total_customers: int = Field(0, alias="totalCustomers")
    total_workers: int = Field(0, alias="totalWorkers")
    new_this_month: int = Field(0, alias="newThisMonth")
    total_revenue: float = Field(0, alias="totalRevenue")
    total_profit: float = Field(0, alias="totalProfit")
    worker_payouts: float = Field(0, alias="workerPayouts")
    active_bookings: int = Field(0, alias="activeBookings")
    completed_bookings: int = Field(0, alias="completedBookings")
    total_bookings: int = Field(0, alias="totalBookings")
    growth_rate: float = Field(0, alias="growthRate")

    @field_validator("*", mode="before")
    @classmethod
    def coerce_numbers(cls, v: Any) -> Any:
        v = _as_number(v)
        return int(v) if isinstance(v, float) and v.is_integer() else v


class PlatformStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    jobs_completed: int = Field(0, alias="jobsCompleted")
    active_workers: int = Field(0, alias="activeWorkers")
    customer_satisfaction: float = Field(96, alias="customerSatisfaction")
    platform_fees: float = Field(0, alias="platformFees")
    worker_payouts: float = Field(0, alias="workerPayouts")
    total_categories: int = Field(0, alias="totalCategories")
    avg_rating: float = Field(4.8, alias="avgRating")

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        # Missing and null both mean "use the default" (satisfaction 96, rating 4.8)
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data

    @field_validator("*", mode="before")
    @classmethod
    def coerce_numbers(cls, v: Any) -> Any:
        v = _as_number(v)
        return int(v) if isinstance(v, float) and v.is_integer() else v


class WorkerStats(BaseModel):
    """/worker-data stats. Zero or missing goals and rates fall back to their defaults."""
    model_config = ConfigDict(extra="ignore")

    monthly_earnings: float = 0
    monthly_gross_earnings: float = 0
    monthly_commission: float = 0
    completed_jobs: int = 0
    average_rating: float = 0
    active_clients: int = 0
    category: str = "General"
    commission_rate: float = 0
    total_reviews: int = 0
    new_clients_this_month: int = 0
    jobs_this_month: int = 0
    monthly_goal: float = 3000
    monthly_job_goal: int = 20
    response_rate: float = 95
    on_time_rate: float = 98
    repeat_customers: int = 0
    monthly_earnings_data: list[Any] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def drop_falsy(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v not in (None, "", 0, "0")}
        return data

    @field_validator(
        "monthly_earnings", "monthly_gross_earnings", "monthly_commission", "completed_jobs",
        "average_rating", "active_clients", "commission_rate", "total_reviews",
        "new_clients_this_month", "jobs_this_month", "monthly_goal", "monthly_job_goal",
        "response_rate", "on_time_rate", "repeat_customers",
        mode="before",
    )
    @classmethod
    def coerce_numbers(cls, v: Any) -> Any:
        v = _as_number(v)
        return int(v) if isinstance(v, float) and v.is_integer() else v


class PaymentStats(BaseModel):
    total_revenue: float = 0
    total_commission: float = 0
    total_worker_payouts: float = 0
    completed_payments: int = 0
    pending_payments: int = 0
    failed_payments: int = 0
    average_commission_rate: float = 0
    avg_commission_per_job: float = 0


class AccountStatus(BaseModel):
    """Worker account state. A worker with no status row yet counts as active."""
    model_config = ConfigDict(extra="ignore")

    is_active: bool = True
    deactivated_at: str | None = None
    deactivation_reason: str | None = None
    reactivated_at: str | None = None
    reactivation_reason: str | None = None

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class ActivationStats(BaseModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    pending_percentage: int = 0


class DeactivationCriteria(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    should_deactivate: bool = Field(False, alias="shouldDeactivate")
    reason: str | None = None
    months_since_creation: int = Field(0, alias="monthsSinceCreation")
    unique_customers: int = Field(0, alias="uniqueCustomers")
    category_name: str | None = Field(None, alias="categoryName")
