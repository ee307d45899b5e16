"""
Role dashboards: one aggregate fetch per role, refreshed on focus.

A focus event refetches only when the last successful fetch is older than
settings.dashboard_refetch_after_seconds, and then through a debounced scheduler job so
a burst of focus events costs one request. manual_refresh() skips every guard.
"""
import logging
import time
from datetime import date
from typing import Any, Callable, Iterable

from apscheduler.schedulers.base import BaseScheduler
from pydantic import ValidationError

from taskhub.config import settings
from taskhub.core.constants import DASHBOARD_REFETCH_JOB_PREFIX, DEFAULT_COMMISSION_RATE, RECENT_ITEMS_LIMIT
from taskhub.core.errors import error_message
from taskhub.schemas import AdminStats, ListPage, PaymentStats, PlatformStats, WorkerStats
from taskhub.services.api import ApiClient, ApiResponse
from taskhub.services.debounce import Debouncer
from taskhub.services.tables import Fetcher, filter_locally, normalize_page

logger = logging.getLogger(__name__)

UserIdProvider = Callable[[], str | None]
Clock = Callable[[], float]


# --- Derivations ---

def _amount(row: dict[str, Any], *keys: str, default: float = 0.0) -> float:
    for key in keys:
        v = row.get(key)
        if v not in (None, ""):
            try:
                return float(v)
            except (TypeError, ValueError):
                return default
    return default


def _payment_status(row: dict[str, Any]) -> str | None:
    return row.get("payment_status") or row.get("status")


def payment_stats(payments: Iterable[dict[str, Any]]) -> PaymentStats:
    """Revenue, commission and payouts over completed payments; counts of pending and failed."""
    rows = list(payments)
    completed = [p for p in rows if _payment_status(p) == "completed"]
    revenue = sum(_amount(p, "total_amount", "totalAmount") for p in completed)
    commission = 0.0
    for p in completed:
        if p.get("commission_amount") is None and p.get("commissionAmount") is None:
            rate = _amount(p, "commission_rate", "commissionRate", default=DEFAULT_COMMISSION_RATE)
            commission += _amount(p, "total_amount", "totalAmount") * rate
        else:
            commission += _amount(p, "commission_amount", "commissionAmount")
    payouts = sum(_amount(p, "worker_payout", "workerPayout") for p in completed)
    return PaymentStats(
        total_revenue=revenue,
        total_commission=commission,
        total_worker_payouts=payouts,
        completed_payments=len(completed),
        pending_payments=sum(1 for p in rows if _payment_status(p) == "pending"),
        failed_payments=sum(1 for p in rows if _payment_status(p) == "failed"),
        average_commission_rate=commission / revenue if revenue > 0 else 0,
        avg_commission_per_job=commission / len(completed) if completed else 0,
    )


def growth_rate(current: float, previous: float) -> float:
    """Percent change; growing from nothing counts as 100%."""
    if previous <= 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def category_breakdown(items: Iterable[dict[str, Any]], key: str = "category") -> dict[str, int]:
    counts: dict[str, int] = {}
    for item in items:
        name = item.get(key)
        if isinstance(name, dict):
            name = name.get("name")
        name = name or "Uncategorized"
        counts[name] = counts.get(name, 0) + 1
    return dict(sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])))


def _list(data: dict[str, Any], key: str) -> list[Any]:
    v = data.get(key)
    return v if isinstance(v, list) else []


# --- Loader ---

class DashboardLoader:
    """
    Fetch guard + focus refetch shared by the role dashboards.

    Subclasses implement _fetch(user_id) and _apply(data). load() is a no-op without a
    signed-in user and within dashboard_min_refetch_seconds of the last successful fetch.
    """

    name = "dashboard"

    def __init__(
        self,
        client: ApiClient,
        scheduler: BaseScheduler,
        user_id: UserIdProvider,
        *,
        clock: Clock = time.monotonic,
        refetch_after_seconds: float | None = None,
        debounce_seconds: float | None = None,
        min_refetch_seconds: float | None = None,
    ) -> None:
        self._client = client
        self._user_id = user_id
        self._clock = clock
        self.refetch_after_seconds = (
            settings.dashboard_refetch_after_seconds if refetch_after_seconds is None else refetch_after_seconds
        )
        self.min_refetch_seconds = (
            settings.dashboard_min_refetch_seconds if min_refetch_seconds is None else min_refetch_seconds
        )
        delay = settings.dashboard_focus_debounce_seconds if debounce_seconds is None else debounce_seconds
        self._refetch = Debouncer(scheduler, f"{DASHBOARD_REFETCH_JOB_PREFIX}:{self.name}", delay, self.load)
        self.last_fetch: float | None = None
        self.data_version = 0
        self.loading = False
        self.last_error: Any = None

    def _fetch(self, user_id: str) -> ApiResponse:
        raise NotImplementedError

    def _apply(self, data: dict[str, Any]) -> None:
        raise NotImplementedError

    def _stale(self, age_seconds: float) -> bool:
        return self.last_fetch is None or self._clock() - self.last_fetch > age_seconds

    def load(self, *, force: bool = False) -> bool:
        """Fetch and apply. Returns True when new data was applied."""
        user_id = self._user_id()
        if not user_id:
            logger.debug("%s: no signed-in user, skipping fetch", self.name)
            return False
        if not force and not self._stale(self.min_refetch_seconds):
            logger.debug("%s: fetched recently, skipping", self.name)
            return False
        self.loading = True
        try:
            resp = self._fetch(user_id)
            if not resp.ok:
                self.last_error = resp.error
                logger.error("%s data error: %s", self.name, error_message(resp.error))
                return False
            self._apply(resp.data if isinstance(resp.data, dict) else {})
        except ValidationError as e:
            self.last_error = str(e)
            logger.error("%s: malformed dashboard payload: %s", self.name, e)
            return False
        finally:
            self.loading = False
        self.last_error = None
        self.last_fetch = self._clock()
        self.data_version += 1
        return True

    def on_focus(self) -> bool:
        """Window regained focus: schedule a debounced refetch if the data is stale. Returns whether one was scheduled."""
        if not self._stale(self.refetch_after_seconds):
            return False
        self._refetch.schedule()
        return True

    def manual_refresh(self) -> bool:
        self._refetch.cancel()
        return self.load(force=True)

    def close(self) -> None:
        self._refetch.cancel()


class AdminDashboard(DashboardLoader):
    """/admin/data: platform-wide stats and full entity lists, plus worker verification."""

    name = "admin"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.stats = AdminStats()
        self.platform_stats = PlatformStats()
        self.users: list[dict[str, Any]] = []
        self.customers: list[dict[str, Any]] = []
        self.workers: list[dict[str, Any]] = []
        self.services: list[dict[str, Any]] = []
        self.bookings: list[dict[str, Any]] = []
        self.payments: list[dict[str, Any]] = []
        self.reviews: list[dict[str, Any]] = []
        self.service_categories: list[dict[str, Any]] = []
        self.worker_categories: list[dict[str, Any]] = []
        self.commission_settings: list[dict[str, Any]] = []
        self.system_alerts: list[dict[str, Any]] = []
        self.workers_loading = False

    @property
    def recent_workers(self) -> list[dict[str, Any]]:
        return self.workers[:RECENT_ITEMS_LIMIT]

    @property
    def recent_bookings(self) -> list[dict[str, Any]]:
        return self.bookings[:RECENT_ITEMS_LIMIT]

    def _fetch(self, user_id: str) -> ApiResponse:
        return self._client.get_admin_data()

    def _apply(self, data: dict[str, Any]) -> None:
        stats = AdminStats.model_validate(data.get("stats") or {})
        platform = PlatformStats.model_validate(data.get("platformStats") or {})
        self.stats = stats
        self.platform_stats = platform
        self.users = _list(data, "users")
        self.customers = _list(data, "customers")
        self.workers = _list(data, "workers")
        self.services = _list(data, "services")
        self.bookings = _list(data, "bookings")
        self.payments = _list(data, "payments")
        self.reviews = _list(data, "reviews")
        self.service_categories = _list(data, "categories")
        self.worker_categories = _list(data, "workerCategories")
        self.commission_settings = _list(data, "commissionSettings")
        self.system_alerts = self._alerts()

    def _alerts(self) -> list[dict[str, Any]]:
        alerts = []
        if any(isinstance(w, dict) and w.get("status") == "pending" for w in self.workers):
            alerts.append(
                {
                    "id": "pending-workers",
                    "type": "warning",
                    "message": "Workers pending verification",
                    "action": "Review",
                    "link": "/admin/workers?filter=pending",
                }
            )
        return alerts

    def fetch_workers_page(self, page: int = 1, page_size: int = 10, filters: dict[str, Any] | None = None) -> ListPage:
        self.workers_loading = True
        try:
            resp = self._client.get_workers_page(page, page_size, filters)
        finally:
            self.workers_loading = False
        if not resp.ok:
            logger.error("Error fetching workers with pagination: %s", error_message(resp.error))
            return ListPage(page=page, page_size=page_size)
        return normalize_page(resp.data, page, page_size)

    def verify_worker(self, worker_id: str) -> tuple[bool, str]:
        resp = self._client.verify_worker(worker_id)
        if not resp.ok:
            logger.error("verify_worker %s failed: %s", worker_id, error_message(resp.error))
            return False, error_message(resp.error, "Failed to verify worker")
        return True, _server_message(resp.data, "Worker verified")

    def reject_worker(self, worker_id: str, reason: str | None = None) -> tuple[bool, str]:
        resp = self._client.reject_worker(worker_id, reason)
        if not resp.ok:
            logger.error("reject_worker %s failed: %s", worker_id, error_message(resp.error))
            return False, error_message(resp.error, "Failed to reject worker")
        return True, _server_message(resp.data, "Worker rejected")

    def payments_stats(self) -> PaymentStats:
        return payment_stats(p for p in self.payments if isinstance(p, dict))

    def user_growth_rate(self, today: date | None = None) -> float:
        """Server growthRate when it sends one, else new users this month against last month."""
        if self.stats.growth_rate:
            return self.stats.growth_rate
        today = today or date.today()
        this_month = f"{today.year:04d}-{today.month:02d}"
        last = date(today.year - 1, 12, 1) if today.month == 1 else date(today.year, today.month - 1, 1)
        last_month = f"{last.year:04d}-{last.month:02d}"
        created = [str(u.get("created_at") or "")[:7] for u in self.users if isinstance(u, dict)]
        return growth_rate(created.count(this_month), created.count(last_month))

    @property
    def services_by_category(self) -> dict[str, int]:
        return category_breakdown(s for s in self.services if isinstance(s, dict))


def _server_message(data: Any, default: str) -> str:
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return default


class CustomerDashboard(DashboardLoader):
    name = "customer"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.stats: dict[str, Any] = {"totalBookings": 0, "totalSpent": 0, "favoriteWorkers": 0, "averageRating": 4.8}
        self.recent_bookings: list[Any] = []
        self.upcoming_bookings: list[Any] = []
        self.recommended_services: list[Any] = []
        self.all_services: list[Any] = []
        self.favorites: list[Any] = []
        self.messages: dict[str, Any] = {"conversations": [], "activeChat": []}
        self.payments: list[Any] = []
        self.reviews: list[Any] = []
        self.profile: dict[str, Any] | None = None
        self.alerts: list[Any] = []

    def _fetch(self, user_id: str) -> ApiResponse:
        return self._client.get_customer_data(user_id)

    def _apply(self, data: dict[str, Any]) -> None:
        self.stats = data.get("stats") or {}
        self.recent_bookings = _list(data, "recentBookings")
        self.upcoming_bookings = _list(data, "upcomingBookings")
        self.recommended_services = _list(data, "recommendedServices")
        self.all_services = _list(data, "allServices")
        self.favorites = _list(data, "favorites")
        self.messages = data.get("messages") or {"conversations": [], "activeChat": []}
        self.payments = _list(data, "payments")
        self.reviews = _list(data, "reviews")
        self.profile = data.get("profile")
        self.alerts = _list(data, "alerts")


class WorkerDashboard(DashboardLoader):
    name = "worker"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.stats = WorkerStats()
        self.recent_jobs: list[Any] = []
        self.upcoming_schedule: list[Any] = []
        self.worker_profile: dict[str, Any] | None = None
        self.worker_services: list[Any] = []
        self.messages: dict[str, Any] = {"conversations": [], "activeChat": []}
        self.reviews: list[Any] = []
        self.earnings: list[Any] = []
        self.availability: list[Any] = []
        self.alerts: list[Any] = []
        self.profile_completion = 0.0

    def _fetch(self, user_id: str) -> ApiResponse:
        return self._client.get_worker_data(user_id)

    def _apply(self, data: dict[str, Any]) -> None:
        self.stats = WorkerStats.model_validate(data.get("stats") or {})
        self.recent_jobs = _list(data, "recent_jobs")
        self.upcoming_schedule = _list(data, "upcoming_schedule")
        self.worker_profile = data.get("worker_profile")
        self.worker_services = _list(data, "worker_services")
        self.messages = data.get("messages") or {"conversations": [], "activeChat": []}
        self.reviews = _list(data, "reviews")
        self.earnings = _list(data, "earnings")
        self.availability = _list(data, "availability")
        self.alerts = _list(data, "alerts")
        try:
            self.profile_completion = float(data.get("profile_completion") or 0)
        except (TypeError, ValueError):
            self.profile_completion = 0.0

    @property
    def completion_rate(self) -> float:
        """Share of this month's jobs against the monthly job goal, as a percent capped at 100."""
        goal = self.stats.monthly_job_goal
        if goal <= 0:
            return 0.0
        return min(100.0, self.stats.jobs_this_month / goal * 100)

    @property
    def goal_progress(self) -> float:
        """Monthly earnings against the monthly goal, as a percent capped at 100."""
        goal = self.stats.monthly_goal
        if goal <= 0:
            return 0.0
        return min(100.0, self.stats.monthly_earnings / goal * 100)


# --- Table fetchers for the admin listing pages ---

def worker_payment_summary_fetcher(client: ApiClient) -> Fetcher:
    """Server-paginated /worker-payment-summary for PaginatedTable."""

    def fetch(page: int, page_size: int, filters: dict[str, Any]) -> ApiResponse:
        return client.get_worker_payment_summary({"page": page, "pageSize": page_size, "search": filters.get("search") or ""})

    return fetch


def admin_payments_fetcher(client: ApiClient, worker_id: str | None = None) -> Fetcher:
    """/admin/payments returns the full list; PaginatedTable filters and pages it locally."""

    def fetch(page: int, page_size: int, filters: dict[str, Any]) -> ApiResponse:
        resp = client.get_admin_payments({"worker_id": worker_id})
        if not resp.ok:
            return resp
        rows = resp.data if isinstance(resp.data, list) else _list(resp.data or {}, "data")
        worker_paid = filters.get("worker_paid")
        if worker_paid and worker_paid != "all":
            rows = [r for r in rows if bool(r.get("worker_paid")) == (worker_paid == "paid")]
        rows = filter_locally(
            rows,
            search=filters.get("search") or "",
            fields=("customer", "worker", "transaction_id", "service_title"),
            status=filters.get("status"),
            status_field="payment_status",
        )
        return ApiResponse(data=rows, status_code=resp.status_code)

    return fetch


def admin_bookings_fetcher(client: ApiClient) -> Fetcher:
    def fetch(page: int, page_size: int, filters: dict[str, Any]) -> ApiResponse:
        return client.get_admin_bookings({"page": page, "pageSize": page_size, **filters})

    return fetch
