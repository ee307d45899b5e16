"""
Worker account activation.

Inactive workers ask for reactivation; admins approve or reject those requests and can
deactivate or reactivate accounts directly. ActivationModeration is the admin side and
keeps the request queue in a PaginatedTable, so a decision shows up immediately and is
rolled back if the server refuses it. WorkerAccount is the worker's own view.
"""
import logging
import math
from datetime import datetime, timezone
from typing import Any, Callable

from apscheduler.schedulers.base import BaseScheduler
from pydantic import ValidationError

from taskhub.core.errors import error_message
from taskhub.schemas import AccountStatus, ActivationStats, DeactivationCriteria, ListPage
from taskhub.services.api import ApiClient, ApiResponse
from taskhub.services.tables import PaginatedTable, filter_locally
from taskhub.services.toasts import ToastCenter

logger = logging.getLogger(__name__)

DECISIONS = ("approved", "rejected")
DAYS_PER_MONTH = 30.44

Now = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _rows(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, dict):
        data = data.get("data")
    if not isinstance(data, list):
        return []
    return [r for r in data if isinstance(r, dict)]


def activation_statistics(requests: list[dict[str, Any]]) -> ActivationStats:
    total = len(requests)
    pending = sum(1 for r in requests if r.get("status") == "pending")
    return ActivationStats(
        total=total,
        pending=pending,
        approved=sum(1 for r in requests if r.get("status") == "approved"),
        rejected=sum(1 for r in requests if r.get("status") == "rejected"),
        pending_percentage=round(pending / total * 100) if total else 0,
    )


def account_age_months(created_at: str | None, now: datetime | None = None) -> int:
    """Whole months since created_at, rounded up. Unknown or unparseable dates count as 0."""
    if not created_at:
        return 0
    try:
        created = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
    except ValueError:
        return 0
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    now = now or _utc_now()
    days = abs((now - created).total_seconds()) / 86400
    return math.ceil(days / DAYS_PER_MONTH)


class ActivationModeration:
    """Admin queue of activation requests plus direct deactivate / reactivate."""

    def __init__(
        self,
        client: ApiClient,
        *,
        toasts: ToastCenter | None = None,
        scheduler: BaseScheduler | None = None,
        page_size: int = 10,
        now: Now = _utc_now,
    ) -> None:
        self._client = client
        self._toasts = toasts or ToastCenter()
        self._now = now
        # Full list from the last successful fetch; the table holds the visible page of it
        self.requests: list[dict[str, Any]] = []
        self.deactivated_workers: list[dict[str, Any]] = []
        self.table = PaginatedTable(
            self._fetch_requests,
            name="activation_requests",
            page_size=page_size,
            toasts=self._toasts,
            scheduler=scheduler,
        )

    def _fetch_requests(self, page: int, page_size: int, filters: dict[str, Any]) -> ApiResponse:
        resp = self._client.get_activation_requests()
        if not resp.ok:
            return resp
        self.requests = _rows(resp.data)
        rows = filter_locally(
            self.requests,
            search=filters.get("search") or "",
            fields=("worker_id", "request_reason", "admin_notes"),
            status=filters.get("status"),
        )
        return ApiResponse(data=rows, status_code=resp.status_code)

    def fetch(self, page: int | None = None, filters: dict[str, Any] | None = None) -> ListPage:
        return self.table.fetch(page=page, filters=filters)

    # --- Queue projections ---

    def pending_count(self) -> int:
        return sum(1 for r in self.requests if r.get("status") == "pending")

    def requests_by_status(self, status: str) -> list[dict[str, Any]]:
        return [r for r in self.requests if r.get("status") == status]

    def statistics(self) -> ActivationStats:
        return activation_statistics(self.requests)

    # --- Decisions ---

    def process_request(self, request_id: Any, status: str, admin_notes: str | None = None) -> ApiResponse:
        """Approve or reject one request. The row changes at once and is restored if the server refuses."""
        if status not in DECISIONS:
            raise ValueError(f"status must be one of {DECISIONS}, got {status!r}")
        request_id = str(request_id)
        notes = (admin_notes or "").strip() or None
        processed_at = self._now().isoformat()
        resp = self.table.mutate(
            request_id,
            {"status": status, "admin_notes": notes, "processed_at": processed_at},
            lambda: self._client.process_activation_request(request_id, status, notes, processed_at),
        )
        if not resp.ok:
            logger.error("Error processing activation request %s: %s", request_id, error_message(resp.error))
            return resp
        logger.info("Activation request %s %s", request_id, status)
        self._toasts.success("Request processed", f"Activation request {status}.")
        self.table.reload()
        return resp

    def approve(self, request_id: Any, admin_notes: str | None = None) -> ApiResponse:
        return self.process_request(request_id, "approved", admin_notes)

    def reject(self, request_id: Any, admin_notes: str | None = None) -> ApiResponse:
        return self.process_request(request_id, "rejected", admin_notes)

    # --- Worker accounts ---

    def worker_account_status(self, worker_id: str) -> dict[str, Any] | None:
        resp = self._client.get_worker_account_status_admin(worker_id)
        if not resp.ok:
            logger.error("Error fetching account status for worker %s: %s", worker_id, error_message(resp.error))
            return None
        return resp.data if isinstance(resp.data, dict) else None

    def fetch_deactivated_workers(self) -> list[dict[str, Any]]:
        resp = self._client.get_deactivated_workers()
        if not resp.ok:
            logger.error("Error fetching deactivated workers: %s", error_message(resp.error))
            return []
        self.deactivated_workers = _rows(resp.data)
        return self.deactivated_workers

    def _after_account_change(self, resp: ApiResponse, action: str, worker_id: str | None = None) -> bool:
        if not resp.ok:
            message = error_message(resp.error, f"Failed to {action}")
            logger.error("%s failed for %s: %s", action, worker_id or "all workers", message)
            self._toasts.error("Account update failed", message)
            return False
        self.table.reload()
        return True

    def deactivate_worker(self, worker_id: str, reason: str) -> bool:
        resp = self._client.deactivate_worker(worker_id, reason)
        return self._after_account_change(resp, "deactivate worker", worker_id)

    def reactivate_worker(self, worker_id: str, reason: str) -> bool:
        resp = self._client.reactivate_worker(worker_id, reason)
        return self._after_account_change(resp, "reactivate worker", worker_id)

    def run_periodic_check(self) -> bool:
        """Ask the server to deactivate every worker that meets the inactivity criteria."""
        resp = self._client.run_periodic_deactivation_check()
        return self._after_account_change(resp, "run deactivation check")

    def close(self) -> None:
        self.table.close()


class WorkerAccount:
    """The signed-in worker's account status and activation request."""

    def __init__(
        self,
        client: ApiClient,
        user_id: Callable[[], str | None],
        *,
        created_at: Callable[[], str | None] = lambda: None,
        now: Now = _utc_now,
    ) -> None:
        self._client = client
        self._user_id = user_id
        self._created_at = created_at
        self._now = now
        self.account_status: AccountStatus | None = None
        self.activation_request: dict[str, Any] | None = None
        self.loading = False
        self.last_error: Any = None

    @property
    def is_account_active(self) -> bool:
        return self.account_status.is_active if self.account_status else True

    @property
    def has_pending_request(self) -> bool:
        return bool(self.activation_request) and self.activation_request.get("status") == "pending"

    def load(self) -> bool:
        user_id = self._user_id()
        if not user_id:
            return False
        self.loading = True
        try:
            resp = self._client.get_worker_account_status(user_id)
        finally:
            self.loading = False
        if not resp.ok:
            self.last_error = resp.error
            logger.error("Error fetching account status: %s", error_message(resp.error))
            return False
        data = resp.data if isinstance(resp.data, dict) else {}
        try:
            status = AccountStatus.model_validate(data.get("accountStatus") or {})
        except ValidationError as e:
            self.last_error = str(e)
            logger.error("Malformed account status: %s", e)
            return False
        request = data.get("activationRequest")
        self.account_status = status
        self.activation_request = request if isinstance(request, dict) else None
        self.last_error = None
        return True

    def request_activation(self, reason: str) -> ApiResponse:
        user_id = self._user_id()
        if not user_id:
            raise ValueError("User not authenticated")
        resp = self._client.create_activation_request(user_id, reason)
        if not resp.ok:
            logger.error("Error creating activation request: %s", error_message(resp.error))
            return resp
        self.load()
        return resp

    def can_perform_action(self) -> bool:
        user_id = self._user_id()
        if not user_id:
            return False
        resp = self._client.worker_can_perform_action(user_id)
        if not resp.ok:
            logger.error("Error checking worker permissions: %s", error_message(resp.error))
            return False
        return isinstance(resp.data, dict) and bool(resp.data.get("canPerformAction"))

    def account_age_months(self) -> int:
        return account_age_months(self._created_at(), self._now())

    def unique_customers_count(self) -> int:
        user_id = self._user_id()
        if not user_id:
            return 0
        resp = self._client.get_worker_unique_customers_count(user_id)
        if not resp.ok or not isinstance(resp.data, dict):
            return 0
        try:
            return int(resp.data.get("count") or 0)
        except (TypeError, ValueError):
            return 0

    def category_info(self) -> dict[str, Any] | None:
        user_id = self._user_id()
        if not user_id:
            return None
        resp = self._client.get_worker_category_info(user_id)
        if not resp.ok:
            logger.error("Error fetching worker category info: %s", error_message(resp.error))
            return None
        return resp.data if isinstance(resp.data, dict) else None

    def deactivation_criteria(self) -> DeactivationCriteria:
        user_id = self._user_id()
        if not user_id:
            return DeactivationCriteria()
        resp = self._client.get_worker_deactivation_criteria(user_id)
        if not resp.ok:
            logger.error("Error checking deactivation criteria: %s", error_message(resp.error))
            return DeactivationCriteria(reason="Error checking criteria")
        try:
            return DeactivationCriteria.model_validate(resp.data if isinstance(resp.data, dict) else {})
        except ValidationError as e:
            logger.error("Malformed deactivation criteria: %s", e)
            return DeactivationCriteria(reason="Error checking criteria")
