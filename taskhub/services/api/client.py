"""Marketplace API client: lowest level, sends one request and wraps the result. No validation, no retries."""
import logging
from typing import Any

import httpx

from taskhub.core import constants as c
from taskhub.core.errors import ApiError
from taskhub.services.api.config import ApiConfig
from taskhub.services.api.types import ApiResponse
from taskhub.services.storage import TokenStorage

logger = logging.getLogger(__name__)


def _query_value(v: Any) -> Any:
    # Laravel's boolean rule accepts 1/0, not "true"/"false"
    if isinstance(v, bool):
        return "1" if v else "0"
    return v


def _clean_params(params: dict[str, Any] | None) -> dict[str, Any] | None:
    if not params:
        return None
    return {k: _query_value(v) for k, v in params.items() if v is not None}


class ApiClient:
    """Single choke point for network I/O. Bearer token comes from durable storage."""

    def __init__(
        self,
        storage: TokenStorage,
        config: ApiConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config or ApiConfig()
        self._storage = storage
        self._transport = transport
        self._token: str | None = storage.get(c.AUTH_TOKEN_KEY)

    @property
    def base_url(self) -> str:
        return self._config.base_url

    @property
    def token(self) -> str | None:
        return self._token

    def stored_token(self) -> str | None:
        """What durable storage holds right now (may differ from memory if something else wrote it)."""
        return self._storage.get(c.AUTH_TOKEN_KEY)

    def set_token(self, token: str | None) -> None:
        """Persist (or clear) the token. Requests already in flight keep the header they were built with."""
        self._token = token or None
        if self._token:
            self._storage.set(c.AUTH_TOKEN_KEY, self._token)
        else:
            self._storage.clear(c.AUTH_TOKEN_KEY)

    def request(
        self,
        endpoint: str,
        method: str = "GET",
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
    ) -> ApiResponse:
        url = self._config.url(endpoint)
        headers = self._config.headers(self._token)
        try:
            with httpx.Client(timeout=self._config.timeout, transport=self._transport) as client:
                r = client.request(
                    method,
                    url,
                    params=_clean_params(params),
                    json=json_body,
                    headers=headers,
                )
        except httpx.TransportError as e:
            logger.error("API request failed: %s %s: %s", method, endpoint, e)
            return ApiResponse.failure(ApiError.from_exception(e, transport=True))
        except Exception as e:
            logger.error("API request failed: %s %s: %s", method, endpoint, e)
            return ApiResponse.failure(ApiError.from_exception(e))
        return self._to_response(r, method, endpoint)

    def _to_response(self, r: httpx.Response, method: str, endpoint: str) -> ApiResponse:
        body: Any = None
        parse_error: Exception | None = None
        if r.content:
            try:
                body = r.json()
            except ValueError as e:
                parse_error = e
        if not r.is_success:
            logger.debug("API %s %s returned %s", method, endpoint, r.status_code)
            if parse_error is not None or body is None:
                return ApiResponse.failure(
                    ApiError(
                        f"API error: {r.status_code}",
                        status_code=r.status_code,
                        detail=r.text[:500] if r.text else None,
                    ),
                    status_code=r.status_code,
                )
            return ApiResponse.failure(body, status_code=r.status_code)
        if parse_error is not None:
            logger.error("API %s %s returned a non-JSON body: %s", method, endpoint, parse_error)
            return ApiResponse.failure(
                ApiError("Invalid JSON response", status_code=r.status_code, detail=r.text[:500]),
                status_code=r.status_code,
            )
        return ApiResponse(data=body, status_code=r.status_code)

    # --- Verbs ---

    def get(self, endpoint: str, params: dict[str, Any] | None = None) -> ApiResponse:
        return self.request(endpoint, "GET", params=params)

    def post(self, endpoint: str, data: Any = None) -> ApiResponse:
        return self.request(endpoint, "POST", json_body=data if data is not None else {})

    def put(self, endpoint: str, data: Any = None) -> ApiResponse:
        return self.request(endpoint, "PUT", json_body=data if data is not None else {})

    def delete(self, endpoint: str) -> ApiResponse:
        return self.request(endpoint, "DELETE")

    # --- Auth ---

    def sign_up(self, email: str, password: str, user_data: dict[str, Any]) -> ApiResponse:
        return self.post(c.AUTH_REGISTER, {**user_data, "email": email, "password": password})

    def sign_in(self, email: str, password: str) -> ApiResponse:
        return self.post(c.AUTH_LOGIN, {"email": email, "password": password})

    def sign_out(self) -> ApiResponse:
        """Logout call only. Clearing local state is the session store's job."""
        return self.post(c.AUTH_LOGOUT)

    def get_profile(self) -> ApiResponse:
        return self.get(c.AUTH_PROFILE)

    def forgot_password(self, email: str) -> ApiResponse:
        return self.post(c.AUTH_FORGOT_PASSWORD, {"email": email})

    def reset_password(self, email: str, token: str, password: str, password_confirmation: str) -> ApiResponse:
        return self.post(
            c.AUTH_RESET_PASSWORD,
            {
                "email": email,
                "token": token,
                "password": password,
                "password_confirmation": password_confirmation,
            },
        )

    def send_welcome_email(self, data: dict[str, Any]) -> ApiResponse:
        return self.post(c.SEND_WELCOME_EMAIL, data)

    # --- Notifications ---

    def get_notifications(self, params: dict[str, Any] | None = None) -> ApiResponse:
        return self.get(c.NOTIFICATIONS, params)

    def get_unread_count(self, params: dict[str, Any] | None = None) -> ApiResponse:
        return self.get(c.NOTIFICATIONS_UNREAD_COUNT, params)

    def create_notification(self, data: dict[str, Any]) -> ApiResponse:
        return self.post(c.NOTIFICATIONS, data)

    def mark_notification_read(self, notification_id: str, is_read: bool = True) -> ApiResponse:
        return self.put(f"{c.NOTIFICATIONS}/{notification_id}/read", {"is_read": is_read})

    def mark_all_notifications_read(self, user_id: str | None = None) -> ApiResponse:
        return self.put(c.NOTIFICATIONS_MARK_ALL_READ, {"user_id": user_id} if user_id else {})

    # --- Admin ---

    def get_admin_data(self) -> ApiResponse:
        return self.get(c.ADMIN_DATA)

    def get_workers_page(self, page: int, page_size: int, filters: dict[str, Any] | None = None) -> ApiResponse:
        return self.post(c.ADMIN_WORKERS_PAGINATION, {"page": page, "pageSize": page_size, "filters": filters or {}})

    def verify_worker(self, worker_id: str) -> ApiResponse:
        return self.post(f"/admin/workers/{worker_id}/verify")

    def reject_worker(self, worker_id: str, reason: str | None = None) -> ApiResponse:
        return self.post(f"/admin/workers/{worker_id}/reject", {"reason": reason} if reason else {})

    def get_admin_bookings(self, params: dict[str, Any] | None = None) -> ApiResponse:
        return self.get(c.ADMIN_BOOKINGS, params)

    def get_admin_payments(self, params: dict[str, Any] | None = None) -> ApiResponse:
        return self.get(c.ADMIN_PAYMENTS, params)

    def get_worker_payment_summary(self, params: dict[str, Any] | None = None) -> ApiResponse:
        return self.get(c.WORKER_PAYMENT_SUMMARY, params)

    # --- Account activation ---

    def get_activation_requests(self) -> ApiResponse:
        return self.get(c.ADMIN_ACTIVATION_REQUESTS)

    def process_activation_request(
        self, request_id: str, status: str, admin_notes: str | None = None, processed_at: str | None = None
    ) -> ApiResponse:
        return self.put(
            f"{c.ADMIN_ACTIVATION_REQUESTS}/{request_id}",
            {"status": status, "admin_notes": admin_notes, "processed_at": processed_at},
        )

    def get_worker_account_status_admin(self, worker_id: str) -> ApiResponse:
        return self.get(f"{c.ADMIN_WORKER_ACCOUNT_STATUS}/{worker_id}")

    def get_deactivated_workers(self) -> ApiResponse:
        return self.get(c.ADMIN_DEACTIVATED_WORKERS)

    def deactivate_worker(self, worker_id: str, reason: str) -> ApiResponse:
        return self.post(c.ADMIN_DEACTIVATE_WORKER, {"worker_id": worker_id, "reason": reason})

    def reactivate_worker(self, worker_id: str, reason: str) -> ApiResponse:
        return self.post(c.ADMIN_REACTIVATE_WORKER, {"worker_id": worker_id, "reason": reason})

    def run_periodic_deactivation_check(self) -> ApiResponse:
        return self.post(c.ADMIN_PERIODIC_DEACTIVATION_CHECK)

    def get_worker_account_status(self, user_id: str) -> ApiResponse:
        return self.get(f"{c.WORKER_ACCOUNT_STATUS}/{user_id}")

    def create_activation_request(self, worker_id: str, reason: str) -> ApiResponse:
        return self.post(
            c.ACTIVATION_REQUESTS,
            {"worker_id": worker_id, "request_reason": reason, "status": "pending"},
        )

    def worker_can_perform_action(self, worker_id: str) -> ApiResponse:
        return self.get(f"{c.WORKER_CAN_PERFORM_ACTION}/{worker_id}")

    def get_worker_unique_customers_count(self, worker_id: str) -> ApiResponse:
        return self.get(f"{c.WORKER_UNIQUE_CUSTOMERS_COUNT}/{worker_id}")

    def get_worker_category_info(self, worker_id: str) -> ApiResponse:
        return self.get(f"{c.WORKER_CATEGORY_INFO}/{worker_id}")

    def get_worker_deactivation_criteria(self, worker_id: str) -> ApiResponse:
        return self.get(f"{c.WORKER_DEACTIVATION_CRITERIA}/{worker_id}")

    # --- Customer / worker ---

    def get_customer_data(self, customer_id: str) -> ApiResponse:
        return self.get(f"{c.CUSTOMER_DATA}/{customer_id}")

    def get_worker_data(self, worker_id: str) -> ApiResponse:
        return self.get(f"{c.WORKER_DATA}/{worker_id}")

    # --- Payments ---

    def create_checkout(self, offer_id: str, return_url: str) -> ApiResponse:
        return self.post(c.PAYMENTS_CREATE_CHECKOUT, {"offerId": offer_id, "returnUrl": return_url})

    def complete_payment(self, session_id: str, offer_id: str, payment_data: Any = None) -> ApiResponse:
        return self.post(
            c.PAYMENTS_COMPLETE,
            {"sessionId": session_id, "offerId": offer_id, "paymentData": payment_data},
        )

    def get_payment_status(self, session_id: str) -> ApiResponse:
        return self.get(c.PAYMENTS_STATUS, {"sessionId": session_id})
