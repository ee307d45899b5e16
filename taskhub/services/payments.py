"""
Hosted checkout: create a session, send the user to checkout_url, and handle the return.

The return query string is not trusted on its own; complete_payment hands session and offer
to the backend, which verifies with the payment provider before marking anything paid.
"""
import logging
from typing import Any, Mapping

from pydantic import ValidationError

from taskhub.core.errors import ApiError, error_message
from taskhub.schemas import CheckoutSession, PaymentReturn
from taskhub.services.api import ApiClient, ApiResponse

logger = logging.getLogger(__name__)


def _first(query: Mapping[str, Any], *names: str) -> str | None:
    """Query values may arrive as lists (parse_qs) or scalars."""
    for name in names:
        v = query.get(name)
        if isinstance(v, (list, tuple)):
            v = v[0] if v else None
        if v not in (None, ""):
            return str(v)
    return None


def parse_payment_return(query: Mapping[str, Any]) -> PaymentReturn:
    return PaymentReturn(
        session_id=_first(query, "session_id", "sessionId"),
        status=_first(query, "status"),
        offer_id=_first(query, "offer_id", "offerId"),
    )


def start_checkout(client: ApiClient, offer_id: str, return_url: str) -> CheckoutSession | ApiError:
    """Create a checkout session for an accepted offer. The caller redirects to checkout_url."""
    if not offer_id:
        return ApiError("offer_id is required")
    resp = client.create_checkout(offer_id, return_url)
    if not resp.ok:
        logger.error("Checkout creation failed for offer %s: %s", offer_id, error_message(resp.error))
        if isinstance(resp.error, ApiError):
            return resp.error
        return ApiError(error_message(resp.error, "Failed to create checkout session"), status_code=resp.status_code)
    try:
        return CheckoutSession.model_validate(resp.data)
    except ValidationError as e:
        logger.error("Checkout response missing url or session id: %s", e)
        return ApiError("Invalid checkout response", status_code=resp.status_code)


def complete_payment(client: ApiClient, ret: PaymentReturn, payment_data: Any = None) -> ApiResponse:
    """Ask the backend to verify and record the payment. Only a success return is forwarded."""
    if ret.status != "success":
        msg = "Payment was cancelled" if ret.status == "cancelled" else f"Payment not completed (status: {ret.status or 'unknown'})"
        return ApiResponse.failure(ApiError(msg))
    if not ret.session_id or not ret.offer_id:
        return ApiResponse.failure(ApiError("Missing session_id or offer_id in payment return"))
    resp = client.complete_payment(ret.session_id, ret.offer_id, payment_data)
    if not resp.ok:
        logger.error("Payment completion failed for session %s: %s", ret.session_id, error_message(resp.error))
    else:
        logger.info("Payment completed for offer %s", ret.offer_id)
    return resp


def get_payment_status(client: ApiClient, session_id: str) -> ApiResponse:
    if not session_id:
        return ApiResponse.failure(ApiError("session_id is required"))
    return client.get_payment_status(session_id)
