"""
Centralized error vocabulary for gateway failures.
Every network failure is reified as data (ApiResponse.error); this module turns those
errors into something callers can show, so services stay thin and new error types are easy to add.
"""
from __future__ import annotations

from typing import Any, Callable

# ---------------------------------------------------------------------------
# Constants: status codes and user-facing messages
# ---------------------------------------------------------------------------

STATUS_UNAUTHORIZED = 401
STATUS_FORBIDDEN = 403

MSG_NETWORK_UNREACHABLE = "Could not reach the server. Check your connection and try again."
MSG_SESSION_EXPIRED = "Your session has expired. Please sign in again."
MSG_ACCESS_DENIED = "You do not have access to this resource."
MSG_UNEXPECTED = "An unexpected error occurred"


class ApiError:
    """Normalized gateway error: transport failures and non-JSON error bodies end up here."""

    __slots__ = ("status_code", "message", "detail", "transport")

    def __init__(
        self, message: str, *, status_code: int | None = None, detail: Any = None, transport: bool = False
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.detail = detail
        # set when the request never produced an HTTP response
        self.transport = transport

    def __repr__(self) -> str:
        return f"ApiError(status_code={self.status_code!r}, message={self.message!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ApiError):
            return NotImplemented
        return (self.status_code, self.message, self.detail) == (other.status_code, other.message, other.detail)

    @classmethod
    def from_exception(cls, exc: Exception, *, transport: bool = False) -> ApiError:
        return cls(str(exc) or exc.__class__.__name__, detail=exc.__class__.__name__, transport=transport)


def _status_of(error: Any) -> int | None:
    if isinstance(error, ApiError):
        return error.status_code
    if isinstance(error, dict):
        status = error.get("status") or error.get("status_code")
        if isinstance(status, int):
            return status
    return None


def _raw_message(error: Any) -> str:
    """Pull the message out of whatever the backend (or transport) handed back."""
    if error is None:
        return ""
    if isinstance(error, ApiError):
        return error.message or ""
    if isinstance(error, dict):
        # Laravel: {"message": ...} or {"error": ...}; validation: {"errors": {"field": ["..."]}}
        msg = error.get("message") or error.get("error")
        if isinstance(msg, str) and msg:
            return msg
        errors = error.get("errors")
        if isinstance(errors, dict):
            for messages in errors.values():
                if isinstance(messages, list) and messages:
                    return str(messages[0])
                if isinstance(messages, str):
                    return messages
        return ""
    if isinstance(error, str):
        return error
    return str(error)


# ---------------------------------------------------------------------------
# Error rules: (predicate, message). First match wins.
# ---------------------------------------------------------------------------

def _is_network_error(error: Any) -> bool:
    return isinstance(error, ApiError) and error.status_code is None and error.transport


def _is_unauthorized(error: Any) -> bool:
    return _status_of(error) == STATUS_UNAUTHORIZED or _raw_message(error).lower() == "unauthenticated."


def _is_forbidden(error: Any) -> bool:
    return _status_of(error) == STATUS_FORBIDDEN or _raw_message(error).lower() == "access denied"


ERROR_RULES: list[tuple[Callable[[Any], bool], str]] = [
    (_is_network_error, MSG_NETWORK_UNREACHABLE),
    (_is_unauthorized, MSG_SESSION_EXPIRED),
    (_is_forbidden, MSG_ACCESS_DENIED),
]


def error_message(error: Any, default: str = MSG_UNEXPECTED) -> str:
    """
    Map an envelope error to a user-facing message.
    Uses ERROR_RULES for known categories; otherwise the backend's own message, else default.
    """
    for predicate, message in ERROR_RULES:
        if predicate(error):
            return message
    return _raw_message(error) or default
