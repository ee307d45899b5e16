"""
Auth session store: the one process-wide credential.

UNKNOWN -> AUTHENTICATING -> AUTHENTICATED | UNAUTHENTICATED.
The token in durable storage and the in-memory session must agree; any divergence is
treated as signed out and both are cleared.
"""
import logging
import threading
from enum import Enum
from typing import Any, Callable

from pydantic import ValidationError

from taskhub.core.errors import error_message
from taskhub.core.postcode import split_uk_postcode
from taskhub.schemas import AuthPayload, User, UserProfile
from taskhub.services.api import ApiClient
from taskhub.services.toasts import ToastCenter

logger = logging.getLogger(__name__)

WELCOME_SUBJECT = "Welcome to Compito!"
WELCOME_MESSAGE = "Welcome to Compito Task Hub!"

SessionListener = Callable[[str | None], None]


class AuthState(str, Enum):
    UNKNOWN = "unknown"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


class AuthResult:
    __slots__ = ("success", "error", "user")

    def __init__(self, success: bool, error: Any = None, user: User | None = None) -> None:
        self.success = success
        self.error = error
        self.user = user

    def __repr__(self) -> str:
        return f"AuthResult(success={self.success!r}, error={self.error!r})"


def _pick(fields: dict[str, Any], *names: str, default: Any = "") -> Any:
    """First non-empty value among snake_case / camelCase aliases."""
    for name in names:
        v = fields.get(name)
        if v not in (None, ""):
            return v
    return default


def build_signup_payload(profile_fields: dict[str, Any] | None) -> dict[str, Any]:
    """Normalize signup form fields for /auth/register, including the split postcode."""
    fields = profile_fields or {}
    postcode = _pick(fields, "postcode")
    parts = split_uk_postcode(postcode)
    return {
        "first_name": _pick(fields, "first_name", "firstName"),
        "last_name": _pick(fields, "last_name", "lastName"),
        "user_type": _pick(fields, "user_type", "userType", default="customer"),
        "phone": _pick(fields, "phone"),
        "location": _pick(fields, "location"),
        "city": _pick(fields, "city"),
        "postcode": postcode,
        "postcode_p1": parts.p1,
        "postcode_p2": parts.p2,
        "postcode_p3": parts.p3,
        "country": _pick(fields, "country", default="UK"),
        "longitude": _pick(fields, "longitude", default=None),
        "latitude": _pick(fields, "latitude", default=None),
    }


class AuthSessionStore:
    """Current user/profile plus sign-in, sign-up and sign-out. Storage is injected via the client."""

    def __init__(self, client: ApiClient, toasts: ToastCenter | None = None) -> None:
        self._client = client
        self._toasts = toasts or ToastCenter()
        self._lock = threading.RLock()
        self._listeners: list[SessionListener] = []
        self.state = AuthState.UNKNOWN
        self.user: User | None = None
        self.profile: UserProfile | None = None
        self.loading = True

    # --- Projections ---

    @property
    def user_id(self) -> str | None:
        return self.user.id if self.user else None

    @property
    def is_authenticated(self) -> bool:
        return self.state == AuthState.AUTHENTICATED

    def get_user_type(self) -> str | None:
        return self.profile.user_type if self.profile else None

    # --- Listeners ---

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Call listener(user_id) on every session change. Returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
            user_id = self.user_id
        for listener in listeners:
            try:
                listener(user_id)
            except Exception:
                logger.exception("Session listener failed")

    # --- Session mutation (token and session always change together) ---

    def _set_session(self, payload: AuthPayload) -> None:
        with self._lock:
            if payload.token:
                self._client.set_token(payload.token)
            self.user = payload.user
            self.profile = payload.profile
            self.state = AuthState.AUTHENTICATED
        self._notify()

    def _clear_session(self) -> None:
        with self._lock:
            self._client.set_token(None)
            self.user = None
            self.profile = None
            self.state = AuthState.UNAUTHENTICATED
        self._notify()

    @staticmethod
    def _parse_payload(data: Any) -> AuthPayload | None:
        if not isinstance(data, dict) or not data.get("user") or not data.get("profile"):
            return None
        try:
            return AuthPayload.model_validate(data)
        except ValidationError as e:
            logger.warning("Malformed auth payload: %s", e)
            return None

    # --- Operations ---

    def initialize(self) -> AuthState:
        """Validate a stored token against /auth/profile. Anything but a well-formed profile signs out."""
        try:
            if not self._client.token:
                with self._lock:
                    self.state = AuthState.UNAUTHENTICATED
                return self.state
            with self._lock:
                self.state = AuthState.AUTHENTICATING
            resp = self._client.get_profile()
            payload = self._parse_payload(resp.data) if resp.ok else None
            if payload is None:
                if resp.error is not None:
                    logger.info("Stored token rejected: %s", error_message(resp.error))
                else:
                    logger.warning("Profile response had an unexpected shape; signing out")
                self._clear_session()
            else:
                self._set_session(payload)
            return self.state
        finally:
            self.loading = False

    def sign_in(self, email: str, password: str) -> AuthResult:
        resp = self._client.sign_in(email, password)
        if not resp.ok:
            self._toasts.error("Sign In Error", error_message(resp.error, "Invalid credentials"))
            return AuthResult(False, error=resp.error)
        payload = self._parse_payload(resp.data)
        if payload is None or not payload.token:
            err = "Invalid response from server"
            self._toasts.error("Sign In Error", err)
            return AuthResult(False, error=err)
        self._set_session(payload)
        self._toasts.success("Welcome back!", "You have successfully signed in.")
        return AuthResult(True, user=payload.user)

    def sign_up(self, email: str, password: str, profile_fields: dict[str, Any] | None = None) -> AuthResult:
        signup_data = build_signup_payload(profile_fields)
        resp = self._client.sign_up(email, password, signup_data)
        if not resp.ok:
            logger.warning("Signup failed for %s: %s", email, error_message(resp.error))
            self.loading = False
            return AuthResult(False, error=resp.error)
        payload = self._parse_payload(resp.data)
        if payload is None:
            self.loading = False
            return AuthResult(False, error="No user data returned from signup")
        if not payload.token:
            # a session without a stored token would not survive a restart
            logger.warning("Signup for %s returned no token", email)
            self.loading = False
            return AuthResult(False, error="Invalid response from server")
        self._set_session(payload)
        self.loading = False
        self._send_welcome_email(email, signup_data, payload.profile.full_name)
        return AuthResult(True, user=payload.user)

    def _send_welcome_email(self, email: str, signup_data: dict[str, Any], user_name: str = "") -> None:
        """Best effort: a failed welcome email never fails the signup."""
        try:
            resp = self._client.send_welcome_email(
                {
                    "email": email,
                    "subject": WELCOME_SUBJECT,
                    "message": WELCOME_MESSAGE,
                    "type": "signup",
                    "user_name": user_name or f"{signup_data['first_name']} {signup_data['last_name']}".strip(),
                    "user_type": signup_data["user_type"],
                }
            )
            if not resp.ok:
                logger.warning("Welcome email failed for %s: %s", email, error_message(resp.error))
        except Exception as e:
            logger.warning("Welcome email failed for %s: %s", email, e, exc_info=True)

    def sign_out(self) -> None:
        """Server logout is best effort; local token and session are cleared regardless."""
        try:
            resp = self._client.sign_out()
            if not resp.ok:
                logger.warning("Logout call failed: %s", error_message(resp.error))
        except Exception as e:
            logger.warning("Logout call failed: %s", e, exc_info=True)
        self._clear_session()
        self._toasts.success("Signed Out", "You have been successfully signed out.")

    # --- Consistency ---

    def session_consistent(self) -> bool:
        if self.state not in (AuthState.AUTHENTICATED, AuthState.UNAUTHENTICATED):
            return True
        stored = self._client.stored_token()
        if stored != self._client.token:
            return False
        return bool(stored) == (self.user is not None and self.state == AuthState.AUTHENTICATED)

    def ensure_consistent(self) -> bool:
        """Clear both sides when storage and session disagree. Returns True if nothing had to change."""
        if self.session_consistent():
            return True
        logger.warning("Stored token and session disagree; signing out locally")
        self._clear_session()
        return False
