"""Gateway config. Base URL and timeout from settings (TASKHUB_API_URL) or ApiClient args."""
from taskhub.config import settings


class ApiConfig:
    """Base URL, transport timeout and default headers for the marketplace API."""

    __slots__ = ("base_url", "timeout")

    def __init__(self, *, base_url: str | None = None, timeout: float | None = None) -> None:
        self.base_url = (base_url or settings.api_url).strip().rstrip("/")
        # Only httpx's own transport timeout; the client adds no timeout or retry logic of its own.
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds

    def url(self, endpoint: str) -> str:
        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"
        return f"{self.base_url}{endpoint}"

    def headers(self, token: str | None = None) -> dict[str, str]:
        h = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if token:
            h["Authorization"] = f"Bearer {token}"
        return h
