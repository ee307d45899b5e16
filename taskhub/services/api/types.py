"""The envelope every gateway call resolves to, success or failure."""
from typing import Any


class ApiResponse:
    """{data, error}: exactly one side is meaningful. Failures are data, never raised."""

    __slots__ = ("data", "error", "status_code")

    def __init__(self, data: Any = None, error: Any = None, status_code: int | None = None) -> None:
        self.data = data
        self.error = error
        self.status_code = status_code

    @property
    def ok(self) -> bool:
        return self.error is None

    def __repr__(self) -> str:
        return f"ApiResponse(data={self.data!r}, error={self.error!r}, status_code={self.status_code!r})"

    @classmethod
    def failure(cls, error: Any, status_code: int | None = None) -> "ApiResponse":
        return cls(data=None, error=error, status_code=status_code)
