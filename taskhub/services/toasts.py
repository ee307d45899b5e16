"""
User-visible, non-blocking messages. Services push here instead of raising;
whatever renders the UI drains the queue.
"""
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

MAX_TOASTS = 50


@dataclass(frozen=True)
class Toast:
    title: str
    description: str = ""
    variant: str = "default"  # "default" | "destructive"
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ToastCenter:
    def __init__(self, maxlen: int = MAX_TOASTS) -> None:
        self._toasts: deque[Toast] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def push(self, title: str, description: str = "", variant: str = "default") -> Toast:
        toast = Toast(title=title, description=description, variant=variant)
        with self._lock:
            self._toasts.append(toast)
        if variant == "destructive":
            logger.info("Toast (error): %s: %s", title, description)
        else:
            logger.debug("Toast: %s: %s", title, description)
        return toast

    def success(self, title: str, description: str = "") -> Toast:
        return self.push(title, description)

    def error(self, title: str, description: str = "") -> Toast:
        return self.push(title, description, variant="destructive")

    def drain(self) -> list[Toast]:
        """Return pending toasts oldest first and empty the queue."""
        with self._lock:
            out = list(self._toasts)
            self._toasts.clear()
        return out
