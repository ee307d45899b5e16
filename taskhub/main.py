"""
Runtime entrypoint: wires storage, API client, scheduler, auth session and notification feed.

    with TaskHubRuntime() as rt:
        rt.auth.sign_in(email, password)
        rt.feed.notifications

The scheduler runs in a background thread; shutdown() stops it without waiting on jobs.
"""
import logging
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from dotenv import load_dotenv

# Load .env from the project root before settings are read
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from taskhub.config import settings
from taskhub.services.api import ApiClient, ApiConfig
from taskhub.services.auth_service import AuthSessionStore
from taskhub.services.dashboard import AdminDashboard, CustomerDashboard, DashboardLoader, WorkerDashboard
from taskhub.services.notifications import NotificationFeed
from taskhub.services.storage import DatabaseStorage, TokenStorage
from taskhub.services.toasts import ToastCenter

logger = logging.getLogger(__name__)

_DASHBOARDS: dict[str, type[DashboardLoader]] = {
    "admin": AdminDashboard,
    "customer": CustomerDashboard,
    "worker": WorkerDashboard,
}


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=level or settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


class TaskHubRuntime:
    def __init__(
        self,
        storage: TokenStorage | None = None,
        client: ApiClient | None = None,
        scheduler: BaseScheduler | None = None,
        toasts: ToastCenter | None = None,
    ) -> None:
        self.storage = storage if storage is not None else DatabaseStorage()
        self.client = client or ApiClient(self.storage, ApiConfig())
        self.scheduler = scheduler or BackgroundScheduler()
        self.toasts = toasts or ToastCenter()
        self.auth = AuthSessionStore(self.client, self.toasts)
        self.feed = NotificationFeed(self.client, self.scheduler)
        self._dashboard: DashboardLoader | None = None
        self._unsubscribe = None
        self._started = False

    def start(self, *, configure_logs: bool = True) -> "TaskHubRuntime":
        if self._started:
            return self
        if configure_logs:
            configure_logging()
        if not self.scheduler.running:
            self.scheduler.start()
        self._unsubscribe = self.auth.subscribe(self._on_session_change)
        self._started = True
        state = self.auth.initialize()
        logger.info("TaskHub runtime ready (api=%s, session=%s)", self.client.base_url, state.value)
        return self

    def _on_session_change(self, user_id: str | None) -> None:
        # One poller per signed-in user; signing out stops it
        self.feed.start(user_id)
        if self._dashboard is not None and not user_id:
            self._dashboard.close()
            self._dashboard = None

    def dashboard(self) -> DashboardLoader | None:
        """The signed-in user's role dashboard, created on first use."""
        user_type = self.auth.get_user_type()
        cls = _DASHBOARDS.get(user_type or "")
        if cls is None:
            return None
        if not isinstance(self._dashboard, cls):
            if self._dashboard is not None:
                self._dashboard.close()
            self._dashboard = cls(self.client, self.scheduler, lambda: self.auth.user_id)
        return self._dashboard

    def shutdown(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.feed.stop()
        if self._dashboard is not None:
            self._dashboard.close()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self._started = False
        logger.info("TaskHub runtime stopped")

    def __enter__(self) -> "TaskHubRuntime":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.shutdown()
