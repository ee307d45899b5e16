"""
Notification feed: polled read-through cache of the signed-in user's notifications.

There is no push channel, so an interval job (one per user, explicit job id) refetches the
list and replaces the cache wholesale. Read-state changes are applied locally before the
server confirms them and are never rolled back; the next poll is the correction.
"""
import logging
import threading
from typing import Any

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler
from pydantic import ValidationError

from taskhub.config import settings
from taskhub.core.constants import NOTIFICATION_POLL_JOB_PREFIX
from taskhub.core.errors import error_message
from taskhub.schemas import CreateNotificationParams, Notification
from taskhub.services.api import ApiClient

logger = logging.getLogger(__name__)


def _rows(data: Any) -> list[Any]:
    """Laravel returns a bare array; tolerate {notifications: [...]} and {data: [...]} too."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        rows = data.get("notifications") or data.get("data") or []
        return rows if isinstance(rows, list) else []
    return []


def parse_notifications(data: Any) -> list[Notification]:
    out: list[Notification] = []
    for row in _rows(data):
        try:
            out.append(Notification.model_validate(row))
        except ValidationError as e:
            logger.warning("Skipping malformed notification: %s", e)
    return out


NOTIFICATION_FILTERS = ("type", "is_read")


def poll_job_id(user_id: str) -> str:
    return f"{NOTIFICATION_POLL_JOB_PREFIX}:{user_id}"


class NotificationFeed:
    """Cache + unread count for one user at a time. start()/stop() own the poll job."""

    def __init__(
        self,
        client: ApiClient,
        scheduler: BaseScheduler,
        poll_seconds: int | None = None,
    ) -> None:
        self._client = client
        self._scheduler = scheduler
        self.poll_seconds = poll_seconds or settings.notification_poll_seconds
        self._lock = threading.Lock()
        self._user_id: str | None = None
        self._job_id: str | None = None
        self._notifications: list[Notification] = []
        self._unread_count = 0
        # Local mutation sequence: a poll only overrides entities it observed after their last local change.
        self._seq = 0
        self._versions: dict[str, int] = {}
        # Server-side filters sent with every fetch: "type" and "is_read".
        self.filters: dict[str, Any] = {}
        self.loading = False
        self.last_error: Any = None

    # --- State ---

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def notifications(self) -> list[Notification]:
        with self._lock:
            return list(self._notifications)

    @property
    def unread_count(self) -> int:
        with self._lock:
            return self._unread_count

    @property
    def polling(self) -> bool:
        return self._job_id is not None and self._scheduler.get_job(self._job_id) is not None

    # --- Lifecycle ---

    def start(self, user_id: str | None) -> None:
        """Fetch now and poll every poll_seconds for user_id. None stops polling and empties the cache."""
        if not user_id:
            self.stop()
            with self._lock:
                self._user_id = None
                self._notifications = []
                self._unread_count = 0
                self._versions.clear()
                self.filters = {}
            return
        if user_id == self._user_id and self.polling:
            return
        self.stop()
        with self._lock:
            if user_id != self._user_id:
                self._notifications = []
                self._unread_count = 0
                self._versions.clear()
            self._user_id = user_id
        self.refresh()
        job_id = poll_job_id(user_id)
        self._scheduler.add_job(
            self._poll,
            "interval",
            seconds=self.poll_seconds,
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._job_id = job_id
        logger.debug("Notification polling started for %s every %ss", user_id, self.poll_seconds)

    def stop(self) -> None:
        """Remove the poll job. Safe to call repeatedly; in-flight fetches are not cancelled."""
        job_id, self._job_id = self._job_id, None
        if not job_id:
            return
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            return
        logger.debug("Notification polling stopped (%s)", job_id)

    def _poll(self) -> None:
        if self._user_id:
            self.refresh()

    # --- Fetch ---

    def refresh(self, filters: dict[str, Any] | None = None) -> bool:
        """Refetch the list. Passing filters replaces self.filters for this and later polls."""
        if filters is not None:
            self.filters = {k: v for k, v in filters.items() if k in NOTIFICATION_FILTERS}
        user_id = self._user_id
        if not user_id:
            return False
        with self._lock:
            seen_seq = self._seq
        self.loading = True
        try:
            resp = self._client.get_notifications({**self.filters, "user_id": user_id})
        finally:
            self.loading = False
        if not resp.ok:
            self.last_error = resp.error
            logger.error("Error fetching notifications: %s", error_message(resp.error))
            return False
        fresh = parse_notifications(resp.data)
        with self._lock:
            if user_id != self._user_id:
                logger.debug("Dropping notifications fetched for previous user %s", user_id)
                return False
            local = {n.id: n for n in self._notifications}
            merged = []
            for n in fresh:
                # Changed locally after this poll was issued: keep the local read state.
                if self._versions.get(n.id, 0) > seen_seq and n.id in local:
                    n = n.model_copy(update={"is_read": local[n.id].is_read})
                merged.append(n)
            self._notifications = merged
            self._unread_count = sum(1 for n in merged if not n.is_read)
            self.last_error = None
        return True

    def fetch_unread_count(self) -> int | None:
        """Server-side count (/notifications/unread-count). Does not touch the cache."""
        if not self._user_id:
            return None
        resp = self._client.get_unread_count({"user_id": self._user_id})
        if not resp.ok:
            logger.error("Error fetching unread count: %s", error_message(resp.error))
            return None
        data = resp.data
        if isinstance(data, dict):
            data = data.get("count", data.get("unread_count"))
        try:
            return int(data or 0)
        except (TypeError, ValueError):
            return 0

    # --- Optimistic mutations (no rollback) ---

    def _bump(self, notification_id: str) -> None:
        self._seq += 1
        self._versions[notification_id] = self._seq

    def mark_as_read(self, notification_id: str, is_read: bool = True) -> bool:
        """Set one notification's read flag. is_read=False marks it unread again."""
        if not notification_id:
            raise ValueError("notification_id is required")
        notification_id = str(notification_id)
        with self._lock:
            for i, n in enumerate(self._notifications):
                if n.id == notification_id:
                    if n.is_read != is_read:
                        self._notifications[i] = n.model_copy(update={"is_read": is_read})
                        if is_read:
                            self._unread_count = max(0, self._unread_count - 1)
                        else:
                            self._unread_count += 1
                    break
            self._bump(notification_id)
        resp = self._client.mark_notification_read(notification_id, is_read)
        if not resp.ok:
            # Local state stays as set; the next poll brings server truth back.
            logger.warning(
                "Error setting notification %s is_read=%s: %s", notification_id, is_read, error_message(resp.error)
            )
            return False
        return True

    def mark_all_as_read(self) -> bool:
        with self._lock:
            self._notifications = [
                n if n.is_read else n.model_copy(update={"is_read": True}) for n in self._notifications
            ]
            self._unread_count = 0
            for n in self._notifications:
                self._bump(n.id)
        resp = self._client.mark_all_notifications_read(self._user_id)
        if not resp.ok:
            logger.warning("Error marking all notifications as read: %s", error_message(resp.error))
            return False
        return True

    def create_notification(self, params: CreateNotificationParams | dict[str, Any]) -> bool:
        """Fire-and-forget create. The cache picks the new row up on the next poll."""
        if not isinstance(params, CreateNotificationParams):
            try:
                params = CreateNotificationParams.model_validate(params)
            except ValidationError as e:
                logger.error("Invalid notification params: %s", e)
                return False
        resp = self._client.create_notification(params.model_dump())
        if not resp.ok:
            logger.error("Error sending notification: %s", error_message(resp.error))
            return False
        return True
