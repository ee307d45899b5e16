"""Debounced one-shot jobs on the shared scheduler: scheduling again replaces the pending run."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler

logger = logging.getLogger(__name__)


class Debouncer:
    __slots__ = ("_scheduler", "job_id", "delay_seconds", "_func")

    def __init__(self, scheduler: BaseScheduler, job_id: str, delay_seconds: float, func: Callable[[], object]) -> None:
        self._scheduler = scheduler
        self.job_id = job_id
        self.delay_seconds = delay_seconds
        self._func = func

    def schedule(self) -> None:
        """(Re)schedule func to run once after delay_seconds; any pending run is dropped."""
        run_date = datetime.now(timezone.utc) + timedelta(seconds=self.delay_seconds)
        self._scheduler.add_job(
            self._func,
            "date",
            run_date=run_date,
            id=self.job_id,
            replace_existing=True,
            misfire_grace_time=None,
        )
        logger.debug("Debounced %s in %ss", self.job_id, self.delay_seconds)

    def cancel(self) -> None:
        try:
            self._scheduler.remove_job(self.job_id)
        except JobLookupError:
            pass  # already ran or never scheduled
