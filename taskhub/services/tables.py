"""
Paginated table data: one cached page per listing (bookings, services, payments, workers)
plus optimistic local mutation.

update_optimistically / delete_optimistically change the cached page immediately and leave
confirmation to the caller. mutate / remove also run the confirming call: every optimistic
change gets a monotonic local version, and a failed confirmation restores that entity only
(unless a newer change to the same entity superseded it). reload() is the coarse fallback.
"""
import logging
import threading
from typing import Any, Callable, Iterable

from apscheduler.schedulers.base import BaseScheduler

from taskhub.config import settings
from taskhub.core.constants import TABLE_SEARCH_JOB_PREFIX
from taskhub.core.errors import error_message
from taskhub.schemas import ListPage
from taskhub.services.api import ApiResponse
from taskhub.services.debounce import Debouncer
from taskhub.services.toasts import ToastCenter

logger = logging.getLogger(__name__)

Fetcher = Callable[[int, int, dict[str, Any]], ApiResponse]

# Keys the various list endpoints put their rows / totals under
_ITEM_KEYS = ("data", "items", "bookings", "workers", "payments", "services", "workerSummaries", "results")
_TOTAL_KEYS = ("totalCount", "total_count", "total")


def paginate(items: list[dict[str, Any]], page: int, page_size: int) -> list[dict[str, Any]]:
    """1-based page slice."""
    start = max(page - 1, 0) * page_size
    return items[start:start + page_size]


def filter_locally(
    items: Iterable[dict[str, Any]],
    *,
    search: str = "",
    fields: Iterable[str] = ("id",),
    status: str | None = None,
    status_field: str = "status",
) -> list[dict[str, Any]]:
    """Filter a cached full list while the server fetch is in flight. "all" means no status filter."""
    out = list(items)
    if status and status != "all":
        out = [i for i in out if i.get(status_field) == status]
    term = (search or "").strip().lower()
    if term:
        fields = list(fields)
        out = [
            i for i in out
            if any(term in str(i.get(f) or "").lower() for f in fields)
        ]
    return out


def normalize_page(data: Any, page: int, page_size: int) -> ListPage:
    """Turn any of the backend's list shapes into a ListPage."""
    rows: list[Any] = []
    total: int | None = None
    if isinstance(data, list):
        rows = data
    elif isinstance(data, dict):
        for key in _ITEM_KEYS:
            if isinstance(data.get(key), list):
                rows = data[key]
                break
        for key in _TOTAL_KEYS:
            if data.get(key) is not None:
                try:
                    total = int(data[key])
                except (TypeError, ValueError):
                    total = None
                break
    items = [r for r in rows if isinstance(r, dict)]
    if total is None:
        # Whole list came back: paginate client-side
        total = len(items)
        items = paginate(items, page, page_size) if len(items) > page_size else items
    elif len(items) > page_size:
        logger.warning("Server returned %s rows for page_size %s; truncating", len(items), page_size)
        items = items[:page_size]
    return ListPage(items=items, total_count=total, page=page, page_size=page_size)


class PaginatedTable:
    """Page cache for one listing. fetcher(page, page_size, filters) -> ApiResponse."""

    def __init__(
        self,
        fetcher: Fetcher,
        *,
        name: str = "table",
        key: str = "id",
        page_size: int = 10,
        toasts: ToastCenter | None = None,
        scheduler: BaseScheduler | None = None,
        search_debounce_seconds: float | None = None,
    ) -> None:
        self.name = name
        self._fetcher = fetcher
        self._key = key
        self._toasts = toasts or ToastCenter()
        self._lock = threading.Lock()
        self.page = ListPage(page=1, page_size=page_size)
        self.filters: dict[str, Any] = {}
        self.loading = False
        self.last_error: Any = None
        self._seq = 0
        self._versions: dict[str, int] = {}
        self._search = None
        if scheduler is not None:
            delay = search_debounce_seconds
            if delay is None:
                delay = settings.table_search_debounce_seconds
            self._search = Debouncer(scheduler, f"{TABLE_SEARCH_JOB_PREFIX}:{name}", delay, self.reload)

    @property
    def items(self) -> list[dict[str, Any]]:
        return list(self.page.items)

    @property
    def total_count(self) -> int:
        return self.page.total_count

    def _id(self, item: dict[str, Any]) -> str:
        return str(item.get(self._key))

    def get(self, item_id: Any) -> dict[str, Any] | None:
        item_id = str(item_id)
        for item in self.page.items:
            if self._id(item) == item_id:
                return item
        return None

    # --- Fetch ---

    def fetch(self, page: int | None = None, page_size: int | None = None, filters: dict[str, Any] | None = None) -> ListPage:
        """Fetch one page; the result replaces the cached page wholesale. On error the page empties."""
        page = page if page is not None else self.page.page
        page_size = page_size if page_size is not None else self.page.page_size
        if filters is not None:
            self.filters = dict(filters)
        self.loading = True
        try:
            resp = self._fetcher(page, page_size, dict(self.filters))
        finally:
            self.loading = False
        with self._lock:
            if not resp.ok:
                self.last_error = resp.error
                logger.error("Error fetching %s page %s: %s", self.name, page, error_message(resp.error))
                self.page = ListPage(page=page, page_size=page_size)
            else:
                self.last_error = None
                self.page = normalize_page(resp.data, page, page_size)
            self._versions.clear()
            return self.page

    def reload(self) -> ListPage:
        """Refetch the current page with the current filters: the coarse rollback."""
        return self.fetch()

    def search(self, term: str) -> None:
        """Set the search filter and jump to page 1. Debounced when a scheduler is attached."""
        self.filters = {**self.filters, "search": term}
        with self._lock:
            self.page = self.page.model_copy(update={"page": 1})
        if self._search is not None:
            self._search.schedule()
        else:
            self.reload()

    def close(self) -> None:
        if self._search is not None:
            self._search.cancel()

    # --- Optimistic mutation ---

    def _bump(self, item_id: str) -> int:
        self._seq += 1
        self._versions[item_id] = self._seq
        return self._seq

    def update_optimistically(self, item_id: Any, patch: dict[str, Any]) -> bool:
        """Merge patch into the cached item now. Returns False if the item is not on this page."""
        item_id = str(item_id)
        with self._lock:
            found = False
            items = []
            for item in self.page.items:
                if self._id(item) == item_id:
                    item = {**item, **patch}
                    found = True
                items.append(item)
            if found:
                self.page = self.page.model_copy(update={"items": items})
                self._bump(item_id)
            return found

    def delete_optimistically(self, item_id: Any, *, adjust_total: bool = True) -> bool:
        item_id = str(item_id)
        with self._lock:
            items = [i for i in self.page.items if self._id(i) != item_id]
            if len(items) == len(self.page.items):
                return False
            total = self.page.total_count
            if adjust_total:
                total = max(0, total - 1)
            self.page = self.page.model_copy(update={"items": items, "total_count": total})
            self._bump(item_id)
            return True

    def mutate(
        self,
        item_id: Any,
        patch: dict[str, Any],
        confirm: Callable[[], ApiResponse],
        *,
        reload_on_error: bool = False,
    ) -> ApiResponse:
        """
        Apply patch optimistically, then run confirm(). On error restore this entity from its
        pre-mutation snapshot (or reload the page when reload_on_error). On success, if the
        server echoes the entity back, its version replaces the local one.
        """
        item_id = str(item_id)
        before = self.get(item_id)
        if before is None:
            raise ValueError(f"{self.name}: no item {item_id} on the current page")
        before = dict(before)
        self.update_optimistically(item_id, patch)
        version = self._versions.get(item_id)
        resp = confirm()
        if not resp.ok:
            self._toasts.error("Update failed", error_message(resp.error))
            if reload_on_error:
                self.reload()
            else:
                self._restore(item_id, version, before)
            return resp
        server_item = resp.data if isinstance(resp.data, dict) else None
        if server_item is not None and isinstance(server_item.get("data"), dict):
            server_item = server_item["data"]
        if server_item is not None and self._id(server_item) == item_id:
            self._replay(item_id, version, server_item)
        return resp

    def remove(
        self,
        item_id: Any,
        confirm: Callable[[], ApiResponse],
        *,
        adjust_total: bool = True,
        reload_on_error: bool = False,
    ) -> ApiResponse:
        """Delete optimistically, then confirm; a failed confirmation puts the row back where it was."""
        item_id = str(item_id)
        with self._lock:
            index = next((n for n, i in enumerate(self.page.items) if self._id(i) == item_id), None)
            if index is None:
                raise ValueError(f"{self.name}: no item {item_id} on the current page")
            before = dict(self.page.items[index])
            total_before = self.page.total_count
        self.delete_optimistically(item_id, adjust_total=adjust_total)
        version = self._versions.get(item_id)
        resp = confirm()
        if resp.ok:
            return resp
        self._toasts.error("Delete failed", error_message(resp.error))
        if reload_on_error:
            self.reload()
            return resp
        with self._lock:
            if self._versions.get(item_id) != version or self.get(item_id) is not None:
                return resp
            items = list(self.page.items)
            items.insert(min(index, len(items)), before)
            total = total_before if adjust_total else self.page.total_count
            self.page = self.page.model_copy(update={"items": items[:self.page.page_size], "total_count": total})
            self._versions.pop(item_id, None)
        return resp

    def _restore(self, item_id: str, version: int | None, snapshot: dict[str, Any]) -> None:
        with self._lock:
            if self._versions.get(item_id) != version:
                logger.debug("%s: %s changed again since the failed mutation; not restoring", self.name, item_id)
                return
            self.page = self.page.model_copy(
                update={"items": [snapshot if self._id(i) == item_id else i for i in self.page.items]}
            )
            self._versions.pop(item_id, None)

    def _replay(self, item_id: str, version: int | None, server_item: dict[str, Any]) -> None:
        with self._lock:
            if self._versions.get(item_id) != version:
                return
            self.page = self.page.model_copy(
                update={"items": [{**i, **server_item} if self._id(i) == item_id else i for i in self.page.items]}
            )
