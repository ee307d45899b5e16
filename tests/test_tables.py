import pytest

from taskhub.services.api import ApiResponse
from taskhub.services.tables import PaginatedTable, filter_locally, normalize_page, paginate
from taskhub.schemas import ListPage


def _bookings(n):
    return [{"id": i, "status": "pending" if i % 2 else "confirmed", "title": f"Job {i}"} for i in range(1, n + 1)]


class StubFetcher:
    def __init__(self, data):
        self.data = data
        self.calls = []

    def __call__(self, page, page_size, filters):
        self.calls.append((page, page_size, filters))
        if isinstance(self.data, ApiResponse):
            return self.data
        return ApiResponse(data=self.data, status_code=200)


@pytest.fixture
def table(toasts):
    fetcher = StubFetcher({"data": _bookings(3), "totalCount": 23})
    t = PaginatedTable(fetcher, name="bookings", page_size=3, toasts=toasts)
    t.fetch(page=1)
    return t


def test_paginate_is_one_based():
    items = _bookings(25)
    assert [i["id"] for i in paginate(items, 3, 10)] == list(range(21, 26))
    assert paginate(items, 4, 10) == []


def test_filter_locally_by_status_and_search():
    items = _bookings(6)
    assert [i["id"] for i in filter_locally(items, status="confirmed")] == [2, 4, 6]
    assert filter_locally(items, status="all") == items
    assert [i["id"] for i in filter_locally(items, search="job 5", fields=("title",))] == [5]


def test_normalize_server_page_and_full_list():
    page = normalize_page({"workers": _bookings(2), "total": "12"}, 2, 5)
    assert page.total_count == 12
    assert len(page.items) == 2

    page = normalize_page(_bookings(12), 2, 5)
    assert page.total_count == 12
    assert [i["id"] for i in page.items] == [6, 7, 8, 9, 10]
    assert page.total_pages == 3


def test_list_page_rejects_more_items_than_page_size():
    with pytest.raises(ValueError):
        ListPage(items=_bookings(3), page_size=2)


def test_fetch_error_empties_the_page(toasts):
    table = PaginatedTable(StubFetcher(ApiResponse.failure({"message": "nope"}, 500)), toasts=toasts)
    page = table.fetch(page=2)
    assert page.items == []
    assert page.total_count == 0
    assert table.last_error == {"message": "nope"}


def test_update_optimistically_touches_only_that_row(table):
    assert table.update_optimistically(2, {"status": "cancelled"})
    assert [i["status"] for i in table.items] == ["pending", "cancelled", "pending"]
    assert table.update_optimistically(99, {"status": "x"}) is False


def test_delete_optimistically_adjusts_total(table):
    assert table.delete_optimistically(1)
    assert [i["id"] for i in table.items] == [2, 3]
    assert table.total_count == 22

    assert table.delete_optimistically(2, adjust_total=False)
    assert table.total_count == 22


def test_mutate_failure_restores_only_that_entity(table, toasts):
    table.update_optimistically(3, {"status": "confirmed"})

    resp = table.mutate(1, {"status": "cancelled"}, lambda: ApiResponse.failure({"message": "denied"}, 403))

    assert not resp.ok
    assert table.get(1)["status"] == "pending"
    # The unrelated optimistic change survives the rollback
    assert table.get(3)["status"] == "confirmed"
    assert toasts.drain()[-1].variant == "destructive"


def test_mutate_failure_does_not_undo_a_newer_change(table):
    def confirm():
        table.update_optimistically(1, {"status": "completed"})
        return ApiResponse.failure({"message": "late failure"}, 500)

    table.mutate(1, {"status": "cancelled"}, confirm)
    assert table.get(1)["status"] == "completed"


def test_mutate_success_replays_server_entity(table):
    server_row = {"id": 1, "status": "cancelled", "cancelled_at": "2025-09-10"}
    table.mutate(1, {"status": "cancelled"}, lambda: ApiResponse(data={"data": server_row}))
    assert table.get(1) == {"id": 1, "status": "cancelled", "title": "Job 1", "cancelled_at": "2025-09-10"}


def test_mutate_patch_is_visible_before_confirm_returns(table):
    seen = []

    def confirm():
        seen.append(table.get(2)["status"])
        return ApiResponse(data={"ok": True})

    resp = table.mutate(2, {"status": "cancelled"}, confirm)

    assert resp.ok
    assert seen == ["cancelled"]
    assert table.get(2)["status"] == "cancelled"


def test_mutate_reload_on_error(table):
    table.mutate(1, {"status": "x"}, lambda: ApiResponse.failure("err"), reload_on_error=True)
    assert len(table._fetcher.calls) == 2
    assert table.get(1)["status"] == "pending"


def test_mutate_unknown_row_raises(table):
    with pytest.raises(ValueError):
        table.mutate(42, {}, lambda: ApiResponse(data={}))


def test_remove_failure_puts_row_back_in_place(table):
    table.remove(2, lambda: ApiResponse.failure({"message": "in use"}, 409))
    assert [i["id"] for i in table.items] == [1, 2, 3]
    assert table.total_count == 23


def test_remove_success_keeps_it_gone(table):
    table.remove(2, lambda: ApiResponse(data={"deleted": True}))
    assert [i["id"] for i in table.items] == [1, 3]
    assert table.total_count == 22


def test_search_is_debounced(toasts, scheduler):
    fetcher = StubFetcher({"data": [], "totalCount": 0})
    table = PaginatedTable(fetcher, name="payments", toasts=toasts, scheduler=scheduler, search_debounce_seconds=0.3)

    table.search("j")
    table.search("jo")
    table.search("jon")

    assert fetcher.calls == []
    assert list(scheduler.jobs) == ["table_search:payments"]
    scheduler.fire("table_search:payments")
    assert fetcher.calls == [(1, 10, {"search": "jon"})]

    table.search("x")
    table.close()
    assert scheduler.jobs == {}
