from datetime import date

import pytest

from conftest import body_of
from taskhub.services.dashboard import (
    AdminDashboard,
    CustomerDashboard,
    WorkerDashboard,
    admin_bookings_fetcher,
    admin_payments_fetcher,
    category_breakdown,
    growth_rate,
    payment_stats,
    worker_payment_summary_fetcher,
)
from taskhub.services.tables import PaginatedTable

ADMIN_DATA = {
    "stats": {"totalUsers": 12, "totalWorkers": "4", "totalRevenue": "1500.50", "growthRate": None},
    "platformStats": {"jobsCompleted": 9, "avgRating": None},
    "workers": [{"id": i, "status": "pending" if i == 3 else "verified"} for i in range(1, 13)],
    "bookings": [{"id": i} for i in range(1, 5)],
    "payments": [
        {"id": "p1", "payment_status": "completed", "total_amount": 100, "commission_amount": 15, "worker_payout": 85},
        {"id": "p2", "payment_status": "pending", "total_amount": 50},
    ],
}


@pytest.fixture
def user():
    return {"id": "7"}


@pytest.fixture
def admin(backend, client, scheduler, clock, user):
    backend.on("GET", "/api/admin/data", json_body=ADMIN_DATA)
    return AdminDashboard(
        client,
        scheduler,
        lambda: user["id"],
        clock=clock,
        refetch_after_seconds=300,
        debounce_seconds=0.5,
        min_refetch_seconds=30,
    )


def test_admin_load_parses_stats_and_lists(admin):
    assert admin.load()
    assert admin.stats.total_users == 12
    assert admin.stats.total_workers == 4
    assert admin.stats.total_revenue == 1500.5
    assert admin.stats.growth_rate == 0
    assert admin.platform_stats.jobs_completed == 9
    assert admin.platform_stats.avg_rating == 4.8
    assert admin.platform_stats.customer_satisfaction == 96
    assert len(admin.recent_workers) == 10
    assert len(admin.recent_bookings) == 4
    assert [a["id"] for a in admin.system_alerts] == ["pending-workers"]
    assert admin.payments_stats().total_commission == 15


def test_load_without_user_does_nothing(admin, backend, user):
    user["id"] = None
    assert admin.load() is False
    assert backend.requests == []


def test_load_within_min_interval_is_skipped(admin, backend, clock):
    admin.load()
    clock.advance(10)
    assert admin.load() is False
    clock.advance(25)
    assert admin.load()
    assert len(backend.calls("GET", "/api/admin/data")) == 2


def test_focus_within_five_minutes_does_not_refetch(admin, scheduler, clock):
    admin.load()
    clock.advance(299)
    assert admin.on_focus() is False
    assert scheduler.jobs == {}


def test_focus_after_five_minutes_schedules_one_debounced_refetch(admin, scheduler, clock, backend):
    admin.load()
    clock.advance(301)
    assert admin.on_focus()
    assert admin.on_focus()
    assert list(scheduler.jobs) == ["dashboard_refetch:admin"]
    assert scheduler.jobs["dashboard_refetch:admin"].trigger == "date"

    scheduler.fire("dashboard_refetch:admin")
    assert len(backend.calls("GET", "/api/admin/data")) == 2
    assert admin.data_version == 2


def test_manual_refresh_bypasses_guards(admin, scheduler, clock, backend):
    admin.load()
    clock.advance(301)
    admin.on_focus()
    clock.advance(-300)

    assert admin.manual_refresh()
    assert scheduler.jobs == {}
    assert len(backend.calls("GET", "/api/admin/data")) == 2


def test_fetch_error_keeps_old_data(admin, backend, clock):
    admin.load()
    backend.on("GET", "/api/admin/data", status=500, json_body={"message": "down"})
    clock.advance(60)
    assert admin.load() is False
    assert admin.stats.total_users == 12
    assert admin.last_error == {"message": "down"}


def test_close_cancels_pending_refetch(admin, scheduler):
    admin.on_focus()
    admin.close()
    assert scheduler.jobs == {}


def test_verify_and_reject_worker(admin, backend):
    backend.on("POST", "/api/admin/workers/5/verify", json_body={"message": "Verified!"})
    backend.on("POST", "/api/admin/workers/5/reject", status=404, json_body={"message": "Worker not found"})
    assert admin.verify_worker("5") == (True, "Verified!")
    assert admin.reject_worker("5", "incomplete documents") == (False, "Worker not found")
    assert body_of(backend.calls("POST", "/api/admin/workers/5/reject")[0]) == {"reason": "incomplete documents"}


def test_fetch_workers_page(admin, backend):
    backend.on("POST", "/api/admin/workers-pagination", json_body={"data": [{"id": 1}], "totalCount": 31})
    page = admin.fetch_workers_page(4, 10, {"status": "pending"})
    assert page.total_count == 31
    assert page.total_pages == 4
    assert admin.workers_loading is False


def test_customer_dashboard(backend, client, scheduler, clock):
    backend.on(
        "GET",
        "/api/customer-data/7",
        json_body={"stats": {"totalBookings": 2}, "favorites": [{"id": "w1"}], "profile": {"id": "p-7"}},
    )
    dash = CustomerDashboard(client, scheduler, lambda: "7", clock=clock)
    assert dash.load()
    assert dash.stats == {"totalBookings": 2}
    assert dash.favorites == [{"id": "w1"}]
    assert dash.recent_bookings == []
    assert dash.messages == {"conversations": [], "activeChat": []}


def test_worker_dashboard_coerces_numbers(backend, client, scheduler, clock):
    backend.on(
        "GET",
        "/api/worker-data/7",
        json_body={
            "stats": {
                "monthly_earnings": "1500.00",
                "jobs_this_month": "5",
                "completed_jobs": 12,
                "monthly_goal": None,
                "monthly_job_goal": 0,
            },
            "profile_completion": "80",
        },
    )
    dash = WorkerDashboard(client, scheduler, lambda: "7", clock=clock)
    assert dash.load()
    assert dash.stats.monthly_earnings == 1500
    assert dash.stats.completed_jobs == 12
    assert dash.stats.monthly_goal == 3000
    assert dash.stats.monthly_job_goal == 20
    assert dash.stats.category == "General"
    assert dash.goal_progress == 50
    assert dash.completion_rate == 25
    assert dash.profile_completion == 80


def test_payment_stats():
    stats = payment_stats(
        [
            {"payment_status": "completed", "total_amount": "200", "commission_amount": "30", "worker_payout": "170"},
            {"payment_status": "completed", "total_amount": 100},
            {"payment_status": "pending", "total_amount": 80},
            {"payment_status": "failed", "total_amount": 10},
        ]
    )
    assert stats.total_revenue == 300
    # second row has no commission: default 15%
    assert stats.total_commission == pytest.approx(45)
    assert stats.total_worker_payouts == 170
    assert (stats.completed_payments, stats.pending_payments, stats.failed_payments) == (2, 1, 1)
    assert stats.average_commission_rate == pytest.approx(0.15)
    assert stats.avg_commission_per_job == pytest.approx(22.5)


def test_payment_stats_empty():
    stats = payment_stats([])
    assert stats.average_commission_rate == 0
    assert stats.avg_commission_per_job == 0


def test_growth_rate_and_categories():
    assert growth_rate(150, 100) == 50
    assert growth_rate(5, 0) == 100
    assert growth_rate(0, 0) == 0
    assert category_breakdown(
        [{"category": "Cleaning"}, {"category": {"name": "Plumbing"}}, {"category": "Cleaning"}, {}]
    ) == {"Cleaning": 2, "Plumbing": 1, "Uncategorized": 1}


def test_worker_payment_summary_table(backend, client, toasts):
    backend.on(
        "GET",
        "/api/worker-payment-summary",
        json_body={"workerSummaries": [{"id": "w1", "worker_id": "w1", "required_payout": 40}], "totalCount": 11},
    )
    table = PaginatedTable(worker_payment_summary_fetcher(client), name="summaries", toasts=toasts)
    page = table.fetch(page=2, filters={"search": "sam"})
    assert page.total_count == 11
    (request,) = backend.calls("GET", "/api/worker-payment-summary")
    assert dict(request.url.params) == {"page": "2", "pageSize": "10", "search": "sam"}


def test_admin_payments_table_filters_locally(backend, client, toasts):
    backend.on(
        "GET",
        "/api/admin/payments",
        json_body=[
            {"id": "p1", "payment_status": "completed", "worker_paid": True, "customer": "Jo"},
            {"id": "p2", "payment_status": "completed", "worker_paid": False, "customer": "Sam"},
            {"id": "p3", "payment_status": "pending", "worker_paid": False, "customer": "Sam"},
        ],
    )
    table = PaginatedTable(admin_payments_fetcher(client), name="payments", toasts=toasts)
    page = table.fetch(filters={"status": "completed", "worker_paid": "unpaid", "search": "sam"})
    assert [p["id"] for p in page.items] == ["p2"]
    assert page.total_count == 1


def test_admin_bookings_table_sends_page_and_filters(backend, client, toasts):
    backend.on(
        "GET",
        "/api/admin/bookings",
        json_body={"bookings": [{"id": "b1", "status": "confirmed"}], "total": 21},
    )
    table = PaginatedTable(admin_bookings_fetcher(client), name="bookings", toasts=toasts)
    page = table.fetch(page=3, filters={"status": "confirmed"})

    assert page.total_count == 21
    assert page.total_pages == 3
    assert [b["id"] for b in table.items] == ["b1"]
    (request,) = backend.calls("GET", "/api/admin/bookings")
    assert dict(request.url.params) == {"page": "3", "pageSize": "10", "status": "confirmed"}


def test_user_growth_falls_back_to_signups(admin, backend):
    data = {
        **ADMIN_DATA,
        "users": [
            {"id": 1, "created_at": "2026-10-02T09:00:00Z"},
            {"id": 2, "created_at": "2026-10-11T09:00:00Z"},
            {"id": 3, "created_at": "2026-10-15T09:00:00Z"},
            {"id": 4, "created_at": "2026-09-20T09:00:00Z"},
            {"id": 5, "created_at": "2026-09-21T09:00:00Z"},
            {"id": 6, "created_at": None},
        ],
        "services": [{"category": "Cleaning"}, {"category": {"name": "Gardening"}}, {"category": "Cleaning"}],
    }
    backend.on("GET", "/api/admin/data", json_body=data)
    admin.load()

    assert admin.user_growth_rate(date(2026, 10, 19)) == 50
    assert admin.user_growth_rate(date(2026, 1, 5)) == 0
    assert admin.services_by_category == {"Cleaning": 2, "Gardening": 1}


def test_user_growth_prefers_server_rate(admin, backend):
    backend.on("GET", "/api/admin/data", json_body={**ADMIN_DATA, "stats": {"growthRate": "12.5"}})
    admin.load()
    assert admin.user_growth_rate(date(2026, 10, 19)) == 12.5
