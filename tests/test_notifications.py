import httpx
import pytest

from conftest import body_of
from taskhub.services.notifications import (
    NotificationFeed,
    notify_booking_status_changed,
    notify_new_profile_created,
    notify_offer_response,
    notify_service_request_status_changed,
    parse_notifications,
    poll_job_id,
)


def _row(id, is_read=False, user_id="7"):
    return {"id": id, "user_id": user_id, "type": "new_message", "title": "t", "message": "m", "is_read": is_read}


@pytest.fixture
def rows():
    return [_row("n1"), _row("n2"), _row("n3", is_read=True)]


@pytest.fixture
def feed(backend, client, scheduler, rows):
    backend.on("GET", "/api/notifications", json_body=rows)
    backend.on("PUT", "/api/notifications/mark-all-read", json_body={})
    return NotificationFeed(client, scheduler, poll_seconds=10)


def test_start_fetches_and_schedules_one_poll_job(feed, scheduler):
    feed.start("7")
    assert feed.unread_count == 2
    assert [n.id for n in feed.notifications] == ["n1", "n2", "n3"]
    job = scheduler.get_job(poll_job_id("7"))
    assert job.trigger == "interval"
    assert job.kwargs["seconds"] == 10
    assert feed.polling


def test_start_twice_for_same_user_is_a_no_op(feed, scheduler, backend):
    feed.start("7")
    feed.start("7")
    assert len(scheduler.jobs) == 1
    assert len(backend.calls("GET", "/api/notifications")) == 1


def test_poll_replaces_cache_wholesale(feed, scheduler, backend):
    feed.start("7")
    backend.on("GET", "/api/notifications", json_body=[_row("n9")])
    scheduler.fire(poll_job_id("7"))
    assert [n.id for n in feed.notifications] == ["n9"]
    assert feed.unread_count == 1


def test_sign_out_stops_polling_and_clears(feed, scheduler):
    feed.start("7")
    feed.start(None)
    assert scheduler.jobs == {}
    assert feed.notifications == []
    assert feed.unread_count == 0
    assert not feed.polling
    feed.stop()


def test_switching_user_moves_the_poll_job(feed, scheduler):
    feed.start("7")
    feed.start("8")
    assert list(scheduler.jobs) == [poll_job_id("8")]


def test_mark_as_read_is_optimistic_and_never_rolls_back(feed, backend):
    backend.on("PUT", "/api/notifications/n1/read", status=500, json_body={"message": "boom"})
    feed.start("7")

    assert feed.mark_as_read("n1") is False

    assert feed.unread_count == 1
    assert next(n for n in feed.notifications if n.id == "n1").is_read
    assert body_of(backend.calls("PUT", "/api/notifications/n1/read")[0]) == {"is_read": True}


def test_mark_as_read_already_read_does_not_decrement(feed, backend):
    backend.on("PUT", "/api/notifications/n3/read", json_body={})
    feed.start("7")
    feed.mark_as_read("n3")
    assert feed.unread_count == 2


def test_unread_count_never_goes_negative(feed, backend):
    backend.on("PUT", "/api/notifications/n1/read", json_body={})
    feed.start("7")
    feed.mark_all_as_read()
    feed.mark_as_read("n1")
    assert feed.unread_count == 0


def test_mark_as_read_requires_an_id(feed):
    with pytest.raises(ValueError):
        feed.mark_as_read("")


def test_mark_all_as_read_is_idempotent(feed, backend):
    feed.start("7")
    assert feed.mark_all_as_read()
    assert feed.mark_all_as_read()
    assert feed.unread_count == 0
    assert all(n.is_read for n in feed.notifications)
    assert body_of(backend.calls("PUT", "/api/notifications/mark-all-read")[0]) == {"user_id": "7"}


def test_poll_issued_before_local_change_keeps_local_read_state(feed, backend, rows):
    feed.start("7")

    def slow_poll(request):
        # The user marks n1 read while this poll is in flight
        feed.mark_as_read("n1")
        return httpx.Response(200, json=rows)

    backend.on("PUT", "/api/notifications/n1/read", json_body={})
    backend.on("GET", "/api/notifications", slow_poll)
    feed.refresh()

    assert next(n for n in feed.notifications if n.id == "n1").is_read
    assert feed.unread_count == 1


def test_poll_after_local_change_is_server_truth(feed, backend, rows):
    backend.on("PUT", "/api/notifications/n1/read", status=500, json_body={})
    feed.start("7")
    feed.mark_as_read("n1")
    feed.refresh()
    assert not next(n for n in feed.notifications if n.id == "n1").is_read
    assert feed.unread_count == 2


def test_fetch_error_keeps_previous_cache(feed, backend):
    feed.start("7")
    backend.on("GET", "/api/notifications", status=500, json_body={"message": "down"})
    assert feed.refresh() is False
    assert feed.unread_count == 2
    assert feed.last_error == {"message": "down"}


def test_fetch_unread_count(feed, backend):
    backend.on("GET", "/api/notifications/unread-count", json_body={"count": 4})
    feed.start("7")
    assert feed.fetch_unread_count() == 4


def test_mark_as_unread_restores_the_count(feed, backend):
    backend.on("PUT", "/api/notifications/n3/read", json_body={})
    feed.start("7")

    assert feed.mark_as_read("n3", is_read=False)
    feed.mark_as_read("n3", is_read=False)

    assert feed.unread_count == 3
    assert not next(n for n in feed.notifications if n.id == "n3").is_read
    assert body_of(backend.calls("PUT", "/api/notifications/n3/read")[0]) == {"is_read": False}


def test_refresh_sends_type_and_read_filters(feed, backend):
    feed.start("7")
    feed.refresh({"type": "new_message", "is_read": False, "page": 3})
    feed.refresh()

    first, second, third = backend.calls("GET", "/api/notifications")
    assert dict(first.url.params) == {"user_id": "7"}
    assert dict(second.url.params) == {"type": "new_message", "is_read": "0", "user_id": "7"}
    assert dict(third.url.params) == dict(second.url.params)

    feed.start(None)
    assert feed.filters == {}


def test_parse_skips_malformed_rows():
    parsed = parse_notifications({"data": [_row("n1"), {"title": "no id"}]})
    assert [n.id for n in parsed] == ["n1"]


def test_create_notification_validates_params(feed, backend):
    backend.on("POST", "/api/notifications", json_body={"id": "n5"})
    assert feed.create_notification({"user_id": 7, "type": "new_message", "title": "Hi", "message": "there"})
    assert body_of(backend.calls("POST", "/api/notifications")[0])["user_id"] == "7"
    assert feed.create_notification({"type": "missing user"}) is False


# --- Templates ---

class Outbox:
    def __init__(self, ok=True):
        self.sent = []
        self.ok = ok

    def __call__(self, params):
        self.sent.append(params)
        return self.ok


def test_new_profile_goes_to_every_admin():
    out = Outbox()
    assert notify_new_profile_created(out, ["a1", "a2"], "p-9", "worker")
    assert [n.user_id for n in out.sent] == ["a1", "a2"]
    assert out.sent[0].message == "A new worker profile has been created and needs verification"


def test_unchanged_status_sends_nothing():
    out = Outbox()
    assert notify_service_request_status_changed(out, "r1", "c1", "Sam", "Gardening", "accepted", "accepted")
    assert out.sent == []


def test_pending_offer_response_sends_nothing():
    out = Outbox()
    assert notify_offer_response(out, "o1", "w1", "Jo", "Cleaning", "pending")
    assert out.sent == []
    notify_offer_response(out, "o1", "w1", "Jo", "Cleaning", "accepted")
    assert out.sent[0].message == "Jo accepted your offer for Cleaning"


def test_booking_status_change_notifies_both_sides():
    out = Outbox(ok=False)
    ok = notify_booking_status_changed(out, "b1", "c1", "w1", "Jo", "Sam", "Plumbing", "completed", "confirmed")
    assert ok is False
    assert [n.user_id for n in out.sent] == ["c1", "w1"]
    assert out.sent[0].message == "Your booking with Sam for Plumbing has been completed"
