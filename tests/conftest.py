import json

import httpx
import pytest
from apscheduler.jobstores.base import JobLookupError

from taskhub.services.api import ApiClient, ApiConfig
from taskhub.services.storage import MemoryStorage
from taskhub.services.toasts import ToastCenter

BASE_URL = "http://api.test/api"


class FakeBackend:
    """Route table for httpx.MockTransport. Handlers get the request and return an httpx.Response."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def on(self, method, path, handler=None, *, status=200, json_body=None):
        if handler is None:
            def handler(request, _status=status, _body=json_body):
                return httpx.Response(_status, json=_body)
        self.routes[(method, path)] = handler
        return handler

    def calls(self, method=None, path=None):
        return [
            r for r in self.requests
            if (method is None or r.method == method) and (path is None or r.url.path == path)
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"message": f"No route {request.method} {request.url.path}"})
        return handler(request)


def body_of(request):
    return json.loads(request.content or b"{}")


class FakeJob:
    def __init__(self, func, trigger, kwargs):
        self.func = func
        self.trigger = trigger
        self.kwargs = kwargs


class FakeScheduler:
    """Records jobs instead of running them; tests fire them by id."""

    def __init__(self):
        self.jobs = {}
        self.running = False
        self.added = []

    def add_job(self, func, trigger=None, id=None, replace_existing=False, **kwargs):
        if id in self.jobs and not replace_existing:
            raise ValueError(f"job {id} exists")
        self.jobs[id] = FakeJob(func, trigger, kwargs)
        self.added.append(id)
        return self.jobs[id]

    def remove_job(self, job_id, jobstore=None):
        if job_id not in self.jobs:
            raise JobLookupError(job_id)
        del self.jobs[job_id]

    def get_job(self, job_id, jobstore=None):
        return self.jobs.get(job_id)

    def fire(self, job_id):
        job = self.jobs[job_id]
        if job.trigger == "date":
            del self.jobs[job_id]
        return job.func()

    def start(self):
        self.running = True

    def shutdown(self, wait=True):
        self.running = False


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def client(backend, storage):
    return ApiClient(storage, ApiConfig(base_url=BASE_URL, timeout=5), transport=httpx.MockTransport(backend))


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def toasts():
    return ToastCenter()


@pytest.fixture
def auth_payload():
    return {
        "user": {"id": 7, "email": "jo@example.com"},
        "profile": {
            "id": "p-7",
            "user_type": "customer",
            "first_name": "Jo",
            "last_name": "Bloggs",
            "postcode": "SW13 9WT",
        },
        "token": "tok-abc",
    }
