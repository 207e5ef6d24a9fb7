"""
Shared pytest fixtures for the campus grievance test suite.

Provides an httpx AsyncClient bound to the in-process app with an in-memory
store, a recording notifier and a pre-authenticated admin header.
"""

import os

# Configure before the app module reads the environment
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["JWT_SECRET"] = "test-secret-for-pytest-only-0123456789abcdef"
os.environ["ADMIN_ACCOUNTS"] = "admin@campus.edu:admin-pass-1234"
os.environ["OPENAI_API_KEY"] = ""
os.environ["SMTP_HOST"] = ""

from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio

from campusvoice.app import app, get_admins, get_classifier, get_notifier, get_store, limiter
from campusvoice.auth import InMemoryAdminDirectory
from campusvoice.classifier import RuleBasedClassifier
from campusvoice.store import InMemoryGrievanceStore

ADMIN_EMAIL = "admin@campus.edu"
ADMIN_PASSWORD = "admin-pass-1234"


class FakeClock:
    """Strictly increasing timestamps, one second apart."""

    def __init__(self, start=datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc),
                 step=timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self):
        self.now = self.now + self.step
        return self.now


class RecordingNotifier:
    def __init__(self, result=True, error=None):
        self.result = result
        self.error = error
        self.sent = []

    async def notify(self, notification):
        self.sent.append(notification)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store(clock):
    return InMemoryGrievanceStore(clock=clock)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope="session")
def admin_directory():
    return InMemoryAdminDirectory.from_passwords({ADMIN_EMAIL: ADMIN_PASSWORD})


@pytest_asyncio.fixture
async def client(memory_store, notifier, admin_directory):
    """In-process httpx AsyncClient with every collaborator overridden."""
    # Disable rate limiting so repeated logins/submissions aren't throttled
    limiter.enabled = False
    app.dependency_overrides[get_store] = lambda: memory_store
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_classifier] = lambda: RuleBasedClassifier()
    app.dependency_overrides[get_admins] = lambda: admin_directory
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admin_headers(client):
    resp = await client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert resp.status_code == 200, f"Login failed: {resp.text}"
    return {"Authorization": f"Bearer {resp.json()['accessToken']}"}


@pytest.fixture
def notifier_factory():
    return RecordingNotifier
