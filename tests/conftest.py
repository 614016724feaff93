"""
Shared fixtures: test settings, a fresh meeting store, signed session tokens
and a fake Google Calendar insert.
"""
import time

import pytest
from fastapi.testclient import TestClient

import app as app_module
import meetings
from config import Settings, get_settings
from meeting_store import MeetingStore
from session_token import encode_session

MEET_URI = "https://meet.google.com/abc-defg-hij"
OWNER = "google-sub-alice"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings():
    return Settings(
        google_client_id="client-id",
        google_client_secret="client-secret",
        session_secret="test-signing-secret",
        base_url="http://testserver",
        calendar_id="primary",
        tz_name="UTC",
    )


@pytest.fixture
def store():
    s = MeetingStore()
    meetings.init(store=s)
    yield s
    meetings.init(store=app_module.STORE)


@pytest.fixture
def client(settings, store):
    app_module.app.dependency_overrides[get_settings] = lambda: settings
    with TestClient(app_module.app) as c:
        yield c
    app_module.app.dependency_overrides.clear()


def make_session(settings, **overrides):
    claims = {
        "access_token": "access-1",
        "refresh_token": "refresh-1",
        "expires_at": int(time.time()) + 3600,
        "sub": OWNER,
        "email": "alice@example.com",
        "name": "Alice",
    }
    claims.update(overrides)
    return encode_session(claims, settings)


@pytest.fixture
def auth_headers(settings):
    return {"Authorization": f"Bearer {make_session(settings)}"}


def calendar_event(**kw):
    return {
        "id": "evt123",
        "summary": kw["title"],
        "htmlLink": "https://calendar.google.com/event?eid=evt123",
        "conferenceData": {
            "entryPoints": [
                {"entryPointType": "phone", "uri": "tel:+1-555-0100"},
                {"entryPointType": "video", "uri": MEET_URI},
            ]
        },
    }


class FakeCalendar:
    """Stands in for create_google_calendar_event; queued results are returned or raised in order."""

    def __init__(self):
        self.calls = []
        self.results = []

    def __call__(self, **kw):
        self.calls.append(kw)
        result = self.results.pop(0) if self.results else calendar_event
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result(**kw)
        return result


@pytest.fixture
def calendar(monkeypatch):
    fake = FakeCalendar()
    monkeypatch.setattr(meetings, "create_google_calendar_event", fake)
    return fake


@pytest.fixture
def refresher(monkeypatch):
    calls = []

    def fake_refresh(*, refresh_token, settings):
        calls.append(refresh_token)
        return {"access_token": "access-2", "expires_in": 3599, "token_type": "Bearer"}

    monkeypatch.setattr(meetings, "refresh_access_token", fake_refresh)
    return calls
