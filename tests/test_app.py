import meeting_calendar
from meeting_store import Meeting
from tests.conftest import OWNER


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_home_without_session_offers_sign_in(client):
    r = client.get("/")

    assert r.status_code == 200
    assert "Sign in with Google" in r.text


def test_home_lists_meetings_with_overlap_warning(client, auth_headers, store):
    for mid, title in (("m1", "Planning"), ("m2", "Review")):
        store.add(OWNER, Meeting(
            id=mid,
            title=title,
            meetLink=f"https://meet.google.com/{mid}",
            isInstant=False,
            createdAt="2026-01-01T00:00:00Z",
            scheduledTime="2999-01-01T10:00:00Z",
            calendarEventId=mid,
            startTime="2999-01-01T10:00:00Z",
        ))

    r = client.get("/", headers=auth_headers)

    assert "Welcome, Alice" in r.text
    assert "https://meet.google.com/m1" in r.text
    assert "Overlaps with: Review" in r.text
    assert "Jan 01, 2999 10:00 UTC" in r.text


def test_unknown_route_uses_message_shape(client):
    r = client.get("/nope")

    assert r.status_code == 404
    assert "message" in r.json()


def test_calendar_ping(client, auth_headers, monkeypatch):
    seen = []

    def fake_list(token):
        seen.append(token)
        return [{"id": "primary"}, {"id": "team"}]

    monkeypatch.setattr(meeting_calendar, "list_calendars", fake_list)

    r = client.get("/api/calendar/ping", headers=auth_headers)

    assert r.json() == {"ok": True, "calendars": 2}
    assert seen == ["access-1"]


def test_calendar_ping_failure(client, auth_headers, monkeypatch):
    def broken(token):
        raise RuntimeError("unreachable")

    monkeypatch.setattr(meeting_calendar, "list_calendars", broken)

    r = client.get("/api/calendar/ping", headers=auth_headers)

    assert r.status_code == 500
    assert r.json()["error"] == "unreachable"


def test_calendar_ping_requires_session(client):
    assert client.get("/api/calendar/ping").status_code == 401


def test_copy_link_is_a_data_attribute(client, auth_headers, store):
    link = "https://meet.google.com/x');alert(1);//"
    store.add(OWNER, Meeting(
        id="m1", title="T", meetLink=link, isInstant=True,
        createdAt="2026-01-01T00:00:00Z", startTime="2999-01-01T10:00:00Z",
    ))

    r = client.get("/", headers=auth_headers)

    assert "onclick" not in r.text
    assert 'data-link="https://meet.google.com/x&#39;);alert(1);//"' in r.text
