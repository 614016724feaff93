# calendar_event.py
from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Optional, Dict, Any, Iterator

import httpx

from config import Settings, GOOGLE_TOKEN_URI

LOGGER = logging.getLogger("meet_scheduler.calendar")

GOOGLE_CAL_API = "https://www.googleapis.com/calendar/v3"


class GoogleAuthError(RuntimeError):
    pass


class CalendarAPIError(RuntimeError):
    def __init__(self, status_code: int, detail: str):
        super().__init__(f"Create event failed: {status_code} {detail}")
        self.status_code = status_code
        self.detail = detail

    @property
    def token_expired(self) -> bool:
        return self.status_code == 401


@contextmanager
def http_client(http: Optional[httpx.Client], timeout: float) -> Iterator[httpx.Client]:
    if http is not None:
        yield http
        return
    with httpx.Client(timeout=timeout) as client:
        yield client


def refresh_access_token(
    *,
    refresh_token: str,
    settings: Settings,
    http: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """
    Refresh OAuth access token using refresh_token.
    Requires GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET in env.
    """
    if not settings.google_client_id or not settings.google_client_secret:
        raise GoogleAuthError("Missing GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET in env for token refresh")

    data = {
        "client_id": settings.google_client_id,
        "client_secret": settings.google_client_secret,
        "refresh_token": refresh_token,
        "grant_type": "refresh_token",
    }

    with http_client(http, 20) as client:
        try:
            r = client.post(GOOGLE_TOKEN_URI, data=data)
        except httpx.HTTPError as e:
            raise GoogleAuthError(f"Failed to refresh token: {e}") from e
        if r.status_code != 200:
            raise GoogleAuthError(f"Failed to refresh token: {r.status_code} {r.text}")

        # access_token, expires_in, scope, token_type
        js = r.json()
        if not js.get("access_token"):
            raise GoogleAuthError("Token endpoint returned no access_token")
        return js


def create_google_calendar_event(
    *,
    access_token: str,
    calendar_id: str,
    title: str,
    start_dt: datetime,
    end_dt: datetime,
    tz_name: str,
    attendee_email: Optional[str] = None,
    request_id: Optional[str] = None,
    http: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """
    Create a Google Calendar event with a Google Meet link (conferenceData).

    The requestId only deduplicates conference creation for this one call.
    """
    if not request_id:
        request_id = f"meeting-{uuid.uuid4().hex}"

    url = f"{GOOGLE_CAL_API}/calendars/{calendar_id}/events"
    headers = {"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"}

    body: Dict[str, Any] = {
        "summary": title,
        "start": {"dateTime": start_dt.isoformat(), "timeZone": tz_name},
        "end": {"dateTime": end_dt.isoformat(), "timeZone": tz_name},
        # conferenceData requires conferenceDataVersion=1 in query
        "conferenceData": {
            "createRequest": {
                "requestId": request_id,
                "conferenceSolutionKey": {"type": "hangoutsMeet"},
            }
        },
    }
    if attendee_email:
        body["attendees"] = [{"email": attendee_email}]

    with http_client(http, 25) as client:
        try:
            resp = client.post(
                url,
                headers=headers,
                params={"conferenceDataVersion": 1},
                json=body,
            )
        except httpx.HTTPError as e:
            raise CalendarAPIError(0, str(e)) from e

    if resp.status_code not in (200, 201):
        raise CalendarAPIError(resp.status_code, resp.text)

    return resp.json()


def extract_meet_link(event: Dict[str, Any]) -> Optional[str]:
    entry_points = (event.get("conferenceData") or {}).get("entryPoints") or []
    for entry in entry_points:
        if entry.get("entryPointType") == "video" and entry.get("uri"):
            return entry["uri"]
    return event.get("hangoutLink") or None
