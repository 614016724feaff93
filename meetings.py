# meetings.py
from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from calendar_event import (
    CalendarAPIError,
    GoogleAuthError,
    create_google_calendar_event,
    extract_meet_link,
    refresh_access_token,
)
from config import Settings, get_settings
from meeting_store import MEETING_DURATION, Meeting, MeetingStore, to_utc_iso
from session_token import access_token_expired, owner_key, read_session, set_session_cookie

LOGGER = logging.getLogger("meet_scheduler.meetings")

router = APIRouter()
_store: MeetingStore = MeetingStore()

# instant meetings are real calendar events starting shortly after the request
INSTANT_LEAD = timedelta(minutes=2)
DEFAULT_INSTANT_TITLE = "Instant Meeting"
DEFAULT_SCHEDULED_TITLE = "Scheduled Meeting"
MAX_TITLE_LENGTH = 200


def init(*, store: MeetingStore):
    global _store
    _store = store


def get_store() -> MeetingStore:
    return _store


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -------------------------
# errors surfaced at the handler boundary
# -------------------------
class MeetingError(Exception):
    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error

    def to_response(self) -> JSONResponse:
        body: Dict[str, Any] = {"message": self.message}
        if self.error:
            body["error"] = self.error
        return JSONResponse(body, status_code=self.status_code)


class MethodNotAllowed(MeetingError):
    status_code = 405


class Unauthenticated(MeetingError):
    status_code = 401


class MeetingValidationError(MeetingError):
    status_code = 400


class UpstreamFailure(MeetingError):
    status_code = 500


# -------------------------
# request parsing
# -------------------------
@dataclass(frozen=True)
class MeetingRequest:
    title: str
    is_instant: bool
    start: Optional[datetime] = None


def _parse_iso_datetime(s: str, tz_name: str) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp. Trailing 'Z' is accepted; naive values are read in tz_name.
    """
    s2 = s.strip()
    if not s2:
        return None
    if s2.endswith("Z"):
        s2 = s2[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s2)
    except ValueError:
        return None
    if dt.tzinfo is None:
        try:
            dt = dt.replace(tzinfo=ZoneInfo(tz_name))
        except ZoneInfoNotFoundError:
            dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_meeting_request(payload: Any, *, tz_name: str, now: datetime) -> MeetingRequest:
    if not isinstance(payload, dict):
        raise MeetingValidationError("Request body must be a JSON object")

    is_instant = payload.get("isInstant", False)
    if not isinstance(is_instant, bool):
        raise MeetingValidationError("isInstant must be a boolean")

    title = payload.get("title")
    if title is not None and not isinstance(title, str):
        raise MeetingValidationError("title must be a string")
    title = (title or "").strip()
    if len(title) > MAX_TITLE_LENGTH:
        raise MeetingValidationError(f"title must be at most {MAX_TITLE_LENGTH} characters")
    if not title:
        title = DEFAULT_INSTANT_TITLE if is_instant else DEFAULT_SCHEDULED_TITLE

    if is_instant:
        return MeetingRequest(title=title, is_instant=True)

    raw = payload.get("scheduledTime")
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise MeetingValidationError("scheduledTime is required for scheduled meetings")
    if not isinstance(raw, str):
        raise MeetingValidationError("scheduledTime must be an ISO-8601 timestamp")

    start = _parse_iso_datetime(raw, tz_name)
    if start is None:
        raise MeetingValidationError("scheduledTime must be an ISO-8601 timestamp")
    if start <= now:
        raise MeetingValidationError("scheduledTime must be in the future")
    try:
        (start + MEETING_DURATION).astimezone(timezone.utc)
    except OverflowError as e:
        raise MeetingValidationError("scheduledTime is out of range") from e

    return MeetingRequest(title=title, is_instant=False, start=start)


# -------------------------
# calendar call with one refresh-and-retry
# -------------------------
def _refresh_session(session: Dict[str, Any], settings: Settings) -> Dict[str, Any]:
    LOGGER.warning("Refreshing Google access token for %s", session.get("email"))
    try:
        js = refresh_access_token(refresh_token=session["refresh_token"], settings=settings)
    except GoogleAuthError as e:
        LOGGER.error("Token refresh failed: %s", e)
        raise Unauthenticated("Google session expired, please sign in again", str(e)) from e

    refreshed = dict(session)
    refreshed["access_token"] = js["access_token"]
    refreshed["expires_at"] = int(time.time()) + int(js.get("expires_in", 3600))
    if js.get("refresh_token"):
        refreshed["refresh_token"] = js["refresh_token"]
    return refreshed


def _insert_event(
    session: Dict[str, Any], settings: Settings, **event: Any
) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
    """
    Insert the calendar event. Refreshes the access token at most once, either up front
    when it is known to be expired or after Google rejects it. Returns (event, refreshed_session).
    """
    refreshed: Optional[Dict[str, Any]] = None
    if access_token_expired(session) and session.get("refresh_token"):
        refreshed = _refresh_session(session, settings)

    current = refreshed or session
    try:
        created = create_google_calendar_event(access_token=current["access_token"], **event)
        return created, refreshed
    except CalendarAPIError as e:
        if not e.token_expired:
            raise UpstreamFailure("Failed to create meeting", str(e)) from e
        if refreshed is not None or not session.get("refresh_token"):
            raise Unauthenticated("Google session expired, please sign in again", str(e)) from e

    refreshed = _refresh_session(session, settings)
    try:
        created = create_google_calendar_event(access_token=refreshed["access_token"], **event)
    except CalendarAPIError as e:
        if e.token_expired:
            raise Unauthenticated("Google session expired, please sign in again", str(e)) from e
        raise UpstreamFailure("Failed to create meeting", str(e)) from e
    return created, refreshed


def create_calendar_meeting(
    req: MeetingRequest, session: Dict[str, Any], settings: Settings, *, now: datetime
) -> Tuple[Meeting, Optional[Dict[str, Any]]]:
    start = now + INSTANT_LEAD if req.is_instant else req.start
    end = start + MEETING_DURATION

    event, refreshed = _insert_event(
        session,
        settings,
        calendar_id=settings.calendar_id,
        title=req.title,
        start_dt=start,
        end_dt=end,
        tz_name=settings.tz_name,
        attendee_email=session.get("email"),
    )

    meet_link = extract_meet_link(event)
    if not meet_link:
        raise UpstreamFailure("Failed to create meeting", "Failed to generate Google Meet link")

    event_id = event.get("id")
    meeting = Meeting(
        id=event_id or f"meeting-{uuid.uuid4().hex}",
        title=event.get("summary") or req.title,
        meetLink=meet_link,
        isInstant=req.is_instant,
        createdAt=to_utc_iso(_utcnow()),
        scheduledTime=None if req.is_instant else to_utc_iso(start),
        calendarEventId=event_id,
        startTime=to_utc_iso(start),
    )
    return meeting, refreshed


async def _read_json(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        raise MeetingValidationError("Request body must be a JSON object")
    try:
        return json.loads(raw)
    except ValueError as e:
        raise MeetingValidationError("Invalid JSON body", str(e)) from e


# -------------------------
# routes
# -------------------------
@router.api_route("/api/create-meeting", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
async def create_meeting(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: MeetingStore = Depends(get_store),
):
    try:
        if request.method != "POST":
            raise MethodNotAllowed("Method not allowed")

        session = read_session(request, settings)
        if not session or not session.get("access_token") or not owner_key(session):
            raise Unauthenticated("Not authenticated")

        now = _utcnow()
        payload = await _read_json(request)
        req = parse_meeting_request(payload, tz_name=settings.tz_name, now=now)

        # blocking Google calls run off the event loop
        meeting, refreshed = await run_in_threadpool(create_calendar_meeting, req, session, settings, now=now)

    except MeetingError as e:
        if e.status_code >= 500:
            LOGGER.error("Meeting creation failed: %s (%s)", e.message, e.error)
        else:
            LOGGER.warning("Meeting request rejected [%s]: %s", e.status_code, e.message)
        return e.to_response()
    except Exception as e:
        LOGGER.exception("Error creating meeting")
        return JSONResponse({"message": "Failed to create meeting", "error": str(e)}, status_code=500)

    owner = owner_key(session)
    store.add(owner, meeting)
    clashes = store.overlaps(owner, meeting)
    if clashes:
        LOGGER.warning("Meeting %s overlaps %d other meeting(s)", meeting.id, len(clashes))
    LOGGER.info("Created meeting %s (instant=%s)", meeting.id, meeting.isInstant)

    resp = JSONResponse(meeting.to_dict())
    if refreshed is not None:
        set_session_cookie(resp, refreshed, settings)
    return resp


@router.get("/api/meetings")
def list_meetings(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: MeetingStore = Depends(get_store),
):
    session = read_session(request, settings)
    owner = owner_key(session) if session else None
    if not owner:
        return Unauthenticated("Not authenticated").to_response()

    meetings = store.list(owner)
    return {
        "meetings": [
            {**m.to_dict(), "overlaps": [o.id for o in store.overlaps(owner, m)]}
            for m in meetings
        ]
    }


@router.delete("/api/meetings")
def clear_meetings(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: MeetingStore = Depends(get_store),
):
    session = read_session(request, settings)
    owner = owner_key(session) if session else None
    if not owner:
        return Unauthenticated("Not authenticated").to_response()

    store.clear(owner)
    return {"ok": True}
