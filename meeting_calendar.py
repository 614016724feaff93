# meeting_calendar.py
from __future__ import annotations

import logging
from typing import Dict, Any, List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from googleapiclient.discovery import build
from google.oauth2.credentials import Credentials

from config import Settings, get_settings
from session_token import read_session

LOGGER = logging.getLogger("meet_scheduler.calendar")

router = APIRouter()


def list_calendars(access_token: str) -> List[Dict[str, Any]]:
    creds = Credentials(token=access_token)
    service = build("calendar", "v3", credentials=creds, cache_discovery=False)

    listed = service.calendarList().list(maxResults=50).execute()
    return listed.get("items", [])


@router.get("/api/calendar/ping")
def calendar_ping(request: Request, settings: Settings = Depends(get_settings)):
    session = read_session(request, settings)
    if not session or not session.get("access_token"):
        return JSONResponse({"message": "Not authenticated"}, status_code=401)

    try:
        calendars = list_calendars(session["access_token"])
    except Exception as e:
        LOGGER.exception("Calendar liveness check failed")
        return JSONResponse({"message": "Calendar API unreachable", "error": str(e)}, status_code=500)

    return {"ok": True, "calendars": len(calendars)}
