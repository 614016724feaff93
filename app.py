# app.py
import logging
import os
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

import meeting_calendar
import meetings
import oauth_google
from config import Settings, get_settings
from meeting_store import MeetingStore, parse_utc_iso
from session_token import owner_key, read_session

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
LOGGER = logging.getLogger("meet_scheduler.app")

app = FastAPI(title="Meet Scheduler")

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

# in-memory only: meetings vanish on restart
STORE = MeetingStore()

meetings.init(store=STORE)

app.include_router(oauth_google.router)
app.include_router(meetings.router)
app.include_router(meeting_calendar.router)


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    message = "Method not allowed" if exc.status_code == 405 else str(exc.detail)
    return JSONResponse({"message": message}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RuntimeError)
async def config_error(request: Request, exc: RuntimeError):
    # missing credentials or signing secret
    LOGGER.error("Server misconfigured: %s", exc)
    return JSONResponse({"message": "Server misconfigured", "error": str(exc)}, status_code=500)


def _display_time(iso: str) -> str:
    return parse_utc_iso(iso).strftime("%b %d, %Y %H:%M UTC")


templates.env.filters["display_time"] = _display_time


@app.get("/")
def home(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: MeetingStore = Depends(meetings.get_store),
):
    session = read_session(request, settings) if settings.session_secret else None

    items = []
    owner = owner_key(session) if session else None
    if owner:
        for m in store.list(owner):
            items.append({"meeting": m, "overlaps": store.overlaps(owner, m)})

    return templates.TemplateResponse(
        request,
        "index.html",
        {"session": session, "items": items},
    )


@app.get("/health")
def health():
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "7860")),
        reload=os.getenv("RELOAD", "0") == "1",
    )
