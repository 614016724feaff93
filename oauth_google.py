# oauth_google.py
from __future__ import annotations

import logging
import secrets
import time
from datetime import timezone
from typing import Dict, Any, Optional

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse, HTMLResponse
from google_auth_oauthlib.flow import Flow

from calendar_event import GoogleAuthError, http_client
from config import Settings, get_settings
from session_token import read_session, set_session_cookie, clear_session_cookie

LOGGER = logging.getLogger("meet_scheduler.auth")

router = APIRouter()

GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/calendar",
]
STATE_COOKIE = "oauth_state"


def _build_flow(settings: Settings, state: str) -> Flow:
    """
    Uses OAuth *web application* client.
    """
    flow = Flow.from_client_config(
        settings.oauth_client_config(),
        scopes=SCOPES,
        state=state,
        autogenerate_code_verifier=False,
    )
    flow.redirect_uri = settings.google_redirect_uri
    return flow


def fetch_userinfo(access_token: str, *, http: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """
    OpenID userinfo for the signed-in account. Failures are logged and give {}.
    """
    with http_client(http, 15) as client:
        try:
            r = client.get(GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"})
        except httpx.HTTPError as e:
            LOGGER.warning("userinfo lookup failed: %s", e)
            return {}
    if r.status_code != 200:
        LOGGER.warning("userinfo lookup failed: %s", r.status_code)
        return {}
    return r.json()


def exchange_code(settings: Settings, state: str, code: str) -> Dict[str, Any]:
    flow = _build_flow(settings, state=state)
    flow.fetch_token(code=code)

    creds = flow.credentials
    expires_at = int(creds.expiry.replace(tzinfo=timezone.utc).timestamp()) if creds.expiry else int(time.time()) + 3600
    info = fetch_userinfo(creds.token)
    if not info.get("sub") and not info.get("email"):
        raise GoogleAuthError("Google did not return the account identity")
    return {
        "access_token": creds.token,
        "refresh_token": creds.refresh_token,  # may be None if Google didn't return it
        "expires_at": expires_at,
        "sub": info.get("sub"),
        "email": info.get("email"),
        "name": info.get("name"),
    }


@router.get("/auth/google")
def auth_google(settings: Settings = Depends(get_settings)):
    csrf = secrets.token_urlsafe(24)

    flow = _build_flow(settings, state=csrf)
    auth_url, _ = flow.authorization_url(
        access_type="offline",           # to receive refresh_token
        include_granted_scopes="true",
        prompt="consent",                # force refresh_token the first time
    )

    resp = RedirectResponse(auth_url)
    resp.set_cookie(STATE_COOKIE, csrf, max_age=600, httponly=True, samesite="lax")
    return resp


@router.get("/google/callback")
def auth_callback(request: Request, state: str, code: str, settings: Settings = Depends(get_settings)):
    saved = request.cookies.get(STATE_COOKIE)
    if not saved or not secrets.compare_digest(saved, state):
        LOGGER.warning("OAuth state mismatch")
        return HTMLResponse("OAuth state mismatch. Please retry /auth/google", status_code=400)

    try:
        claims = exchange_code(settings, state, code)
    except GoogleAuthError as e:
        LOGGER.error("Sign-in failed: %s", e)
        return HTMLResponse("Sign-in failed. Please retry /auth/google", status_code=500)
    LOGGER.info("Signed in %s", claims.get("email"))

    resp = RedirectResponse("/", status_code=303)
    set_session_cookie(resp, claims, settings)
    resp.delete_cookie(STATE_COOKIE)
    return resp


@router.get("/auth/signout")
def auth_signout(request: Request, settings: Settings = Depends(get_settings)):
    session = read_session(request, settings)
    if session:
        LOGGER.info("Signed out %s", session.get("email"))
    resp = RedirectResponse("/", status_code=303)
    clear_session_cookie(resp)
    return resp


@router.get("/api/session")
def session_info(request: Request, settings: Settings = Depends(get_settings)):
    session = read_session(request, settings)
    if not session or not session.get("access_token"):
        return {"authenticated": False}
    return {
        "authenticated": True,
        "user": {"email": session.get("email"), "name": session.get("name")},
    }
