# session_token.py
from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional

from fastapi import Request, Response
from jose import jwt, JWTError

from config import Settings

LOGGER = logging.getLogger("meet_scheduler.session")

ALGORITHM = "HS256"
COOKIE_NAME = "session"

# claims carried in the token; nothing else from the caller is signed
SESSION_KEYS = ("access_token", "refresh_token", "expires_at", "sub", "email", "name")


def encode_session(claims: Dict[str, Any], settings: Settings) -> str:
    # unset claims are left out; a null "sub" would not verify
    payload = {k: claims[k] for k in SESSION_KEYS if claims.get(k) is not None}
    payload["exp"] = datetime.now(timezone.utc) + timedelta(days=settings.session_max_age_days)
    return jwt.encode(payload, settings.signing_secret(), algorithm=ALGORITHM)


def decode_session(token: Optional[str], settings: Settings) -> Optional[Dict[str, Any]]:
    """
    Verify a session token. Missing, tampered or expired tokens give None.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.signing_secret(), algorithms=[ALGORITHM])
    except JWTError as e:
        LOGGER.warning("Rejected session token: %s", e)
        return None
    return {k: payload.get(k) for k in SESSION_KEYS}


def read_session(request: Request, settings: Settings) -> Optional[Dict[str, Any]]:
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        auth = request.headers.get("authorization") or ""
        scheme, _, value = auth.partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            token = value.strip()
    return decode_session(token, settings)


def owner_key(session: Dict[str, Any]) -> Optional[str]:
    """Stable per-user key: the OpenID subject, else the email. None when neither is known."""
    return session.get("sub") or session.get("email") or None


def access_token_expired(session: Dict[str, Any], *, now: Optional[float] = None) -> bool:
    expires_at = session.get("expires_at")
    if not expires_at:
        return False
    return (now if now is not None else time.time()) >= float(expires_at)


def set_session_cookie(resp: Response, claims: Dict[str, Any], settings: Settings) -> None:
    resp.set_cookie(
        COOKIE_NAME,
        encode_session(claims, settings),
        max_age=settings.session_max_age_days * 24 * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.base_url.startswith("https://"),
    )


def clear_session_cookie(resp: Response) -> None:
    resp.delete_cookie(COOKIE_NAME)
