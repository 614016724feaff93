# config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Any, Optional

from dotenv import load_dotenv

load_dotenv(override=True)


GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


@dataclass(frozen=True)
class Settings:
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    session_secret: Optional[str] = None
    base_url: str = "http://localhost:7860"
    redirect_uri: Optional[str] = None
    calendar_id: str = "primary"
    tz_name: str = "UTC"
    session_max_age_days: int = 30
    log_level: str = "INFO"

    @property
    def google_redirect_uri(self) -> str:
        return self.redirect_uri or f"{self.base_url.rstrip('/')}/google/callback"

    def oauth_client_config(self) -> Dict[str, Any]:
        """
        Client config for an OAuth *web application* client.
        """
        if not self.google_client_id or not self.google_client_secret:
            raise RuntimeError("Missing GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET in env")
        return {
            "web": {
                "client_id": self.google_client_id,
                "client_secret": self.google_client_secret,
                "auth_uri": GOOGLE_AUTH_URI,
                "token_uri": GOOGLE_TOKEN_URI,
                "redirect_uris": [self.google_redirect_uri],
            }
        }

    def signing_secret(self) -> str:
        if not self.session_secret:
            raise RuntimeError("Missing SESSION_SECRET in env")
        return self.session_secret


def load_settings() -> Settings:
    return Settings(
        google_client_id=os.getenv("GOOGLE_CLIENT_ID"),
        google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET"),
        session_secret=os.getenv("SESSION_SECRET"),
        base_url=os.getenv("BASE_URL", "http://localhost:7860"),
        redirect_uri=os.getenv("GOOGLE_REDIRECT_URI"),
        calendar_id=os.getenv("CALENDAR_ID", "primary"),
        tz_name=os.getenv("TZ_NAME", "UTC"),
        session_max_age_days=int(os.getenv("SESSION_MAX_AGE_DAYS", "30")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()
