"""HTTP session helpers for re-fetching image URLs."""
from __future__ import annotations

from typing import Optional

import requests

DEFAULT_USER_AGENT = "ModernMagnifier/image-fetch"
DEFAULT_ACCEPT = "image/avif,image/webp,image/png,image/svg+xml,image/*;q=0.8,*/*;q=0.5"


def build_user_agent(base: Optional[str] = None) -> str:
    base = (base or "").strip()
    if base:
        return f"{base} {DEFAULT_USER_AGENT}"
    return DEFAULT_USER_AGENT


def create_http_session(user_agent: Optional[str] = None) -> requests.Session:
    session = requests.Session()
    session.headers["User-Agent"] = build_user_agent(user_agent)
    session.headers["Accept"] = DEFAULT_ACCEPT
    return session
