"""Session identifiers carried in the ABSession cookie."""

import base64
import secrets
from typing import Mapping, Optional

SESSION_COOKIE = "ABSession"
SESSION_TOKEN_BYTES = 32


def generate_session_id() -> str:
    """Return 32 random bytes as standard base64 (44 characters)."""
    return base64.b64encode(secrets.token_bytes(SESSION_TOKEN_BYTES)).decode("ascii")


def find_session_id(cookies: Mapping[str, str]) -> Optional[str]:
    """Return the session cookie value, matching the name case-insensitively."""
    wanted = SESSION_COOKIE.lower()
    for name, value in cookies.items():
        if name.lower() == wanted and value:
            return value
    return None


def session_cookie_header(session_id: str) -> str:
    return f"{SESSION_COOKIE}={session_id}; Path=/; HttpOnly"
