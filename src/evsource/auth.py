"""HTTP Basic authentication header helper."""

from __future__ import annotations

import base64


def basic_auth(username: str, password: str) -> str:
    """Return an Authorization header value for username/password."""
    token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return f"Basic {token}"
