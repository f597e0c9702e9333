"""
auth/dependencies.py -- FastAPI Depends() helpers for the identity routes.

There is no global session middleware. Each route receives two explicit
dependencies:
  get_auth_service() -- the AuthService built by the lifespan (app.state).
  get_session_id()   -- the caller-presented session id, taken from the
                        signed session cookie. None when the cookie is
                        missing or its signature does not verify.

Whether that id maps to a live session is AuthService's decision, not ours.

Layer rule: auth/dependencies.py may import from fastapi because it is part
of the dependency injection wiring.
"""

from __future__ import annotations

from fastapi import Request

from auth.cookies import unsign_session_id
from auth.service import AuthService
from core.config import get_settings


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_session_id(request: Request) -> str | None:
    """Return the session id from the signed cookie, or None."""
    cookie = request.cookies.get(get_settings().session_cookie_name)
    return unsign_session_id(cookie)
