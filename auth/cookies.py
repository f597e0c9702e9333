"""
auth/cookies.py -- Session cookie signing and helpers.

The cookie carries the opaque session id signed with SECRET_KEY (itsdangerous
Signer, HMAC). A tampered or foreign cookie fails unsign and is treated as "no
session" -- the store is never queried for it.

Cookie attributes:
  httponly=True: JS cannot read the cookie (XSS mitigation).
  samesite="lax": not sent on cross-site POST -- CSRF mitigation.
  secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
  max_age: the session max age, so cookie and server record expire together.
"""

from __future__ import annotations

from itsdangerous import BadSignature, Signer

from core.config import get_settings

_SALT = "notcorp.session"


def _signer() -> Signer:
    return Signer(get_settings().secret_key, salt=_SALT)


def sign_session_id(session_id: str) -> str:
    return _signer().sign(session_id).decode("utf-8")


def unsign_session_id(cookie_value: str | None) -> str | None:
    """Return the session id inside a signed cookie value, or None if invalid."""
    if not cookie_value:
        return None
    try:
        return _signer().unsign(cookie_value).decode("utf-8")
    except BadSignature:
        return None


def set_session_cookie(response, session_id: str) -> None:
    """Write the signed session id as an httpOnly cookie on the response."""
    settings = get_settings()
    response.set_cookie(
        settings.session_cookie_name,
        value=sign_session_id(session_id),
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=settings.session_max_age_seconds,
    )


def clear_session_cookie(response) -> None:
    settings = get_settings()
    response.delete_cookie(
        settings.session_cookie_name,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
    )
