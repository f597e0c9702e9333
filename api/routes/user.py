"""
api/routes/user.py -- Account, session and password reset endpoints.

Routes:
  POST /user/create           -- register; 200 empty body
  POST /user/login            -- password login; sets session cookie
  POST /user/forgot-password  -- mail a reset token; always 200 for unknown emails
  GET  /user/me               -- current account (requires session cookie)
  POST /user/reset-password   -- redeem a reset token; 400 on any mismatch
  GET  /user/logout           -- destroy the session; clears cookie

Error mapping:
  Domain errors (auth/errors.py) become HTTPException(detail={"message": ...})
  with the error's own caller-safe message. Internal failures are logged here
  with full detail and answered with a generic message only.

  Status codes follow the client contract: failures are 500 except
  reset-password, which answers 400.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import JSONResponse

from api.models import (
    MeResponse,
    MessageResponse,
    UserCreate,
    UserForgotPassword,
    UserLogin,
    UserResetPassword,
)
from auth.cookies import clear_session_cookie, set_session_cookie
from auth.dependencies import get_auth_service, get_session_id
from auth.errors import (
    AccountExists,
    InternalFailure,
    InvalidAccount,
    InvalidCredentials,
    InvalidResetRequest,
    MailDeliveryError,
    MalformedHashError,
    NoActiveSession,
    NotAuthenticated,
)
from auth.service import AuthService

logger = logging.getLogger("notcorp.api")

router = APIRouter()


def _fail(status_code: int, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail=MessageResponse(message=message).model_dump())


# ---------------------------------------------------------------------------
# Accounts and login
# ---------------------------------------------------------------------------


@router.post("/create")
def create(body: UserCreate, service: AuthService = Depends(get_auth_service)) -> Response:
    """Create an account. The response carries no id or hash."""
    logger.info("Create user request.")
    try:
        service.create_account(body.email, body.password, body.display_name)
    except AccountExists as exc:
        raise _fail(500, exc.message) from exc
    except InternalFailure as exc:
        logger.exception("Create user failed: storage error.")
        raise _fail(500, "Error while creating account.") from exc
    return Response(status_code=200)


@router.post("/login")
def login(body: UserLogin, service: AuthService = Depends(get_auth_service)) -> Response:
    """Authenticate with email and password; set the session cookie.

    Unknown email and wrong password produce the identical response.
    """
    try:
        session = service.login(body.email, body.password)
    except InvalidCredentials as exc:
        raise _fail(500, exc.message) from exc
    except (InternalFailure, MalformedHashError) as exc:
        logger.exception("Login failed: internal error.")
        raise _fail(500, "Unknown error.") from exc

    resp = Response(status_code=200)
    set_session_cookie(resp, session.id)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(body: UserForgotPassword, service: AuthService = Depends(get_auth_service)) -> MessageResponse:
    """Mail a reset token. Answers the same way whether or not the account exists."""
    try:
        service.request_password_reset(body.email)
    except MailDeliveryError as exc:
        # AuthService has already logged the transport failure.
        raise _fail(500, "Unable to send forgot-password token.") from exc
    except InternalFailure as exc:
        logger.exception("Forgot password failed: storage error.")
        raise _fail(500, "Unable to send forgot-password token.") from exc
    return MessageResponse(message="Sent forgot password email.")


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(body: UserResetPassword, service: AuthService = Depends(get_auth_service)) -> MessageResponse:
    """Redeem a reset token and set a new password. The token works once."""
    try:
        service.redeem_password_reset(body.email, body.key, body.password)
    except InvalidResetRequest as exc:
        raise _fail(400, exc.message) from exc
    except InternalFailure as exc:
        logger.exception("Reset password failed: storage error.")
        raise _fail(400, "Unknown error.") from exc
    return MessageResponse(message="Your password has been updated.")


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@router.get("/me", response_model=MeResponse)
def me(
    session_id: str | None = Depends(get_session_id),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Return the public profile of the logged-in account."""
    try:
        profile = service.get_current_account(session_id)
    except (NotAuthenticated, InvalidAccount) as exc:
        raise _fail(500, exc.message) from exc
    except InternalFailure as exc:
        logger.exception("Get user failed: storage error.")
        raise _fail(500, "Unknown error.") from exc

    logger.info("Get user")
    return JSONResponse(status_code=200, content=MeResponse.from_profile(profile).model_dump(by_alias=True))


@router.get("/logout")
def logout(
    session_id: str | None = Depends(get_session_id),
    service: AuthService = Depends(get_auth_service),
) -> Response:
    """Destroy the current session and clear the cookie."""
    try:
        service.logout(session_id)
    except NoActiveSession as exc:
        raise _fail(500, exc.message) from exc
    except InternalFailure as exc:
        logger.exception("Logout failed: storage error.")
        raise _fail(500, "Error destroying user session.") from exc

    resp = Response(status_code=200)
    clear_session_cookie(resp)
    return resp
