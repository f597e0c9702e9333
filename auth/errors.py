"""
auth/errors.py -- Typed failures raised by the identity core.

Every error carries a caller-safe `message`. Route handlers may put that
message in a response body; anything more detailed (driver errors, SMTP
replies) is attached as __cause__ and only ever logged server-side.

Ambiguity is deliberate in two places:
  InvalidCredentials covers both "unknown email" and "wrong password".
  InvalidResetRequest covers "no pending reset", "token mismatch" and
  "unknown email".
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all identity failures."""

    message = "Unknown error."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Domain errors -- recovered locally and mapped to caller-facing messages
# ---------------------------------------------------------------------------


class AccountExists(AuthError):
    message = "An account with this email already exists."


class InvalidCredentials(AuthError):
    message = "Invalid email or password."


class InvalidResetRequest(AuthError):
    message = "Invalid reset request."


class NotAuthenticated(AuthError):
    message = "You are not logged in."


class NoActiveSession(AuthError):
    message = "Session does not exist."


class InvalidAccount(AuthError):
    """A live session points at an account that no longer exists."""

    message = "Invalid user."


# ---------------------------------------------------------------------------
# Internal failures -- logged in full, surfaced only as a generic message
# ---------------------------------------------------------------------------


class InternalFailure(AuthError):
    message = "An internal error occurred."


class StorageError(InternalFailure):
    """Store failure that is not one of the specific variants below."""

    message = "Storage error."


class UniqueViolation(StorageError):
    message = "Unique constraint violated."


class NotFound(StorageError):
    message = "Record not found."


class MailDeliveryError(InternalFailure):
    message = "Mail delivery failed."


class MalformedHashError(ValueError):
    """Stored password hash could not be parsed as a bcrypt record."""
