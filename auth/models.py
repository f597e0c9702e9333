"""
auth/models.py -- Domain dataclasses for identity entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own the
domain shape; stores, managers and the service do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Access level stored on an account. Enforcement is out of scope."""

    user = "user"
    admin = "admin"


DEFAULT_ROLE = Role.user


@dataclass
class Account:
    """A registered user's durable identity record.

    email is the lookup key and is stored exactly as submitted (case-sensitive).
    reset_token is "" when no password reset is pending. Both password_hash and
    reset_token are internal-only -- use AccountProfile for anything that leaves
    the service.
    """

    email: str
    password_hash: str
    id: str | None = None  # uuid4 hex, assigned by AccountStore.create
    display_name: str | None = None
    role: Role = DEFAULT_ROLE
    reset_token: str = ""
    created_at: str | None = None

    def profile(self) -> AccountProfile:
        return AccountProfile(
            id=self.id or "",
            email=self.email,
            display_name=self.display_name,
            created_at=self.created_at or "",
            role=self.role,
        )


@dataclass(frozen=True)
class AccountProfile:
    """Public projection of an Account. Never carries secrets."""

    id: str
    email: str
    display_name: str | None
    created_at: str
    role: Role


@dataclass(frozen=True)
class Session:
    """A server-held login session.

    id is the opaque credential handed to the client (inside a signed cookie).
    expires_at is fixed at creation and never renewed.
    """

    id: str
    account_id: str
    expires_at: datetime
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
