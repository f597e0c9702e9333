"""
auth/sessions.py -- Session lifecycle: create, load, destroy, reap.

State machine per session:
  Created   -- create() on successful login
  Active    -- load() returns it while now < expires_at
  Expired   -- load() returns None and removes the record; identical to absent
  Destroyed -- destroy() on logout; terminal

Expiry is fixed at creation (now + max_age). There is no renewal operation.
Expired records that are never loaded again are removed by purge_expired(),
which the application lifespan runs periodically.

Session ids come from secrets.token_urlsafe(32) -- 256 bits of entropy, so
ids cannot be guessed or enumerated.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from auth.models import Session
from auth.store import SessionStore

logger = logging.getLogger("notcorp.auth")

DEFAULT_MAX_AGE_SECONDS = 7 * 24 * 60 * 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    """Creates and validates server-held sessions.

    clock is injectable so tests can move time past expiry without sleeping.
    """

    def __init__(
        self,
        store: SessionStore,
        max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.max_age = timedelta(seconds=max_age_seconds)
        self.clock = clock

    def create(self, account_id: str) -> Session:
        now = self.clock()
        session = Session(
            id=secrets.token_urlsafe(32),
            account_id=account_id,
            expires_at=now + self.max_age,
            created_at=now,
        )
        self.store.insert(session)
        return session

    def load(self, session_id: str) -> Session | None:
        """Return the live session for session_id, or None if absent or expired."""
        if not session_id:
            return None
        session = self.store.get(session_id)
        if session is None:
            return None
        if session.is_expired(self.clock()):
            # Lazy reap -- the periodic purge would get it eventually anyway.
            self.store.delete(session_id)
            return None
        return session

    def destroy(self, session_id: str) -> None:
        self.store.delete(session_id)

    def purge_expired(self) -> int:
        removed = self.store.delete_expired(self.clock())
        if removed:
            logger.info("Purged %d expired sessions", removed)
        return removed
