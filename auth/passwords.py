"""
auth/passwords.py -- bcrypt password hashing and verification.

Passwords: bcrypt used directly (no passlib wrapper). Each hash() call draws a
fresh salt from bcrypt.gensalt(), so two accounts with the same password never
share a hash. The record is self-describing ($2b$<cost>$<salt><digest>), so
verify() needs nothing but the record itself.

Timing equalization: verify_dummy() runs a full bcrypt comparison against a
hash computed once at construction. Login calls it when the email is unknown
so response time does not reveal whether an account exists.

Length: bcrypt only reads the first 72 bytes of its input, and bcrypt 5
rejects anything longer. The API caps passwords at 30 characters, but 30
multibyte characters can exceed 72 UTF-8 bytes, so every entry point encodes
through _encode_password(), which truncates at MAX_PASSWORD_BYTES. Older
bcrypt releases truncated silently at the same point, so records written by
either version verify the same way.
"""

from __future__ import annotations

import bcrypt

from auth.errors import MalformedHashError

MAX_PASSWORD_BYTES = 72


def _encode_password(password: str) -> bytes:
    return password.encode("utf-8")[:MAX_PASSWORD_BYTES]


class PasswordHasher:
    """Salted, deliberately slow password hashing.

    Usage:
        hasher = PasswordHasher(rounds=10)
        record = hasher.hash("password1")
        hasher.verify("password1", record)   # True
    """

    def __init__(self, rounds: int = 10) -> None:
        self.rounds = rounds
        self._dummy_hash = self.hash("notcorp_timing_dummy")

    def hash(self, password: str) -> str:
        """Return a bcrypt record for password using a freshly generated salt."""
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(_encode_password(password), salt).decode("utf-8")

    def verify(self, password: str, record: str) -> bool:
        """Return True if password matches record.

        A mismatch returns False. A record bcrypt cannot parse raises
        MalformedHashError: that is a data problem, not a bad login. The
        password is already within bcrypt's length limit, so any ValueError
        here comes from the record.
        """
        candidate = _encode_password(password)
        try:
            return bcrypt.checkpw(candidate, record.encode("utf-8"))
        except ValueError as exc:
            raise MalformedHashError("Stored password hash is not a valid bcrypt record.") from exc

    def verify_dummy(self, password: str) -> None:
        """Spend one bcrypt comparison without a real account."""
        self.verify(password, self._dummy_hash)
