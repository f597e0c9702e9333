"""
auth/reset_tokens.py -- Single-use password reset tokens.

A token is an opaque secrets.token_urlsafe(32) string stored on the account
row. Issuing a new token overwrites the previous one, so only the latest
request can be redeemed. Redemption is the store's compare-and-clear: the new
password hash and the cleared token land in one UPDATE, which is what makes a
token single-use even under concurrent replay.

This module never sends mail. AuthService hands the returned token to the
mailer after issue() has committed it.

Tokens do not expire. A pending token stays valid until redeemed or replaced.
"""

from __future__ import annotations

import secrets

from auth.store import AccountStore


class ResetTokenManager:
    def __init__(self, store: AccountStore) -> None:
        self.store = store

    @staticmethod
    def generate() -> str:
        return secrets.token_urlsafe(32)

    def issue(self, email: str) -> str | None:
        """Generate a token and commit it on the account for email.

        Returns the token, or None if no account matched.
        """
        token = self.generate()
        if not self.store.set_reset_token(email, token):
            return None
        return token

    def redeem(self, email: str, token: str, password_hash: str) -> bool:
        """Consume token and install password_hash. False if the token does not match."""
        return self.store.redeem_reset_token(email, token, password_hash)
