"""
auth/service.py -- AuthService: the identity command handlers.

Commands:
  create_account          -- hash + unique insert
  login                   -- verify credentials, open a session
  request_password_reset  -- commit a token, then mail it
  redeem_password_reset   -- compare-and-clear token, install new hash
  logout                  -- destroy the caller's session
  get_current_account     -- resolve a session to the public account profile

Every command raises a typed AuthError subclass on failure (auth/errors.py)
and returns plain data on success. Nothing here knows about HTTP; the route
layer decides status codes and response bodies.

Information hiding:
  login raises InvalidCredentials for unknown email and wrong password alike,
  and runs a dummy bcrypt comparison for unknown emails so timing matches.
  request_password_reset returns normally for unknown emails.
  redeem_password_reset raises InvalidResetRequest for every kind of miss.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import hmac
import logging

from sqlalchemy.engine import Engine

from auth.errors import (
    AccountExists,
    InvalidAccount,
    InvalidCredentials,
    InvalidResetRequest,
    MailDeliveryError,
    NoActiveSession,
    NotAuthenticated,
    NotFound,
    UniqueViolation,
)
from auth.mailer import RESET_MAIL_BODY, MailDispatcher, Mailer, MailMessage
from auth.models import Account, AccountProfile, Session
from auth.passwords import PasswordHasher
from auth.reset_tokens import ResetTokenManager
from auth.sessions import SessionManager
from auth.store import AccountStore, SessionStore
from core.config import Settings

logger = logging.getLogger("notcorp.auth")


class AuthService:
    """Orchestrates accounts, passwords, sessions and reset tokens.

    Usage:
        service = AuthService(accounts, hasher, sessions, reset_tokens, mail)
        service.create_account("a@x.com", "password1")
        session = service.login("a@x.com", "password1")
        service.get_current_account(session.id)
    """

    def __init__(
        self,
        accounts: AccountStore,
        hasher: PasswordHasher,
        sessions: SessionManager,
        reset_tokens: ResetTokenManager,
        mail: MailDispatcher,
        reset_mail_subject: str = "notcorp - Forgot Password Request",
    ) -> None:
        self.accounts = accounts
        self.hasher = hasher
        self.sessions = sessions
        self.reset_tokens = reset_tokens
        self.mail = mail
        self.reset_mail_subject = reset_mail_subject

    # ------------------------------------------------------------------
    # Accounts and credentials
    # ------------------------------------------------------------------

    def create_account(self, email: str, password: str, display_name: str | None = None) -> None:
        """Register a new account. Raises AccountExists if email is taken."""
        account = Account(
            email=email,
            password_hash=self.hasher.hash(password),
            display_name=display_name,
        )
        try:
            self.accounts.create(account)
        except UniqueViolation as exc:
            logger.warning("Create account failed: unique email constraint.")
            raise AccountExists() from exc
        logger.info("Account created.")

    def login(self, email: str, password: str) -> Session:
        """Verify credentials and open a new session for the account."""
        account = self.accounts.get_by_email(email)
        if account is None:
            self.hasher.verify_dummy(password)
            logger.warning("Login failed: bad credentials.")
            raise InvalidCredentials()
        if not self.hasher.verify(password, account.password_hash):
            logger.warning("Login failed: bad credentials.")
            raise InvalidCredentials()

        session = self.sessions.create(account.id)
        logger.info("Account login: %s", account.id)
        return session

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def request_password_reset(self, email: str) -> None:
        """Issue a reset token for email and mail it.

        Unknown emails return normally with no side effects. The token is
        committed before the mail is sent; a delivery failure raises
        MailDeliveryError and leaves the committed token in place.
        """
        token = self.reset_tokens.issue(email)
        if token is None:
            logger.info("Forgot-password request for unknown email ignored.")
            return
        logger.info("Updated forgot-password token: %s", email)

        message = MailMessage(
            to=email,
            subject=self.reset_mail_subject,
            body=RESET_MAIL_BODY.format(token=token),
        )
        try:
            self.mail.deliver(message)
        except MailDeliveryError:
            logger.exception("Unable to send forgot-password token: %s", email)
            raise

    def redeem_password_reset(self, email: str, token: str, new_password: str) -> None:
        """Replace the password using a pending reset token. Single use."""
        account = self.accounts.get_by_email(email)
        if account is None:
            logger.warning("Could not find account to reset password.")
            raise InvalidResetRequest()
        if not account.reset_token or not hmac.compare_digest(account.reset_token.encode(), token.encode()):
            logger.warning("Reset password rejected: no pending reset or token mismatch.")
            raise InvalidResetRequest()

        # Hash outside the UPDATE; the store re-checks the token atomically,
        # so a concurrent redemption between here and there still loses.
        password_hash = self.hasher.hash(new_password)
        if not self.reset_tokens.redeem(email, token, password_hash):
            logger.warning("Reset password rejected: token already redeemed.")
            raise InvalidResetRequest()
        logger.info("Password reset for account %s", account.id)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def logout(self, session_id: str | None) -> None:
        """Destroy the caller's session. Raises NoActiveSession if there is none."""
        session = self.sessions.load(session_id or "")
        if session is None:
            raise NoActiveSession()
        self.sessions.destroy(session.id)
        logger.info("Account logout: %s", session.account_id)

    def get_current_account(self, session_id: str | None) -> AccountProfile:
        """Return the public profile of the session's account."""
        session = self.sessions.load(session_id or "")
        if session is None:
            raise NotAuthenticated()
        try:
            account = self.accounts.get_by_id(session.account_id)
        except NotFound as exc:
            logger.error("Session %s references missing account %s", session.id[:8], session.account_id)
            raise InvalidAccount() from exc
        return account.profile()


def build_auth_service(engine: Engine, settings: Settings, mailer: Mailer) -> AuthService:
    """Wire an AuthService onto engine using settings.

    The lifespan calls this with an SmtpMailer; tests pass a recording fake.
    """
    sessions = SessionManager(SessionStore(engine), max_age_seconds=settings.session_max_age_seconds)
    accounts = AccountStore(engine)
    return AuthService(
        accounts=accounts,
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        sessions=sessions,
        reset_tokens=ResetTokenManager(accounts),
        mail=MailDispatcher(mailer, timeout=settings.mail_timeout_seconds),
        reset_mail_subject=settings.reset_mail_subject,
    )
