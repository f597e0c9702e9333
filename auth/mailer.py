"""
auth/mailer.py -- Outbound mail for password reset tokens.

Two layers:
  Mailer (protocol) / SmtpMailer -- the blocking transport. SmtpMailer talks
      to an SMTP relay with smtplib, optionally upgrading with STARTTLS and
      logging in when credentials are configured.

  MailDispatcher -- submits deliveries to a small thread pool and waits for
      the result with a bounded timeout, so a stalled relay cannot hold a
      request forever. A failed or timed-out delivery raises
      MailDeliveryError; the SMTP detail is chained for the logs only.
"""

from __future__ import annotations

import logging
import smtplib
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from email.mime.text import MIMEText
from typing import Protocol

from auth.errors import MailDeliveryError

logger = logging.getLogger("notcorp.mail")

RESET_MAIL_BODY = "A request was made to reset your notcorp account password. Your token is: {token}"


@dataclass(frozen=True)
class MailMessage:
    to: str
    subject: str
    body: str


class Mailer(Protocol):
    def send(self, message: MailMessage) -> None: ...


class SmtpMailer:
    """Plain-text mail over SMTP."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        user: str = "",
        password: str = "",
        starttls: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.user = user
        self.password = password
        self.starttls = starttls
        self.timeout = timeout
        if not self.user:
            logger.warning("SMTP_USER not configured. Mail will be sent without authentication.")

    def send(self, message: MailMessage) -> None:
        msg = MIMEText(message.body, "plain", "utf-8")
        msg["From"] = self.sender
        msg["To"] = message.to
        msg["Subject"] = message.subject

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.starttls:
                server.starttls()
            if self.user:
                server.login(self.user, self.password)
            server.send_message(msg)


class MailDispatcher:
    """Runs Mailer.send on a worker thread and waits at most `timeout` seconds."""

    def __init__(self, mailer: Mailer, timeout: float = 30.0, max_workers: int = 4) -> None:
        self.mailer = mailer
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="mail")

    def submit(self, message: MailMessage) -> Future:
        return self._executor.submit(self.mailer.send, message)

    def deliver(self, message: MailMessage) -> None:
        """Send message and block until it is handed to the transport.

        Raises MailDeliveryError on any transport failure or on timeout.
        """
        future = self.submit(message)
        try:
            future.result(timeout=self.timeout)
        except FutureTimeout as exc:
            future.cancel()
            raise MailDeliveryError("Mail delivery timed out.") from exc
        except Exception as exc:
            # Anything the transport raises means the token was not delivered.
            raise MailDeliveryError() from exc
        logger.info("Email sent to %s.", message.to)

    def close(self) -> None:
        self._executor.shutdown(wait=False)
