"""Unit tests for auth/mailer.py -- SMTP transport and dispatcher.

smtplib.SMTP is patched so no network connection is attempted.
"""

import smtplib
import threading
from unittest.mock import MagicMock, patch

import pytest

from auth.errors import MailDeliveryError
from auth.mailer import MailDispatcher, MailMessage, SmtpMailer

MESSAGE = MailMessage(to="a@x.com", subject="notcorp - Forgot Password Request", body="Your token is: abc")


class TestSmtpMailer:
    def test_send_uses_starttls_and_login(self):
        mailer = SmtpMailer(host="smtp.example.com", port=587, sender="noreply@x.com", user="u", password="p")
        with patch("auth.mailer.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            mailer.send(MESSAGE)

        smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=30.0)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("u", "p")
        sent = server.send_message.call_args.args[0]
        assert sent["To"] == "a@x.com"
        assert sent["From"] == "noreply@x.com"
        assert sent["Subject"] == "notcorp - Forgot Password Request"

    def test_send_without_credentials_skips_login(self):
        mailer = SmtpMailer(host="localhost", port=25, sender="noreply@x.com", starttls=False)
        with patch("auth.mailer.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            mailer.send(MESSAGE)

        server.starttls.assert_not_called()
        server.login.assert_not_called()
        server.send_message.assert_called_once()


class TestMailDispatcher:
    def test_deliver_success(self):
        transport = MagicMock()
        dispatcher = MailDispatcher(transport, timeout=5)
        try:
            dispatcher.deliver(MESSAGE)
        finally:
            dispatcher.close()
        transport.send.assert_called_once_with(MESSAGE)

    def test_deliver_transport_error(self):
        transport = MagicMock()
        transport.send.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
        dispatcher = MailDispatcher(transport, timeout=5)
        try:
            with pytest.raises(MailDeliveryError) as excinfo:
                dispatcher.deliver(MESSAGE)
        finally:
            dispatcher.close()
        assert isinstance(excinfo.value.__cause__, smtplib.SMTPException)

    def test_deliver_timeout(self):
        release = threading.Event()
        transport = MagicMock()
        transport.send.side_effect = lambda message: release.wait(5)
        dispatcher = MailDispatcher(transport, timeout=0.05)
        try:
            with pytest.raises(MailDeliveryError):
                dispatcher.deliver(MESSAGE)
        finally:
            release.set()
            dispatcher.close()

    def test_deliver_non_smtp_error(self):
        """A local failure such as an encoding error is still a delivery failure."""
        transport = MagicMock()
        transport.send.side_effect = UnicodeEncodeError("ascii", "é", 0, 1, "ordinal not in range(128)")
        dispatcher = MailDispatcher(transport, timeout=5)
        try:
            with pytest.raises(MailDeliveryError) as excinfo:
                dispatcher.deliver(MESSAGE)
        finally:
            dispatcher.close()
        assert isinstance(excinfo.value.__cause__, UnicodeEncodeError)
