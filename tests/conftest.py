"""
tests/conftest.py -- Shared test fixtures for the identity service.

This module provides:
  - RecordingMailer: fake transport that keeps every message (or fails on demand)
  - engine / service: an AuthService on a private in-memory SQLite database
  - file_engine / file_service: the same on a WAL SQLite file, for thread races
  - drop_account: deletes an account row behind the service's back
  - api_client: TestClient on the real app with a patched lifespan

Design: API tests use named shared-memory SQLite URIs (not plain :memory:)
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. Each api_client gets its own database name, so tests never share
accounts or sessions.

DEBUG and BCRYPT_ROUNDS must be set before any auth/core import: DEBUG lets
get_settings() auto-generate SECRET_KEY, and cost-4 bcrypt keeps the suite
fast.
"""

from __future__ import annotations

import asyncio
import os
import smtplib
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text
from sqlalchemy.engine import Engine

from api.main import app
from auth.mailer import MailMessage
from auth.service import AuthService, build_auth_service
from auth.store import make_engine
from core.config import get_settings

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class RecordingMailer:
    """Mailer that records messages instead of sending them.

    Set fail=True to make every send raise an SMTP error.
    """

    def __init__(self) -> None:
        self.messages: list[MailMessage] = []
        self.fail = False

    def send(self, message: MailMessage) -> None:
        if self.fail:
            raise smtplib.SMTPServerDisconnected("relay went away")
        self.messages.append(message)

    def last_token(self) -> str:
        """Token from the most recent reset mail."""
        return self.messages[-1].body.rsplit(": ", 1)[1]


# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = make_engine("sqlite:///:memory:")
    yield eng
    eng.dispose()


@pytest.fixture
def service(engine: Engine, mailer: RecordingMailer) -> Generator[AuthService, None, None]:
    svc = build_auth_service(engine, get_settings(), mailer)
    yield svc
    svc.mail.close()


@pytest.fixture
def file_engine(tmp_path) -> Generator[Engine, None, None]:
    """Engine on a SQLite file so several threads see one database through the pool."""
    eng = make_engine(f"sqlite:///{tmp_path / 'identity.db'}")
    yield eng
    eng.dispose()


@pytest.fixture
def file_service(file_engine: Engine, mailer: RecordingMailer) -> Generator[AuthService, None, None]:
    svc = build_auth_service(file_engine, get_settings(), mailer)
    yield svc
    svc.mail.close()


@pytest.fixture
def drop_account() -> Callable[[AuthService, str], None]:
    """Return a function that deletes an account row, leaving its sessions behind.

    No service operation removes accounts; tests use this to reproduce a
    session whose account has vanished.
    """

    def _drop(service: AuthService, account_id: str) -> None:
        with service.accounts.engine.begin() as conn:
            conn.execute(text("DELETE FROM accounts WHERE id = :id"), {"id": account_id})

    return _drop


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(engine: Engine, service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the test engine and AuthService into app.state so routes hit an
    isolated database and the recording mailer instead of a real SMTP relay.
    The purge_task is a long-sleeping coroutine; a real asyncio.Task is
    required because shutdown calls .cancel() on it.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.engine = engine
        app.state.auth_service = service
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture
def api_client(mailer: RecordingMailer) -> Generator[tuple[TestClient, AuthService, RecordingMailer], None, None]:
    """Yield (client, service, mailer) for API integration tests.

    The TestClient uses the real FastAPI app, so requests go through routing,
    cookie handling, schema validation and the exception handlers.
    """
    db_url = f"sqlite:///file:test_identity_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    eng = make_engine(db_url)
    svc = build_auth_service(eng, get_settings(), mailer)

    app.router.lifespan_context = _patch_lifespan(eng, svc)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, svc, mailer

    svc.mail.close()
    eng.dispose()
