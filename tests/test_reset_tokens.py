"""Unit tests for auth/reset_tokens.py -- issue and redeem."""

import pytest

from auth.models import Account
from auth.reset_tokens import ResetTokenManager
from auth.store import AccountStore


@pytest.fixture
def accounts(engine) -> AccountStore:
    store = AccountStore(engine)
    store.create(Account(email="a@x.com", password_hash="old-hash"))
    return store


@pytest.fixture
def tokens(accounts) -> ResetTokenManager:
    return ResetTokenManager(accounts)


def test_generate_is_random_and_long():
    values = {ResetTokenManager.generate() for _ in range(50)}
    assert len(values) == 50
    assert all(len(v) >= 32 for v in values)


def test_issue_commits_token(tokens, accounts):
    token = tokens.issue("a@x.com")
    assert token
    assert accounts.get_by_email("a@x.com").reset_token == token


def test_issue_unknown_email_returns_none(tokens):
    assert tokens.issue("nobody@x.com") is None


def test_second_issue_invalidates_first(tokens, accounts):
    first = tokens.issue("a@x.com")
    second = tokens.issue("a@x.com")
    assert first != second
    assert tokens.redeem("a@x.com", first, "new-hash") is False
    assert tokens.redeem("a@x.com", second, "new-hash") is True


def test_redeem_once(tokens, accounts):
    token = tokens.issue("a@x.com")
    assert tokens.redeem("a@x.com", token, "new-hash") is True
    assert tokens.redeem("a@x.com", token, "other-hash") is False
    stored = accounts.get_by_email("a@x.com")
    assert stored.password_hash == "new-hash"
    assert stored.reset_token == ""
