import threading
from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from wordle_identity.core.database import Base, utcnow
from wordle_identity.core.exceptions import (
    EmailTakenError,
    ExternalIdLinkedError,
    ResourceNotFoundError,
    UsernameTakenError,
)
from wordle_identity.core.result import AuthErrorKind
from wordle_identity.models.oauth_state import OAuthState
from wordle_identity.services.credential_store import (
    AccountStore,
    NewAccount,
    conflict_from_integrity_error,
)
from wordle_identity.services.oauth_state_store import OAuthStateStore
from wordle_identity.services.session_store import SessionStore


def _account(db, username="alice", email="alice@example.com", **extra):
    fields = {"password_hash": "hash"}
    fields.update(extra)
    account = AccountStore().create(db, NewAccount(username=username, email=email, **fields))
    db.commit()
    return account


def test_create_and_find_account(db):
    store = AccountStore()
    account = _account(db, email="Alice@Example.com")
    assert account.id is not None
    assert account.email == "alice@example.com"
    assert store.find_by_username(db, "alice").id == account.id
    assert store.find_by_email(db, "ALICE@example.com").id == account.id
    assert store.find_by_id(db, account.id).username == "alice"


def test_duplicate_username_conflicts(db):
    _account(db)
    with pytest.raises(UsernameTakenError):
        AccountStore().create(db, NewAccount(username="alice", email="other@example.com", password_hash="h"))


def test_duplicate_email_conflicts_case_insensitively(db):
    _account(db)
    with pytest.raises(EmailTakenError):
        AccountStore().create(db, NewAccount(username="alice2", email="ALICE@example.com", password_hash="h"))


def test_duplicate_external_id_conflicts(db):
    _account(db, password_hash=None, external_provider_id="77")
    with pytest.raises(ExternalIdLinkedError):
        AccountStore().create(
            db, NewAccount(username="bob", email="bob@example.com", external_provider_id="77")
        )


class _PgDiag:
    def __init__(self, constraint_name):
        self.constraint_name = constraint_name


class _PgUniqueViolation(Exception):
    def __init__(self, message, constraint_name=None):
        super().__init__(message)
        self.diag = _PgDiag(constraint_name)


def _pg_error(column, value, constraint_name=None):
    message = (
        f'duplicate key value violates unique constraint "uq_accounts_{column}"\n'
        f"DETAIL:  Key ({column})=({value}) already exists."
    )
    return IntegrityError("INSERT INTO accounts ...", {}, _PgUniqueViolation(message, constraint_name))


@pytest.mark.parametrize("constraint_name", [None, "uq_accounts_username"])
def test_username_conflict_ignores_column_names_in_the_rejected_value(constraint_name):
    conflict = conflict_from_integrity_error(_pg_error("username", "emailfan", constraint_name))
    assert isinstance(conflict, UsernameTakenError)


def test_postgres_email_and_external_id_conflicts_by_constraint_name():
    email = conflict_from_integrity_error(_pg_error("email", "username@example.com", "uq_accounts_email"))
    assert isinstance(email, EmailTakenError)
    linked = conflict_from_integrity_error(
        _pg_error("external_provider_id", "42", "uq_accounts_external_provider_id")
    )
    assert isinstance(linked, ExternalIdLinkedError)


def test_sqlite_conflict_message_maps_by_column():
    exc = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: accounts.username"))
    assert isinstance(conflict_from_integrity_error(exc), UsernameTakenError)


def test_unrelated_integrity_error_is_reraised():
    exc = IntegrityError("INSERT", {}, Exception('CHECK constraint failed: chk_accounts_has_credential'))
    with pytest.raises(IntegrityError):
        conflict_from_integrity_error(exc)


def test_inactive_accounts_hidden_unless_requested(db):
    store = AccountStore()
    account = _account(db)
    store.deactivate(db, account.id)
    db.commit()
    assert store.find_by_username(db, "alice") is None
    assert store.find_by_id(db, account.id) is None
    assert store.find_by_username(db, "alice", include_inactive=True).id == account.id


def test_update_rejects_unknown_fields_and_missing_accounts(db):
    store = AccountStore()
    account = _account(db)
    with pytest.raises(ValueError):
        store.update(db, account.id, id=99)
    with pytest.raises(ResourceNotFoundError):
        store.update(db, 12345, display_name="ghost")


def test_session_lifecycle(db):
    sessions = SessionStore()
    account = _account(db)
    sessions.create(db, account.id, "token-a", utcnow() + timedelta(days=1))
    sessions.create(db, account.id, "token-b", utcnow() + timedelta(days=1))
    db.commit()

    assert sessions.find_live_by_token(db, "token-a").account_id == account.id
    assert sessions.count_live_for_account(db, account.id) == 2
    assert sessions.delete_by_token(db, "token-a") == 1
    assert sessions.delete_by_token(db, "token-a") == 0
    assert sessions.delete_all_for_account(db, account.id) == 1
    db.commit()
    assert sessions.find_live_by_token(db, "token-b") is None


def test_expired_session_is_not_live_and_gets_swept(db):
    sessions = SessionStore()
    account = _account(db)
    sessions.create(db, account.id, "old", utcnow() - timedelta(seconds=1))
    sessions.create(db, account.id, "new", utcnow() + timedelta(days=1))
    db.commit()

    assert sessions.find_live_by_token(db, "old") is None
    assert sessions.sweep_expired(db) == 1
    assert sessions.find_live_by_token(db, "new") is not None


def test_state_consumed_exactly_once(db):
    states = OAuthStateStore()
    states.create(db, "state-1", timedelta(minutes=10))

    first = states.consume(db, "state-1")
    assert first.ok
    assert first.value == "state-1"

    second = states.consume(db, "state-1")
    assert not second.ok
    assert second.kind == AuthErrorKind.INVALID_STATE


def test_concurrent_state_consume_has_one_winner(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'state.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    states = OAuthStateStore()

    setup = factory()
    try:
        states.create(setup, "contested", timedelta(minutes=10))
    finally:
        setup.close()

    attempts = 6
    barrier = threading.Barrier(attempts)
    results = []
    lock = threading.Lock()

    def attempt():
        session = factory()
        try:
            barrier.wait()
            result = states.consume(session, "contested")
            with lock:
                results.append(result)
        finally:
            session.close()

    threads = [threading.Thread(target=attempt) for _ in range(attempts)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    engine.dispose()

    assert len(results) == attempts
    assert sum(1 for r in results if r.ok) == 1
    assert all(r.kind == AuthErrorKind.INVALID_STATE for r in results if not r.ok)


def test_unknown_and_missing_state_invalid(db):
    states = OAuthStateStore()
    assert states.consume(db, "never-issued").kind == AuthErrorKind.INVALID_STATE
    assert states.consume(db, "").kind == AuthErrorKind.INVALID_STATE


def test_expired_state_rejected_and_removed(db):
    states = OAuthStateStore()
    states.create(db, "stale", timedelta(seconds=-1))

    result = states.consume(db, "stale")
    assert not result.ok
    assert result.kind == AuthErrorKind.EXPIRED_STATE
    assert db.query(OAuthState).count() == 0


def test_state_sweep_only_removes_expired(db):
    states = OAuthStateStore()
    states.create(db, "stale", timedelta(seconds=-1))
    states.create(db, "fresh", timedelta(minutes=10))

    assert states.sweep_expired(db) == 1
    assert [s.state_token for s in db.query(OAuthState).all()] == ["fresh"]
