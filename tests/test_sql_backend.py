"""Tests for the local SQL backend's auth and row-level rules."""
from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from app.rtims.backend import AuthError, BackendError
from app.rtims.backend.sql import SqlBackend
from app.rtims.db import make_engine, make_sessionmaker
from app.rtims.models import Base


@pytest.fixture()
def sm(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path/'backend.db'}", env="test")
    Base.metadata.create_all(bind=engine)
    yield make_sessionmaker(engine)
    engine.dispose()


@pytest.fixture()
def backend(sm):
    b = SqlBackend(session_factory=sm)
    b.register_user("alice@example.com", "pw", name="Alice Martin")
    b.register_user("bob@example.com", "pw", name="Bob Durand")
    return b


def _leave(backend, session, employee_id, **overrides):
    kwargs = {"start_date": date(2026, 5, 4), "end_date": date(2026, 5, 8), "type": "congés payés"}
    kwargs.update(overrides)
    backend.create_leave_request(session, employee_id, **kwargs)


def test_sign_in_issues_session(backend):
    session = backend.sign_in("alice@example.com", "pw")
    assert session.access_token and session.refresh_token
    assert session.email == "alice@example.com"
    assert not session.is_expired()


def test_sign_in_bad_credentials(backend):
    with pytest.raises(AuthError):
        backend.sign_in("alice@example.com", "wrong")
    with pytest.raises(AuthError):
        backend.sign_in("ghost@example.com", "pw")


def test_get_employee_by_user_id(backend):
    session = backend.sign_in("alice@example.com", "pw")
    employee = backend.get_employee(session, session.user_id)
    assert employee is not None
    assert employee.name == "Alice Martin"
    assert backend.get_employee(session, "no-such-user") is None


def test_leave_request_round_trip_defaults_to_pending(backend):
    session = backend.sign_in("alice@example.com", "pw")
    employee = backend.get_employee(session, session.user_id)
    _leave(backend, session, employee.id)
    _leave(backend, session, employee.id, type="rtt", start_date=date(2026, 6, 1), end_date=date(2026, 6, 1))

    rows = backend.list_leave_requests(session, employee.id)
    assert [r.type for r in rows] == ["rtt", "congés payés"]
    assert {r.status for r in rows} == {"pending"}


def test_cannot_write_as_another_employee(backend):
    alice = backend.sign_in("alice@example.com", "pw")
    bob = backend.sign_in("bob@example.com", "pw")
    alice_employee = backend.get_employee(alice, alice.user_id)

    with pytest.raises(BackendError) as exc:
        _leave(backend, bob, alice_employee.id)
    assert exc.value.status == 403

    with pytest.raises(BackendError):
        backend.create_forum_post(bob, alice_employee.id, title="t", content="c")


def test_cannot_read_another_employees_leave(backend):
    alice = backend.sign_in("alice@example.com", "pw")
    bob = backend.sign_in("bob@example.com", "pw")
    alice_employee = backend.get_employee(alice, alice.user_id)
    _leave(backend, alice, alice_employee.id)

    assert backend.list_leave_requests(bob, alice_employee.id) == []


def test_forum_posts_shared_with_author_name(backend):
    alice = backend.sign_in("alice@example.com", "pw")
    bob = backend.sign_in("bob@example.com", "pw")
    employee = backend.get_employee(alice, alice.user_id)
    backend.create_forum_post(alice, employee.id, title="Réunion", content="Lundi 9h")

    posts = backend.list_forum_posts(bob)
    assert len(posts) == 1
    assert posts[0].author_name == "Alice Martin"
    assert posts[0].title == "Réunion"


def test_invalid_leave_type_rejected(backend):
    session = backend.sign_in("alice@example.com", "pw")
    employee = backend.get_employee(session, session.user_id)
    with pytest.raises(BackendError) as exc:
        _leave(backend, session, employee.id, type="sabbatique")
    assert exc.value.status == 400


def test_expired_token_rejected(sm):
    b = SqlBackend(session_factory=sm, session_ttl_seconds=-1)
    b.register_user("carol@example.com", "pw", name="Carol")
    session = b.sign_in("carol@example.com", "pw")
    assert session.is_expired()
    with pytest.raises(AuthError):
        b.list_forum_posts(session)


def test_refresh_rotates_tokens(backend):
    first = backend.sign_in("alice@example.com", "pw")
    second = backend.refresh(first.refresh_token)
    assert second.access_token != first.access_token
    assert second.user_id == first.user_id

    with pytest.raises(AuthError):
        backend.refresh(first.refresh_token)
    with pytest.raises(AuthError):
        backend.list_forum_posts(first)
    assert backend.list_forum_posts(second) == []


def test_sign_out_revokes_token(backend):
    session = backend.sign_in("alice@example.com", "pw")
    backend.sign_out(session)
    with pytest.raises(AuthError):
        backend.get_employee(session, session.user_id)
    with pytest.raises(AuthError):
        backend.sign_out(session)


def test_database_errors_become_backend_error(backend):
    session = backend.sign_in("alice@example.com", "pw")

    def _locked():
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    broken = SqlBackend(session_factory=_locked)
    with pytest.raises(BackendError, match="OperationalError") as exc:
        broken.list_forum_posts(session)
    assert not isinstance(exc.value, AuthError)
    with pytest.raises(BackendError):
        broken.sign_in("alice@example.com", "pw")
