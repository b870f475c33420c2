"""Tests for sign-in/sign-out, session refresh and auth state events."""
import logging
import time

import pytest

from app.rtims import create_app
from app.rtims.auth import SESSION_KEY, _login_attempts, auth_state_changed
from app.rtims.db import session_scope
from app.rtims.models import AuthSessionRow, Base


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("BACKEND", "sql")
    _login_attempts.clear()

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    app.extensions["rtims_backend"].register_user("alice@example.com", "pw", name="Alice Martin")
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, password="pw", **extra):
    data = {"email": "alice@example.com", "password": password}
    data.update(extra)
    return client.post("/auth/login", data=data, follow_redirects=False)


def _csrf(client) -> str:
    client.get("/")
    with client.session_transaction() as sess:
        return sess["csrf_token"]


def _session_rows(app) -> int:
    with session_scope(app.extensions["sqlalchemy_sessionmaker"]) as s:
        return s.query(AuthSessionRow).count()


def test_login_page_renders(client):
    r = client.get("/auth/login?next=/employee")
    assert r.status_code == 200
    assert 'name="next" value="/employee"' in r.get_data(as_text=True)


def test_login_wrong_password(client):
    r = _login(client, password="nope")
    assert r.status_code == 401
    assert "Identifiants invalides." in r.get_data(as_text=True)
    with client.session_transaction() as sess:
        assert SESSION_KEY not in sess


def test_login_email_is_case_insensitive(client):
    r = client.post("/auth/login", data={"email": "  Alice@Example.COM ", "password": "pw"})
    assert r.status_code == 302


def test_login_redirects_to_local_next_only(client):
    r = _login(client, next="/services")
    assert r.headers["Location"].endswith("/services")

    client.post("/auth/logout")
    r = _login(client, next="//evil.example.com/")
    assert r.headers["Location"].endswith("/employee")


def test_login_rate_limited(client):
    for _ in range(5):
        assert _login(client, password="nope").status_code == 401
    r = _login(client)
    assert r.status_code == 429


def test_logout_clears_session_and_backend_row(client, app):
    _login(client)
    assert _session_rows(app) == 1

    r = client.post("/auth/logout")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/employee")
    assert _session_rows(app) == 0

    body = client.get("/employee").get_data(as_text=True)
    assert "Se connecter" in body
    assert "(Connecté)" not in body


def test_logout_backend_error_is_logged_and_ignored(client, app, caplog):
    caplog.set_level(logging.INFO)
    _login(client)
    with session_scope(app.extensions["sqlalchemy_sessionmaker"]) as s:
        s.query(AuthSessionRow).delete()

    r = client.post("/auth/logout")
    assert r.status_code == 302
    assert "Error: Session not found." in caplog.text
    with client.session_transaction() as sess:
        assert SESSION_KEY not in sess


def test_expired_session_is_refreshed(client):
    _login(client)
    with client.session_transaction() as sess:
        old = dict(sess[SESSION_KEY])
        stale = dict(old, expires_at=int(time.time()) - 10)
        sess[SESSION_KEY] = stale

    events = []

    def _receiver(sender, **kw):
        events.append(kw["event"])

    with auth_state_changed.connected_to(_receiver):
        r = client.get("/employee")

    assert r.status_code == 200
    assert "Gestion des congés" in r.get_data(as_text=True)
    assert events == ["TOKEN_REFRESHED"]
    with client.session_transaction() as sess:
        assert sess[SESSION_KEY]["access_token"] != old["access_token"]
        assert sess[SESSION_KEY]["expires_at"] > int(time.time())


def test_failed_refresh_signs_out(client):
    _login(client)
    with client.session_transaction() as sess:
        sess[SESSION_KEY] = dict(sess[SESSION_KEY], expires_at=0, refresh_token="bogus")

    r = client.get("/employee")
    assert "Se connecter" in r.get_data(as_text=True)
    with client.session_transaction() as sess:
        assert SESSION_KEY not in sess


def test_malformed_session_cookie_discarded(client):
    with client.session_transaction() as sess:
        sess[SESSION_KEY] = {"user_id": "x"}
    r = client.get("/employee")
    assert r.status_code == 200
    assert "Se connecter" in r.get_data(as_text=True)


def test_sign_in_and_out_emit_events(client):
    events = []

    def _receiver(sender, **kw):
        session = kw.get("session")
        events.append((kw["event"], session.email if session else None))

    with auth_state_changed.connected_to(_receiver):
        _login(client)
        client.post("/auth/logout")

    assert events == [("SIGNED_IN", "alice@example.com"), ("SIGNED_OUT", None)]


def test_logged_in_user_skips_login_page(client):
    _login(client)
    r = client.get("/auth/login")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/employee")


def test_csrf_token_not_required_for_logout(client):
    _csrf(client)
    _login(client)
    r = client.post("/auth/logout")
    assert r.status_code == 302
