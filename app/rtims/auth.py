from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime, timedelta
from functools import wraps
from typing import Any

from blinker import Namespace
from flask import Blueprint, current_app, g, redirect, render_template, request, session, url_for

from app.rtims.backend import AuthError, AuthSession, BackendError, get_backend

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)

SESSION_KEY = "auth_session"

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"

_signals = Namespace()
# Receivers get (sender=app, event=<name>, session=AuthSession | None).
auth_state_changed = _signals.signal("auth-state-changed")

_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def _emit(event: str, auth: AuthSession | None) -> None:
    auth_state_changed.send(current_app._get_current_object(), event=event, session=auth)


def log_auth_state_change(sender: Any, event: str, session: AuthSession | None = None, **_: Any) -> None:
    logger.info(
        "auth state changed: event=%s user_id=%s request_id=%s",
        event,
        session.user_id if session else None,
        getattr(g, "request_id", None),
    )


def current_session() -> AuthSession | None:
    return getattr(g, "auth_session", None)


def _store(auth: AuthSession) -> None:
    session[SESSION_KEY] = auth.to_dict()
    g.auth_session = auth


def _clear() -> None:
    session.pop(SESSION_KEY, None)
    g.auth_session = None


HEALTH_PATHS = ("/health", "/healthz")


def is_unguarded_path(path: str) -> bool:
    """Static files and health checks skip the session and CSRF handling."""
    return path.startswith("/static/") or path in HEALTH_PATHS


def load_current_session() -> None:
    """
    Loads g.auth_session from the signed session cookie, refreshing it once
    when expired. Also assigns a per-request request_id for log correlation.
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.auth_session = None
    if is_unguarded_path(request.path):
        return

    raw = session.get(SESSION_KEY)
    if not raw:
        return

    try:
        auth = AuthSession.from_dict(raw)
    except ValueError as e:
        logger.warning("Discarding malformed session cookie: %s", e)
        _clear()
        return

    if auth.is_expired():
        try:
            auth = get_backend().refresh(auth.refresh_token)
        except BackendError as e:
            logger.warning("Session refresh failed (clearing session): %s", e)
            _clear()
            _emit(SIGNED_OUT, None)
            return
        _store(auth)
        _emit(TOKEN_REFRESHED, auth)
        return

    g.auth_session = auth


def _safe_next(nxt: str) -> str | None:
    # Only local paths, to avoid open redirects.
    if nxt.startswith("/") and not nxt.startswith("//"):
        return nxt
    return None


def render_login(*, next: str = "", email: str = "", error: str | None = None, status: int = 200):
    return render_template("auth/login.html", next=next, email=email, error=error), status


def login_required(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Without a session, the login view is rendered in place of the page."""

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if current_session() is None:
            # Form posts land back on the page that holds the form.
            nxt = request.path if request.method == "GET" else url_for("portal.index")
            return render_login(next=nxt)
        return fn(*args, **kwargs)

    return wrapped


@bp.get("/login")
def login_get():
    if current_session() is not None:
        return redirect(url_for("portal.index"))
    nxt = (request.args.get("next") or "").strip()
    return render_login(next=nxt)


@bp.post("/login")
def login_post():
    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        return render_login(
            next=nxt,
            email=email,
            error="Trop de tentatives de connexion. Veuillez patienter 5 minutes.",
            status=429,
        )

    _record_attempt(ip)

    try:
        auth = get_backend().sign_in(email, password)
    except AuthError as e:
        logger.info("Sign-in rejected (email=%s request_id=%s): %s", email, getattr(g, "request_id", None), e)
        return render_login(next=nxt, email=email, error="Identifiants invalides.", status=401)
    except BackendError as e:
        current_app.logger.error("Sign-in failed (email=%s request_id=%s): %s", email, getattr(g, "request_id", None), e)
        return render_login(
            next=nxt,
            email=email,
            error="Le service d'authentification est indisponible.",
            status=503,
        )

    _store(auth)
    _login_attempts[ip].clear()
    _emit(SIGNED_IN, auth)
    return redirect(_safe_next(nxt) or url_for("portal.index"))


@bp.post("/logout")
def logout():
    auth = current_session()
    if auth is not None:
        try:
            get_backend().sign_out(auth)
        except BackendError as e:
            current_app.logger.error("Error: %s", e)
    _clear()
    _emit(SIGNED_OUT, None)
    return redirect(url_for("portal.index"))
