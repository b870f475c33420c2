import secrets

from flask import Request, session

CSRF_SESSION_KEY = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"


def ensure_csrf_token() -> str:
    """Return the per-session CSRF token, creating it on first use."""
    token = session.get(CSRF_SESSION_KEY)
    if not token:
        token = secrets.token_urlsafe(32)
        session[CSRF_SESSION_KEY] = token
    return token


def validate_csrf(req: Request) -> bool:
    token = req.headers.get(CSRF_HEADER) or req.form.get("csrf_token")
    expected = session.get(CSRF_SESSION_KEY)
    if not token or not expected:
        return False
    # compare_digest only accepts ASCII str, so compare the encoded bytes.
    return secrets.compare_digest(str(token).encode("utf-8"), str(expected).encode("utf-8"))
