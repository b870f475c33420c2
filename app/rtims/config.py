import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    log_level: str

    backend: str
    database_url: str
    supabase_url: str
    supabase_anon_key: str
    backend_timeout_seconds: int
    session_ttl_seconds: int

    contact_phone: str
    contact_email: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        backend=_getenv("BACKEND", "sql").lower(),
        database_url=_getenv("DATABASE_URL", "sqlite:///rtims.db"),
        supabase_url=_getenv("SUPABASE_URL", ""),
        supabase_anon_key=_getenv("SUPABASE_ANON_KEY", ""),
        backend_timeout_seconds=_getenv_int("BACKEND_TIMEOUT_SECONDS", 30),
        session_ttl_seconds=_getenv_int("SESSION_TTL_SECONDS", 3600),
        contact_phone=_getenv("CONTACT_PHONE", "+33 1 23 45 67 89"),
        contact_email=_getenv("CONTACT_EMAIL", "contact@rtims-consulting.fr"),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "LOG_LEVEL": s.log_level,
        "BACKEND": s.backend,
        "DATABASE_URL": s.database_url,
        "SUPABASE_URL": s.supabase_url,
        "SUPABASE_ANON_KEY": s.supabase_anon_key,
        "BACKEND_TIMEOUT_SECONDS": s.backend_timeout_seconds,
        "SESSION_TTL_SECONDS": s.session_ttl_seconds,
        "CONTACT_PHONE": s.contact_phone,
        "CONTACT_EMAIL": s.contact_email,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
    }
