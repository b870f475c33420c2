from __future__ import annotations

from flask import Flask, current_app

from app.rtims.backend.base import (
    DEFAULT_LEAVE_TYPE,
    LEAVE_STATUSES,
    LEAVE_TYPES,
    AuthError,
    AuthSession,
    Backend,
    BackendError,
    Employee,
    ForumPost,
    LeaveRequest,
)

__all__ = [
    "DEFAULT_LEAVE_TYPE",
    "LEAVE_STATUSES",
    "LEAVE_TYPES",
    "AuthError",
    "AuthSession",
    "Backend",
    "BackendError",
    "Employee",
    "ForumPost",
    "LeaveRequest",
    "backend_from_config",
    "get_backend",
]


def backend_from_config(app: Flask) -> Backend:
    kind = (app.config.get("BACKEND") or "sql").strip().lower()
    if kind == "supabase":
        from app.rtims.backend.supabase import SupabaseBackend

        return SupabaseBackend(
            url=(app.config.get("SUPABASE_URL") or "").strip(),
            anon_key=(app.config.get("SUPABASE_ANON_KEY") or "").strip(),
            timeout_seconds=int(app.config.get("BACKEND_TIMEOUT_SECONDS") or 30),
        )
    if kind == "sql":
        from app.rtims.backend.sql import SqlBackend
        from app.rtims.db import init_db

        return SqlBackend(
            session_factory=init_db(app),
            session_ttl_seconds=int(app.config.get("SESSION_TTL_SECONDS") or 3600),
        )
    raise RuntimeError(f"Unknown BACKEND {kind!r}; expected 'sql' or 'supabase'.")


def get_backend() -> Backend:
    return current_app.extensions["rtims_backend"]
