import logging
import os
from datetime import timedelta

from flask import Flask, g, render_template, request, session
from dotenv import load_dotenv

from app.rtims.config import load_config
from app.rtims.logging_config import configure_logging
from app.rtims.backend import backend_from_config
from app.rtims.routes import bp as routes_bp
from app.rtims.auth import (
    auth_state_changed,
    bp as auth_bp,
    is_unguarded_path,
    load_current_session,
    log_auth_state_change,
)
from app.rtims.modules.employee_portal.service import status_badge_class
from app.rtims.modules.employee_portal.views import bp as portal_bp
from app.rtims.navigation import inject_navigation

def _check_production_config(app: Flask) -> None:
    """Fail fast with clear logs on unsafe production settings."""
    env = (app.config.get("ENV") or "").strip().lower()
    if env not in ("prod", "production"):
        return
    if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
        raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
    backend = app.config.get("BACKEND")
    if backend == "supabase":
        if not app.config.get("SUPABASE_URL") or not app.config.get("SUPABASE_ANON_KEY"):
            raise RuntimeError("SUPABASE_URL and SUPABASE_ANON_KEY are required in production.")
    elif backend == "sql" and str(app.config.get("DATABASE_URL") or "").startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    configure_logging(app.config.get("LOG_LEVEL") or "INFO")

    from app.rtims.security import ensure_csrf_token, validate_csrf

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    app.context_processor(inject_navigation)

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%d/%m/%Y") -> str:
        if value is None:
            return "—"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    @app.template_filter("status_badge")
    def _status_badge_filter(value) -> str:
        return status_badge_class(value)

    @app.before_request
    def _csrf_guard():
        if is_unguarded_path(request.path):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Sign-in/sign-out carry their own protections.
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return render_template("errors/400.html", message="Jeton CSRF manquant ou invalide."), 400

    _check_production_config(app)

    app.extensions["rtims_backend"] = backend_from_config(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    if app.config.get("BACKEND") == "sql":
        _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(portal_bp)

    def _load_session_wrapper():
        if is_unguarded_path(request.path):
            g.auth_session = None
            return None
        return load_current_session()

    app.before_request(_load_session_wrapper)

    auth_state_changed.connect(log_auth_state_change, sender=app)

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return render_template("errors/404.html"), 404

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        rid = getattr(g, "request_id", None)
        app.logger.exception("Unhandled 500 (request_id=%s)", rid)
        return render_template("errors/500.html"), 500

    logging.getLogger(__name__).info("create_app() complete; backend=%s", app.extensions["rtims_backend"].name)

    return app
