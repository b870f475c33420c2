from flask import Blueprint, current_app, render_template

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return render_template("public/index.html")


@bp.get("/services")
def services():
    return render_template("public/services.html")


@bp.get("/expertise")
def expertise():
    return render_template("public/expertise.html")


@bp.get("/contact")
def contact():
    return render_template(
        "public/contact.html",
        phone=current_app.config.get("CONTACT_PHONE"),
        email=current_app.config.get("CONTACT_EMAIL"),
    )


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container probes. Never touches the backend.
    """
    return "ok", 200
