from __future__ import annotations

from flask import Blueprint, redirect, render_template, request, url_for

from app.rtims.auth import current_session, login_required
from app.rtims.backend import LEAVE_TYPES, get_backend
from app.rtims.modules.employee_portal.service import (
    LEAVE_TYPE_LABELS,
    empty_leave_form,
    empty_post_form,
    fetch_forum_posts,
    fetch_leave_requests,
    submit_forum_post,
    submit_leave_request,
)

bp = Blueprint("portal", __name__)


def _render_portal(*, leave_form: dict | None = None, post_form: dict | None = None):
    backend = get_backend()
    auth = current_session()
    return render_template(
        "portal/index.html",
        leave_requests=fetch_leave_requests(backend, auth),
        forum_posts=fetch_forum_posts(backend, auth),
        leave_form=leave_form or empty_leave_form(),
        post_form=post_form or empty_post_form(),
        leave_types=[(value, LEAVE_TYPE_LABELS.get(value, value)) for value in LEAVE_TYPES],
    )


@bp.get("/employee")
@login_required
def index():
    return _render_portal()


@bp.post("/employee/leave-requests")
@login_required
def leave_request_new():
    payload = {
        "start_date": (request.form.get("start_date") or "").strip(),
        "end_date": (request.form.get("end_date") or "").strip(),
        "type": (request.form.get("type") or "").strip() or empty_leave_form()["type"],
    }
    if submit_leave_request(get_backend(), current_session(), payload):
        return redirect(url_for("portal.index"))
    # Keep what the user typed; the list is refetched as-is.
    return _render_portal(leave_form=payload)


@bp.post("/employee/forum-posts")
@login_required
def forum_post_new():
    payload = {
        "title": request.form.get("title") or "",
        "content": request.form.get("content") or "",
    }
    if submit_forum_post(get_backend(), current_session(), payload):
        return redirect(url_for("portal.index"))
    return _render_portal(post_form=payload)
