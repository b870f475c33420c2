from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from app.rtims.backend import DEFAULT_LEAVE_TYPE, LEAVE_TYPES, BackendError

if TYPE_CHECKING:
    from app.rtims.backend import AuthSession, Backend, Employee, ForumPost, LeaveRequest

logger = logging.getLogger(__name__)

LEAVE_TYPE_LABELS = {
    "congés payés": "Congés payés",
    "rtt": "RTT",
    "maladie": "Maladie",
}

STATUS_BADGES = {
    "approved": "badge-approved",
    "rejected": "badge-rejected",
}


def status_badge_class(status: str | None) -> str:
    return STATUS_BADGES.get((status or "").strip().lower(), "badge-pending")


def empty_leave_form() -> dict:
    return {"start_date": "", "end_date": "", "type": DEFAULT_LEAVE_TYPE}


def empty_post_form() -> dict:
    return {"title": "", "content": ""}


def _parse_date(s: str | None) -> date | None:
    """Parse YYYY-MM-DD date string."""
    s = (s or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


def validate_leave_payload(payload: dict) -> list[str]:
    """Required-field presence only; everything else is the backend's call."""
    errors = []
    if _parse_date(payload.get("start_date")) is None:
        errors.append("start_date")
    if _parse_date(payload.get("end_date")) is None:
        errors.append("end_date")
    if payload.get("type") not in LEAVE_TYPES:
        errors.append("type")
    return errors


def validate_post_payload(payload: dict) -> list[str]:
    errors = []
    if not (payload.get("title") or "").strip():
        errors.append("title")
    if not (payload.get("content") or "").strip():
        errors.append("content")
    return errors


def find_employee(backend: Backend, auth: AuthSession) -> Employee | None:
    """Caller's employee row. Raises BackendError."""
    return backend.get_employee(auth, auth.user_id)


def fetch_leave_requests(backend: Backend, auth: AuthSession) -> list[LeaveRequest]:
    try:
        employee = find_employee(backend, auth)
        if employee is None:
            logger.info("No employee row for user_id=%s; leave list left empty", auth.user_id)
            return []
        return backend.list_leave_requests(auth, employee.id)
    except BackendError as e:
        logger.error("Error fetching leave requests: %s", e)
        return []


def fetch_forum_posts(backend: Backend, auth: AuthSession) -> list[ForumPost]:
    try:
        return backend.list_forum_posts(auth)
    except BackendError as e:
        logger.error("Error fetching forum posts: %s", e)
        return []


def submit_leave_request(backend: Backend, auth: AuthSession, payload: dict) -> bool:
    """Insert one pending leave request for the caller. Returns False when nothing was written."""
    errors = validate_leave_payload(payload)
    if errors:
        logger.warning("Error submitting leave request: missing or invalid fields %s", ", ".join(errors))
        return False
    try:
        employee = find_employee(backend, auth)
        if employee is None:
            logger.warning("Error submitting leave request: no employee row for user_id=%s", auth.user_id)
            return False
        backend.create_leave_request(
            auth,
            employee.id,
            start_date=_parse_date(payload["start_date"]),
            end_date=_parse_date(payload["end_date"]),
            type=payload["type"],
            status="pending",
        )
    except BackendError as e:
        logger.error("Error submitting leave request: %s", e)
        return False
    logger.info("Leave request submitted (employee_id=%s type=%s)", employee.id, payload["type"])
    return True


def submit_forum_post(backend: Backend, auth: AuthSession, payload: dict) -> bool:
    errors = validate_post_payload(payload)
    if errors:
        logger.warning("Error submitting forum post: missing fields %s", ", ".join(errors))
        return False
    try:
        employee = find_employee(backend, auth)
        if employee is None:
            logger.warning("Error submitting forum post: no employee row for user_id=%s", auth.user_id)
            return False
        backend.create_forum_post(
            auth,
            employee.id,
            title=payload["title"].strip(),
            content=payload["content"].strip(),
        )
    except BackendError as e:
        logger.error("Error submitting forum post: %s", e)
        return False
    logger.info("Forum post published (employee_id=%s)", employee.id)
    return True
