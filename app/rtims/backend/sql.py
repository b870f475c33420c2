from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from werkzeug.security import check_password_hash, generate_password_hash

from app.rtims.backend.base import (
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
from app.rtims.db import session_scope
from app.rtims.models import AuthSessionRow, AuthUser, EmployeeRow, ForumPostRow, LeaveRequestRow

logger = logging.getLogger(__name__)


def _rls_violation(table: str) -> BackendError:
    return BackendError(f'new row violates row-level security policy for table "{table}"', status=403)


@dataclass(frozen=True)
class SqlBackend(Backend):
    """
    Local stand-in for the hosted backend.
    Same auth/table contract, same row-level rules, on top of SQLAlchemy.
    """

    session_factory: sessionmaker[Session]
    session_ttl_seconds: int = 3600

    name = "sql"

    @contextmanager
    def _scope(self) -> Iterator[Session]:
        # Database failures surface as BackendError.
        try:
            with session_scope(self.session_factory) as s:
                yield s
        except SQLAlchemyError as e:
            logger.error("Database error: %s", e)
            raise BackendError(f"Database error: {e.__class__.__name__}") from e

    # ---------- auth ----------
    def _issue(self, s: Session, user: AuthUser) -> AuthSession:
        row = AuthSessionRow(
            access_token=secrets.token_urlsafe(32),
            refresh_token=secrets.token_urlsafe(32),
            user_id=user.id,
            expires_at=int(time.time()) + self.session_ttl_seconds,
        )
        s.add(row)
        logger.debug("Issued session for user_id=%s", user.id)
        return AuthSession(
            access_token=row.access_token,
            refresh_token=row.refresh_token,
            expires_at=row.expires_at,
            user_id=user.id,
            email=user.email,
        )

    def _require_user(self, s: Session, session: AuthSession) -> str:
        row = s.get(AuthSessionRow, session.access_token)
        if row is None or row.expires_at <= int(time.time()):
            raise AuthError("Invalid or expired access token.", status=401)
        return row.user_id

    def sign_in(self, email: str, password: str) -> AuthSession:
        email = (email or "").strip().lower()
        with self._scope() as s:
            user = s.query(AuthUser).filter(AuthUser.email == email).one_or_none()
            if not user or not check_password_hash(user.password_hash, password or ""):
                raise AuthError("Invalid login credentials", status=400)
            return self._issue(s, user)

    def refresh(self, refresh_token: str) -> AuthSession:
        with self._scope() as s:
            row = s.query(AuthSessionRow).filter(AuthSessionRow.refresh_token == refresh_token).one_or_none()
            if row is None:
                raise AuthError("Invalid refresh token.", status=400)
            user = row.user
            s.delete(row)
            return self._issue(s, user)

    def sign_out(self, session: AuthSession) -> None:
        with self._scope() as s:
            row = s.get(AuthSessionRow, session.access_token)
            if row is None:
                raise AuthError("Session not found.", status=401)
            s.delete(row)

    def register_user(self, email: str, password: str, *, name: str | None = None) -> tuple[str, str | None]:
        """
        Admin-side helper (scripts/tests): create an auth user and, when a name
        is given, its employee row. Returns (user_id, employee_id).
        """
        with self._scope() as s:
            user = AuthUser(email=email.strip().lower(), password_hash=generate_password_hash(password))
            s.add(user)
            s.flush()
            employee_id = None
            if name:
                employee = EmployeeRow(user_id=user.id, name=name)
                s.add(employee)
                s.flush()
                employee_id = employee.id
            return user.id, employee_id

    # ---------- tables ----------
    def _owned_employee(self, s: Session, user_id: str, employee_id: str) -> EmployeeRow | None:
        employee = s.get(EmployeeRow, str(employee_id))
        if employee is None or employee.user_id != user_id:
            return None
        return employee

    def get_employee(self, session: AuthSession, user_id: str) -> Employee | None:
        with self._scope() as s:
            self._require_user(s, session)
            row = s.query(EmployeeRow).filter(EmployeeRow.user_id == str(user_id)).one_or_none()
            if row is None:
                return None
            return Employee(id=row.id, user_id=row.user_id, name=row.name)

    def list_leave_requests(self, session: AuthSession, employee_id: str) -> list[LeaveRequest]:
        with self._scope() as s:
            caller = self._require_user(s, session)
            if self._owned_employee(s, caller, employee_id) is None:
                # Policy hides other employees' rows rather than failing.
                return []
            rows = (
                s.query(LeaveRequestRow)
                .filter(LeaveRequestRow.employee_id == str(employee_id))
                .order_by(LeaveRequestRow.created_at.desc())
                .all()
            )
            return [
                LeaveRequest(
                    id=r.id,
                    employee_id=r.employee_id,
                    start_date=r.start_date,
                    end_date=r.end_date,
                    type=r.type,
                    status=r.status,
                    created_at=r.created_at,
                )
                for r in rows
            ]

    def create_leave_request(
        self,
        session: AuthSession,
        employee_id: str,
        *,
        start_date: date,
        end_date: date,
        type: str,
        status: str = "pending",
    ) -> None:
        if type not in LEAVE_TYPES:
            raise BackendError(f'invalid input value for leave type: "{type}"', status=400)
        if status not in LEAVE_STATUSES:
            raise BackendError(f'invalid input value for leave status: "{status}"', status=400)
        with self._scope() as s:
            caller = self._require_user(s, session)
            if self._owned_employee(s, caller, employee_id) is None:
                raise _rls_violation("leave_requests")
            s.add(
                LeaveRequestRow(
                    employee_id=str(employee_id),
                    start_date=start_date,
                    end_date=end_date,
                    type=type,
                    status=status,
                    created_at=datetime.utcnow(),
                )
            )

    def list_forum_posts(self, session: AuthSession) -> list[ForumPost]:
        with self._scope() as s:
            self._require_user(s, session)
            rows = s.query(ForumPostRow).order_by(ForumPostRow.created_at.desc()).all()
            return [
                ForumPost(
                    id=r.id,
                    employee_id=r.employee_id,
                    title=r.title,
                    content=r.content,
                    created_at=r.created_at,
                    author_name=r.author.name if r.author else None,
                )
                for r in rows
            ]

    def create_forum_post(self, session: AuthSession, employee_id: str, *, title: str, content: str) -> None:
        with self._scope() as s:
            caller = self._require_user(s, session)
            if self._owned_employee(s, caller, employee_id) is None:
                raise _rls_violation("forum_posts")
            s.add(ForumPostRow(employee_id=str(employee_id), title=title, content=content, created_at=datetime.utcnow()))
