from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any

LEAVE_TYPES = ("congés payés", "rtt", "maladie")
DEFAULT_LEAVE_TYPE = "congés payés"
LEAVE_STATUSES = ("pending", "approved", "rejected")


class BackendError(RuntimeError):
    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class AuthError(BackendError):
    pass


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    refresh_token: str
    expires_at: int  # unix seconds
    user_id: str
    email: str | None = None

    def is_expired(self, leeway: int = 60) -> bool:
        return self.expires_at - leeway <= int(time.time())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuthSession:
        """Rebuild a session stored in the cookie. Raises ValueError on malformed data."""
        try:
            return cls(
                access_token=str(data["access_token"]),
                refresh_token=str(data["refresh_token"]),
                expires_at=int(data["expires_at"]),
                user_id=str(data["user_id"]),
                email=data.get("email"),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed session payload: {e}") from e


@dataclass(frozen=True)
class Employee:
    id: str
    user_id: str
    name: str


@dataclass(frozen=True)
class LeaveRequest:
    id: str
    employee_id: str
    start_date: date
    end_date: date
    type: str
    status: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class ForumPost:
    id: str
    employee_id: str | None
    title: str
    content: str
    created_at: datetime
    author_name: str | None = None


class Backend:
    """
    Hosted auth + table storage as seen by the site.
    Row-level access rules are the backend's job; callers pass the session along.
    """

    name = "base"

    # auth
    def sign_in(self, email: str, password: str) -> AuthSession:
        raise NotImplementedError

    def refresh(self, refresh_token: str) -> AuthSession:
        raise NotImplementedError

    def sign_out(self, session: AuthSession) -> None:
        raise NotImplementedError

    # tables
    def get_employee(self, session: AuthSession, user_id: str) -> Employee | None:
        raise NotImplementedError

    def list_leave_requests(self, session: AuthSession, employee_id: str) -> list[LeaveRequest]:
        raise NotImplementedError

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
        raise NotImplementedError

    def list_forum_posts(self, session: AuthSession) -> list[ForumPost]:
        raise NotImplementedError

    def create_forum_post(self, session: AuthSession, employee_id: str, *, title: str, content: str) -> None:
        raise NotImplementedError
