from __future__ import annotations

import http.client
import json
import logging
import time
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from app.rtims.backend.base import (
    AuthError,
    AuthSession,
    Backend,
    BackendError,
    Employee,
    ForumPost,
    LeaveRequest,
)

logger = logging.getLogger(__name__)


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(str(value))


def _error_message(body: str) -> str:
    """Pull the human readable part out of a GoTrue/PostgREST error body."""
    try:
        j = json.loads(body)
    except ValueError:
        return body[:300]
    if isinstance(j, dict):
        for key in ("error_description", "msg", "message", "error"):
            if j.get(key):
                return str(j[key])
    return body[:300]


def _employee_from_row(r: dict[str, Any], user_id: str) -> Employee:
    return Employee(id=str(r["id"]), user_id=str(r.get("user_id") or user_id), name=r.get("name") or "")


def _leave_from_row(r: dict[str, Any], employee_id: str) -> LeaveRequest:
    return LeaveRequest(
        id=str(r["id"]),
        employee_id=str(r.get("employee_id") or employee_id),
        start_date=_parse_date(r["start_date"]),
        end_date=_parse_date(r["end_date"]),
        type=r.get("type") or "",
        status=r.get("status") or "pending",
        created_at=_parse_datetime(r.get("created_at")),
    )


def _post_from_row(r: dict[str, Any]) -> ForumPost:
    author = r.get("employees") or {}
    return ForumPost(
        id=str(r["id"]),
        employee_id=str(r["employee_id"]) if r.get("employee_id") is not None else None,
        title=r.get("title") or "",
        content=r.get("content") or "",
        created_at=_parse_datetime(r.get("created_at")),
        author_name=author.get("name") if isinstance(author, dict) else None,
    )


def _map_rows(path: str, rows: Any, mapper: Callable[[dict[str, Any]], Any]) -> list:
    """Turn PostgREST rows into records; an unexpected row shape is a backend failure."""
    if not rows:
        return []
    try:
        return [mapper(r) for r in rows]
    except (KeyError, ValueError, TypeError, AttributeError) as e:
        raise BackendError(f"Unexpected row from backend ({path}): {e!r}") from e


@dataclass(frozen=True)
class SupabaseBackend(Backend):
    url: str
    anon_key: str
    timeout_seconds: int = 30

    name = "supabase"

    def _headers(self, session: AuthSession | None) -> dict[str, str]:
        token = session.access_token if session else self.anon_key
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

    def request_json(
        self,
        method: str,
        path: str,
        *,
        session: AuthSession | None = None,
        params: dict[str, Any] | None = None,
        body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        url = self.url.rstrip("/") + path
        if params:
            url += "?" + urllib.parse.urlencode({k: v for k, v in params.items() if v is not None})

        data = None
        req_headers = self._headers(session)
        if headers:
            req_headers.update(headers)
        if body is not None:
            data = json.dumps(body, default=str).encode("utf-8")
            req_headers["Content-Type"] = "application/json"

        logger.debug("backend %s %s", method, path)
        req = urllib.request.Request(url, data=data, method=method)
        for k, v in req_headers.items():
            req.add_header(k, v)

        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            try:
                err_body = e.read().decode("utf-8", errors="ignore")
            except Exception:
                err_body = ""
            raise BackendError(
                f"HTTP {e.code} from backend ({method} {path}): {_error_message(err_body)}",
                status=e.code,
            ) from e
        except urllib.error.URLError as e:
            raise BackendError(f"Backend unreachable ({method} {path}): {e.reason}") from e
        except (OSError, http.client.HTTPException) as e:
            # Timeouts and dropped connections surface here, outside URLError.
            raise BackendError(f"Backend connection failed ({method} {path}): {e!r}") from e

        if not raw:
            return None
        try:
            return json.loads(raw.decode("utf-8"))
        except ValueError as e:
            raise BackendError(f"Invalid JSON from backend ({path})") from e

    # ---------- auth ----------
    def _session_from_token(self, j: Any) -> AuthSession:
        if not isinstance(j, dict) or not j.get("access_token"):
            raise AuthError("Auth service returned no session.")
        user = j.get("user") or {}
        expires_at = j.get("expires_at")
        try:
            if not expires_at:
                expires_at = int(time.time()) + int(j.get("expires_in") or 3600)
            return AuthSession(
                access_token=j["access_token"],
                refresh_token=j.get("refresh_token") or "",
                expires_at=int(expires_at),
                user_id=str(user.get("id") or ""),
                email=user.get("email"),
            )
        except (ValueError, TypeError, AttributeError) as e:
            raise BackendError(f"Unexpected session payload from auth service: {e!r}") from e

    def _token(self, grant_type: str, payload: dict[str, str]) -> AuthSession:
        try:
            j = self.request_json("POST", "/auth/v1/token", params={"grant_type": grant_type}, body=payload)
        except BackendError as e:
            if e.status in (400, 401, 403):
                raise AuthError(str(e), status=e.status) from e
            raise
        return self._session_from_token(j)

    def sign_in(self, email: str, password: str) -> AuthSession:
        return self._token("password", {"email": email, "password": password})

    def refresh(self, refresh_token: str) -> AuthSession:
        return self._token("refresh_token", {"refresh_token": refresh_token})

    def sign_out(self, session: AuthSession) -> None:
        self.request_json("POST", "/auth/v1/logout", session=session)

    # ---------- tables ----------
    def get_employee(self, session: AuthSession, user_id: str) -> Employee | None:
        path = "/rest/v1/employees"
        rows = self.request_json(
            "GET",
            path,
            session=session,
            params={"select": "id,user_id,name", "user_id": f"eq.{user_id}", "limit": 1},
        )
        employees = _map_rows(path, rows, lambda r: _employee_from_row(r, user_id))
        return employees[0] if employees else None

    def list_leave_requests(self, session: AuthSession, employee_id: str) -> list[LeaveRequest]:
        path = "/rest/v1/leave_requests"
        rows = self.request_json(
            "GET",
            path,
            session=session,
            params={"select": "*", "employee_id": f"eq.{employee_id}", "order": "created_at.desc"},
        )
        return _map_rows(path, rows, lambda r: _leave_from_row(r, employee_id))

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
        row = {
            "employee_id": employee_id,
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "type": type,
            "status": status,
        }
        self.request_json(
            "POST",
            "/rest/v1/leave_requests",
            session=session,
            body=[row],
            headers={"Prefer": "return=minimal"},
        )

    def list_forum_posts(self, session: AuthSession) -> list[ForumPost]:
        path = "/rest/v1/forum_posts"
        rows = self.request_json(
            "GET",
            path,
            session=session,
            params={"select": "*,employees(name)", "order": "created_at.desc"},
        )
        return _map_rows(path, rows, _post_from_row)

    def create_forum_post(self, session: AuthSession, employee_id: str, *, title: str, content: str) -> None:
        self.request_json(
            "POST",
            "/rest/v1/forum_posts",
            session=session,
            body=[{"employee_id": employee_id, "title": title, "content": content}],
            headers={"Prefer": "return=minimal"},
        )
