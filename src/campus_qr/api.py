"""aiohttp client for the attendance backend REST API."""

from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import quote

import aiohttp

from .errors import ApiError
from .utils.logger import debug_detail

ROLES = ("student", "teacher")


class AttendanceApi:
    """Thin wrapper over the backend endpoints used by the check-in flow.

    Non-2xx responses raise :class:`ApiError`; network failures and timeouts
    surface as ``aiohttp.ClientError`` / ``asyncio.TimeoutError``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "AttendanceApi":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={"Content-Type": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        session = self._ensure_session()
        url = f"{self.base_url}{path}"
        debug_detail(f"{method} {url}")
        async with session.request(method, url, json=payload, timeout=self._timeout) as response:
            try:
                data = await response.json(content_type=None)
            except ValueError:
                data = None
            if not isinstance(data, dict):
                data = {}
            if not 200 <= response.status < 300:
                raise ApiError(response.status, data.get("msg") or data.get("message"), path)
            return data

    # -- attendance -----------------------------------------------------------

    async def mark_attendance(
        self, session_id: str, student_id: str, student_year: str, student_division: str
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/attendance/mark",
            {
                "sessionId": session_id,
                "studentId": student_id,
                "studentYear": student_year,
                "studentDivision": student_division,
            },
        )

    async def mark_lab_attendance(
        self,
        session_id: str,
        student_id: str,
        student_year: str,
        student_division: str,
        student_batch: str,
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/lab-attendance/mark",
            {
                "sessionId": session_id,
                "studentId": student_id,
                "studentYear": student_year,
                "studentDivision": student_division,
                "studentBatch": student_batch,
            },
        )

    async def get_student_profile(self, student_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/api/student/me/{quote(str(student_id), safe='')}")

    # -- lab sessions -----------------------------------------------------------

    async def create_lab_session(
        self, teacher_id: str, year: Any, division: str, batch: str, subject: str
    ) -> Dict[str, Any]:
        data = await self._request(
            "POST",
            "/api/lab-attendance/session/create",
            {
                "teacherId": teacher_id,
                "year": year,
                "division": division,
                "batch": batch,
                "subject": subject,
            },
        )
        if not data.get("sessionId"):
            raise ApiError(502, "Lab session response missing sessionId", "/api/lab-attendance/session/create")
        return data

    async def delete_lab_session(self, session_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", "/api/lab-attendance/session/delete", {"sessionId": session_id})

    # -- auth -----------------------------------------------------------------

    async def login(self, role: str, login_id: str, password: str) -> Dict[str, Any]:
        """Authenticate and register the user session; returns the user record."""
        if role not in ROLES:
            raise ValueError(f"Unsupported role: {role}")
        path = f"/api/auth/{role}/login"
        data = await self._request("POST", path, {"id": login_id, "password": password})
        if not data.get("success") or not data.get("id"):
            raise ApiError(401, data.get("msg") or "Invalid credentials", path)
        await self._request("POST", "/api/users/login", {"userId": data["id"], "role": role})
        return data

    async def logout(self, user_id: str) -> None:
        await self._request("POST", "/api/users/logout", {"userId": user_id})
