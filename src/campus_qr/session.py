"""Login/logout and lab-session helpers around the backend client."""

from __future__ import annotations

import asyncio
from typing import Any, Dict

import aiohttp

from .api import AttendanceApi
from .emitter import EmitterSession
from .errors import ApiError, SessionError
from .storage import KeyValueStore
from .student_context import (
    STUDENT_BATCH_KEY,
    STUDENT_DIVISION_KEY,
    STUDENT_ID_KEY,
    STUDENT_YEAR_KEY,
    normalize,
)
from .token import TokenType
from .utils.logger import get_logger, success

LOGGER = get_logger("session")

USER_TYPE_KEY = "userType"
TEACHER_ID_KEY = "teacherId"

IDENTITY_KEYS = (
    USER_TYPE_KEY,
    TEACHER_ID_KEY,
    STUDENT_ID_KEY,
    STUDENT_YEAR_KEY,
    STUDENT_DIVISION_KEY,
    STUDENT_BATCH_KEY,
)


async def login(api: AttendanceApi, store: KeyValueStore, role: str, login_id: str, password: str) -> Dict[str, Any]:
    """Authenticate as student or teacher and persist the identity locally."""
    user = await api.login(role, login_id, password)
    pairs = [(USER_TYPE_KEY, role), (f"{role}Id", normalize(user["id"]))]
    if role == "student":
        pairs += [
            (STUDENT_YEAR_KEY, normalize(user.get("year"))),
            (STUDENT_DIVISION_KEY, normalize(user.get("division"))),
        ]
    store.multi_set(pairs)
    success(f"Logged in as {role} {user['id']}")
    return user


async def logout(api: AttendanceApi, store: KeyValueStore) -> None:
    """Clear the stored identity; the backend notification is best effort."""
    role = store.get_item(USER_TYPE_KEY)
    user_id = store.get_item(f"{role}Id") if role else None
    store.multi_remove(IDENTITY_KEYS)
    if not user_id:
        return
    try:
        await api.logout(user_id)
    except (ApiError, aiohttp.ClientError, asyncio.TimeoutError) as exc:
        LOGGER.debug("Backend logout failed: %s", exc)
    success(f"Logged out {role} {user_id}")


async def create_lab_session(
    api: AttendanceApi,
    store: KeyValueStore,
    *,
    year: Any,
    division: str,
    batch: str,
    subject: str,
) -> EmitterSession:
    """Create a lab session for the logged-in teacher and describe it for the emitter."""
    teacher_id = store.get_item(TEACHER_ID_KEY)
    if not teacher_id:
        raise SessionError("No teacher is logged in")
    data = await api.create_lab_session(teacher_id, year, division, batch, subject)
    LOGGER.info("Lab session created: %s (expires %s)", data["sessionId"], data.get("expiresAt", "n/a"))
    return EmitterSession(
        session_id=str(data["sessionId"]),
        type=TokenType.LAB,
        year=year,
        division=division,
        batch=batch,
        subject=subject,
    )


async def delete_lab_session(api: AttendanceApi, session_id: str) -> None:
    await api.delete_lab_session(session_id)
    LOGGER.info("Lab session deleted: %s", session_id)
