"""Cached student identity used to authorize scans without a network round-trip."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol

import aiohttp

from .errors import ApiError
from .storage import KeyValueStore
from .token import TokenType
from .utils.logger import get_logger

LOGGER = get_logger("student_context")

STUDENT_ID_KEY = "studentId"
STUDENT_YEAR_KEY = "studentYear"
STUDENT_DIVISION_KEY = "studentDivision"
STUDENT_BATCH_KEY = "studentSubBranch"

_REQUIRED = {
    TokenType.THEORY: ("student_id", "year", "division"),
    TokenType.LAB: ("student_id", "year", "division", "batch"),
}


class ProfileClient(Protocol):
    async def get_student_profile(self, student_id: str) -> dict:
        """Return the backend profile for a student."""


def normalize(value: Any) -> Optional[str]:
    """String form used for storage and comparisons; blank becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class StudentContext:
    student_id: Optional[str] = None
    year: Optional[str] = None
    division: Optional[str] = None
    batch: Optional[str] = None

    def missing_for(self, token_type: TokenType) -> List[str]:
        return [name for name in _REQUIRED[token_type] if getattr(self, name) is None]

    def lab_mismatches(self, year: Any, division: Any, batch: Any) -> List[str]:
        mismatched = []
        for name, value in (("year", year), ("division", division), ("batch", batch)):
            text = normalize(value)
            if text is None or text != getattr(self, name):
                mismatched.append(name)
        return mismatched


class StudentContextCache:
    """Read/refresh the four cached student fields in local storage."""

    def __init__(self, store: KeyValueStore, api: ProfileClient) -> None:
        self._store = store
        self._api = api

    def read(self) -> StudentContext:
        return StudentContext(
            student_id=normalize(self._store.get_item(STUDENT_ID_KEY)),
            year=normalize(self._store.get_item(STUDENT_YEAR_KEY)),
            division=normalize(self._store.get_item(STUDENT_DIVISION_KEY)),
            batch=normalize(self._store.get_item(STUDENT_BATCH_KEY)),
        )

    async def refresh(self) -> Optional[StudentContext]:
        """Fetch the profile once and persist year/division/subBranch.

        On failure the previous cache is kept and None is returned.
        """
        student_id = normalize(self._store.get_item(STUDENT_ID_KEY))
        if student_id is None:
            LOGGER.warning("No studentId stored; log in before scanning")
            return None
        try:
            profile = await self._api.get_student_profile(student_id)
        except (ApiError, aiohttp.ClientError, asyncio.TimeoutError) as exc:
            LOGGER.warning("Failed to load student data: %s", exc)
            return None

        self._store.multi_set(
            [
                (STUDENT_YEAR_KEY, normalize(profile.get("year"))),
                (STUDENT_DIVISION_KEY, normalize(profile.get("division"))),
                (STUDENT_BATCH_KEY, normalize(profile.get("subBranch"))),
            ]
        )
        context = self.read()
        LOGGER.debug(
            "Student context refreshed: year=%s division=%s batch=%s",
            context.year,
            context.division,
            context.batch,
        )
        return context
