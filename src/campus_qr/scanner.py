"""Student-side scanner: validate a scanned token, guard the lock, submit the mark."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol

import aiohttp

from .errors import (
    ApiError,
    AuthorizationMismatch,
    CheckInError,
    ExpiredToken,
    TransientFailure,
)
from .student_context import StudentContext, StudentContextCache
from .token import DEFAULT_FRESHNESS_MS, AttendanceToken, TokenType, now_ms, parse_token
from .utils.logger import get_logger

DEFAULT_MARK_TIMEOUT_SECONDS = 10.0


class ScanState(str, Enum):
    IDLE = "idle"
    LOCKED = "locked"
    RESOLVED = "resolved"


class ScanOutcome(str, Enum):
    SUCCESS = "success"
    INVALID = "invalid"
    EXPIRED = "expired"
    FORBIDDEN = "forbidden"
    ALREADY_MARKED = "already-marked"
    FAILED = "failed"


AUTO_RESET_OUTCOMES = frozenset({ScanOutcome.EXPIRED, ScanOutcome.FAILED})


class MarkClient(Protocol):
    """Backend calls the scanner depends on."""

    async def mark_attendance(
        self, session_id: str, student_id: str, student_year: str, student_division: str
    ) -> Any:
        """Mark a theory session."""

    async def mark_lab_attendance(
        self,
        session_id: str,
        student_id: str,
        student_year: str,
        student_division: str,
        student_batch: str,
    ) -> Any:
        """Mark a lab session."""


@dataclass(frozen=True)
class ScanResult:
    """Terminal state of one scan, with the text shown to the student."""

    outcome: ScanOutcome
    title: str
    message: str
    token: Optional[AttendanceToken] = None

    @property
    def ok(self) -> bool:
        return self.outcome is ScanOutcome.SUCCESS

    @property
    def auto_reset(self) -> bool:
        return self.outcome in AUTO_RESET_OUTCOMES


class AttendanceScanner:
    """Single-lock scanner state machine: IDLE -> LOCKED -> RESOLVED -> IDLE.

    Camera callbacks are delivered on one event loop, so the lock is a plain
    flag checked and set before the first ``await`` in :meth:`handle_scan`.
    """

    def __init__(
        self,
        client: MarkClient,
        context_cache: StudentContextCache,
        *,
        clock: Callable[[], int] = now_ms,
        freshness_ms: int = DEFAULT_FRESHNESS_MS,
        mark_timeout: float = DEFAULT_MARK_TIMEOUT_SECONDS,
        reset_delay: float = 0.0,
        logger: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        self._client = client
        self._context_cache = context_cache
        self._clock = clock
        self._freshness_ms = freshness_ms
        self._mark_timeout = mark_timeout
        self._reset_delay = reset_delay
        self._logger = logger or get_logger("scanner")
        self._locked = False
        self._state = ScanState.IDLE
        self._pending_reset: Optional[asyncio.TimerHandle] = None
        self.last_result: Optional[ScanResult] = None

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def locked(self) -> bool:
        return self._locked

    def reset(self) -> None:
        """Release the lock ("Scan Again"); always allowed."""
        if self._pending_reset is not None:
            self._pending_reset.cancel()
            self._pending_reset = None
        self._locked = False
        self._state = ScanState.IDLE

    async def handle_scan(self, raw: str | bytes) -> Optional[ScanResult]:
        """Process one decoded QR payload; returns None when the scan is ignored."""
        if self._locked:
            self._logger.debug("Scan ignored while locked")
            return None
        self._locked = True
        self._state = ScanState.LOCKED

        token: Optional[AttendanceToken] = None
        try:
            token = parse_token(raw)
            self._check_fresh(token)
            context = self._authorize(token)
            await self._submit(token, context)
        except CheckInError as exc:
            return self._resolve(ScanOutcome(exc.outcome), exc.title, exc.message, token)

        if token.is_lab:
            return self._resolve(
                ScanOutcome.SUCCESS, "Lab Attendance Marked", "You are marked present for this lab.", token
            )
        return self._resolve(
            ScanOutcome.SUCCESS, "Attendance Marked", "You are marked present for this class.", token
        )

    def _check_fresh(self, token: AttendanceToken) -> None:
        age = token.age_ms(self._clock())
        if age > self._freshness_ms:
            raise ExpiredToken()

    def _authorize(self, token: AttendanceToken) -> StudentContext:
        context = self._context_cache.read()
        missing = context.missing_for(token.type)
        if missing:
            self._logger.warning("Student context incomplete (%s); refusing scan", ", ".join(missing))
            raise AuthorizationMismatch("Student profile not loaded. Reopen the scanner and try again.")
        if token.is_lab:
            mismatched = context.lab_mismatches(token.year, token.division, token.batch)
            if mismatched:
                self._logger.debug("Lab token mismatch on %s", ", ".join(mismatched))
                raise AuthorizationMismatch(f"This lab is only for Batch {token.batch}")
        return context

    async def _submit(self, token: AttendanceToken, context: StudentContext) -> None:
        if token.type is TokenType.LAB:
            call = self._client.mark_lab_attendance(
                token.session_id, context.student_id, context.year, context.division, context.batch
            )
        else:
            call = self._client.mark_attendance(
                token.session_id, context.student_id, context.year, context.division
            )
        try:
            await asyncio.wait_for(call, timeout=self._mark_timeout)
        except ApiError as exc:
            raise exc.to_check_in_error() from exc
        except asyncio.TimeoutError as exc:
            raise TransientFailure("Request timed out. Try again") from exc
        except aiohttp.ClientError as exc:
            raise TransientFailure() from exc
        except Exception as exc:
            self._logger.debug("Mark request failed: %r", exc)
            raise TransientFailure() from exc

    def _resolve(
        self, outcome: ScanOutcome, title: str, message: str, token: Optional[AttendanceToken]
    ) -> ScanResult:
        result = ScanResult(outcome=outcome, title=title, message=message, token=token)
        self.last_result = result
        self._state = ScanState.RESOLVED
        if result.ok:
            self._logger.info("%s: %s", title, message, layer="success")
        else:
            self._logger.warning("%s (%s): %s", title, outcome.value, message)
        if result.auto_reset:
            self._schedule_reset()
        return result

    def _schedule_reset(self) -> None:
        if self._reset_delay <= 0:
            self.reset()
            return
        loop = asyncio.get_running_loop()
        self._pending_reset = loop.call_later(self._reset_delay, self.reset)
