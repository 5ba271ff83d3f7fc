"""Teacher-side emitter producing a rotating attendance token."""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Optional, Tuple

from .token import ACCEPTED_TOKEN_COUNT, DEFAULT_ROTATION_MS, AttendanceToken, TokenType, now_ms
from .utils.logger import get_logger

LOGGER = get_logger("emitter")


@dataclass(frozen=True)
class EmitterSession:
    """Session details fixed at creation time by the backend."""

    session_id: str
    type: TokenType = TokenType.THEORY
    year: Optional[Any] = None
    division: Optional[str] = None
    batch: Optional[str] = None
    subject: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.session_id:
            raise ValueError("session_id is required")
        if self.type is TokenType.LAB and not (self.year and self.division and self.batch):
            raise ValueError("Lab sessions need year, division and batch")


class TokenEmitter:
    """Build a fresh token every ``interval_ms`` and keep it for rendering."""

    def __init__(
        self,
        session: EmitterSession,
        *,
        interval_ms: int = DEFAULT_ROTATION_MS,
        clock: Callable[[], int] = now_ms,
        on_token: Optional[Callable[[str], None]] = None,
    ) -> None:
        if interval_ms < 1:
            raise ValueError("interval_ms must be at least 1")
        self.session = session
        self.interval_ms = interval_ms
        self._clock = clock
        self._on_token = on_token
        self._recent: Deque[int] = deque(maxlen=ACCEPTED_TOKEN_COUNT)
        self._current_token: Optional[AttendanceToken] = None
        self._current: Optional[str] = None
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def current(self) -> Optional[str]:
        """JSON string currently encoded in the displayed QR."""
        return self._current

    @property
    def current_token(self) -> Optional[AttendanceToken]:
        return self._current_token

    def tick(self) -> str:
        issued_at = self._clock()
        if self._recent and issued_at <= self._recent[-1]:
            issued_at = self._recent[-1] + 1

        session = self.session
        if session.type is TokenType.LAB:
            token = AttendanceToken(
                type=TokenType.LAB,
                session_id=session.session_id,
                issued_at=issued_at,
                year=session.year,
                division=session.division,
                batch=session.batch,
            )
        else:
            token = AttendanceToken(type=TokenType.THEORY, session_id=session.session_id, issued_at=issued_at)

        self._recent.append(issued_at)
        self._current_token = token
        self._current = token.to_json()
        LOGGER.debug("Token rotated for %s at %d", session.session_id, issued_at)
        if self._on_token is not None:
            self._on_token(self._current)
        return self._current

    def accepted_issued_at(self) -> Tuple[int, ...]:
        """Timestamps of the current token and the previous two."""
        return tuple(self._recent)

    def is_accepted(self, issued_at: int) -> bool:
        return issued_at in self._recent

    # -- periodic loop ----------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self) -> None:
        """Tick immediately, then once per interval until cancelled."""
        while True:
            self.tick()
            await asyncio.sleep(self.interval_ms / 1000)

    def start(self) -> "asyncio.Task[None]":
        if self.running:
            return self._task  # type: ignore[return-value]
        LOGGER.info("Rotating QR every %.1fs for session %s", self.interval_ms / 1000, self.session.session_id)
        self._task = asyncio.create_task(self.run())
        return self._task

    async def wait(self, timeout: Optional[float] = None) -> None:
        """Block until ``timeout`` elapses or the tick loop ends (it only ends on error)."""
        if self._task is not None:
            await asyncio.wait({self._task}, timeout=timeout)

    async def stop(self) -> None:
        """Cancel the tick loop; re-raises the error that ended it, if any."""
        task, self._task = self._task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        LOGGER.debug("Emitter stopped for session %s", self.session.session_id)

    async def __aenter__(self) -> "TokenEmitter":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
