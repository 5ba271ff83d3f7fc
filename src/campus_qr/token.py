"""Attendance token: the JSON value carried by a rotating QR code."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from .errors import MalformedPayload

DEFAULT_ROTATION_MS = 3000
DEFAULT_FRESHNESS_MS = 10000
# current token plus the previous two
ACCEPTED_TOKEN_COUNT = 3

REQUIRED_FIELDS = ("type", "sessionId", "issuedAt")


class TokenType(str, Enum):
    THEORY = "ATTENDANCE_QR"
    LAB = "LAB_ATTENDANCE_QR"


def now_ms() -> int:
    """Wall clock in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class AttendanceToken:
    """One attendance-marking opportunity."""

    type: TokenType
    session_id: str
    issued_at: int
    year: Optional[Union[int, str]] = None
    division: Optional[str] = None
    batch: Optional[str] = None

    @property
    def is_lab(self) -> bool:
        return self.type is TokenType.LAB

    def age_ms(self, now: int) -> int:
        return now - self.issued_at

    def is_fresh(self, now: int, freshness_ms: int = DEFAULT_FRESHNESS_MS) -> bool:
        return self.age_ms(now) <= freshness_ms

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.type.value, "sessionId": self.session_id}
        if self.is_lab:
            payload["year"] = self.year
            payload["division"] = self.division
            payload["batch"] = self.batch
        payload["issuedAt"] = self.issued_at
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


def parse_token(raw: Union[str, bytes]) -> AttendanceToken:
    """Parse scanned QR text into a token or raise MalformedPayload."""
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedPayload("QR payload is not UTF-8 text") from exc
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedPayload("QR payload is not JSON") from exc
    if not isinstance(payload, dict):
        raise MalformedPayload("QR payload must be a JSON object")

    for field in REQUIRED_FIELDS:
        if payload.get(field) in (None, ""):
            raise MalformedPayload(f"QR payload missing field: {field}")

    try:
        token_type = TokenType(payload["type"])
    except ValueError as exc:
        raise MalformedPayload(f"Unknown QR type: {payload['type']!r}") from exc

    issued_at = _coerce_timestamp(payload["issuedAt"])
    if token_type is TokenType.THEORY:
        return AttendanceToken(type=token_type, session_id=str(payload["sessionId"]), issued_at=issued_at)
    return AttendanceToken(
        type=token_type,
        session_id=str(payload["sessionId"]),
        issued_at=issued_at,
        year=payload.get("year"),
        division=payload.get("division"),
        batch=payload.get("batch"),
    )


def _coerce_timestamp(value: Any) -> int:
    if isinstance(value, bool):
        raise MalformedPayload("issuedAt must be a millisecond timestamp")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise MalformedPayload("issuedAt must be a millisecond timestamp")
