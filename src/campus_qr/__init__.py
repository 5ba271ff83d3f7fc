"""QR attendance check-in: rotating token emitter and student-side scanner."""

from .emitter import EmitterSession, TokenEmitter
from .scanner import AttendanceScanner, ScanOutcome, ScanResult, ScanState
from .token import AttendanceToken, TokenType, parse_token

__all__ = [
    "AttendanceScanner",
    "AttendanceToken",
    "EmitterSession",
    "ScanOutcome",
    "ScanResult",
    "ScanState",
    "TokenEmitter",
    "TokenType",
    "parse_token",
]
