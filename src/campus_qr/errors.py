"""Failure taxonomy for the QR check-in flow."""

from __future__ import annotations

from typing import Optional


class CheckInError(Exception):
    """Base class for every check-in failure; `outcome` names the terminal state."""

    outcome = "failed"
    title = "Attendance Failed"
    default_message = "Try again"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class MalformedPayload(CheckInError):
    outcome = "invalid"
    title = "Invalid QR"
    default_message = "This QR is not generated by your teacher."


class ExpiredToken(CheckInError):
    outcome = "expired"
    title = "QR Expired"
    default_message = "Please scan the latest QR"


class AuthorizationMismatch(CheckInError):
    outcome = "forbidden"
    title = "Access Denied"
    default_message = "You are not allowed to mark attendance for this session."


class DuplicateSubmission(CheckInError):
    outcome = "already-marked"
    title = "Already Marked"
    default_message = "Attendance already recorded."


class TransientFailure(CheckInError):
    """The only failure the scanner retries on its own (lock auto-reset)."""

    outcome = "failed"


class ApiError(Exception):
    """Non-2xx response from the attendance backend."""

    def __init__(self, status: int, message: Optional[str] = None, path: str = "") -> None:
        self.status = status
        self.message = message
        self.path = path
        detail = f": {message}" if message else ""
        super().__init__(f"HTTP {status} from {path or 'backend'}{detail}")

    def to_check_in_error(self) -> CheckInError:
        if self.status == 409:
            return DuplicateSubmission()
        if self.status == 403:
            return AuthorizationMismatch(self.message)
        return TransientFailure(self.message)


class SessionError(RuntimeError):
    """Local identity is missing for a session operation."""
