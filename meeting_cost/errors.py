"""Error taxonomy surfaced by the meeting cost engine.

Every error carries a stable machine-readable ``code`` so adapters can map it
to a transport status with ``status_code_for``. Lower-layer failures are
chained with ``raise ... from exc`` so the original cause stays available for
logging.
"""

from typing import Any

CODE_VALIDATION = "VALIDATION_ERROR"
CODE_NOT_FOUND = "NOT_FOUND"
CODE_FORBIDDEN = "FORBIDDEN"
CODE_INVALID_STATE = "INVALID_STATE"
CODE_CONFLICT = "CONFLICT"
CODE_TRANSIENT = "TRANSIENT"
CODE_INTERNAL = "INTERNAL_ERROR"
CODE_INVARIANT_VIOLATION = "INVARIANT_VIOLATION"


class MeetingCostError(Exception):
    """Base class for all domain errors."""

    code: str = CODE_INTERNAL

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class NotFoundError(MeetingCostError):
    """Target meeting is missing or tombstoned."""

    code = CODE_NOT_FOUND


class ForbiddenError(MeetingCostError):
    """The permission oracle denied the action."""

    code = CODE_FORBIDDEN


class InvalidStateError(MeetingCostError):
    """A state-machine precondition failed."""

    code = CODE_INVALID_STATE


class ValidationError(MeetingCostError):
    """Input failed validation (negative count, negative wage, empty field)."""

    code = CODE_VALIDATION


class ConflictError(MeetingCostError):
    """A uniqueness constraint was violated."""

    code = CODE_CONFLICT


class TransientError(MeetingCostError):
    """Ledger infrastructure hiccup; retriable by the caller."""

    code = CODE_TRANSIENT


class InternalError(MeetingCostError):
    """Unrecoverable failure (retries exhausted, broken invariants)."""

    code = CODE_INTERNAL


class InvariantViolationError(InternalError):
    """The ledger was observed in a state the data model forbids."""

    code = CODE_INVARIANT_VIOLATION


_STATUS_BY_CODE = {
    CODE_VALIDATION: 400,
    CODE_FORBIDDEN: 403,
    CODE_NOT_FOUND: 404,
    CODE_INVALID_STATE: 409,
    CODE_CONFLICT: 409,
    CODE_TRANSIENT: 503,
}


def status_code_for(code: str) -> int:
    """Map an error code to an HTTP status code (500 for anything unknown)."""
    return _STATUS_BY_CODE.get(code, 500)
