"""
errors.py — AppError base class and error code registry.

Every error raised by Evenly must use a code defined here.
Do not raise strings or generic exceptions from service code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - Skipped ledger records (empty split, non-positive amount) are NOT errors.
    The balance engine drops them per item and keeps going.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which input field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


class InputContractViolation(AppError):
    """
    Raised when a caller hands the engine something that is not a well-formed
    collection of ledger records (None where a list is expected, a record
    without a date, a non-numeric amount, ...).

    No partial result is ever returned alongside this error.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(
            ErrorCode.INPUT_CONTRACT_VIOLATION,
            message,
            500,
            field=field,
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment; it is the
# status an outer API layer is expected to answer with.
#
# IMPORTANT: these are the string values placed in error envelopes.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Input Errors ───────────────────────────────────────────────────────
    INPUT_CONTRACT_VIOLATION   = "INPUT_CONTRACT_VIOLATION"  # 500, caller bug

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    EXPENSE_NOT_FOUND          = "EXPENSE_NOT_FOUND"

    # ── Business Rule Violations (422) ────────────────────────────────────
    INVALID_EXPENSE            = "INVALID_EXPENSE"   # empty split / non-positive amount

    # ── Access (403) ───────────────────────────────────────────────────────
    FORBIDDEN                  = "FORBIDDEN"         # caller is not a group member

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"
