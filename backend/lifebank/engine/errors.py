from __future__ import annotations

from enum import Enum, IntEnum


class ErrorCategory(str, Enum):
    GENERAL = "general"
    VALIDATION = "validation"
    STATE = "state"
    PERMISSION = "permission"
    REQUEST = "request"


class ErrorCode(IntEnum):
    """Stable error codes, banded by category in steps of ten."""

    # general (0-9)
    ALREADY_INITIALIZED = 0
    NOT_INITIALIZED = 1
    UNAUTHORIZED = 2

    # validation (10-19)
    INVALID_INPUT = 12
    INVALID_TIMESTAMP = 15
    INVALID_QUANTITY = 16

    # state (20-29)
    NOT_FOUND = 21

    # permission (30-39)
    NOT_AUTHORIZED_HOSPITAL = 32
    NOT_AUTHORIZED_BLOOD_BANK = 33

    # request-specific (40-49)
    INVALID_REQUEST_STATE = 40
    INVALID_STATUS_TRANSITION = 41
    REQUEST_OVERDUE = 44

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORY_BANDS[self.value // 10]


_CATEGORY_BANDS = {
    0: ErrorCategory.GENERAL,
    1: ErrorCategory.VALIDATION,
    2: ErrorCategory.STATE,
    3: ErrorCategory.PERMISSION,
    4: ErrorCategory.REQUEST,
}

DEFAULT_MESSAGES = {
    ErrorCode.ALREADY_INITIALIZED: "Request ledger already initialized",
    ErrorCode.NOT_INITIALIZED: "Request ledger not initialized",
    ErrorCode.UNAUTHORIZED: "Caller is not authorized for this action",
    ErrorCode.INVALID_INPUT: "Invalid input",
    ErrorCode.INVALID_TIMESTAMP: "Invalid timestamp",
    ErrorCode.INVALID_QUANTITY: "Quantity outside the accepted range",
    ErrorCode.NOT_FOUND: "Blood request not found",
    ErrorCode.NOT_AUTHORIZED_HOSPITAL: "Hospital is not authorized to create requests",
    ErrorCode.NOT_AUTHORIZED_BLOOD_BANK: "Blood bank is not authorized to assign units",
    ErrorCode.INVALID_REQUEST_STATE: "Request is not in a valid state for this operation",
    ErrorCode.INVALID_STATUS_TRANSITION: "Invalid status transition",
    ErrorCode.REQUEST_OVERDUE: "Request is past its required_by deadline",
}


class RequestError(Exception):
    """The single failure raised by every fallible engine operation."""

    def __init__(self, code: ErrorCode, detail: str | None = None) -> None:
        self.code = code
        self.detail = detail or DEFAULT_MESSAGES[code]
        super().__init__(self.detail)

    @property
    def category(self) -> ErrorCategory:
        return self.code.category

    def __repr__(self) -> str:
        return f"RequestError({self.code.name}, {self.detail!r})"
