"""Stateless checks that gate every request mutation.

Each check either returns ``None`` or raises a single ``RequestError``.
``validate_request_fields`` composes them in a fixed order (quantity, then
timestamps, then delivery address) so that the reported error is
deterministic when several rules are broken at once.
"""

from __future__ import annotations

from typing import Iterable

from ..models.request import FULFILLED_STATUSES, MAX_UNIT_ID, BloodRequest
from .errors import ErrorCode, RequestError

MIN_REQUEST_QUANTITY_ML = 50
MAX_REQUEST_QUANTITY_ML = 5000
MAX_DAYS_IN_FUTURE = 30
SECONDS_PER_DAY = 86400
MAX_REQUEST_WINDOW_SECONDS = MAX_DAYS_IN_FUTURE * SECONDS_PER_DAY


def validate_quantity(quantity_ml: int) -> None:
    if not MIN_REQUEST_QUANTITY_ML <= quantity_ml <= MAX_REQUEST_QUANTITY_ML:
        raise RequestError(
            ErrorCode.INVALID_QUANTITY,
            f"quantity_ml must be between {MIN_REQUEST_QUANTITY_ML} and {MAX_REQUEST_QUANTITY_ML}, got {quantity_ml}",
        )


def validate_timestamps(created_at: int, required_by: int, now: int) -> None:
    if required_by <= now:
        raise RequestError(ErrorCode.INVALID_TIMESTAMP, "required_by must be in the future")
    if required_by > now + MAX_REQUEST_WINDOW_SECONDS:
        raise RequestError(
            ErrorCode.INVALID_TIMESTAMP,
            f"required_by must be at most {MAX_DAYS_IN_FUTURE} days ahead",
        )
    if created_at >= required_by:
        raise RequestError(ErrorCode.INVALID_TIMESTAMP, "required_by must be after created_at")


def validate_delivery_address(delivery_address: str) -> None:
    if not delivery_address:
        raise RequestError(ErrorCode.INVALID_INPUT, "delivery_address must not be empty")


def validate_unit_ids(unit_ids: Iterable[int]) -> None:
    unit_ids = list(unit_ids)
    if not unit_ids:
        raise RequestError(ErrorCode.INVALID_INPUT, "unit_ids must not be empty")
    for unit_id in unit_ids:
        if not 0 <= unit_id <= MAX_UNIT_ID:
            raise RequestError(ErrorCode.INVALID_INPUT, f"unit id {unit_id} is outside 0..{MAX_UNIT_ID}")


def validate_request_fields(
    quantity_ml: int,
    created_at: int,
    required_by: int,
    delivery_address: str,
    now: int,
) -> None:
    validate_quantity(quantity_ml)
    validate_timestamps(created_at, required_by, now)
    validate_delivery_address(delivery_address)


def validate_request(request: BloodRequest, now: int) -> None:
    """Check a complete candidate entity, including the fulfilment invariant."""
    validate_request_fields(
        request.quantity_ml,
        request.created_at,
        request.required_by,
        request.delivery_address,
        now,
    )
    if (request.fulfilled_at is not None) != (request.status in FULFILLED_STATUSES):
        raise RequestError(
            ErrorCode.INVALID_TIMESTAMP,
            f"fulfilled_at does not match status {request.status.value}",
        )
