from __future__ import annotations

from typing import Any, Dict, Iterable

from ..models.request import (
    BloodRequest,
    BloodType,
    RequestMetadata,
    RequestStatus,
    UrgencyLevel,
)
from .errors import ErrorCode, RequestError
from .validation import validate_request, validate_unit_ids

# Unit assignment is only meaningful once a request is approved and until it
# is closed out.
UNIT_ASSIGNMENT_STATUSES = frozenset({RequestStatus.APPROVED, RequestStatus.FULFILLED})


def is_terminal(status: RequestStatus) -> bool:
    return status.is_terminal


def create_request(
    request_id: int,
    hospital_id: str,
    blood_type: BloodType,
    quantity_ml: int,
    urgency: UrgencyLevel,
    required_by: int,
    delivery_address: str,
    metadata: RequestMetadata | Dict[str, Any],
    now: int,
) -> BloodRequest:
    """Build a new ``Pending`` request stamped at ``now`` and validate it."""
    if not isinstance(metadata, RequestMetadata):
        metadata = RequestMetadata(**metadata)
    request = BloodRequest(
        id=request_id,
        hospital_id=hospital_id,
        blood_type=blood_type,
        quantity_ml=quantity_ml,
        urgency=urgency,
        status=RequestStatus.PENDING,
        created_at=now,
        required_by=required_by,
        fulfilled_at=None,
        assigned_units=[],
        delivery_address=delivery_address,
        metadata=metadata,
    )
    validate_request(request, now)
    return request


def transition(request: BloodRequest, new_status: RequestStatus, now: int) -> BloodRequest:
    if not request.status.can_transition_to(new_status):
        raise RequestError(
            ErrorCode.INVALID_STATUS_TRANSITION,
            f"Cannot move request {request.id} from {request.status.value} to {new_status.value}",
        )
    update: Dict[str, Any] = {"status": new_status}
    if new_status == RequestStatus.FULFILLED:
        update["fulfilled_at"] = now
    return request.model_copy(update=update)


def assign_units(request: BloodRequest, unit_ids: Iterable[int]) -> BloodRequest:
    unit_ids = list(unit_ids)
    validate_unit_ids(unit_ids)
    if request.status not in UNIT_ASSIGNMENT_STATUSES:
        raise RequestError(
            ErrorCode.INVALID_REQUEST_STATE,
            f"Units can only be assigned to approved or fulfilled requests; request {request.id} is {request.status.value}",
        )
    return request.model_copy(update={"assigned_units": [*request.assigned_units, *unit_ids]})
