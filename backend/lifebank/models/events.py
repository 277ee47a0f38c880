from __future__ import annotations

from typing import ClassVar, List

from pydantic import BaseModel

from .request import BloodType, RequestStatus, UrgencyLevel


class RequestEvent(BaseModel):
    event: ClassVar[str]

    id: int


class RequestCreated(RequestEvent):
    event: ClassVar[str] = "request_created"

    hospital_id: str
    blood_type: BloodType
    quantity_ml: int
    urgency: UrgencyLevel
    required_by: int
    created_at: int


class RequestStatusChanged(RequestEvent):
    event: ClassVar[str] = "request_status_changed"

    old_status: RequestStatus
    new_status: RequestStatus
    changed_at: int


class UnitsAssigned(RequestEvent):
    """Carries the full unit list of the request after the assignment."""

    event: ClassVar[str] = "units_assigned"

    assigned_units: List[int]
    assigned_at: int
