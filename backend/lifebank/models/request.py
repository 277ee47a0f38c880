from __future__ import annotations

from enum import Enum
from typing import Annotated, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BloodType(str, Enum):
    A_POSITIVE = "A+"
    A_NEGATIVE = "A-"
    B_POSITIVE = "B+"
    B_NEGATIVE = "B-"
    AB_POSITIVE = "AB+"
    AB_NEGATIVE = "AB-"
    O_POSITIVE = "O+"
    O_NEGATIVE = "O-"


class UrgencyLevel(str, Enum):
    CRITICAL = "Critical"
    URGENT = "Urgent"
    NORMAL = "Normal"

    @property
    def max_fulfillment_seconds(self) -> int:
        return MAX_FULFILLMENT_SECONDS[self]

    @property
    def priority_weight(self) -> int:
        return PRIORITY_WEIGHTS[self]

    def is_higher_than(self, other: "UrgencyLevel") -> bool:
        return self.priority_weight > other.priority_weight


class RequestStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    FULFILLED = "Fulfilled"
    COMPLETED = "Completed"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"

    @property
    def allowed_transitions(self) -> FrozenSet["RequestStatus"]:
        return TRANSITIONS[self]

    def can_transition_to(self, new_status: "RequestStatus") -> bool:
        return new_status in TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return not TRANSITIONS[self]

    @property
    def is_active(self) -> bool:
        return not self.is_terminal


MAX_FULFILLMENT_SECONDS: Dict[UrgencyLevel, int] = {
    UrgencyLevel.CRITICAL: 3600,
    UrgencyLevel.URGENT: 21600,
    UrgencyLevel.NORMAL: 86400,
}

PRIORITY_WEIGHTS: Dict[UrgencyLevel, int] = {
    UrgencyLevel.CRITICAL: 3,
    UrgencyLevel.URGENT: 2,
    UrgencyLevel.NORMAL: 1,
}

# Directed edges of the request lifecycle. A status with no edges is terminal.
TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.PENDING: frozenset(
        {RequestStatus.APPROVED, RequestStatus.REJECTED, RequestStatus.CANCELLED}
    ),
    RequestStatus.APPROVED: frozenset({RequestStatus.FULFILLED, RequestStatus.CANCELLED}),
    RequestStatus.FULFILLED: frozenset({RequestStatus.COMPLETED}),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.REJECTED: frozenset(),
    RequestStatus.CANCELLED: frozenset(),
}

FULFILLED_STATUSES = frozenset({RequestStatus.FULFILLED, RequestStatus.COMPLETED})

# Unit ids are stored as signed 64-bit BSON integers.
MAX_UNIT_ID = 2**63 - 1
UnitId = Annotated[int, Field(ge=0, le=MAX_UNIT_ID)]


class RequestMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    patient_id: str
    procedure: str = ""
    notes: str = ""


class BloodRequest(BaseModel):
    """A hospital's request for blood, as stored in the ledger.

    Only ``status``, ``fulfilled_at`` and ``assigned_units`` ever change, and
    only through the lifecycle functions in ``engine.state_machine``.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    hospital_id: str
    blood_type: BloodType
    quantity_ml: int
    urgency: UrgencyLevel
    status: RequestStatus = RequestStatus.PENDING
    created_at: int
    required_by: int
    fulfilled_at: Optional[int] = None
    assigned_units: List[int] = Field(default_factory=list)
    delivery_address: str
    metadata: RequestMetadata

    def is_overdue(self, now: int) -> bool:
        return now > self.required_by

    def time_remaining(self, now: int) -> int:
        return self.required_by - now

    def can_fulfill(self, now: int) -> bool:
        return self.status == RequestStatus.APPROVED and not self.is_overdue(now)

    def has_assigned_units(self) -> bool:
        return len(self.assigned_units) > 0

    @property
    def sla_deadline(self) -> int:
        return self.created_at + self.urgency.max_fulfillment_seconds

    def is_sla_breached(self, now: int) -> bool:
        # Fulfilment stops the SLA clock.
        if self.fulfilled_at is not None:
            return self.fulfilled_at > self.sla_deadline
        return self.status.is_active and now > self.sla_deadline


class BloodRequestCreate(BaseModel):
    blood_type: BloodType
    quantity_ml: int
    urgency: UrgencyLevel
    required_by: int
    delivery_address: str
    patient_id: str
    procedure: str = ""
    notes: str = ""
    extra_metadata: Dict[str, str] = Field(default_factory=dict)


class BloodRequestCreated(BaseModel):
    id: int


class StatusUpdate(BaseModel):
    status: RequestStatus


class UnitAssignment(BaseModel):
    unit_ids: List[UnitId]


class RequestIdList(BaseModel):
    ids: List[int]


class BloodRequestList(BaseModel):
    requests: List[BloodRequest]


class SlaReport(BaseModel):
    id: int
    status: RequestStatus
    now: int
    is_overdue: bool
    time_remaining: int
    can_fulfill: bool
    sla_deadline: int
    sla_breached: bool
