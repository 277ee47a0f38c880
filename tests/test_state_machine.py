from __future__ import annotations

import itertools

import pytest

from lifebank.engine import state_machine
from lifebank.engine.errors import ErrorCode, RequestError
from lifebank.models.request import (
    MAX_FULFILLMENT_SECONDS,
    PRIORITY_WEIGHTS,
    TRANSITIONS,
    BloodRequest,
    BloodType,
    RequestMetadata,
    RequestStatus,
    UrgencyLevel,
)

from support import HOSPITAL, NOW, PATIENT

EDGES = {
    (RequestStatus.PENDING, RequestStatus.APPROVED),
    (RequestStatus.PENDING, RequestStatus.REJECTED),
    (RequestStatus.PENDING, RequestStatus.CANCELLED),
    (RequestStatus.APPROVED, RequestStatus.FULFILLED),
    (RequestStatus.APPROVED, RequestStatus.CANCELLED),
    (RequestStatus.FULFILLED, RequestStatus.COMPLETED),
}
TERMINAL = {RequestStatus.COMPLETED, RequestStatus.REJECTED, RequestStatus.CANCELLED}
ALL_PAIRS = list(itertools.product(RequestStatus, RequestStatus))


def make_request(status: RequestStatus = RequestStatus.PENDING, **overrides) -> BloodRequest:
    fields = dict(
        id=1,
        hospital_id=HOSPITAL,
        blood_type=BloodType.A_NEGATIVE,
        quantity_ml=450,
        urgency=UrgencyLevel.NORMAL,
        status=status,
        created_at=NOW,
        required_by=NOW + 3600,
        fulfilled_at=NOW + 60 if status in (RequestStatus.FULFILLED, RequestStatus.COMPLETED) else None,
        delivery_address="123 Hospital St",
        metadata=RequestMetadata(patient_id=PATIENT, procedure="Hip replacement", notes=""),
    )
    fields.update(overrides)
    return BloodRequest(**fields)


class TestCreate:
    def test_creates_pending_request_stamped_now(self):
        request = state_machine.create_request(
            7,
            HOSPITAL,
            BloodType.O_NEGATIVE,
            900,
            UrgencyLevel.CRITICAL,
            NOW + 1800,
            "Trauma Bay",
            {"patient_id": PATIENT, "procedure": "Trauma", "notes": "", "ward": "ICU"},
            NOW,
        )
        assert request.id == 7
        assert request.status == RequestStatus.PENDING
        assert request.created_at == NOW
        assert request.fulfilled_at is None
        assert request.assigned_units == []
        assert request.metadata.model_dump()["ward"] == "ICU"

    def test_rejects_invalid_fields(self):
        with pytest.raises(RequestError) as excinfo:
            state_machine.create_request(
                1, HOSPITAL, BloodType.O_NEGATIVE, 49, UrgencyLevel.NORMAL, NOW + 60, "x", {"patient_id": PATIENT}, NOW
            )
        assert excinfo.value.code == ErrorCode.INVALID_QUANTITY


def test_lookup_tables_cover_every_member():
    assert set(TRANSITIONS) == set(RequestStatus)
    assert set(MAX_FULFILLMENT_SECONDS) == set(UrgencyLevel)
    assert set(PRIORITY_WEIGHTS) == set(UrgencyLevel)


@pytest.mark.parametrize("current,target", sorted(EDGES))
def test_every_table_edge_succeeds(current, target):
    updated = state_machine.transition(make_request(current), target, NOW + 120)
    assert updated.status == target


@pytest.mark.parametrize("current,target", [pair for pair in ALL_PAIRS if pair not in EDGES])
def test_every_other_pair_is_rejected(current, target):
    request = make_request(current)
    with pytest.raises(RequestError) as excinfo:
        state_machine.transition(request, target, NOW + 120)
    assert excinfo.value.code == ErrorCode.INVALID_STATUS_TRANSITION


@pytest.mark.parametrize("status", list(RequestStatus))
def test_terminal_lookup(status):
    assert state_machine.is_terminal(status) is (status in TERMINAL)
    assert status.is_active is (status not in TERMINAL)


def test_transition_returns_copy():
    original = make_request(RequestStatus.PENDING)
    updated = state_machine.transition(original, RequestStatus.APPROVED, NOW)
    assert original.status == RequestStatus.PENDING
    assert updated is not original


class TestFulfilledAt:
    def test_unset_through_approval(self):
        approved = state_machine.transition(make_request(), RequestStatus.APPROVED, NOW + 10)
        assert approved.fulfilled_at is None

    def test_set_on_entering_fulfilled(self):
        approved = state_machine.transition(make_request(), RequestStatus.APPROVED, NOW + 10)
        fulfilled = state_machine.transition(approved, RequestStatus.FULFILLED, NOW + 20)
        assert fulfilled.fulfilled_at == NOW + 20

    def test_kept_on_completion(self):
        fulfilled = make_request(RequestStatus.FULFILLED, fulfilled_at=NOW + 20)
        completed = state_machine.transition(fulfilled, RequestStatus.COMPLETED, NOW + 500)
        assert completed.fulfilled_at == NOW + 20


class TestAssignUnits:
    @pytest.mark.parametrize("status", [RequestStatus.APPROVED, RequestStatus.FULFILLED])
    def test_appends_in_order(self, status):
        request = make_request(status, assigned_units=[1])
        updated = state_machine.assign_units(request, [5, 3])
        assert updated.assigned_units == [1, 5, 3]
        assert request.assigned_units == [1]

    @pytest.mark.parametrize(
        "status",
        [RequestStatus.PENDING, RequestStatus.COMPLETED, RequestStatus.REJECTED, RequestStatus.CANCELLED],
    )
    def test_rejected_outside_approved_or_fulfilled(self, status):
        with pytest.raises(RequestError) as excinfo:
            state_machine.assign_units(make_request(status), [5])
        assert excinfo.value.code == ErrorCode.INVALID_REQUEST_STATE

    def test_empty_list_is_invalid_input(self):
        with pytest.raises(RequestError) as excinfo:
            state_machine.assign_units(make_request(RequestStatus.APPROVED), [])
        assert excinfo.value.code == ErrorCode.INVALID_INPUT


class TestDeadlineQueries:
    def test_overdue_only_after_required_by(self):
        request = make_request()
        assert not request.is_overdue(request.required_by - 1)
        assert not request.is_overdue(request.required_by)
        assert request.is_overdue(request.required_by + 1)

    def test_time_remaining_can_go_negative(self):
        request = make_request()
        assert request.time_remaining(NOW + 1800) == 1800
        assert request.time_remaining(request.required_by) == 0
        assert request.time_remaining(request.required_by + 600) == -600

    def test_can_fulfill_requires_approved_and_on_time(self):
        approved = make_request(RequestStatus.APPROVED)
        assert approved.can_fulfill(NOW)
        assert not approved.can_fulfill(approved.required_by + 1)
        assert not make_request(RequestStatus.PENDING).can_fulfill(NOW)

    def test_sla_deadline_follows_urgency(self):
        assert make_request(urgency=UrgencyLevel.CRITICAL).sla_deadline == NOW + 3600
        assert make_request(urgency=UrgencyLevel.URGENT).sla_deadline == NOW + 21600
        assert make_request(urgency=UrgencyLevel.NORMAL).sla_deadline == NOW + 86400

    def test_sla_breach(self):
        critical = make_request(urgency=UrgencyLevel.CRITICAL)
        assert not critical.is_sla_breached(NOW + 3600)
        assert critical.is_sla_breached(NOW + 3601)
        fulfilled_in_time = make_request(RequestStatus.FULFILLED, urgency=UrgencyLevel.CRITICAL, fulfilled_at=NOW + 100)
        assert not fulfilled_in_time.is_sla_breached(NOW + 99999)
        cancelled = make_request(RequestStatus.CANCELLED, urgency=UrgencyLevel.CRITICAL)
        assert not cancelled.is_sla_breached(NOW + 99999)


def test_urgency_priorities():
    assert UrgencyLevel.CRITICAL.priority_weight == 3
    assert UrgencyLevel.URGENT.priority_weight == 2
    assert UrgencyLevel.NORMAL.priority_weight == 1
    assert UrgencyLevel.CRITICAL.is_higher_than(UrgencyLevel.URGENT)
    assert not UrgencyLevel.NORMAL.is_higher_than(UrgencyLevel.CRITICAL)
    assert UrgencyLevel.CRITICAL.max_fulfillment_seconds == 3600
