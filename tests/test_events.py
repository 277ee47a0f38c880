from __future__ import annotations

import asyncio

from lifebank.engine.events import EventPublisher
from lifebank.engine.service import RequestEngine
from lifebank.models.events import RequestCreated, RequestStatusChanged, UnitsAssigned
from lifebank.models.request import BloodType, RequestStatus, UrgencyLevel

from support import ADMIN, HOSPITAL, NOW, RecordingSink, create


def created_event(request_id: int) -> RequestCreated:
    return RequestCreated(
        id=request_id,
        hospital_id=HOSPITAL,
        blood_type=BloodType.A_POSITIVE,
        quantity_ml=450,
        urgency=UrgencyLevel.NORMAL,
        required_by=NOW + 3600,
        created_at=NOW,
    )


def test_event_names():
    assert RequestCreated.event == "request_created"
    assert RequestStatusChanged.event == "request_status_changed"
    assert UnitsAssigned.event == "units_assigned"


async def test_failing_sink_does_not_block_others():
    delivered = RecordingSink()

    async def broken(event):
        raise RuntimeError("consumer offline")

    publisher = EventPublisher([broken, delivered])
    await publisher.publish(created_event(1))
    assert delivered.names() == ["request_created"]


async def test_failing_sink_does_not_fail_mutation(store, clock):
    async def broken(event):
        raise ConnectionError("indexer unreachable")

    engine = RequestEngine(store, EventPublisher([broken]), clock=clock)
    await engine.initialize(ADMIN, ADMIN)
    request_id = await create(engine, hospital_id=ADMIN)
    await engine.update_request_status(ADMIN, request_id, RequestStatus.APPROVED)
    assert (await engine.get_request(request_id)).status == RequestStatus.APPROVED


async def test_event_log_history(event_log):
    for request_id in (1, 2, 2):
        await event_log.record(created_event(request_id))
    await event_log.record(
        RequestStatusChanged(id=2, old_status=RequestStatus.PENDING, new_status=RequestStatus.APPROVED, changed_at=NOW)
    )

    assert len(await event_log.history(limit=2)) == 2
    for_request = await event_log.history(limit=10, request_id=2)
    assert len(for_request) == 3
    assert {entry["event"] for entry in for_request} == {"request_created", "request_status_changed"}
    change = next(entry for entry in for_request if entry["event"] == "request_status_changed")
    assert change["payload"] == {"id": 2, "old_status": "Pending", "new_status": "Approved", "changed_at": NOW}


async def test_sinks_receive_events_in_commit_order(store, clock):
    delivered = []

    async def slow_indexer(event):
        if event.id == 1:
            await asyncio.sleep(0.01)
        delivered.append((event.event, event.id))

    engine = RequestEngine(store, EventPublisher([slow_indexer]), clock=clock)
    await engine.initialize(ADMIN, ADMIN)
    await asyncio.gather(create(engine, hospital_id=ADMIN), create(engine, hospital_id=ADMIN))
    assert delivered == [("request_created", 1), ("request_created", 2)]
