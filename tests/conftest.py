from __future__ import annotations

import pytest
from mongomock_motor import AsyncMongoMockClient

from lifebank.engine.events import EventPublisher
from lifebank.engine.service import RequestEngine
from lifebank.memory.event_log import RequestEventLog
from lifebank.memory.request_store import RequestStore
from lifebank.utils.clock import FixedClock

from support import ADMIN, BLOOD_BANK, HOSPITAL, NOW, RecordingSink


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def database():
    return AsyncMongoMockClient().get_database("lifebank_test")


@pytest.fixture
def store(database) -> RequestStore:
    return RequestStore(database)


@pytest.fixture
def event_log(database) -> RequestEventLog:
    return RequestEventLog(database)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def engine(store, sink, clock) -> RequestEngine:
    return RequestEngine(store, EventPublisher([sink]), clock=clock)


@pytest.fixture
async def ledger(engine) -> RequestEngine:
    """Engine with an admin, one authorized hospital and one blood bank."""
    await engine.initialize(ADMIN, ADMIN)
    await engine.authorize_hospital(ADMIN, HOSPITAL)
    await engine.authorize_blood_bank(ADMIN, BLOOD_BANK)
    return engine
