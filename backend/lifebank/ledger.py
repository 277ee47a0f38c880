from __future__ import annotations

from .database import db, settings
from .engine.events import EventPublisher
from .engine.service import RequestEngine
from .memory.event_log import RequestEventLog
from .memory.request_store import RequestStore

request_store = RequestStore(db)
event_log = RequestEventLog(db)
publisher = EventPublisher([event_log.record])
engine = RequestEngine(
    request_store,
    publisher,
    default_limit=settings.default_query_limit,
    max_limit=settings.max_query_limit,
)


def get_engine() -> RequestEngine:
    return engine


def get_event_log() -> RequestEventLog:
    return event_log
