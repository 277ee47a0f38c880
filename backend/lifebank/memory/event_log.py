from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import DESCENDING

from ..models.events import RequestEvent


class RequestEventLog:
    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self.collection: AsyncIOMotorCollection = database.get_collection("request_events")

    async def record(self, event: RequestEvent) -> None:
        document = {
            "event": event.event,
            "request_id": event.id,
            "payload": event.model_dump(mode="json"),
            "timestamp": datetime.now(timezone.utc),
        }
        await self.collection.insert_one(document)

    async def history(self, limit: int = 20, request_id: int | None = None) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {}
        if request_id is not None:
            query["request_id"] = request_id
        cursor = self.collection.find(query).sort([("timestamp", DESCENDING), ("_id", DESCENDING)]).limit(limit)
        return [doc async for doc in cursor]
