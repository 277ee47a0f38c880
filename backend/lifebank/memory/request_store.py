from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from loguru import logger
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument

from ..engine.errors import ErrorCode, RequestError
from ..models.request import BloodRequest
from ..schemas.request import deserialize_requests, request_document, request_from_document

REQUEST_COUNTER_ID = "blood_request"
ADMIN_CONFIG_ID = "admin"


class IndexField(str, Enum):
    HOSPITAL = "hospital_id"
    BLOOD_TYPE = "blood_type"
    STATUS = "status"
    URGENCY = "urgency"


class PrincipalRole(str, Enum):
    HOSPITAL = "hospital"
    BLOOD_BANK = "blood_bank"


class RequestStore:
    """Durable request ledger backed by MongoDB.

    Requests live in one collection keyed by their numeric id. The secondary
    indexes by hospital, blood type, status and urgency are MongoDB indexes on
    that collection, so a single-document ``replace_one`` rewrites the record
    and every index bucket it belongs to in one atomic step: the id leaves the
    old bucket and joins the new one together with the field change.
    """

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self.requests: AsyncIOMotorCollection = database.get_collection("blood_requests")
        self.counters: AsyncIOMotorCollection = database.get_collection("counters")
        self.config: AsyncIOMotorCollection = database.get_collection("config")
        self.principals: AsyncIOMotorCollection = database.get_collection("principals")

    async def ensure_indexes(self) -> None:
        for field in IndexField:
            await self.requests.create_index([(field.value, ASCENDING), ("_id", ASCENDING)], name=f"{field.value}_idx")
        await self.requests.create_index([("created_at", ASCENDING)], name="created_at_idx")
        logger.info("Request indexes ensured on {} fields", len(IndexField))

    # ----- id counter -----

    async def next_id(self) -> int:
        counter = await self.counters.find_one_and_update(
            {"_id": REQUEST_COUNTER_ID},
            {"$inc": {"value": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return int(counter["value"])

    async def current_id(self) -> int:
        counter = await self.counters.find_one({"_id": REQUEST_COUNTER_ID})
        return int(counter["value"]) if counter else 0

    # ----- primary records -----

    async def put(self, request: BloodRequest) -> None:
        await self.requests.replace_one({"_id": request.id}, request_document(request), upsert=True)

    async def find(self, request_id: int) -> Optional[BloodRequest]:
        document = await self.requests.find_one({"_id": request_id})
        if not document:
            return None
        return request_from_document(document)

    async def get(self, request_id: int) -> BloodRequest:
        request = await self.find(request_id)
        if request is None:
            raise RequestError(ErrorCode.NOT_FOUND, f"Blood request {request_id} not found")
        return request

    async def find_requests(
        self,
        query: Mapping[str, Any],
        offset: int = 0,
        limit: int | None = None,
    ) -> List[BloodRequest]:
        cursor = self.requests.find(dict(query)).sort("_id", ASCENDING)
        if offset:
            cursor = cursor.skip(offset)
        if limit is not None:
            if limit <= 0:
                return []
            cursor = cursor.limit(limit)
        return await deserialize_requests(cursor)

    async def all_requests(self) -> List[BloodRequest]:
        return await self.find_requests({})

    # ----- secondary indexes -----

    async def bucket(self, field: IndexField, value: str) -> List[int]:
        cursor = self.requests.find({field.value: value}, {"_id": 1}).sort("_id", ASCENDING)
        return [document["_id"] async for document in cursor]

    async def index_snapshot(self) -> Dict[str, Dict[str, List[int]]]:
        snapshot: Dict[str, Dict[str, List[int]]] = {}
        for field in IndexField:
            values = await self.requests.distinct(field.value)
            snapshot[field.value] = {value: await self.bucket(field, value) for value in sorted(values)}
        return snapshot

    # ----- admin singleton -----

    async def get_admin(self) -> Optional[str]:
        document = await self.config.find_one({"_id": ADMIN_CONFIG_ID})
        return document["principal"] if document else None

    async def set_admin(self, admin: str) -> None:
        await self.config.replace_one({"_id": ADMIN_CONFIG_ID}, {"_id": ADMIN_CONFIG_ID, "principal": admin}, upsert=True)

    # ----- principal registries -----

    @staticmethod
    def _principal_key(role: PrincipalRole, principal: str) -> str:
        return f"{role.value}:{principal}"

    async def grant(self, role: PrincipalRole, principal: str) -> None:
        key = self._principal_key(role, principal)
        await self.principals.replace_one(
            {"_id": key},
            {"_id": key, "role": role.value, "principal": principal},
            upsert=True,
        )

    async def revoke(self, role: PrincipalRole, principal: str) -> None:
        await self.principals.delete_one({"_id": self._principal_key(role, principal)})

    async def has_role(self, role: PrincipalRole, principal: str) -> bool:
        document = await self.principals.find_one({"_id": self._principal_key(role, principal)})
        return document is not None
