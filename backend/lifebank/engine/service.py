"""Request lifecycle engine.

Every mutation runs the same pipeline: authorization decision, validation,
state-machine step, one atomic storage write, then event emission. Reads go
straight to the store. Mutations are serialised behind a single lock so each
one runs to completion before the next starts.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from ..memory.request_store import IndexField, PrincipalRole, RequestStore
from ..models.events import RequestCreated, RequestStatusChanged, UnitsAssigned
from ..models.request import BloodRequest, BloodType, RequestMetadata, RequestStatus, UrgencyLevel
from ..utils.clock import Clock, SystemClock
from . import state_machine
from .errors import ErrorCode, RequestError
from .events import EventPublisher
from .validation import validate_request_fields

DEFAULT_QUERY_LIMIT = 50
MAX_QUERY_LIMIT = 200


class RequestEngine:
    def __init__(
        self,
        store: RequestStore,
        publisher: EventPublisher | None = None,
        clock: Clock | None = None,
        default_limit: int = DEFAULT_QUERY_LIMIT,
        max_limit: int = MAX_QUERY_LIMIT,
    ) -> None:
        self.store = store
        self.publisher = publisher or EventPublisher()
        self.clock = clock or SystemClock()
        self.default_limit = default_limit
        self.max_limit = max_limit
        self._write_lock = asyncio.Lock()

    # ----- authorization -----

    async def _require_admin(self) -> str:
        admin = await self.store.get_admin()
        if admin is None:
            raise RequestError(ErrorCode.NOT_INITIALIZED)
        return admin

    async def _require_caller_is_admin(self, caller: str) -> str:
        admin = await self._require_admin()
        if caller != admin:
            raise RequestError(ErrorCode.UNAUTHORIZED)
        return admin

    async def is_hospital_authorized(self, hospital: str) -> bool:
        if hospital == await self.store.get_admin():
            return True
        return await self.store.has_role(PrincipalRole.HOSPITAL, hospital)

    async def is_blood_bank_authorized(self, bank: str) -> bool:
        if bank == await self.store.get_admin():
            return True
        return await self.store.has_role(PrincipalRole.BLOOD_BANK, bank)

    # ----- administration -----

    async def initialize(self, caller: str, admin: str) -> None:
        async with self._write_lock:
            if caller != admin:
                raise RequestError(ErrorCode.UNAUTHORIZED, "Only the admin principal can initialize the ledger")
            if await self.store.get_admin() is not None:
                raise RequestError(ErrorCode.ALREADY_INITIALIZED)
            await self.store.set_admin(admin)
        logger.info("Request ledger initialized with admin {}", admin)

    async def authorize_hospital(self, caller: str, hospital: str) -> None:
        async with self._write_lock:
            await self._require_caller_is_admin(caller)
            await self.store.grant(PrincipalRole.HOSPITAL, hospital)
        logger.info("Hospital {} authorized", hospital)

    async def revoke_hospital(self, caller: str, hospital: str) -> None:
        async with self._write_lock:
            await self._require_caller_is_admin(caller)
            await self.store.revoke(PrincipalRole.HOSPITAL, hospital)
        logger.info("Hospital {} revoked", hospital)

    async def authorize_blood_bank(self, caller: str, bank: str) -> None:
        async with self._write_lock:
            await self._require_caller_is_admin(caller)
            await self.store.grant(PrincipalRole.BLOOD_BANK, bank)
        logger.info("Blood bank {} authorized", bank)

    async def revoke_blood_bank(self, caller: str, bank: str) -> None:
        async with self._write_lock:
            await self._require_caller_is_admin(caller)
            await self.store.revoke(PrincipalRole.BLOOD_BANK, bank)
        logger.info("Blood bank {} revoked", bank)

    # ----- lifecycle -----

    async def create_request(
        self,
        hospital_id: str,
        blood_type: BloodType,
        quantity_ml: int,
        urgency: UrgencyLevel,
        required_by: int,
        delivery_address: str,
        patient_id: str,
        procedure: str,
        notes: str,
        extra_metadata: Optional[Dict[str, Any]] = None,
    ) -> int:
        async with self._write_lock:
            await self._require_admin()
            if not await self.is_hospital_authorized(hospital_id):
                raise RequestError(ErrorCode.NOT_AUTHORIZED_HOSPITAL)

            now = self.clock.now()
            # Validate before drawing an id so a rejected request consumes nothing.
            validate_request_fields(quantity_ml, now, required_by, delivery_address, now)
            metadata = RequestMetadata(
                **{**(extra_metadata or {}), "patient_id": patient_id, "procedure": procedure, "notes": notes}
            )
            request_id = await self.store.next_id()
            request = state_machine.create_request(
                request_id,
                hospital_id,
                blood_type,
                quantity_ml,
                urgency,
                required_by,
                delivery_address,
                metadata,
                now,
            )
            await self.store.put(request)

            logger.info(
                "Blood request {} created by {} ({} {}ml, {})",
                request.id,
                hospital_id,
                blood_type.value,
                quantity_ml,
                urgency.value,
            )
            await self.publisher.publish(
                RequestCreated(
                    id=request.id,
                    hospital_id=request.hospital_id,
                    blood_type=request.blood_type,
                    quantity_ml=request.quantity_ml,
                    urgency=request.urgency,
                    required_by=request.required_by,
                    created_at=request.created_at,
                )
            )
        return request.id

    async def _apply_transition(self, request: BloodRequest, new_status: RequestStatus, now: int) -> BloodRequest:
        updated = state_machine.transition(request, new_status, now)
        await self.store.put(updated)
        return updated

    async def _publish_status_change(self, old: BloodRequest, new: BloodRequest, now: int) -> None:
        logger.info("Blood request {} moved {} -> {}", new.id, old.status.value, new.status.value)
        await self.publisher.publish(
            RequestStatusChanged(id=new.id, old_status=old.status, new_status=new.status, changed_at=now)
        )

    async def update_request_status(self, caller: str, request_id: int, new_status: RequestStatus) -> BloodRequest:
        async with self._write_lock:
            await self._require_caller_is_admin(caller)
            request = await self.store.get(request_id)
            now = self.clock.now()
            updated = await self._apply_transition(request, new_status, now)
            await self._publish_status_change(request, updated, now)
        return updated

    async def approve_request(self, caller: str, request_id: int) -> BloodRequest:
        async with self._write_lock:
            await self._require_caller_is_admin(caller)
            request = await self.store.get(request_id)
            now = self.clock.now()
            if not request.status.can_transition_to(RequestStatus.APPROVED):
                raise RequestError(
                    ErrorCode.INVALID_STATUS_TRANSITION,
                    f"Cannot approve request {request_id} in status {request.status.value}",
                )
            if request.is_overdue(now):
                raise RequestError(ErrorCode.REQUEST_OVERDUE, f"Request {request_id} passed its required_by deadline")
            updated = await self._apply_transition(request, RequestStatus.APPROVED, now)
            await self._publish_status_change(request, updated, now)
        return updated

    async def cancel_request(self, caller: str, request_id: int) -> BloodRequest:
        async with self._write_lock:
            admin = await self._require_admin()
            request = await self.store.get(request_id)
            if caller not in (request.hospital_id, admin):
                raise RequestError(ErrorCode.UNAUTHORIZED, "Only the requesting hospital or the admin can cancel")
            now = self.clock.now()
            updated = await self._apply_transition(request, RequestStatus.CANCELLED, now)
            await self._publish_status_change(request, updated, now)
        return updated

    async def assign_blood_units(self, caller: str, request_id: int, unit_ids: Iterable[int]) -> BloodRequest:
        unit_ids = list(unit_ids)
        async with self._write_lock:
            await self._require_admin()
            if not await self.is_blood_bank_authorized(caller):
                raise RequestError(ErrorCode.NOT_AUTHORIZED_BLOOD_BANK)
            request = await self.store.get(request_id)
            updated = state_machine.assign_units(request, unit_ids)
            await self.store.put(updated)
            now = self.clock.now()

            logger.info("Assigned {} unit(s) to blood request {}", len(unit_ids), request_id)
            await self.publisher.publish(
                UnitsAssigned(id=request_id, assigned_units=updated.assigned_units, assigned_at=now)
            )
        return updated

    # ----- reads -----

    async def get_request(self, request_id: int) -> BloodRequest:
        return await self.store.get(request_id)

    async def get_hospital_requests(self, hospital: str) -> List[int]:
        return await self.store.bucket(IndexField.HOSPITAL, hospital)

    async def get_requests_by_status(self, status: RequestStatus) -> List[int]:
        return await self.store.bucket(IndexField.STATUS, status.value)

    async def get_requests_by_blood_type(self, blood_type: BloodType) -> List[int]:
        return await self.store.bucket(IndexField.BLOOD_TYPE, blood_type.value)

    async def get_requests_by_urgency(self, urgency: UrgencyLevel) -> List[int]:
        return await self.store.bucket(IndexField.URGENCY, urgency.value)

    def _page(self, limit: int | None, offset: int | None) -> tuple[int, int]:
        limit_value = self.default_limit if limit is None else limit
        return min(max(limit_value, 0), self.max_limit), max(offset or 0, 0)

    async def query_hospital_requests(
        self,
        hospital: str,
        status: RequestStatus | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> List[BloodRequest]:
        query: Dict[str, Any] = {IndexField.HOSPITAL.value: hospital}
        if status is not None:
            query[IndexField.STATUS.value] = status.value
        page_limit, page_offset = self._page(limit, offset)
        return await self.store.find_requests(query, page_offset, page_limit)

    async def query_pending_requests(self, limit: int | None = None, offset: int | None = None) -> List[BloodRequest]:
        pending = await self.store.find_requests({IndexField.STATUS.value: RequestStatus.PENDING.value})
        pending.sort(key=lambda request: (-request.urgency.priority_weight, request.id))
        page_limit, page_offset = self._page(limit, offset)
        return pending[page_offset : page_offset + page_limit]

    async def query_requests_by_date_range(
        self,
        start_time: int,
        end_time: int,
        status: RequestStatus | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> List[BloodRequest]:
        query: Dict[str, Any] = {"created_at": {"$gte": start_time, "$lte": end_time}}
        if status is not None:
            query[IndexField.STATUS.value] = status.value
        page_limit, page_offset = self._page(limit, offset)
        return await self.store.find_requests(query, page_offset, page_limit)

    async def query_requests_by_urgency_and_status(
        self,
        urgency: UrgencyLevel,
        status: RequestStatus | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> List[BloodRequest]:
        query: Dict[str, Any] = {IndexField.URGENCY.value: urgency.value}
        if status is not None:
            query[IndexField.STATUS.value] = status.value
        page_limit, page_offset = self._page(limit, offset)
        return await self.store.find_requests(query, page_offset, page_limit)

    async def sla_report(self, request_id: int) -> Dict[str, Any]:
        request = await self.store.get(request_id)
        now = self.clock.now()
        return {
            "id": request.id,
            "status": request.status,
            "now": now,
            "is_overdue": request.is_overdue(now),
            "time_remaining": request.time_remaining(now),
            "can_fulfill": request.can_fulfill(now),
            "sla_deadline": request.sla_deadline,
            "sla_breached": request.is_sla_breached(now),
        }
