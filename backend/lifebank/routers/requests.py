from __future__ import annotations

from typing import Dict, List

from fastapi import APIRouter, Depends, Query, status

from ..engine.service import RequestEngine
from ..ledger import get_engine
from ..models.principal import Principal
from ..models.request import (
    BloodRequest,
    BloodRequestCreate,
    BloodRequestCreated,
    BloodRequestList,
    BloodType,
    RequestIdList,
    RequestStatus,
    SlaReport,
    StatusUpdate,
    UnitAssignment,
    UrgencyLevel,
)
from .auth import get_current_principal

router = APIRouter(prefix="/requests", tags=["requests"])


@router.post("/", response_model=BloodRequestCreated, status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: BloodRequestCreate,
    hospital: Principal = Depends(get_current_principal),
    engine: RequestEngine = Depends(get_engine),
) -> BloodRequestCreated:
    request_id = await engine.create_request(
        hospital.id,
        payload.blood_type,
        payload.quantity_ml,
        payload.urgency,
        payload.required_by,
        payload.delivery_address,
        payload.patient_id,
        payload.procedure,
        payload.notes,
        extra_metadata=payload.extra_metadata,
    )
    return BloodRequestCreated(id=request_id)


@router.get("/pending", response_model=BloodRequestList)
async def pending_requests(
    limit: int | None = Query(default=None, ge=0),
    offset: int | None = Query(default=None, ge=0),
    engine: RequestEngine = Depends(get_engine),
) -> BloodRequestList:
    return BloodRequestList(requests=await engine.query_pending_requests(limit, offset))


@router.get("/range", response_model=BloodRequestList)
async def requests_by_date_range(
    start_time: int,
    end_time: int,
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    limit: int | None = Query(default=None, ge=0),
    offset: int | None = Query(default=None, ge=0),
    engine: RequestEngine = Depends(get_engine),
) -> BloodRequestList:
    requests = await engine.query_requests_by_date_range(start_time, end_time, status_filter, limit, offset)
    return BloodRequestList(requests=requests)


@router.get("/index")
async def index_snapshot(engine: RequestEngine = Depends(get_engine)) -> Dict[str, Dict[str, List[int]]]:
    return await engine.store.index_snapshot()


@router.get("/by-status/{request_status}", response_model=RequestIdList)
async def requests_by_status(request_status: RequestStatus, engine: RequestEngine = Depends(get_engine)) -> RequestIdList:
    return RequestIdList(ids=await engine.get_requests_by_status(request_status))


@router.get("/by-blood-type/{blood_type}", response_model=RequestIdList)
async def requests_by_blood_type(blood_type: BloodType, engine: RequestEngine = Depends(get_engine)) -> RequestIdList:
    return RequestIdList(ids=await engine.get_requests_by_blood_type(blood_type))


@router.get("/by-urgency/{urgency}", response_model=RequestIdList)
async def requests_by_urgency(urgency: UrgencyLevel, engine: RequestEngine = Depends(get_engine)) -> RequestIdList:
    return RequestIdList(ids=await engine.get_requests_by_urgency(urgency))


@router.get("/by-urgency/{urgency}/requests", response_model=BloodRequestList)
async def query_by_urgency(
    urgency: UrgencyLevel,
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    limit: int | None = Query(default=None, ge=0),
    offset: int | None = Query(default=None, ge=0),
    engine: RequestEngine = Depends(get_engine),
) -> BloodRequestList:
    requests = await engine.query_requests_by_urgency_and_status(urgency, status_filter, limit, offset)
    return BloodRequestList(requests=requests)


@router.get("/hospital/{hospital_id}/ids", response_model=RequestIdList)
async def hospital_request_ids(hospital_id: str, engine: RequestEngine = Depends(get_engine)) -> RequestIdList:
    return RequestIdList(ids=await engine.get_hospital_requests(hospital_id))


@router.get("/hospital/{hospital_id}", response_model=BloodRequestList)
async def hospital_requests(
    hospital_id: str,
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    limit: int | None = Query(default=None, ge=0),
    offset: int | None = Query(default=None, ge=0),
    engine: RequestEngine = Depends(get_engine),
) -> BloodRequestList:
    requests = await engine.query_hospital_requests(hospital_id, status_filter, limit, offset)
    return BloodRequestList(requests=requests)


@router.get("/{request_id}", response_model=BloodRequest)
async def get_request(request_id: int, engine: RequestEngine = Depends(get_engine)) -> BloodRequest:
    return await engine.get_request(request_id)


@router.get("/{request_id}/sla", response_model=SlaReport)
async def request_sla(request_id: int, engine: RequestEngine = Depends(get_engine)) -> SlaReport:
    return SlaReport(**await engine.sla_report(request_id))


@router.put("/{request_id}/status", response_model=BloodRequest)
async def update_request_status(
    request_id: int,
    payload: StatusUpdate,
    caller: Principal = Depends(get_current_principal),
    engine: RequestEngine = Depends(get_engine),
) -> BloodRequest:
    return await engine.update_request_status(caller.id, request_id, payload.status)


@router.post("/{request_id}/approve", response_model=BloodRequest)
async def approve_request(
    request_id: int,
    caller: Principal = Depends(get_current_principal),
    engine: RequestEngine = Depends(get_engine),
) -> BloodRequest:
    return await engine.approve_request(caller.id, request_id)


@router.post("/{request_id}/cancel", response_model=BloodRequest)
async def cancel_request(
    request_id: int,
    caller: Principal = Depends(get_current_principal),
    engine: RequestEngine = Depends(get_engine),
) -> BloodRequest:
    return await engine.cancel_request(caller.id, request_id)


@router.post("/{request_id}/units", response_model=BloodRequest)
async def assign_blood_units(
    request_id: int,
    payload: UnitAssignment,
    caller: Principal = Depends(get_current_principal),
    engine: RequestEngine = Depends(get_engine),
) -> BloodRequest:
    return await engine.assign_blood_units(caller.id, request_id, payload.unit_ids)
