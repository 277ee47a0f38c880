from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..engine.service import RequestEngine
from ..ledger import get_engine
from ..models.principal import AuthorizationStatus, InitializeRequest, Principal
from .auth import get_current_principal

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/initialize", status_code=status.HTTP_204_NO_CONTENT)
async def initialize(
    payload: InitializeRequest,
    caller: Principal = Depends(get_current_principal),
    engine: RequestEngine = Depends(get_engine),
) -> None:
    await engine.initialize(caller.id, payload.admin)


@router.post("/hospitals/{hospital_id}", response_model=AuthorizationStatus)
async def authorize_hospital(
    hospital_id: str,
    caller: Principal = Depends(get_current_principal),
    engine: RequestEngine = Depends(get_engine),
) -> AuthorizationStatus:
    await engine.authorize_hospital(caller.id, hospital_id)
    return AuthorizationStatus(principal=hospital_id, authorized=True)


@router.delete("/hospitals/{hospital_id}", response_model=AuthorizationStatus)
async def revoke_hospital(
    hospital_id: str,
    caller: Principal = Depends(get_current_principal),
    engine: RequestEngine = Depends(get_engine),
) -> AuthorizationStatus:
    await engine.revoke_hospital(caller.id, hospital_id)
    return AuthorizationStatus(principal=hospital_id, authorized=await engine.is_hospital_authorized(hospital_id))


@router.get("/hospitals/{hospital_id}", response_model=AuthorizationStatus)
async def hospital_status(hospital_id: str, engine: RequestEngine = Depends(get_engine)) -> AuthorizationStatus:
    return AuthorizationStatus(principal=hospital_id, authorized=await engine.is_hospital_authorized(hospital_id))


@router.post("/blood-banks/{bank_id}", response_model=AuthorizationStatus)
async def authorize_blood_bank(
    bank_id: str,
    caller: Principal = Depends(get_current_principal),
    engine: RequestEngine = Depends(get_engine),
) -> AuthorizationStatus:
    await engine.authorize_blood_bank(caller.id, bank_id)
    return AuthorizationStatus(principal=bank_id, authorized=True)


@router.delete("/blood-banks/{bank_id}", response_model=AuthorizationStatus)
async def revoke_blood_bank(
    bank_id: str,
    caller: Principal = Depends(get_current_principal),
    engine: RequestEngine = Depends(get_engine),
) -> AuthorizationStatus:
    await engine.revoke_blood_bank(caller.id, bank_id)
    return AuthorizationStatus(principal=bank_id, authorized=await engine.is_blood_bank_authorized(bank_id))


@router.get("/blood-banks/{bank_id}", response_model=AuthorizationStatus)
async def blood_bank_status(bank_id: str, engine: RequestEngine = Depends(get_engine)) -> AuthorizationStatus:
    return AuthorizationStatus(principal=bank_id, authorized=await engine.is_blood_bank_authorized(bank_id))
