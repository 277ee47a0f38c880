from __future__ import annotations

from typing import Any, Dict

from ..models.request import BloodRequest


def request_document(request: BloodRequest) -> Dict[str, Any]:
    return {
        "_id": request.id,
        "hospital_id": request.hospital_id,
        "blood_type": request.blood_type.value,
        "quantity_ml": request.quantity_ml,
        "urgency": request.urgency.value,
        "status": request.status.value,
        "created_at": request.created_at,
        "required_by": request.required_by,
        "fulfilled_at": request.fulfilled_at,
        "assigned_units": list(request.assigned_units),
        "delivery_address": request.delivery_address,
        "metadata": request.metadata.model_dump(),
    }


def request_from_document(document: Dict[str, Any]) -> BloodRequest:
    fields = {key: value for key, value in document.items() if key != "_id"}
    return BloodRequest(id=document["_id"], **fields)


async def deserialize_requests(cursor) -> list[BloodRequest]:
    requests = []
    async for document in cursor:
        requests.append(request_from_document(document))
    return requests
