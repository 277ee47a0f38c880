from __future__ import annotations

from typing import List

from lifebank.engine.service import RequestEngine
from lifebank.models.events import RequestEvent
from lifebank.models.request import BloodType, UrgencyLevel

NOW = 1_700_000_000
ADMIN = "GADMIN"
HOSPITAL = "GHOSPITAL1"
OTHER_HOSPITAL = "GHOSPITAL2"
BLOOD_BANK = "GBANK1"
PATIENT = "GPATIENT1"


class RecordingSink:
    def __init__(self) -> None:
        self.events: List[RequestEvent] = []

    async def __call__(self, event: RequestEvent) -> None:
        self.events.append(event)

    def names(self) -> List[str]:
        return [event.event for event in self.events]


async def create(engine: RequestEngine, **overrides) -> int:
    fields = {
        "hospital_id": HOSPITAL,
        "blood_type": BloodType.O_POSITIVE,
        "quantity_ml": 450,
        "urgency": UrgencyLevel.URGENT,
        "required_by": engine.clock.now() + 3600,
        "delivery_address": "Main Bldg",
        "patient_id": PATIENT,
        "procedure": "Emergency Surgery",
        "notes": "Type O+ preferred",
    }
    fields.update(overrides)
    return await engine.create_request(**fields)
