# valet/schemas/card.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from valet.schemas.retrieval import RetrievalOut
from valet.schemas.vehicle import VehicleOut
from valet.services.entities import CardState


class CardOut(BaseModel):
    card_id: str
    state: CardState
    bound_vehicle_id: Optional[int]
    bound_at: Optional[datetime]
    released_at: Optional[datetime]

    class Config:
        from_attributes = True


class CardStatusOut(BaseModel):
    card: CardOut
    vehicle: Optional[VehicleOut]
    latest_request: Optional[RetrievalOut]
    safe_to_clear: bool

    class Config:
        from_attributes = True
