# valet/schemas/vehicle.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from valet.services.entities import VehicleStatus


class VehicleOut(BaseModel):
    id: int
    card_id: str
    hook_number: int
    plate: str
    make: Optional[str]
    model: Optional[str]
    color: Optional[str]
    status: VehicleStatus
    check_in_time: datetime
    check_out_time: Optional[datetime]

    class Config:
        from_attributes = True
