# valet/schemas/hook.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from valet.services.entities import HookState


class HookOut(BaseModel):
    number: int
    state: HookState
    bound_vehicle_id: Optional[int]
    assigned_at: Optional[datetime]

    class Config:
        from_attributes = True


class HookStatsOut(BaseModel):
    total: int
    available: int
    occupied: int
    occupancy_percent: Optional[float] = None

    class Config:
        from_attributes = True
