# valet/schemas/checkin.py
from pydantic import BaseModel
from typing import Optional


class CheckInCreate(BaseModel):
    plate: str
    make: Optional[str] = None
    model: Optional[str] = None
    color: Optional[str] = None
    card_id: Optional[str] = None    # id read off a reusable tag; omitted → new card issued


class CheckInOut(BaseModel):
    card_id: str
    hook_number: int
    vehicle_id: int
    plate: str
    created: bool

    class Config:
        from_attributes = True
