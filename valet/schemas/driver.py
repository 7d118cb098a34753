# valet/schemas/driver.py
from pydantic import BaseModel
from typing import Optional

from valet.services.entities import DriverStatus


class DriverCreate(BaseModel):
    driver_id: str
    name: Optional[str] = None


class DriverStatusUpdate(BaseModel):
    online: bool


class DriverOut(BaseModel):
    id: str
    name: Optional[str]
    status: DriverStatus
    active_request_id: Optional[int]

    class Config:
        from_attributes = True
