# valet/schemas/retrieval.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from valet.services.entities import RequestStatus


class RetrievalCreate(BaseModel):
    card_id: str
    is_priority: bool = False
    payment_method: Optional[str] = None   # cash | card | online | pay_at_counter
    amount: Optional[float] = Field(default=None, ge=0)   # omitted → current pricing
    tip_amount: float = Field(default=0.0, ge=0)


class AssignBody(BaseModel):
    driver_id: str


class AdvanceBody(BaseModel):
    from_status: RequestStatus


class CancelBody(BaseModel):
    reason: Optional[str] = None


class PaymentConfirm(BaseModel):
    payment_method: Optional[str] = None
    tip_amount: Optional[float] = Field(default=None, ge=0)


class PaymentMethodUpdate(BaseModel):
    payment_method: str


class CardVerify(BaseModel):
    card_id: Optional[str] = None    # omitted → read the tag in the reader field


class RetrievalOut(BaseModel):
    id: int
    vehicle_id: int
    card_id: str
    is_priority: bool
    payment_method: Optional[str]
    amount: float
    tip_amount: float
    status: RequestStatus
    assigned_driver_id: Optional[str]
    payment_confirmed: bool
    card_verified: bool
    requested_at: datetime
    assigned_at: Optional[datetime]
    status_updated_at: Optional[datetime]
    ready_at: Optional[datetime]
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    cancel_reason: Optional[str]
    status_message: Optional[str] = None
    progress: Optional[int] = None

    class Config:
        from_attributes = True
