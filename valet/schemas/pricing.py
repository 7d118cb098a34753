# valet/schemas/pricing.py
from pydantic import BaseModel


class PricingOut(BaseModel):
    base_fee: float
    priority_fee: float
    priority_total: float
    currency: str
