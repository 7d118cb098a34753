# valet/services/pricing_service.py
"""
Retrieval pricing. Flat base fee, plus a priority surcharge for customers
who pay to jump the regular queue.
"""

from dataclasses import dataclass

from valet.config import settings


@dataclass(frozen=True)
class Pricing:
    base_fee: float = 15.0
    priority_fee: float = 10.0
    currency: str = "USD"

    @classmethod
    def from_settings(cls) -> "Pricing":
        return cls(base_fee=settings.BASE_FEE, priority_fee=settings.PRIORITY_FEE,
                   currency=settings.CURRENCY)

    def quote(self, is_priority: bool) -> float:
        return round(self.base_fee + (self.priority_fee if is_priority else 0.0), 2)
