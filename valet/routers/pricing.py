# valet/routers/pricing.py
"""Current retrieval prices, as quoted to customers."""

from fastapi import APIRouter, Depends
from valet.schemas.pricing import PricingOut
from valet.services.orchestrator import Orchestrator, get_orchestrator

router = APIRouter()


@router.get("/pricing", response_model=PricingOut, summary="Retrieval fees")
def get_pricing(core: Orchestrator = Depends(get_orchestrator)):
    pricing = core.pricing
    return PricingOut(
        base_fee=pricing.base_fee,
        priority_fee=pricing.priority_fee,
        priority_total=pricing.quote(True),
        currency=pricing.currency,
    )
