# valet/routers/cards.py
"""NFC card lookups and the safety-checked physical clear."""

from fastapi import APIRouter, Depends
from valet.schemas.card import CardOut, CardStatusOut
from valet.services.orchestrator import Orchestrator, get_orchestrator

router = APIRouter()


@router.get("/cards/{card_id}", response_model=CardStatusOut, summary="Card, its vehicle and latest request")
def card_status(card_id: str, core: Orchestrator = Depends(get_orchestrator)):
    return core.card_status(card_id)


@router.get("/cards/{card_id}/safe-to-clear", summary="May this card be erased?")
def safe_to_clear(card_id: str, core: Orchestrator = Depends(get_orchestrator)):
    return {"card_id": card_id, "safe_to_clear": core.card_safe_to_clear(card_id)}


@router.post("/cards/{card_id}/clear", response_model=CardOut, summary="Erase the card in the reader")
def clear_card(card_id: str, core: Orchestrator = Depends(get_orchestrator)):
    """Refused with UnsafeToRelease while the card's vehicle is still on site."""
    return core.clear_card(card_id)
