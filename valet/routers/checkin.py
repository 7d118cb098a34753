# valet/routers/checkin.py
"""Check-in: secure a hook and a card for an arriving vehicle."""

from fastapi import APIRouter, Depends, HTTPException, Response, status
from valet.schemas.checkin import CheckInCreate, CheckInOut
from valet.services.orchestrator import Orchestrator, get_orchestrator

router = APIRouter()


@router.post("/checkin", response_model=CheckInOut, status_code=status.HTTP_201_CREATED,
             summary="Check in a vehicle")
def check_in(body: CheckInCreate, response: Response, core: Orchestrator = Depends(get_orchestrator)):
    """
    Allocates the lowest free hook and binds a card to the vehicle.
    Repeating the call with the same card and plate returns the existing record with 200.
    """
    try:
        result = core.check_in(body.plate, body.make, body.model, body.color, body.card_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not result.created:
        response.status_code = status.HTTP_200_OK
    return result
