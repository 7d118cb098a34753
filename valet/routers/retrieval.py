# valet/routers/retrieval.py
"""
Retrieval requests: creation, driver steps and the handover at the stand.
Conflicts and guard failures come back as typed errors (see main.py handler).
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from valet.schemas.retrieval import (
    AdvanceBody,
    AssignBody,
    CancelBody,
    CardVerify,
    PaymentConfirm,
    PaymentMethodUpdate,
    RetrievalCreate,
    RetrievalOut,
)
from valet.services.entities import RetrievalRequest
from valet.services.orchestrator import Orchestrator, get_orchestrator
from valet.services.retrieval_state import status_info

router = APIRouter()


def to_out(request: RetrievalRequest) -> RetrievalOut:
    message, progress = status_info(request.status)
    return RetrievalOut(**asdict(request), status_message=message, progress=progress)


@router.post("/retrieval", response_model=RetrievalOut, status_code=201, summary="Request a vehicle back")
def request_retrieval(body: RetrievalCreate, core: Orchestrator = Depends(get_orchestrator)):
    request = core.request_retrieval(body.card_id, body.is_priority, body.payment_method,
                                     body.amount, body.tip_amount)
    return to_out(request)


@router.get("/retrieval/{request_id}", response_model=RetrievalOut, summary="Request status for tracking")
def get_request(request_id: int, core: Orchestrator = Depends(get_orchestrator)):
    return to_out(core.get_request(request_id))


@router.post("/retrieval/{request_id}/assign", response_model=RetrievalOut, summary="Dispatcher assigns a driver")
def assign(request_id: int, body: AssignBody, core: Orchestrator = Depends(get_orchestrator)):
    return to_out(core.assign(request_id, body.driver_id))


@router.post("/retrieval/{request_id}/requeue", response_model=RetrievalOut,
             summary="Driver hands an assigned task back to the queue")
def requeue(request_id: int, core: Orchestrator = Depends(get_orchestrator)):
    return to_out(core.requeue(request_id))


@router.post("/retrieval/{request_id}/advance", response_model=RetrievalOut, summary="Driver moves to the next step")
def advance(request_id: int, body: AdvanceBody, core: Orchestrator = Depends(get_orchestrator)):
    """from_status must equal the current status; stale clients get StatusMismatch."""
    return to_out(core.advance(request_id, body.from_status))


@router.post("/retrieval/{request_id}/payment", response_model=RetrievalOut, summary="Payment collected")
def confirm_payment(request_id: int, body: PaymentConfirm, core: Orchestrator = Depends(get_orchestrator)):
    return to_out(core.confirm_payment(request_id, body.payment_method, body.tip_amount))


@router.put("/retrieval/{request_id}/payment-method", response_model=RetrievalOut,
            summary="Change how the customer will pay")
def set_payment_method(request_id: int, body: PaymentMethodUpdate,
                       core: Orchestrator = Depends(get_orchestrator)):
    return to_out(core.set_payment_method(request_id, body.payment_method))


@router.post("/retrieval/{request_id}/verify-card", response_model=RetrievalOut,
             summary="Scan the customer's card at the stand")
def verify_card(request_id: int, body: CardVerify, core: Orchestrator = Depends(get_orchestrator)):
    return to_out(core.verify_card(request_id, body.card_id))


@router.post("/retrieval/{request_id}/complete", response_model=RetrievalOut, summary="Hand over keys")
def complete(request_id: int, core: Orchestrator = Depends(get_orchestrator)):
    """Frees the hook and the card. Needs status ready, payment confirmed and card verified."""
    return to_out(core.complete(request_id))


@router.post("/retrieval/{request_id}/cancel", response_model=RetrievalOut, summary="Cancel a request")
def cancel(request_id: int, body: CancelBody, core: Orchestrator = Depends(get_orchestrator)):
    return to_out(core.cancel(request_id, body.reason))


@router.post("/drivers/{driver_id}/claim", response_model=RetrievalOut,
             summary="Driver takes the next request in line")
def claim_next(driver_id: str, core: Orchestrator = Depends(get_orchestrator)):
    request = core.claim_next(driver_id)
    if request is None:
        raise HTTPException(status_code=404, detail="Queue is empty")
    return to_out(request)
