# valet/routers/queue.py
"""Dispatch queue views. Clients poll these; nothing is pushed."""

from typing import Optional

from fastapi import APIRouter, Depends
from valet.routers.retrieval import to_out
from valet.schemas.retrieval import RetrievalOut
from valet.services.orchestrator import Orchestrator, get_orchestrator

router = APIRouter()


@router.get("/queue", summary="Pending and active requests in dispatch order")
def queue_snapshot(core: Orchestrator = Depends(get_orchestrator)):
    requests = [to_out(r) for r in core.queue_snapshot()]
    priority = [r for r in requests if r.is_priority]
    return {
        "total": len(requests),
        "priority_count": len(priority),
        "standard_count": len(requests) - len(priority),
        "requests": requests,
    }


@router.get("/queue/next", response_model=Optional[RetrievalOut], summary="Request a dispatcher should assign next")
def next_pending(core: Orchestrator = Depends(get_orchestrator)):
    request = core.next_pending()
    return to_out(request) if request else None


@router.get("/queue/handovers", response_model=list[RetrievalOut], summary="Cars waiting at the stand")
def pending_handovers(core: Orchestrator = Depends(get_orchestrator)):
    return [to_out(r) for r in core.pending_handovers()]
