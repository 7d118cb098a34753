# valet/routers/hooks.py
"""Key hook board, read only. Hooks change state through check-in and handover."""

from fastapi import APIRouter, Depends
from valet.schemas.hook import HookOut, HookStatsOut
from valet.services.orchestrator import Orchestrator, get_orchestrator

router = APIRouter()


@router.get("/hooks", response_model=list[HookOut], summary="Every hook and what hangs on it")
def list_hooks(core: Orchestrator = Depends(get_orchestrator)):
    return core.hooks()


@router.get("/hooks/stats", response_model=HookStatsOut, summary="Free vs occupied hooks")
def hook_stats(core: Orchestrator = Depends(get_orchestrator)):
    stats = core.hook_stats()
    return HookStatsOut(
        total=stats.total,
        available=stats.available,
        occupied=stats.occupied,
        occupancy_percent=round(stats.occupied / stats.total * 100, 1) if stats.total else 0,
    )


@router.get("/hooks/next", summary="Hook the next check-in will get")
def next_hook(core: Orchestrator = Depends(get_orchestrator)):
    number = core.next_hook()
    return {"hook_number": number, "available": number is not None}
