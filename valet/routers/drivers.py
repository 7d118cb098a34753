# valet/routers/drivers.py
"""Driver roster. Credentials live elsewhere; driver_id is an opaque key here."""

from fastapi import APIRouter, Depends
from valet.schemas.driver import DriverCreate, DriverOut, DriverStatusUpdate
from valet.services.orchestrator import Orchestrator, get_orchestrator

router = APIRouter()


@router.get("/drivers", response_model=list[DriverOut], summary="All drivers")
def list_drivers(core: Orchestrator = Depends(get_orchestrator)):
    return core.drivers()


@router.post("/drivers", response_model=DriverOut, summary="Register a driver")
def register_driver(body: DriverCreate, core: Orchestrator = Depends(get_orchestrator)):
    return core.register_driver(body.driver_id, body.name)


@router.put("/drivers/{driver_id}/status", response_model=DriverOut, summary="Go online / offline")
def set_driver_status(driver_id: str, body: DriverStatusUpdate, core: Orchestrator = Depends(get_orchestrator)):
    """Going offline is refused while the driver still holds a request."""
    return core.set_driver_online(driver_id, body.online)
