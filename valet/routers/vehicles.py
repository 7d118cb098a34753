# valet/routers/vehicles.py
"""Checked-in vehicles, filterable by status."""

from typing import Optional

from fastapi import APIRouter, Depends
from valet.schemas.vehicle import VehicleOut
from valet.services.entities import VehicleStatus
from valet.services.orchestrator import Orchestrator, get_orchestrator

router = APIRouter()


@router.get("/vehicles", response_model=list[VehicleOut], summary="List vehicles")
def list_vehicles(status: Optional[VehicleStatus] = None, core: Orchestrator = Depends(get_orchestrator)):
    return core.vehicles(status)


@router.get("/vehicles/{vehicle_id}", response_model=VehicleOut, summary="One vehicle")
def get_vehicle(vehicle_id: int, core: Orchestrator = Depends(get_orchestrator)):
    return core.get_vehicle(vehicle_id)
