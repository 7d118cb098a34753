# valet/services/vehicle_ledger.py
"""
Vehicle Ledger: every checked-in vehicle from check-in to hand-back.

Status only moves one step forward at a time:
    parked → retrieval_requested → retrieving → retrieved
The single exception is a cancelled retrieval, which puts the vehicle back
to parked from retrieval_requested or retrieving.
"""

import re
import threading
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional

from valet.services.entities import Vehicle, VehicleStatus
from valet.services.errors import CardAlreadyBound, InvalidTransition, VehicleNotFound
from valet.utils.clock import utcnow
from valet.utils.logger import get_logger

logger = get_logger(__name__)

_STATUS_ORDER = [
    VehicleStatus.PARKED,
    VehicleStatus.RETRIEVAL_REQUESTED,
    VehicleStatus.RETRIEVING,
    VehicleStatus.RETRIEVED,
]
_CANCELLABLE = {VehicleStatus.RETRIEVAL_REQUESTED, VehicleStatus.RETRIEVING}

PLATE_RE = re.compile(r"^[A-Z0-9-]{2,15}$")


def normalize_plate(plate: str) -> str:
    """Upper-case and strip whitespace; raises ValueError if nothing plate-like is left."""
    p = (plate or "").strip().replace(" ", "").upper()
    if not PLATE_RE.fullmatch(p):
        raise ValueError(f"Invalid plate '{plate}'. Use 2-15 characters A-Z, 0-9 or '-'.")
    return p


def is_allowed(current: VehicleStatus, target: VehicleStatus, cancelled: bool = False) -> bool:
    if cancelled:
        return current in _CANCELLABLE and target == VehicleStatus.PARKED
    i = _STATUS_ORDER.index(current)
    return i + 1 < len(_STATUS_ORDER) and _STATUS_ORDER[i + 1] == target


class VehicleLedger:
    def __init__(self, clock: Callable = utcnow):
        self.lock = threading.RLock()
        self._clock = clock
        self._vehicles: Dict[int, Vehicle] = {}
        self._last_id = 0

    def load(self, vehicles: Iterable[Vehicle]):
        with self.lock:
            for v in vehicles:
                self._vehicles[v.id] = v
                self._last_id = max(self._last_id, v.id)

    def reserve_id(self) -> int:
        with self.lock:
            self._last_id += 1
            return self._last_id

    def create(self, vehicle_id: int, card_id: str, hook_number: int, plate: str,
               make: Optional[str] = None, model: Optional[str] = None,
               color: Optional[str] = None) -> Vehicle:
        with self.lock:
            holder = self._active_for_card(card_id)
            if holder is not None:
                raise CardAlreadyBound(
                    f"Card {card_id} already belongs to vehicle {holder.id} ({holder.plate})",
                    current=replace(holder),
                )
            vehicle = Vehicle(
                id=vehicle_id,
                card_id=card_id,
                hook_number=hook_number,
                plate=plate,
                make=make,
                model=model,
                color=color,
                status=VehicleStatus.PARKED,
                check_in_time=self._clock(),
            )
            self._vehicles[vehicle_id] = vehicle
            self._last_id = max(self._last_id, vehicle_id)
            logger.info(f"[LEDGER] Vehicle {vehicle_id} {plate} parked on hook {hook_number} with {card_id}")
            return vehicle

    def _active_for_card(self, card_id: str) -> Optional[Vehicle]:
        for v in self._vehicles.values():
            if v.card_id == card_id and v.status != VehicleStatus.RETRIEVED:
                return v
        return None

    def get(self, vehicle_id: int) -> Vehicle:
        vehicle = self._vehicles.get(vehicle_id)
        if vehicle is None:
            raise VehicleNotFound(f"Vehicle {vehicle_id} not found")
        return vehicle

    def get_by_card_id(self, card_id: str) -> Vehicle:
        """The vehicle currently holding the card, else the last one that did."""
        with self.lock:
            active = self._active_for_card(card_id)
            if active is not None:
                return active
            history = [v for v in self._vehicles.values() if v.card_id == card_id]
            if not history:
                raise VehicleNotFound(f"No vehicle checked in with card {card_id}")
            return max(history, key=lambda v: v.id)

    def status_of(self, vehicle_id: int) -> Optional[VehicleStatus]:
        with self.lock:
            vehicle = self._vehicles.get(vehicle_id)
            return vehicle.status if vehicle else None

    def mark_status(self, vehicle_id: int, status: VehicleStatus, cancelled: bool = False) -> Vehicle:
        with self.lock:
            vehicle = self.get(vehicle_id)
            if not is_allowed(vehicle.status, status, cancelled):
                raise InvalidTransition(
                    f"Vehicle {vehicle_id}: {vehicle.status.value} → {status.value} not allowed",
                    current=vehicle.status.value,
                )
            logger.info(f"[LEDGER] Vehicle {vehicle_id}: {vehicle.status.value} → {status.value}")
            vehicle.status = status
            if status == VehicleStatus.RETRIEVED:
                vehicle.check_out_time = self._clock()
            return vehicle

    def remove(self, vehicle_id: int):
        """Drop a record created during a check-in that is being rolled back."""
        with self.lock:
            self._vehicles.pop(vehicle_id, None)

    def list_by_status(self, status: Optional[VehicleStatus] = None) -> List[Vehicle]:
        with self.lock:
            return [replace(v) for v in sorted(self._vehicles.values(), key=lambda v: v.id)
                    if status is None or v.status == status]
