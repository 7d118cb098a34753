# valet/services/entities.py
"""
In-memory entities owned by the core components.
Statuses are str-valued enums so they go straight into JSON and DB string columns.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class HookState(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"


class CardState(str, Enum):
    UNBOUND = "unbound"
    BOUND = "bound"
    PENDING_CLEAR = "pending_clear"


class VehicleStatus(str, Enum):
    PARKED = "parked"
    RETRIEVAL_REQUESTED = "retrieval_requested"
    RETRIEVING = "retrieving"
    RETRIEVED = "retrieved"


class RequestStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    KEYS_PICKED = "keys_picked"
    WALKING = "walking"
    DRIVING = "driving"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DriverStatus(str, Enum):
    OFFLINE = "offline"
    AVAILABLE = "available"
    BUSY = "busy"


@dataclass
class Hook:
    number: int
    state: HookState = HookState.AVAILABLE
    bound_vehicle_id: Optional[int] = None
    assigned_at: Optional[datetime] = None


@dataclass
class Card:
    card_id: str
    state: CardState = CardState.UNBOUND
    bound_vehicle_id: Optional[int] = None
    bound_at: Optional[datetime] = None
    released_at: Optional[datetime] = None


@dataclass
class Vehicle:
    id: int
    card_id: str
    hook_number: int
    plate: str
    make: Optional[str]
    model: Optional[str]
    color: Optional[str]
    status: VehicleStatus
    check_in_time: datetime
    check_out_time: Optional[datetime] = None


@dataclass
class RetrievalRequest:
    id: int
    vehicle_id: int
    card_id: str
    is_priority: bool
    payment_method: Optional[str]
    amount: float
    requested_at: datetime
    sequence: int
    tip_amount: float = 0.0
    status: RequestStatus = RequestStatus.PENDING
    assigned_driver_id: Optional[str] = None
    payment_confirmed: bool = False
    card_verified: bool = False
    assigned_at: Optional[datetime] = None
    status_updated_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None


@dataclass
class Driver:
    id: str
    name: Optional[str] = None
    status: DriverStatus = DriverStatus.AVAILABLE
    active_request_id: Optional[int] = None


@dataclass(frozen=True)
class HookStats:
    total: int
    available: int
    occupied: int


@dataclass(frozen=True)
class CheckInResult:
    card_id: str
    hook_number: int
    vehicle_id: int
    plate: str
    created: bool = True     # False when a retried check-in returned the existing record


@dataclass(frozen=True)
class CardStatus:
    card: Card
    vehicle: Optional[Vehicle]
    latest_request: Optional[RetrievalRequest]
    safe_to_clear: bool
