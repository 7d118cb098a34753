# valet/services/retrieval_state.py
"""
Retrieval request state machine.

    pending --assign--> assigned --advance--> keys_picked --advance--> walking
        --advance--> driving --advance--> ready --complete--> completed

cancelled is reachable from every non-terminal state except ready: once the
car is at the stand the keys are about to change hands and payment may
already be collected.
"""

from typing import Dict, Tuple

from valet.services.entities import RequestStatus
from valet.services.errors import CannotCancelReadyRequest, InvalidTransition

# Steps a driver walks through with advance()
DRIVER_STEPS: Tuple[RequestStatus, ...] = (
    RequestStatus.ASSIGNED,
    RequestStatus.KEYS_PICKED,
    RequestStatus.WALKING,
    RequestStatus.DRIVING,
    RequestStatus.READY,
)

TERMINAL_STATUSES = frozenset({RequestStatus.COMPLETED, RequestStatus.CANCELLED})
ACTIVE_STATUSES = frozenset(s for s in RequestStatus if s not in TERMINAL_STATUSES)
CANCELLABLE_STATUSES = ACTIVE_STATUSES - {RequestStatus.READY}

# Customer tracking screen: message + progress percentage per status
STATUS_INFO: Dict[RequestStatus, Tuple[str, int]] = {
    RequestStatus.PENDING: ("Looking for a driver...", 10),
    RequestStatus.ASSIGNED: ("Driver assigned! Heading to get your keys.", 25),
    RequestStatus.KEYS_PICKED: ("Keys picked up! Walking to your car.", 40),
    RequestStatus.WALKING: ("Walking to your car.", 55),
    RequestStatus.DRIVING: ("Driving your car to the valet stand.", 75),
    RequestStatus.READY: ("Your car is ready! Please come to the valet stand.", 100),
    RequestStatus.COMPLETED: ("Completed. Thank you!", 100),
    RequestStatus.CANCELLED: ("Request cancelled.", 0),
}


def is_active(status: RequestStatus) -> bool:
    return status in ACTIVE_STATUSES


def next_status(status: RequestStatus) -> RequestStatus:
    """Status reached by one driver advance from `status`."""
    if status == RequestStatus.PENDING:
        raise InvalidTransition("Request must be assigned to a driver first", current=status.value)
    if status == RequestStatus.READY:
        raise InvalidTransition("Ready requests finish through complete()", current=status.value)
    if status in TERMINAL_STATUSES:
        raise InvalidTransition(f"Request already {status.value}", current=status.value)
    return DRIVER_STEPS[DRIVER_STEPS.index(status) + 1]


def check_cancellable(status: RequestStatus):
    if status == RequestStatus.READY:
        raise CannotCancelReadyRequest("Car is at the stand; finish the handover instead",
                                       current=status.value)
    if status not in CANCELLABLE_STATUSES:
        raise InvalidTransition(f"Request already {status.value}", current=status.value)


def status_info(status: RequestStatus) -> Tuple[str, int]:
    return STATUS_INFO.get(status, ("Processing...", 0))
