# valet/services/dispatch_queue.py
"""
Dispatch Queue: ordering, assignment and lifecycle of retrieval requests.

Ordering: priority requests first (FIFO among them), then regular requests
(FIFO), ties broken by requested_at and then by submission sequence.

Assignment is the point of mutual exclusion. Two dispatchers may both see the
same request at the head of next_pending(); the first assign() wins and the
second gets RequestNotPending.

The queue also owns the drivers' busy/available flag: a driver is busy iff
it holds an active request, and only this module changes either side.
"""

import threading
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional

from valet.services import retrieval_state
from valet.services.entities import Driver, DriverStatus, RequestStatus, RetrievalRequest
from valet.services.errors import (
    CardMismatch,
    CardNotVerified,
    DriverBusy,
    DriverNotFound,
    DriverUnavailable,
    DuplicateActiveRequest,
    InvalidTransition,
    NotReady,
    PaymentNotConfirmed,
    RequestNotFound,
    RequestNotPending,
    StatusMismatch,
)
from valet.utils.clock import utcnow
from valet.utils.logger import get_logger

logger = get_logger(__name__)


def queue_order(request: RetrievalRequest):
    return (not request.is_priority, request.requested_at, request.sequence)


class DispatchQueue:
    def __init__(self, clock: Callable = utcnow):
        self.lock = threading.RLock()
        self._clock = clock
        self._requests: Dict[int, RetrievalRequest] = {}
        self._drivers: Dict[str, Driver] = {}
        self._last_id = 0
        self._sequence = 0

    def load(self, requests: Iterable[RetrievalRequest], drivers: Iterable[Driver]):
        with self.lock:
            for r in requests:
                self._requests[r.id] = r
                self._last_id = max(self._last_id, r.id)
                self._sequence = max(self._sequence, r.sequence)
            for d in drivers:
                self._drivers[d.id] = d

    # ── Requests ─────────────────────────────────────────────────────────────
    def get(self, request_id: int) -> RetrievalRequest:
        request = self._requests.get(request_id)
        if request is None:
            raise RequestNotFound(f"Request {request_id} not found")
        return request

    def active_for_vehicle(self, vehicle_id: int) -> Optional[RetrievalRequest]:
        with self.lock:
            for r in self._requests.values():
                if r.vehicle_id == vehicle_id and retrieval_state.is_active(r.status):
                    return r
            return None

    def latest_for_card(self, card_id: str) -> Optional[RetrievalRequest]:
        with self.lock:
            matches = [r for r in self._requests.values() if r.card_id == card_id]
            return max(matches, key=lambda r: r.sequence) if matches else None

    def enqueue(self, vehicle_id: int, card_id: str, is_priority: bool,
                payment_method: Optional[str], amount: float,
                tip_amount: float = 0.0) -> RetrievalRequest:
        with self.lock:
            existing = self.active_for_vehicle(vehicle_id)
            if existing is not None:
                raise DuplicateActiveRequest(
                    f"Vehicle {vehicle_id} already has request {existing.id} ({existing.status.value})",
                    current=replace(existing),
                )
            self._last_id += 1
            self._sequence += 1
            request = RetrievalRequest(
                id=self._last_id,
                vehicle_id=vehicle_id,
                card_id=card_id,
                is_priority=bool(is_priority),
                payment_method=payment_method,
                amount=amount,
                tip_amount=tip_amount or 0.0,
                requested_at=self._clock(),
                sequence=self._sequence,
            )
            self._requests[request.id] = request
            logger.info(
                f"[QUEUE] Request {request.id} for vehicle {vehicle_id} "
                f"({'PRIORITY' if request.is_priority else 'STANDARD'}) amount={amount}"
            )
            return request

    def next_pending(self) -> Optional[RetrievalRequest]:
        with self.lock:
            pending = [r for r in self._requests.values() if r.status == RequestStatus.PENDING]
            if not pending:
                return None
            return replace(min(pending, key=queue_order))

    def snapshot(self) -> List[RetrievalRequest]:
        """All non-terminal requests, in dispatch order."""
        with self.lock:
            active = [r for r in self._requests.values() if retrieval_state.is_active(r.status)]
            return [replace(r) for r in sorted(active, key=queue_order)]

    def pending_handovers(self) -> List[RetrievalRequest]:
        with self.lock:
            ready = [r for r in self._requests.values() if r.status == RequestStatus.READY]
            return [replace(r) for r in sorted(ready, key=lambda r: (r.ready_at, r.sequence))]

    # ── Assignment ───────────────────────────────────────────────────────────
    def assign(self, request_id: int, driver_id: str) -> RetrievalRequest:
        with self.lock:
            request = self.get(request_id)
            if request.status != RequestStatus.PENDING:
                raise RequestNotPending(
                    f"Request {request_id} is {request.status.value}",
                    current=replace(request),
                )
            driver = self._driver_for_assignment(driver_id)
            now = self._clock()
            request.status = RequestStatus.ASSIGNED
            request.assigned_driver_id = driver.id
            request.assigned_at = now
            request.status_updated_at = now
            driver.status = DriverStatus.BUSY
            driver.active_request_id = request.id
            logger.info(f"[QUEUE] Request {request_id} assigned to driver {driver_id}")
            return request

    def claim_next(self, driver_id: str) -> Optional[RetrievalRequest]:
        """Hand the head of the queue to a driver in one step. None when the queue is empty."""
        with self.lock:
            self._driver_for_assignment(driver_id)
            head = self.next_pending()
            if head is None:
                return None
            return self.assign(head.id, driver_id)

    def requeue(self, request_id: int) -> RetrievalRequest:
        """Driver gives an assigned task back before picking up the keys."""
        with self.lock:
            request = self.get(request_id)
            if request.status != RequestStatus.ASSIGNED:
                raise InvalidTransition(
                    f"Only assigned requests can go back to the queue (is {request.status.value})",
                    current=request.status.value,
                )
            self._free_driver(request)
            request.status = RequestStatus.PENDING
            request.assigned_at = None
            request.status_updated_at = self._clock()
            logger.info(f"[QUEUE] Request {request_id} returned to queue")
            return request

    def _driver_for_assignment(self, driver_id: str) -> Driver:
        driver = self._drivers.get(driver_id)
        if driver is None:
            # Identity is owned by the auth system; first sighting registers the driver
            driver = Driver(id=driver_id)
            self._drivers[driver_id] = driver
        if driver.active_request_id is not None:
            raise DriverBusy(
                f"Driver {driver_id} is on request {driver.active_request_id}",
                current=replace(driver),
            )
        if driver.status == DriverStatus.OFFLINE:
            raise DriverUnavailable(f"Driver {driver_id} is offline", current=replace(driver))
        return driver

    def _free_driver(self, request: RetrievalRequest):
        driver = self._drivers.get(request.assigned_driver_id) if request.assigned_driver_id else None
        request.assigned_driver_id = None
        if driver is not None and driver.active_request_id == request.id:
            driver.active_request_id = None
            driver.status = DriverStatus.AVAILABLE

    # ── Driver steps ─────────────────────────────────────────────────────────
    def advance(self, request_id: int, expected: RequestStatus) -> RetrievalRequest:
        with self.lock:
            request = self.get(request_id)
            if request.status != expected:
                raise StatusMismatch(
                    f"Request {request_id} is {request.status.value}, not {expected.value}",
                    current=request.status.value,
                )
            target = retrieval_state.next_status(request.status)
            now = self._clock()
            request.status = target
            request.status_updated_at = now
            if target == RequestStatus.READY:
                request.ready_at = now
            logger.info(f"[QUEUE] Request {request_id}: {expected.value} → {target.value}")
            return request

    # ── Handover ─────────────────────────────────────────────────────────────
    def confirm_payment(self, request_id: int, payment_method: Optional[str] = None,
                        tip_amount: Optional[float] = None) -> RetrievalRequest:
        with self.lock:
            request = self.get(request_id)
            if not retrieval_state.is_active(request.status):
                raise InvalidTransition(f"Request {request_id} already {request.status.value}",
                                        current=request.status.value)
            if payment_method:
                request.payment_method = payment_method
            if tip_amount is not None:
                request.tip_amount = tip_amount
            request.payment_confirmed = True
            logger.info(f"[QUEUE] Payment confirmed for request {request_id} ({request.payment_method})")
            return request

    def set_payment_method(self, request_id: int, payment_method: str) -> RetrievalRequest:
        with self.lock:
            request = self.get(request_id)
            if request.payment_confirmed:
                raise InvalidTransition(f"Payment for request {request_id} already collected",
                                        current=request.payment_method)
            request.payment_method = payment_method
            return request

    def verify_card(self, request_id: int, scanned_card_id: str) -> RetrievalRequest:
        with self.lock:
            request = self.get(request_id)
            if scanned_card_id != request.card_id:
                request.card_verified = False
                logger.warning(
                    f"[QUEUE] Card mismatch on request {request_id}: scanned {scanned_card_id}, "
                    f"expected {request.card_id}"
                )
                raise CardMismatch(f"Scanned card {scanned_card_id} does not belong to request {request_id}")
            request.card_verified = True
            return request

    def check_completable(self, request_id: int) -> RetrievalRequest:
        with self.lock:
            request = self.get(request_id)
            if request.status != RequestStatus.READY:
                raise NotReady(f"Request {request_id} is {request.status.value}", current=request.status.value)
            if not request.payment_confirmed:
                raise PaymentNotConfirmed(f"Payment for request {request_id} not collected")
            if not request.card_verified:
                raise CardNotVerified(f"Card for request {request_id} not scanned at handover")
            return request

    def complete(self, request_id: int) -> RetrievalRequest:
        with self.lock:
            request = self.check_completable(request_id)
            self._free_driver_keep_history(request)
            request.status = RequestStatus.COMPLETED
            request.completed_at = self._clock()
            request.status_updated_at = request.completed_at
            logger.info(f"[QUEUE] Request {request_id} completed")
            return request

    def cancel(self, request_id: int, reason: Optional[str] = None) -> RetrievalRequest:
        with self.lock:
            request = self.get(request_id)
            retrieval_state.check_cancellable(request.status)
            self._free_driver_keep_history(request)
            request.status = RequestStatus.CANCELLED
            request.cancelled_at = self._clock()
            request.cancel_reason = reason
            request.status_updated_at = request.cancelled_at
            logger.info(f"[QUEUE] Request {request_id} cancelled ({reason or 'no reason'})")
            return request

    def _free_driver_keep_history(self, request: RetrievalRequest):
        """Release the driver but leave assigned_driver_id on the finished request."""
        driver_id = request.assigned_driver_id
        self._free_driver(request)
        request.assigned_driver_id = driver_id

    # ── Drivers ──────────────────────────────────────────────────────────────
    def register_driver(self, driver_id: str, name: Optional[str] = None) -> Driver:
        with self.lock:
            driver = self._drivers.get(driver_id)
            if driver is None:
                driver = Driver(id=driver_id, name=name)
                self._drivers[driver_id] = driver
                logger.info(f"[QUEUE] Driver {driver_id} registered")
            elif name:
                driver.name = name
            return driver

    def set_driver_online(self, driver_id: str, online: bool) -> Driver:
        with self.lock:
            driver = self.get_driver(driver_id)
            if online:
                if driver.status == DriverStatus.OFFLINE:
                    driver.status = DriverStatus.AVAILABLE
            else:
                if driver.active_request_id is not None:
                    raise DriverBusy(
                        f"Driver {driver_id} must finish request {driver.active_request_id} first",
                        current=replace(driver),
                    )
                driver.status = DriverStatus.OFFLINE
            logger.info(f"[QUEUE] Driver {driver_id} is {driver.status.value}")
            return driver

    def get_driver(self, driver_id: str) -> Driver:
        driver = self._drivers.get(driver_id)
        if driver is None:
            raise DriverNotFound(f"Driver {driver_id} not found")
        return driver

    def drivers(self) -> List[Driver]:
        with self.lock:
            return [replace(d) for d in sorted(self._drivers.values(), key=lambda d: d.id)]
