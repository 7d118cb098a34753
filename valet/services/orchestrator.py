# valet/services/orchestrator.py
"""
Orchestration Core: the façade the routers call for every valet use case.

Each use case takes the component locks it needs in one fixed order
    HookPool → TokenRegistry → VehicleLedger → DispatchQueue
then persists every entity it touched before letting go. Check-in undoes
its own partial work (hook, card binding, vehicle record) when a later step
fails and re-raises the original error.
"""

from contextlib import ExitStack, contextmanager
from dataclasses import replace
from functools import lru_cache
from typing import Callable, List, Optional, Union

from valet.config import settings
from valet.services.dispatch_queue import DispatchQueue
from valet.services.entities import (
    CardStatus,
    CheckInResult,
    Driver,
    Hook,
    HookState,
    HookStats,
    RequestStatus,
    RetrievalRequest,
    Vehicle,
    VehicleStatus,
)
from valet.services.errors import (
    CardAlreadyBound,
    CardMismatch,
    DuplicateActiveRequest,
    InvalidTransition,
    ValetError,
    VehicleNotFound,
)
from valet.services.hook_pool import HookPool
from valet.services.nfc_device import NfcDevice, SimulatedNfcDevice, device_from_settings
from valet.services.pricing_service import Pricing
from valet.services.repository import InMemoryRepository, Repository, SqlRepository
from valet.services.token_registry import TokenRegistry
from valet.services.vehicle_ledger import VehicleLedger, is_allowed, normalize_plate
from valet.utils.clock import utcnow
from valet.utils.logger import get_logger

logger = get_logger(__name__)


def parse_request_status(value: Union[str, RequestStatus]) -> RequestStatus:
    try:
        return RequestStatus(value)
    except ValueError:
        raise InvalidTransition(f"Unknown request status '{value}'") from None


class Orchestrator:
    def __init__(self, hook_count: int = 50, repository: Optional[Repository] = None,
                 nfc: Optional[NfcDevice] = None, pricing: Optional[Pricing] = None,
                 card_prefix: str = "CARD", clock: Callable = utcnow):
        self.repository = repository or InMemoryRepository()
        self.nfc = nfc or SimulatedNfcDevice()
        self.pricing = pricing or Pricing()
        self.hook_pool = HookPool(hook_count, clock=clock)
        self.ledger = VehicleLedger(clock=clock)
        self.registry = TokenRegistry(self.ledger.status_of, prefix=card_prefix, clock=clock)
        self.queue = DispatchQueue(clock=clock)

    @contextmanager
    def _locked(self, *components):
        order = [self.hook_pool, self.registry, self.ledger, self.queue]
        with ExitStack() as stack:
            for component in order:
                if component in components:
                    stack.enter_context(component.lock)
            yield

    def _persist(self, *entities):
        self.repository.save(*entities)

    def restore(self):
        """Load persisted state. Seeds the hook board on first start."""
        state = self.repository.load()
        with self._locked(self.hook_pool, self.registry, self.ledger, self.queue):
            self.hook_pool.load(state.hooks)
            self.ledger.load(state.vehicles)
            self.registry.load(state.cards)
            self.queue.load(state.requests, state.drivers)
            if not state.hooks:
                self._persist(*self.hook_pool.snapshot())
                logger.info(f"[CORE] Initialized {self.hook_pool.stats().total} hooks")
        stats = self.hook_pool.stats()
        logger.info(
            f"[CORE] Restored {len(state.vehicles)} vehicles, {len(state.requests)} requests, "
            f"hooks {stats.occupied}/{stats.total} occupied"
        )

    # ── Check-in ─────────────────────────────────────────────────────────────
    def check_in(self, plate: str, make: Optional[str] = None, model: Optional[str] = None,
                 color: Optional[str] = None, card_id: Optional[str] = None) -> CheckInResult:
        """
        Park a vehicle: hook, then card binding, then the ledger record.
        card_id is the id read off a reusable tag; without one a new id is
        issued and written to the tag in the field.
        """
        plate = normalize_plate(plate)
        with self._locked(self.hook_pool, self.registry, self.ledger):
            if card_id:
                existing = self._existing_check_in(card_id, plate)
                if existing is not None:
                    return existing

            hook_number = self.hook_pool.allocate()
            issued = not card_id
            vehicle_id = None
            try:
                if issued:
                    card_id = self.registry.next_card_id()
                vehicle_id = self.ledger.reserve_id()
                card = self.registry.bind(card_id, vehicle_id)
                if issued:
                    self.nfc.write(card_id)
                vehicle = self.ledger.create(vehicle_id, card_id, hook_number, plate, make, model, color)
                self.hook_pool.bind_vehicle(hook_number, vehicle.id)
                self._persist(self.hook_pool.get(hook_number), card, vehicle)
            except Exception as e:
                logger.warning(f"[CORE] Check-in of {plate} failed ({type(e).__name__}); rolling back hook {hook_number}")
                self._undo_check_in(hook_number, card_id, vehicle_id)
                raise

        logger.info(f"[CORE] Checked in {plate}: hook {hook_number}, card {card_id}")
        return CheckInResult(card_id=card_id, hook_number=hook_number, vehicle_id=vehicle.id, plate=plate)

    def _existing_check_in(self, card_id: str, plate: str) -> Optional[CheckInResult]:
        card = self.registry.find(card_id)
        if card is None or card.bound_vehicle_id is None:
            return None
        status = self.ledger.status_of(card.bound_vehicle_id)
        if status is None or status == VehicleStatus.RETRIEVED:
            return None
        vehicle = self.ledger.get(card.bound_vehicle_id)
        if vehicle.plate == plate and status == VehicleStatus.PARKED:
            logger.info(f"[CORE] Repeated check-in of {plate} with {card_id}, returning existing record")
            return CheckInResult(card_id=card_id, hook_number=vehicle.hook_number,
                                 vehicle_id=vehicle.id, plate=plate, created=False)
        raise CardAlreadyBound(f"Card {card_id} is bound to {vehicle.plate}", current=replace(vehicle))

    def _undo_check_in(self, hook_number: int, card_id: Optional[str], vehicle_id: Optional[int]):
        try:
            if vehicle_id is not None:
                self.ledger.remove(vehicle_id)
                if card_id:
                    self.registry.discard_binding(card_id, vehicle_id)
            self.hook_pool.release(hook_number)
        except ValetError as e:
            logger.error(f"[CORE] Rollback of hook {hook_number} / {card_id} incomplete: {e.kind}: {e.detail}")

    # ── Retrieval requests ───────────────────────────────────────────────────
    def request_retrieval(self, card_id: str, is_priority: bool = False,
                          payment_method: Optional[str] = None, amount: Optional[float] = None,
                          tip_amount: float = 0.0) -> RetrievalRequest:
        with self._locked(self.ledger, self.queue):
            vehicle = self.ledger.get_by_card_id(card_id)
            existing = self.queue.active_for_vehicle(vehicle.id)
            if existing is not None:
                raise DuplicateActiveRequest(
                    f"Vehicle {vehicle.plate} already requested (request {existing.id}, {existing.status.value})",
                    current=replace(existing),
                )
            if vehicle.status != VehicleStatus.PARKED:
                raise InvalidTransition(f"Vehicle {vehicle.plate} is {vehicle.status.value}",
                                        current=vehicle.status.value)
            if amount is None:
                amount = self.pricing.quote(is_priority)
            request = self.queue.enqueue(vehicle.id, card_id, is_priority, payment_method, amount, tip_amount)
            self.ledger.mark_status(vehicle.id, VehicleStatus.RETRIEVAL_REQUESTED)
            self._persist(vehicle, request)
            return replace(request)

    def queue_snapshot(self) -> List[RetrievalRequest]:
        return self.queue.snapshot()

    def next_pending(self) -> Optional[RetrievalRequest]:
        return self.queue.next_pending()

    def pending_handovers(self) -> List[RetrievalRequest]:
        return self.queue.pending_handovers()

    def get_request(self, request_id: int) -> RetrievalRequest:
        with self.queue.lock:
            return replace(self.queue.get(request_id))

    # ── Dispatch ─────────────────────────────────────────────────────────────
    def assign(self, request_id: int, driver_id: str) -> RetrievalRequest:
        with self._locked(self.queue):
            request = self.queue.assign(request_id, driver_id)
            self._persist(request, self.queue.get_driver(driver_id))
            return replace(request)

    def claim_next(self, driver_id: str) -> Optional[RetrievalRequest]:
        with self._locked(self.queue):
            request = self.queue.claim_next(driver_id)
            if request is None:
                return None
            self._persist(request, self.queue.get_driver(driver_id))
            return replace(request)

    def requeue(self, request_id: int) -> RetrievalRequest:
        with self._locked(self.queue):
            driver_id = self.queue.get(request_id).assigned_driver_id
            request = self.queue.requeue(request_id)
            self._persist(request, self._driver_or_none(driver_id))
            return replace(request)

    def advance(self, request_id: int, from_status: Union[str, RequestStatus]) -> RetrievalRequest:
        expected = parse_request_status(from_status)
        with self._locked(self.ledger, self.queue):
            request = self.queue.advance(request_id, expected)
            vehicle = None
            if request.status == RequestStatus.KEYS_PICKED:
                # keys are off the board from here on
                vehicle = self.ledger.mark_status(request.vehicle_id, VehicleStatus.RETRIEVING)
            self._persist(request, vehicle)
            return replace(request)

    # ── Handover ─────────────────────────────────────────────────────────────
    def confirm_payment(self, request_id: int, payment_method: Optional[str] = None,
                        tip_amount: Optional[float] = None) -> RetrievalRequest:
        with self._locked(self.queue):
            request = self.queue.confirm_payment(request_id, payment_method, tip_amount)
            self._persist(request)
            return replace(request)

    def set_payment_method(self, request_id: int, payment_method: str) -> RetrievalRequest:
        with self._locked(self.queue):
            request = self.queue.set_payment_method(request_id, payment_method)
            self._persist(request)
            return replace(request)

    def verify_card(self, request_id: int, scanned_card_id: Optional[str] = None) -> RetrievalRequest:
        """Match the card presented at the stand. Reads the tag in the field when no id is given."""
        if scanned_card_id is None:
            scanned_card_id = self.nfc.read()
            if not scanned_card_id:
                raise CardMismatch("No card in the reader field")
        with self._locked(self.queue):
            request = self.queue.get(request_id)
            try:
                self.queue.verify_card(request_id, scanned_card_id)
            finally:
                self._persist(request)
            return replace(request)

    def complete(self, request_id: int) -> RetrievalRequest:
        with self._locked(self.hook_pool, self.registry, self.ledger, self.queue):
            # every guard runs before the first mutation
            request = self.queue.check_completable(request_id)
            driver_id = request.assigned_driver_id
            vehicle = self.ledger.get(request.vehicle_id)
            if not is_allowed(vehicle.status, VehicleStatus.RETRIEVED):
                raise InvalidTransition(
                    f"Vehicle {vehicle.id}: {vehicle.status.value} → retrieved not allowed",
                    current=vehicle.status.value,
                )
            hook = self.hook_pool.get(vehicle.hook_number)
            self.registry.check_release_for(request.card_id, vehicle.id)

            self.ledger.mark_status(vehicle.id, VehicleStatus.RETRIEVED)
            card = self.registry.release(request.card_id)
            if hook.state == HookState.OCCUPIED:
                hook = self.hook_pool.release(hook.number)
            else:
                logger.warning(f"[CORE] Hook {hook.number} already free while completing request {request_id}")
            request = self.queue.complete(request_id)
            self._persist(request, vehicle, card, hook, self._driver_or_none(driver_id))
        logger.info(f"[CORE] Handover done: {vehicle.plate}, hook {vehicle.hook_number} and {card.card_id} free")
        return replace(request)

    def cancel(self, request_id: int, reason: Optional[str] = None) -> RetrievalRequest:
        with self._locked(self.ledger, self.queue):
            driver_id = self.queue.get(request_id).assigned_driver_id
            request = self.queue.cancel(request_id, reason)
            vehicle = self.ledger.mark_status(request.vehicle_id, VehicleStatus.PARKED, cancelled=True)
            self._persist(request, vehicle, self._driver_or_none(driver_id))
            return replace(request)

    def _driver_or_none(self, driver_id: Optional[str]) -> Optional[Driver]:
        if driver_id is None:
            return None
        return self.queue.get_driver(driver_id)

    # ── Hooks & cards ────────────────────────────────────────────────────────
    def hook_stats(self) -> HookStats:
        return self.hook_pool.stats()

    def hooks(self) -> List[Hook]:
        return self.hook_pool.snapshot()

    def next_hook(self) -> Optional[int]:
        return self.hook_pool.next_available()

    def card_safe_to_clear(self, card_id: str) -> bool:
        return self.registry.can_safely_clear(card_id)

    def clear_card(self, card_id: str):
        """Physically erase a returned card. Only runs after the safety check passes."""
        present = self.nfc.read()
        if present != card_id:
            raise CardMismatch(f"Reader holds {present or 'no card'}, expected {card_id}")
        self.registry.begin_clear(card_id)
        try:
            self.nfc.clear()
        except Exception:
            self.registry.finish_clear(card_id, succeeded=False)
            raise
        card = self.registry.finish_clear(card_id, succeeded=True)
        self._persist(card)
        return replace(card)

    def card_status(self, card_id: str) -> CardStatus:
        with self._locked(self.registry, self.ledger, self.queue):
            card = self.registry.get(card_id)
            try:
                vehicle = self.ledger.get_by_card_id(card_id)
            except VehicleNotFound:
                vehicle = None
            request = self.queue.latest_for_card(card_id)
            return CardStatus(
                card=replace(card),
                vehicle=replace(vehicle) if vehicle else None,
                latest_request=replace(request) if request else None,
                safe_to_clear=self.registry.can_safely_clear(card_id),
            )

    # ── Vehicles ─────────────────────────────────────────────────────────────
    def get_vehicle(self, vehicle_id: int) -> Vehicle:
        with self.ledger.lock:
            return replace(self.ledger.get(vehicle_id))

    def vehicles(self, status: Optional[VehicleStatus] = None) -> List[Vehicle]:
        return self.ledger.list_by_status(status)

    # ── Drivers ──────────────────────────────────────────────────────────────
    def register_driver(self, driver_id: str, name: Optional[str] = None) -> Driver:
        with self._locked(self.queue):
            driver = self.queue.register_driver(driver_id, name)
            self._persist(driver)
            return replace(driver)

    def set_driver_online(self, driver_id: str, online: bool) -> Driver:
        with self._locked(self.queue):
            driver = self.queue.set_driver_online(driver_id, online)
            self._persist(driver)
            return replace(driver)

    def drivers(self) -> List[Driver]:
        return self.queue.drivers()


@lru_cache
def get_orchestrator() -> Orchestrator:
    """FastAPI dependency: one orchestrator per process, restored from the database."""
    from valet.database import SessionLocal

    orchestrator = Orchestrator(
        hook_count=settings.HOOK_COUNT,
        repository=SqlRepository(SessionLocal),
        nfc=device_from_settings(),
        pricing=Pricing.from_settings(),
        card_prefix=settings.CARD_ID_PREFIX,
    )
    orchestrator.restore()
    return orchestrator
