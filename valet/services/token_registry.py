# valet/services/token_registry.py
"""
Token Registry: lifecycle of the reusable NFC cards handed to customers.

A card is the only way to find a parked vehicle again, so letting it go is
guarded by can_safely_clear(), re-evaluated under the registry lock on every
release and every physical clear. There is no fallback that treats an error
as "safe": if the vehicle lookup raises, the release fails with it.
"""

import threading
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional

from valet.services.entities import Card, CardState, VehicleStatus
from valet.services.errors import (
    CardAlreadyBound,
    CardNotFound,
    CardPendingClear,
    UnsafeToRelease,
)
from valet.utils.clock import utcnow
from valet.utils.logger import get_logger

logger = get_logger(__name__)

VehicleStatusLookup = Callable[[int], Optional[VehicleStatus]]


class TokenRegistry:
    def __init__(self, vehicle_status: VehicleStatusLookup, prefix: str = "CARD",
                 clock: Callable = utcnow):
        """
        vehicle_status(vehicle_id) returns the ledger status of a vehicle, or
        None when no such vehicle was ever created.
        """
        self.lock = threading.RLock()
        self._vehicle_status = vehicle_status
        self._prefix = prefix
        self._clock = clock
        self._cards: Dict[str, Card] = {}
        self._issued = 0
        # state to restore if a physical clear fails
        self._before_clear: Dict[str, Card] = {}

    def load(self, cards: Iterable[Card]):
        with self.lock:
            for card in cards:
                self._cards[card.card_id] = card
                self._issued = max(self._issued, self._issued_number(card.card_id))

    def _issued_number(self, card_id: str) -> int:
        head, _, tail = card_id.rpartition("-")
        if head == self._prefix and tail.isdigit():
            return int(tail)
        return 0

    def next_card_id(self) -> str:
        """Issue a fresh card id (CARD-001, CARD-002, ...) for a blank tag."""
        with self.lock:
            while True:
                self._issued += 1
                card_id = f"{self._prefix}-{self._issued:03d}"
                if card_id not in self._cards:
                    return card_id

    def get(self, card_id: str) -> Card:
        card = self._cards.get(card_id)
        if card is None:
            raise CardNotFound(f"Card {card_id} has never been bound")
        return card

    def find(self, card_id: str) -> Optional[Card]:
        return self._cards.get(card_id)

    def _binding_is_live(self, card: Card) -> bool:
        if card.bound_vehicle_id is None:
            return False
        status = self._vehicle_status(card.bound_vehicle_id)
        # None: the vehicle record was never created, so the bind never completed
        return status is not None and status != VehicleStatus.RETRIEVED

    def bind(self, card_id: str, vehicle_id: int) -> Card:
        with self.lock:
            card = self._cards.get(card_id)
            if card is None:
                card = Card(card_id=card_id)
                self._cards[card_id] = card
            if card.state == CardState.PENDING_CLEAR:
                raise CardPendingClear(f"Card {card_id} is being cleared", current=replace(card))
            if card.state == CardState.BOUND and card.bound_vehicle_id == vehicle_id:
                return card
            if card.state == CardState.BOUND and self._binding_is_live(card):
                raise CardAlreadyBound(
                    f"Card {card_id} is bound to vehicle {card.bound_vehicle_id}",
                    current=replace(card),
                )
            card.state = CardState.BOUND
            card.bound_vehicle_id = vehicle_id
            card.bound_at = self._clock()
            card.released_at = None
            logger.info(f"[CARDS] {card_id} bound to vehicle {vehicle_id}")
            return card

    def can_safely_clear(self, card_id: str) -> bool:
        with self.lock:
            card = self._cards.get(card_id)
            if card is None or card.state == CardState.UNBOUND:
                return True
            return not self._binding_is_live(card)

    def release(self, card_id: str) -> Card:
        with self.lock:
            card = self.get(card_id)
            if card.state == CardState.UNBOUND:
                return card
            if card.state == CardState.PENDING_CLEAR:
                raise CardPendingClear(f"Card {card_id} is being cleared", current=replace(card))
            if not self.can_safely_clear(card_id):
                logger.warning(f"[CARDS] Refused release of {card_id}: vehicle {card.bound_vehicle_id} not retrieved")
                raise UnsafeToRelease(
                    f"Card {card_id} is still bound to vehicle {card.bound_vehicle_id}",
                    current=replace(card),
                )
            self._unbind(card)
            logger.info(f"[CARDS] {card_id} released")
            return card

    def check_release_for(self, card_id: str, vehicle_id: int) -> Card:
        """
        Raise now what release() would raise once vehicle_id is handed back.
        Only a binding to some other vehicle that is still on site can block it.
        """
        with self.lock:
            card = self.get(card_id)
            if card.state == CardState.PENDING_CLEAR:
                raise CardPendingClear(f"Card {card_id} is being cleared", current=replace(card))
            if (card.state == CardState.BOUND and card.bound_vehicle_id != vehicle_id
                    and self._binding_is_live(card)):
                raise UnsafeToRelease(
                    f"Card {card_id} is bound to vehicle {card.bound_vehicle_id}, not {vehicle_id}",
                    current=replace(card),
                )
            return card

    def discard_binding(self, card_id: str, vehicle_id: int):
        """Undo a bind whose vehicle record was never created."""
        with self.lock:
            card = self._cards.get(card_id)
            if card is None or card.bound_vehicle_id != vehicle_id:
                return
            if self._vehicle_status(vehicle_id) is not None:
                raise UnsafeToRelease(f"Vehicle {vehicle_id} exists; binding of {card_id} is not orphaned")
            self._unbind(card)
            logger.info(f"[CARDS] Discarded incomplete binding {card_id} → vehicle {vehicle_id}")

    def begin_clear(self, card_id: str) -> Card:
        """Mark a card as being physically erased. Runs the safety check first."""
        with self.lock:
            card = self._cards.get(card_id) or Card(card_id=card_id)
            if card.state == CardState.PENDING_CLEAR:
                raise CardPendingClear(f"Card {card_id} is already being cleared", current=replace(card))
            if not self.can_safely_clear(card_id):
                raise UnsafeToRelease(
                    f"Card {card_id} is still bound to vehicle {card.bound_vehicle_id}",
                    current=replace(card),
                )
            self._cards[card_id] = card
            self._before_clear[card_id] = replace(card)
            card.state = CardState.PENDING_CLEAR
            return card

    def finish_clear(self, card_id: str, succeeded: bool) -> Card:
        with self.lock:
            card = self.get(card_id)
            previous = self._before_clear.pop(card_id, None)
            if succeeded:
                self._unbind(card)
                logger.info(f"[CARDS] {card_id} physically cleared")
            elif previous is not None:
                card.state = previous.state
                card.bound_vehicle_id = previous.bound_vehicle_id
                card.bound_at = previous.bound_at
                card.released_at = previous.released_at
                logger.warning(f"[CARDS] Clear of {card_id} failed, state restored to {card.state.value}")
            return card

    def _unbind(self, card: Card):
        card.state = CardState.UNBOUND
        card.bound_vehicle_id = None
        card.released_at = self._clock()

    def snapshot(self) -> List[Card]:
        with self.lock:
            return [replace(c) for c in self._cards.values()]
