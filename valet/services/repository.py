# valet/services/repository.py
"""
Persistence for the core's entities.

The components keep the authoritative state in memory behind their locks;
after each use case the orchestrator hands every entity it touched to
Repository.save() in one call, which SqlRepository writes in a single
transaction. load() rebuilds the whole state at startup.
"""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Dict, List

from sqlalchemy.orm import sessionmaker

from valet.models.card import CardRecord
from valet.models.driver import DriverRecord
from valet.models.hook import HookRecord
from valet.models.retrieval_request import RetrievalRequestRecord
from valet.models.vehicle import VehicleRecord
from valet.services.entities import (
    Card,
    CardState,
    Driver,
    DriverStatus,
    Hook,
    HookState,
    RequestStatus,
    RetrievalRequest,
    Vehicle,
    VehicleStatus,
)
from valet.utils.logger import get_logger

logger = get_logger(__name__)

# entity class → (record class, primary key attribute, enum-typed fields)
_MAPPING = {
    Hook: (HookRecord, "number", {"state": HookState}),
    Card: (CardRecord, "card_id", {"state": CardState}),
    Vehicle: (VehicleRecord, "id", {"status": VehicleStatus}),
    RetrievalRequest: (RetrievalRequestRecord, "id", {"status": RequestStatus}),
    Driver: (DriverRecord, "id", {"status": DriverStatus}),
}


@dataclass
class PersistedState:
    hooks: List[Hook] = field(default_factory=list)
    cards: List[Card] = field(default_factory=list)
    vehicles: List[Vehicle] = field(default_factory=list)
    requests: List[RetrievalRequest] = field(default_factory=list)
    drivers: List[Driver] = field(default_factory=list)


def to_record(entity):
    record_cls, _, _ = _MAPPING[type(entity)]
    values = {}
    for f in fields(entity):
        value = getattr(entity, f.name)
        values[f.name] = value.value if isinstance(value, Enum) else value
    return record_cls(**values)


def from_record(entity_cls, record):
    _, _, enums = _MAPPING[entity_cls]
    values = {}
    for f in fields(entity_cls):
        value = getattr(record, f.name)
        if f.name in enums and value is not None:
            value = enums[f.name](value)
        values[f.name] = value
    return entity_cls(**values)


class Repository:
    def save(self, *entities):
        raise NotImplementedError

    def load(self) -> PersistedState:
        raise NotImplementedError


class InMemoryRepository(Repository):
    """Keeps copies of the last saved version of each entity. For tests and bench runs."""

    def __init__(self):
        self._rows: Dict[tuple, object] = {}
        self.saves = 0

    def save(self, *entities):
        for entity in entities:
            if entity is None:
                continue
            _, key, _ = _MAPPING[type(entity)]
            self._rows[(type(entity), getattr(entity, key))] = replace(entity)
        self.saves += 1

    def load(self) -> PersistedState:
        state = PersistedState()
        buckets = {Hook: state.hooks, Card: state.cards, Vehicle: state.vehicles,
                   RetrievalRequest: state.requests, Driver: state.drivers}
        for (entity_cls, _), entity in self._rows.items():
            buckets[entity_cls].append(replace(entity))
        return state


class SqlRepository(Repository):
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def save(self, *entities):
        db = self._session_factory()
        try:
            for entity in entities:
                if entity is not None:
                    db.merge(to_record(entity))
            db.commit()
        except Exception:
            db.rollback()
            logger.error("Failed to persist valet state", exc_info=True)
            raise
        finally:
            db.close()

    def load(self) -> PersistedState:
        db = self._session_factory()
        try:
            return PersistedState(
                hooks=[from_record(Hook, r) for r in db.query(HookRecord).order_by(HookRecord.number)],
                cards=[from_record(Card, r) for r in db.query(CardRecord).all()],
                vehicles=[from_record(Vehicle, r) for r in db.query(VehicleRecord).order_by(VehicleRecord.id)],
                requests=[from_record(RetrievalRequest, r)
                          for r in db.query(RetrievalRequestRecord).order_by(RetrievalRequestRecord.id)],
                drivers=[from_record(Driver, r) for r in db.query(DriverRecord).all()],
            )
        finally:
            db.close()
