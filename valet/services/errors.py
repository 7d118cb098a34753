# valet/services/errors.py
"""
Typed error hierarchy for the orchestration core.

Callers (routers, station UI) branch on the class or on `kind`, never on the
message text. Conflicts carry the authoritative state in `current` so the
caller can refresh instead of guessing.
"""

from typing import Any, Optional


class ValetError(Exception):
    """Base error of the valet core."""
    http_status = 400

    def __init__(self, detail: str = "", current: Optional[Any] = None):
        super().__init__(detail or self.__class__.__name__)
        self.detail = detail or self.__class__.__name__
        self.current = current

    @property
    def kind(self) -> str:
        return self.__class__.__name__


# ── Resource exhaustion ──────────────────────────────────────────────────────
class ResourceExhaustion(ValetError):
    """A fixed physical pool is empty. Not retryable until something is released."""
    http_status = 503


class NoHooksAvailable(ResourceExhaustion):
    pass


# ── Conflicts ────────────────────────────────────────────────────────────────
class ConflictError(ValetError):
    """The caller's action lost against the current state. Never retried by the core."""
    http_status = 409


class CardAlreadyBound(ConflictError):
    pass


class CardPendingClear(ConflictError):
    pass


class DuplicateActiveRequest(ConflictError):
    pass


class DriverBusy(ConflictError):
    pass


class DriverUnavailable(ConflictError):
    pass


class StatusMismatch(ConflictError):
    pass


class RequestNotPending(ConflictError):
    pass


class HookNotOccupied(ConflictError):
    pass


# ── Safety violations ────────────────────────────────────────────────────────
class SafetyViolation(ValetError):
    """Blocked to protect physical consistency. Never bypassed."""
    http_status = 423


class UnsafeToRelease(SafetyViolation):
    pass


class CannotCancelReadyRequest(SafetyViolation):
    pass


# ── Handover guards ──────────────────────────────────────────────────────────
class HandoverError(ValetError):
    """Completion preconditions not met."""
    http_status = 422


class NotReady(HandoverError):
    pass


class PaymentNotConfirmed(HandoverError):
    pass


class CardNotVerified(HandoverError):
    pass


class CardMismatch(HandoverError):
    pass


class InvalidTransition(ValetError):
    """Status change outside the allowed order."""
    http_status = 422


# ── Lookups ──────────────────────────────────────────────────────────────────
class NotFoundError(ValetError):
    http_status = 404


class HookNotFound(NotFoundError):
    pass


class CardNotFound(NotFoundError):
    pass


class VehicleNotFound(NotFoundError):
    pass


class RequestNotFound(NotFoundError):
    pass


class DriverNotFound(NotFoundError):
    pass


# ── Collaborators ────────────────────────────────────────────────────────────
class DeviceError(ValetError):
    """NFC reader/writer failed or is unreachable."""
    http_status = 502
