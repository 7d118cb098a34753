# valet/services/hook_pool.py
"""
Hook Pool: the fixed board of numbered key hooks.

Hooks are numbered 1..N and handed out lowest-number-first, which is also the
order an attendant scans the physical board. All mutation happens under the
pool lock so two stations checking in at once never get the same hook.
"""

import threading
from dataclasses import replace
from typing import Callable, Iterable, List, Optional

from valet.services.entities import Hook, HookState, HookStats
from valet.services.errors import HookNotFound, HookNotOccupied, NoHooksAvailable
from valet.utils.clock import utcnow
from valet.utils.logger import get_logger

logger = get_logger(__name__)


class HookPool:
    def __init__(self, total: int, clock: Callable = utcnow):
        if total < 1:
            raise ValueError("hook board needs at least one hook")
        self.lock = threading.RLock()
        self._clock = clock
        self._size = total
        self._hooks = {n: Hook(number=n) for n in range(1, total + 1)}

    def load(self, hooks: Iterable[Hook]):
        """
        Replace state with persisted hooks. A free hook outside the board is
        dropped; an occupied one is kept as retired until its keys come back,
        and is never allocated again.
        """
        with self.lock:
            for hook in hooks:
                if hook.number <= self._size:
                    self._hooks[hook.number] = hook
                elif hook.state == HookState.OCCUPIED:
                    self._hooks[hook.number] = hook
                    logger.warning(f"[HOOKS] Hook {hook.number} outside board 1..{self._size} still holds keys, kept until released")
                else:
                    logger.info(f"[HOOKS] Dropped free hook {hook.number} outside board 1..{self._size}")

    def allocate(self) -> int:
        with self.lock:
            for number in range(1, self._size + 1):
                hook = self._hooks[number]
                if hook.state == HookState.AVAILABLE:
                    hook.state = HookState.OCCUPIED
                    hook.bound_vehicle_id = None
                    hook.assigned_at = self._clock()
                    logger.info(f"[HOOKS] Allocated hook {number}")
                    return number
            raise NoHooksAvailable("No hooks free", current=self.stats())

    def bind_vehicle(self, hook_number: int, vehicle_id: int):
        with self.lock:
            hook = self.get(hook_number)
            if hook.state != HookState.OCCUPIED:
                raise HookNotOccupied(f"Hook {hook_number} is not allocated", current=hook)
            hook.bound_vehicle_id = vehicle_id

    def release(self, hook_number: int) -> Hook:
        with self.lock:
            hook = self.get(hook_number)
            if hook.state != HookState.OCCUPIED:
                raise HookNotOccupied(f"Hook {hook_number} is already free", current=hook)
            hook.state = HookState.AVAILABLE
            hook.bound_vehicle_id = None
            hook.assigned_at = None
            if hook_number > self._size:
                del self._hooks[hook_number]
                logger.info(f"[HOOKS] Released retired hook {hook_number}")
            else:
                logger.info(f"[HOOKS] Released hook {hook_number}")
            return hook

    def get(self, hook_number: int) -> Hook:
        hook = self._hooks.get(hook_number)
        if hook is None:
            raise HookNotFound(f"Hook {hook_number} is not on the board (1..{self._size})")
        return hook

    def next_available(self) -> Optional[int]:
        """Preview of the hook allocate() would return. Reserves nothing."""
        with self.lock:
            free = [n for n, h in self._hooks.items() if h.state == HookState.AVAILABLE]
            return min(free) if free else None

    def stats(self) -> HookStats:
        with self.lock:
            occupied = sum(1 for h in self._hooks.values() if h.state == HookState.OCCUPIED)
            total = len(self._hooks)
            return HookStats(total=total, available=total - occupied, occupied=occupied)

    def snapshot(self) -> List[Hook]:
        with self.lock:
            return [replace(self._hooks[n]) for n in sorted(self._hooks)]
