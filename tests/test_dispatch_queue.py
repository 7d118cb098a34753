# tests/test_dispatch_queue.py
"""Unit tests for the dispatch queue: ordering, assignment and request lifecycle."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import threading
from datetime import datetime, timedelta

import pytest
from valet.services.dispatch_queue import DispatchQueue
from valet.services.entities import DriverStatus, RequestStatus
from valet.services.errors import (
    CannotCancelReadyRequest,
    CardMismatch,
    CardNotVerified,
    DriverBusy,
    DriverUnavailable,
    DuplicateActiveRequest,
    InvalidTransition,
    NotReady,
    PaymentNotConfirmed,
    RequestNotFound,
    RequestNotPending,
    StatusMismatch,
)

T0 = datetime(2026, 2, 20, 18, 0, 0)


class FakeClock:
    def __init__(self):
        self.now = T0

    def __call__(self):
        return self.now

    def at(self, seconds):
        self.now = T0 + timedelta(seconds=seconds)


def enqueue(queue, vehicle_id, priority=False):
    return queue.enqueue(vehicle_id, f"CARD-{vehicle_id:03d}", priority, "cash", 15.0)


def ready_request(queue, vehicle_id=1, driver_id="drv-1"):
    request = enqueue(queue, vehicle_id)
    queue.assign(request.id, driver_id)
    for step in (RequestStatus.ASSIGNED, RequestStatus.KEYS_PICKED, RequestStatus.WALKING, RequestStatus.DRIVING):
        queue.advance(request.id, step)
    return request


class TestOrdering:
    def test_priority_jumps_regular_but_keeps_fifo(self):
        clock = FakeClock()
        queue = DispatchQueue(clock=clock)
        clock.at(0)
        b = enqueue(queue, 2, priority=False)
        clock.at(1)
        a = enqueue(queue, 1, priority=True)
        clock.at(2)
        c = enqueue(queue, 3, priority=True)

        order = []
        while True:
            head = queue.next_pending()
            if head is None:
                break
            order.append(head.id)
            queue.assign(head.id, f"drv-{head.id}")
        assert order == [a.id, c.id, b.id]

    def test_same_timestamp_falls_back_to_submission_order(self):
        queue = DispatchQueue(clock=FakeClock())
        first = enqueue(queue, 1)
        second = enqueue(queue, 2)
        assert [r.id for r in queue.snapshot()] == [first.id, second.id]

    def test_empty_queue(self):
        assert DispatchQueue().next_pending() is None

    def test_snapshot_excludes_terminal(self):
        queue = DispatchQueue()
        r1 = enqueue(queue, 1)
        enqueue(queue, 2)
        queue.cancel(r1.id, "customer left")
        assert [r.vehicle_id for r in queue.snapshot()] == [2]


class TestEnqueue:
    def test_duplicate_active_request(self):
        queue = DispatchQueue()
        first = enqueue(queue, 1)
        with pytest.raises(DuplicateActiveRequest) as exc:
            enqueue(queue, 1)
        assert exc.value.current.id == first.id

    def test_new_request_allowed_after_cancel(self):
        queue = DispatchQueue()
        first = enqueue(queue, 1)
        queue.cancel(first.id, "changed mind")
        assert enqueue(queue, 1).id != first.id


class TestAssign:
    def test_first_assign_wins(self):
        queue = DispatchQueue()
        r = enqueue(queue, 1)
        queue.assign(r.id, "drv-x")
        with pytest.raises(RequestNotPending):
            queue.assign(r.id, "drv-y")
        assert queue.get(r.id).assigned_driver_id == "drv-x"

    def test_racing_dispatchers_one_wins(self):
        queue = DispatchQueue()
        r = enqueue(queue, 1)
        barrier = threading.Barrier(8)
        wins, losses = [], []

        def dispatcher(i):
            barrier.wait()
            try:
                queue.assign(r.id, f"drv-{i}")
                wins.append(i)
            except RequestNotPending:
                losses.append(i)

        threads = [threading.Thread(target=dispatcher, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(wins) == 1
        assert len(losses) == 7
        assert queue.get(r.id).assigned_driver_id == f"drv-{wins[0]}"
        busy = [d.id for d in queue.drivers() if d.status == DriverStatus.BUSY]
        assert busy == [f"drv-{wins[0]}"]

    def test_driver_holds_one_request(self):
        queue = DispatchQueue()
        r1 = enqueue(queue, 1)
        r2 = enqueue(queue, 2)
        queue.assign(r1.id, "drv-x")
        with pytest.raises(DriverBusy):
            queue.assign(r2.id, "drv-x")
        assert queue.get(r2.id).status == RequestStatus.PENDING

    def test_busy_iff_active_request(self):
        queue = DispatchQueue()
        r = enqueue(queue, 1)
        queue.assign(r.id, "drv-x")
        driver = queue.get_driver("drv-x")
        assert driver.status == DriverStatus.BUSY
        assert driver.active_request_id == r.id
        queue.cancel(r.id, "no show")
        assert driver.status == DriverStatus.AVAILABLE
        assert driver.active_request_id is None

    def test_offline_driver(self):
        queue = DispatchQueue()
        queue.register_driver("drv-x", "Sam")
        queue.set_driver_online("drv-x", False)
        r = enqueue(queue, 1)
        with pytest.raises(DriverUnavailable):
            queue.assign(r.id, "drv-x")

    def test_cannot_go_offline_while_busy(self):
        queue = DispatchQueue()
        r = enqueue(queue, 1)
        queue.assign(r.id, "drv-x")
        with pytest.raises(DriverBusy):
            queue.set_driver_online("drv-x", False)

    def test_claim_next_takes_head(self):
        queue = DispatchQueue(clock=FakeClock())
        enqueue(queue, 1)
        vip = enqueue(queue, 2, priority=True)
        claimed = queue.claim_next("drv-x")
        assert claimed.id == vip.id
        assert claimed.status == RequestStatus.ASSIGNED

    def test_claim_next_on_empty_queue(self):
        assert DispatchQueue().claim_next("drv-x") is None

    def test_requeue_frees_driver(self):
        queue = DispatchQueue()
        r = enqueue(queue, 1)
        queue.assign(r.id, "drv-x")
        queue.requeue(r.id)
        assert queue.get(r.id).status == RequestStatus.PENDING
        assert queue.get(r.id).assigned_driver_id is None
        assert queue.get_driver("drv-x").status == DriverStatus.AVAILABLE

    def test_unknown_request(self):
        with pytest.raises(RequestNotFound):
            DispatchQueue().assign(99, "drv-x")


class TestAdvance:
    def test_stale_advance_rejected(self):
        queue = DispatchQueue()
        r = enqueue(queue, 1)
        queue.assign(r.id, "drv-x")
        queue.advance(r.id, RequestStatus.ASSIGNED)
        queue.advance(r.id, RequestStatus.KEYS_PICKED)
        assert queue.advance(r.id, RequestStatus.WALKING).status == RequestStatus.DRIVING
        with pytest.raises(StatusMismatch) as exc:
            queue.advance(r.id, RequestStatus.WALKING)
        assert exc.value.current == "driving"
        assert queue.get(r.id).status == RequestStatus.DRIVING

    def test_pending_cannot_advance(self):
        queue = DispatchQueue()
        r = enqueue(queue, 1)
        with pytest.raises(InvalidTransition):
            queue.advance(r.id, RequestStatus.PENDING)

    def test_ready_stamps_time(self):
        queue = DispatchQueue()
        r = ready_request(queue)
        assert queue.get(r.id).status == RequestStatus.READY
        assert queue.get(r.id).ready_at is not None
        assert [h.id for h in queue.pending_handovers()] == [r.id]


class TestHandover:
    def test_complete_requires_ready(self):
        queue = DispatchQueue()
        r = enqueue(queue, 1)
        with pytest.raises(NotReady):
            queue.complete(r.id)

    def test_complete_requires_payment_then_card(self):
        queue = DispatchQueue()
        r = ready_request(queue)
        with pytest.raises(PaymentNotConfirmed):
            queue.complete(r.id)
        queue.confirm_payment(r.id, "cash", tip_amount=5.0)
        with pytest.raises(CardNotVerified):
            queue.complete(r.id)
        queue.verify_card(r.id, "CARD-001")
        done = queue.complete(r.id)
        assert done.status == RequestStatus.COMPLETED
        assert done.tip_amount == 5.0
        assert done.assigned_driver_id == "drv-1"
        assert queue.get_driver("drv-1").status == DriverStatus.AVAILABLE

    def test_wrong_card_rejected(self):
        queue = DispatchQueue()
        r = ready_request(queue)
        with pytest.raises(CardMismatch):
            queue.verify_card(r.id, "CARD-999")
        assert not queue.get(r.id).card_verified

    def test_cannot_cancel_ready(self):
        queue = DispatchQueue()
        r = ready_request(queue)
        with pytest.raises(CannotCancelReadyRequest):
            queue.cancel(r.id, "too late")
        assert queue.get(r.id).status == RequestStatus.READY

    def test_payment_method_locked_after_payment(self):
        queue = DispatchQueue()
        r = enqueue(queue, 1)
        queue.set_payment_method(r.id, "online")
        queue.confirm_payment(r.id)
        assert queue.get(r.id).payment_method == "online"
        with pytest.raises(InvalidTransition):
            queue.set_payment_method(r.id, "cash")
