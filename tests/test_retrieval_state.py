# tests/test_retrieval_state.py
"""Unit tests for the retrieval request state machine."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from valet.services import retrieval_state
from valet.services.entities import RequestStatus
from valet.services.errors import CannotCancelReadyRequest, InvalidTransition


class TestNextStatus:
    def test_driver_steps_in_order(self):
        status = RequestStatus.ASSIGNED
        seen = []
        while status != RequestStatus.READY:
            status = retrieval_state.next_status(status)
            seen.append(status)
        assert seen == [RequestStatus.KEYS_PICKED, RequestStatus.WALKING,
                        RequestStatus.DRIVING, RequestStatus.READY]

    @pytest.mark.parametrize("status", [
        RequestStatus.PENDING, RequestStatus.READY, RequestStatus.COMPLETED, RequestStatus.CANCELLED,
    ])
    def test_no_advance_from(self, status):
        with pytest.raises(InvalidTransition):
            retrieval_state.next_status(status)


class TestCancel:
    @pytest.mark.parametrize("status", [
        RequestStatus.PENDING, RequestStatus.ASSIGNED, RequestStatus.KEYS_PICKED,
        RequestStatus.WALKING, RequestStatus.DRIVING,
    ])
    def test_cancellable(self, status):
        retrieval_state.check_cancellable(status)

    def test_ready_is_protected(self):
        with pytest.raises(CannotCancelReadyRequest):
            retrieval_state.check_cancellable(RequestStatus.READY)

    def test_terminal_not_cancellable(self):
        with pytest.raises(InvalidTransition):
            retrieval_state.check_cancellable(RequestStatus.COMPLETED)


class TestStatusInfo:
    def test_every_status_has_a_message(self):
        for status in RequestStatus:
            message, progress = retrieval_state.status_info(status)
            assert message
            assert 0 <= progress <= 100

    def test_active_set(self):
        assert retrieval_state.is_active(RequestStatus.READY)
        assert not retrieval_state.is_active(RequestStatus.CANCELLED)
