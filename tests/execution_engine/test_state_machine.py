"""
Submission State Machine Tests.

============================================================
PURPOSE
============================================================
Guarded lifecycle of one commitment submission.

TEST PRINCIPLES:
- Terminal states are final
- Broadcast states require a transaction id
- Every transition is recorded

============================================================
"""

import pytest

from execution_engine import (
    VALID_TRANSITIONS,
    SubmissionRecord,
    SubmissionState,
    SubmissionStateMachine,
    TransitionGuard,
)
from tests.factories import ADDRESS


@pytest.fixture
def machine(clock):
    record = SubmissionRecord(commitment_hash="ab" * 32, address=ADDRESS)
    return SubmissionStateMachine(record, clock=clock)


class TestTransitionTable:

    def test_every_state_has_rules(self):
        assert set(VALID_TRANSITIONS) == set(SubmissionState)

    @pytest.mark.parametrize("state", [
        SubmissionState.CONFIRMED,
        SubmissionState.FAILED,
        SubmissionState.REJECTED,
    ])
    def test_terminal_states_have_no_exits(self, state):
        assert state.is_terminal()
        assert VALID_TRANSITIONS[state] == set()
        allowed, reason = TransitionGuard.can_transition(state, SubmissionState.PENDING)
        assert allowed is False
        assert "terminal" in reason

    def test_timed_out_is_not_terminal(self):
        assert not SubmissionState.TIMED_OUT.is_terminal()
        assert SubmissionState.PENDING in VALID_TRANSITIONS[SubmissionState.TIMED_OUT]

    def test_was_broadcast(self):
        assert not SubmissionState.BUILT.was_broadcast()
        assert not SubmissionState.REJECTED.was_broadcast()
        assert SubmissionState.PENDING.was_broadcast()
        assert SubmissionState.TIMED_OUT.was_broadcast()


class TestSubmissionStateMachine:

    def test_happy_path(self, machine):
        machine.mark_broadcast("at1abc")
        machine.mark_pending()
        machine.record_poll()
        machine.mark_confirmed(1001)

        record = machine.record
        assert record.state is SubmissionState.CONFIRMED
        assert record.previous_state is SubmissionState.PENDING
        assert record.transaction_id == "at1abc"
        assert record.poll_attempts == 1
        assert record.broadcast_at is not None
        assert record.finalized_at is not None
        assert [e.to_state for e in machine.history] == [
            SubmissionState.BROADCAST,
            SubmissionState.PENDING,
            SubmissionState.CONFIRMED,
        ]

    def test_rejected_before_broadcast(self, machine):
        machine.mark_rejected("node unreachable")

        assert machine.is_terminal()
        assert machine.record.last_error == "node unreachable"
        assert machine.record.transaction_id is None

    def test_cannot_skip_broadcast(self, machine):
        with pytest.raises(ValueError, match="Invalid transition"):
            machine.mark_confirmed()

    def test_broadcast_requires_transaction_id(self, machine):
        with pytest.raises(ValueError, match="Missing transaction_id"):
            machine.transition_to(SubmissionState.BROADCAST)

    def test_terminal_is_final(self, machine):
        machine.mark_broadcast("at1abc")
        machine.mark_failed("finalize aborted")

        with pytest.raises(ValueError):
            machine.mark_pending()
        assert machine.record.last_error == "finalize aborted"

    def test_timed_out_can_resume_polling(self, machine):
        machine.mark_broadcast("at1abc")
        machine.mark_pending()
        machine.mark_timed_out(20)
        machine.mark_pending("re-poll")
        machine.mark_confirmed()

        assert machine.current_state is SubmissionState.CONFIRMED

    def test_same_state_is_noop(self, machine):
        machine.mark_broadcast("at1abc")
        machine.mark_pending()
        event = machine.mark_pending()

        assert event.reason == "No change"
        assert len(machine.history) == 2

    def test_listener_notified_and_errors_isolated(self, machine):
        seen = []

        def broken(event):
            raise RuntimeError("listener bug")

        machine.add_listener(broken)
        machine.add_listener(lambda event: seen.append(event.to_state))
        machine.mark_broadcast("at1abc")

        assert seen == [SubmissionState.BROADCAST]

    def test_record_to_dict(self, machine):
        machine.mark_broadcast("at1abc")
        data = machine.record.to_dict()

        assert data["state"] == "broadcast"
        assert data["transaction_id"] == "at1abc"
