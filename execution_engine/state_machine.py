"""
Execution Engine - Submission State Machine.

============================================================
PURPOSE
============================================================
Tracks one commitment submission with guarded transitions.

STATE MACHINE:

    BUILT ──────► REJECTED
      │
      ▼
    BROADCAST ──► FAILED
      │             ▲
      ▼             │
    PENDING ────────┤
      │  ▲          │
      │  └── TIMED_OUT (re-poll)
      ▼
    CONFIRMED

INVARIANTS:
- Terminal states are final
- BROADCAST requires a transaction id
- All transitions are logged and kept in history

============================================================
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set

from core.clock import ClockProtocol, get_clock
from execution_engine.models import SubmissionRecord, SubmissionState


logger = logging.getLogger(__name__)


# ============================================================
# STATE TRANSITION RULES
# ============================================================

VALID_TRANSITIONS: Dict[SubmissionState, Set[SubmissionState]] = {
    SubmissionState.BUILT: {
        SubmissionState.BROADCAST,
        SubmissionState.REJECTED,
    },
    SubmissionState.BROADCAST: {
        SubmissionState.PENDING,
        SubmissionState.CONFIRMED,
        SubmissionState.FAILED,
        SubmissionState.TIMED_OUT,
    },
    SubmissionState.PENDING: {
        SubmissionState.CONFIRMED,
        SubmissionState.FAILED,
        SubmissionState.TIMED_OUT,
    },
    SubmissionState.TIMED_OUT: {
        SubmissionState.PENDING,
    },
    # Terminal states - no transitions out
    SubmissionState.CONFIRMED: set(),
    SubmissionState.FAILED: set(),
    SubmissionState.REJECTED: set(),
}


@dataclass
class StateTransitionEvent:
    """Event representing a state transition."""

    submission_id: str
    from_state: SubmissionState
    to_state: SubmissionState
    timestamp: datetime
    reason: str = ""
    details: Dict[str, Any] = field(default_factory=dict)


class TransitionGuard:
    """Decides whether a transition is allowed, with a reason."""

    @staticmethod
    def can_transition(
        from_state: SubmissionState,
        to_state: SubmissionState,
    ) -> tuple[bool, str]:
        if from_state == to_state:
            return True, "Same state"

        if to_state in VALID_TRANSITIONS.get(from_state, set()):
            return True, "Valid transition"

        if from_state.is_terminal():
            return False, f"Cannot transition from terminal state {from_state.value}"

        return False, f"Invalid transition: {from_state.value} -> {to_state.value}"

    @staticmethod
    def validate_record_for_state(
        record: SubmissionRecord,
        target_state: SubmissionState,
    ) -> tuple[bool, str]:
        if target_state.was_broadcast() and not record.transaction_id:
            return False, f"Missing transaction_id for {target_state.value}"
        return True, "Record valid for state"


class SubmissionStateMachine:
    """State machine for one submission."""

    def __init__(
        self,
        record: SubmissionRecord,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._record = record
        self._clock = clock or get_clock()
        self._history: List[StateTransitionEvent] = []
        self._listeners: List[Callable[[StateTransitionEvent], None]] = []

    @property
    def current_state(self) -> SubmissionState:
        return self._record.state

    @property
    def record(self) -> SubmissionRecord:
        return self._record

    @property
    def history(self) -> List[StateTransitionEvent]:
        return list(self._history)

    def add_listener(self, listener: Callable[[StateTransitionEvent], None]) -> None:
        self._listeners.append(listener)

    def can_transition_to(self, target_state: SubmissionState) -> tuple[bool, str]:
        allowed, reason = TransitionGuard.can_transition(self.current_state, target_state)
        if not allowed:
            return False, reason
        return TransitionGuard.validate_record_for_state(self._record, target_state)

    def transition_to(
        self,
        target_state: SubmissionState,
        reason: str = "",
        details: Optional[Dict[str, Any]] = None,
    ) -> StateTransitionEvent:
        """
        Transition to a new state.

        Raises:
            ValueError: If transition is not allowed
        """
        allowed, validation_reason = self.can_transition_to(target_state)
        if not allowed:
            raise ValueError(
                f"Cannot transition {self._record.submission_id} from "
                f"{self.current_state.value} to {target_state.value}: "
                f"{validation_reason}"
            )

        now = self._clock.now()
        event = StateTransitionEvent(
            submission_id=self._record.submission_id,
            from_state=self.current_state,
            to_state=target_state,
            timestamp=now,
            reason=reason if self.current_state != target_state else "No change",
            details=details or {},
        )
        if self.current_state == target_state:
            return event

        self._record.previous_state = self._record.state
        self._record.state = target_state
        self._record.last_update_at = now
        if target_state == SubmissionState.BROADCAST:
            self._record.broadcast_at = now
        elif target_state.is_terminal():
            self._record.finalized_at = now

        self._history.append(event)

        for listener in self._listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(f"[SubmissionStateMachine] Listener error: {e}")

        logger.info(
            f"[SubmissionStateMachine] {self._record.submission_id[:8]}: "
            f"{event.from_state.value} -> {event.to_state.value}"
            + (f" ({reason})" if reason else "")
        )
        return event

    # --------------------------------------------------------
    # CONVENIENCE METHODS
    # --------------------------------------------------------

    def mark_broadcast(self, transaction_id: str) -> StateTransitionEvent:
        self._record.transaction_id = transaction_id
        return self.transition_to(
            SubmissionState.BROADCAST,
            "Ledger accepted transaction",
            details={"transaction_id": transaction_id},
        )

    def mark_pending(self, reason: str = "Polling for confirmation") -> StateTransitionEvent:
        return self.transition_to(SubmissionState.PENDING, reason)

    def mark_confirmed(self, block_height: Optional[int] = None) -> StateTransitionEvent:
        return self.transition_to(
            SubmissionState.CONFIRMED,
            "Ledger confirmed transaction",
            details={"block_height": block_height},
        )

    def mark_failed(self, error: Optional[str] = None) -> StateTransitionEvent:
        if error:
            self._record.last_error = error
        return self.transition_to(
            SubmissionState.FAILED,
            "Ledger marked transaction failed",
            details={"error": error} if error else {},
        )

    def mark_rejected(self, error: str) -> StateTransitionEvent:
        self._record.last_error = error
        return self.transition_to(
            SubmissionState.REJECTED,
            "Broadcast failed",
            details={"error": error},
        )

    def mark_timed_out(self, attempts: int) -> StateTransitionEvent:
        return self.transition_to(
            SubmissionState.TIMED_OUT,
            f"No terminal status after {attempts} polls",
            details={"attempts": attempts},
        )

    def record_poll(self, error: Optional[str] = None) -> None:
        self._record.poll_attempts += 1
        if error:
            self._record.last_error = error

    def is_terminal(self) -> bool:
        return self.current_state.is_terminal()
