"""
Execution Engine Package.

On-chain submission of commitments.

Modules:
- models: SubmissionState, SubmissionRecord
- state_machine: guarded submission lifecycle
- submitter: LedgerSubmitter (broadcast, poll, score lookup)
"""

from execution_engine.models import SubmissionRecord, SubmissionState
from execution_engine.state_machine import (
    VALID_TRANSITIONS,
    StateTransitionEvent,
    SubmissionStateMachine,
    TransitionGuard,
)
from execution_engine.submitter import LedgerSubmitter

__all__ = [
    "LedgerSubmitter",
    "SubmissionState",
    "SubmissionRecord",
    "SubmissionStateMachine",
    "StateTransitionEvent",
    "TransitionGuard",
    "VALID_TRANSITIONS",
]
