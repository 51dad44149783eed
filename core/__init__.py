"""
Core Module Package.

Shared infrastructure every pipeline stage depends on.

Components:
- clock: Unified time abstraction
- exceptions: Error taxonomy and code registry
- constants: Scoring table, address contract, network defaults
- retry: Bounded retry/poll policy
"""

from core.clock import ClockProtocol, MockClock, SystemClock, get_clock
from core.retry import PollDecision, PollOutcome, PollResult, RetryPolicy
from core.exceptions import (
    ERROR_CODES,
    AddressFormatError,
    AttestationError,
    CommitmentInvalidError,
    ConfirmationTimeoutError,
    ErrorCodeInfo,
    LedgerQueryError,
    MetricsFetchError,
    NotInitializedError,
    OnChainExecutionError,
    ProofScoreError,
    SubmissionBroadcastError,
    ValidationError,
    get_error_info,
    is_retryable,
)

__all__ = [
    # Clock
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "get_clock",

    # Retry
    "RetryPolicy",
    "PollDecision",
    "PollOutcome",
    "PollResult",

    # Errors
    "ERROR_CODES",
    "ErrorCodeInfo",
    "get_error_info",
    "is_retryable",
    "ProofScoreError",
    "AddressFormatError",
    "ValidationError",
    "MetricsFetchError",
    "AttestationError",
    "CommitmentInvalidError",
    "SubmissionBroadcastError",
    "ConfirmationTimeoutError",
    "OnChainExecutionError",
    "LedgerQueryError",
    "NotInitializedError",
]
