"""
Core Module - Error Taxonomy.

============================================================
PURPOSE
============================================================
Every failure that leaves the pipeline is one of the kinds
below, each with a stable machine-readable code.

ERROR KINDS:
1. AddressFormatError       - malformed address, caller-fixable
2. ValidationError          - metric out of declared range
3. MetricsFetchError        - metric field unusable with no fallback
4. AttestationError         - prove step failed
5. CommitmentInvalidError   - local structural check failed
6. SubmissionBroadcastError - ledger rejected or unreachable at broadcast
7. ConfirmationTimeoutError - status unknown after poll ceiling
8. OnChainExecutionError    - ledger marked the transaction failed
9. LedgerQueryError         - read-only ledger query failed
10. NotInitializedError     - orchestrator used before init()

RETRY vs RESUBMIT:
- retryable:      running the whole attempt again is safe
- resubmit_safe:  sending the SAME commitment again is safe

============================================================
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# ERROR CODE REGISTRY
# ============================================================

@dataclass(frozen=True)
class ErrorCodeInfo:
    """Information about an error code."""

    code: str
    """Error code."""

    retryable: bool
    """Whether retrying the whole attempt (fresh commitment) is safe."""

    resubmit_safe: bool
    """Whether resubmitting the same commitment is safe."""

    description: str
    """Human-readable description."""

    recommended_action: str
    """Recommended action for the caller."""


ERROR_CODES: Dict[str, ErrorCodeInfo] = {
    "ADDRESS_FORMAT": ErrorCodeInfo(
        code="ADDRESS_FORMAT",
        retryable=False,
        resubmit_safe=False,
        description="Account address does not match the required format",
        recommended_action="Fix the address and call again",
    ),
    "METRICS_VALIDATION": ErrorCodeInfo(
        code="METRICS_VALIDATION",
        retryable=False,
        resubmit_safe=False,
        description="Activity metric outside its declared range",
        recommended_action="Investigate the upstream metrics source",
    ),
    "METRICS_FETCH": ErrorCodeInfo(
        code="METRICS_FETCH",
        retryable=True,
        resubmit_safe=False,
        description="Activity metrics could not be acquired",
        recommended_action="Retry later or enable fallback values",
    ),
    "ATTESTATION_FAILED": ErrorCodeInfo(
        code="ATTESTATION_FAILED",
        retryable=True,
        resubmit_safe=False,
        description="Commitment generation failed",
        recommended_action="Retry the attempt; a fresh nonce is generated",
    ),
    "COMMITMENT_INVALID": ErrorCodeInfo(
        code="COMMITMENT_INVALID",
        retryable=False,
        resubmit_safe=False,
        description="Commitment failed the local structural check",
        recommended_action="Generate a new commitment",
    ),
    "SUBMISSION_BROADCAST": ErrorCodeInfo(
        code="SUBMISSION_BROADCAST",
        retryable=True,
        resubmit_safe=False,
        description="Transaction was not accepted for broadcast",
        recommended_action="Retry with a new commitment",
    ),
    "CONFIRMATION_TIMEOUT": ErrorCodeInfo(
        code="CONFIRMATION_TIMEOUT",
        retryable=False,
        resubmit_safe=False,
        description="Transaction status unknown after the poll ceiling",
        recommended_action="Re-poll using the transaction id; do not resubmit",
    ),
    "ONCHAIN_EXECUTION": ErrorCodeInfo(
        code="ONCHAIN_EXECUTION",
        retryable=False,
        resubmit_safe=False,
        description="Ledger marked the transaction failed",
        recommended_action="Do not retry with the same commitment",
    ),
    "LEDGER_QUERY": ErrorCodeInfo(
        code="LEDGER_QUERY",
        retryable=True,
        resubmit_safe=False,
        description="Read-only ledger query failed",
        recommended_action="Retry later",
    ),
    "NOT_INITIALIZED": ErrorCodeInfo(
        code="NOT_INITIALIZED",
        retryable=False,
        resubmit_safe=False,
        description="Orchestrator has no active address",
        recommended_action="Call init(address) first",
    ),
}


def get_error_info(code: str) -> ErrorCodeInfo:
    """
    Get error info for a code.

    Args:
        code: Error code

    Returns:
        ErrorCodeInfo, or a non-retryable placeholder for unknown codes
    """
    return ERROR_CODES.get(code, ErrorCodeInfo(
        code=code,
        retryable=False,
        resubmit_safe=False,
        description=f"Unknown error: {code}",
        recommended_action="Investigate error",
    ))


def is_retryable(code: str) -> bool:
    """Check if an error code is retryable."""
    return get_error_info(code).retryable


# ============================================================
# EXCEPTIONS
# ============================================================

class ProofScoreError(Exception):
    """Base exception for all pipeline errors."""

    code: str = "PROOFSCORE_ERROR"

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        stage: Optional[str] = None,
        transaction_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.stage = stage
        self.transaction_id = transaction_id
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    @property
    def info(self) -> ErrorCodeInfo:
        return get_error_info(self.code)

    @property
    def retryable(self) -> bool:
        return self.info.retryable

    @property
    def resubmit_safe(self) -> bool:
        return self.info.resubmit_safe

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "stage": self.stage,
            "transaction_id": self.transaction_id,
            "retryable": self.retryable,
            "resubmit_safe": self.resubmit_safe,
            "cause": str(self.cause) if self.cause else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"[{self.code}] {self.message}"]
        if self.stage:
            parts.append(f"[stage={self.stage}]")
        if self.transaction_id:
            parts.append(f"[tx={self.transaction_id}]")
        if self.cause:
            parts.append(f"(caused by: {self.cause})")
        return " ".join(parts)


class AddressFormatError(ProofScoreError):
    """Address fails the prefix/length/charset contract."""

    code = "ADDRESS_FORMAT"

    def __init__(self, message: str, address: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.address = address
        self.context.setdefault("address", address)


class ValidationError(ProofScoreError):
    """Metric value outside its declared range."""

    code = "METRICS_VALIDATION"

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.field_name = field_name
        self.value = value
        self.context.setdefault("field", field_name)
        self.context.setdefault("value", repr(value))


class MetricsFetchError(ProofScoreError):
    """One or more metric fields unusable and no fallback applies."""

    code = "METRICS_FETCH"

    def __init__(self, message: str, failed_fields: Optional[list] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.failed_fields = list(failed_fields or [])
        self.context.setdefault("failed_fields", self.failed_fields)


class AttestationError(ProofScoreError):
    """Prove step raised or exceeded its deadline."""

    code = "ATTESTATION_FAILED"


class CommitmentInvalidError(ProofScoreError):
    """Commitment rejected by the pre-submission gate."""

    code = "COMMITMENT_INVALID"


class SubmissionBroadcastError(ProofScoreError):
    """Transaction could not be built or broadcast."""

    code = "SUBMISSION_BROADCAST"


class ConfirmationTimeoutError(ProofScoreError):
    """Transaction neither confirmed nor failed within the poll ceiling."""

    code = "CONFIRMATION_TIMEOUT"

    def __init__(self, message: str, attempts: int = 0, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.attempts = attempts
        self.context.setdefault("attempts", attempts)


class OnChainExecutionError(ProofScoreError):
    """Ledger explicitly marked the transaction failed."""

    code = "ONCHAIN_EXECUTION"


class LedgerQueryError(ProofScoreError):
    """Read-only ledger query failed in transport."""

    code = "LEDGER_QUERY"


class NotInitializedError(ProofScoreError):
    """Orchestrator step called without an active address."""

    code = "NOT_INITIALIZED"

