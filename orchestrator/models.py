"""
Orchestrator - Models.

Session state and flow results.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from core.exceptions import ProofScoreError
from ledger_client.models import IssuedRecord
from onchain_adapters.models import CacheEntry


class FlowStage(Enum):
    """Pipeline stages, in execution order."""
    INIT = "init"
    FETCH_METRICS = "fetch_metrics"
    VALIDATE_METRICS = "validate_metrics"
    CALCULATE_SCORE = "calculate_score"
    GENERATE_COMMITMENT = "generate_commitment"
    VERIFY_COMMITMENT = "verify_commitment"
    SUBMIT = "submit"
    LOOKUP = "lookup"


@dataclass
class SessionState:
    """The orchestrator's active address."""

    address: str
    initialized_at: datetime

    cache_entry: Optional[CacheEntry] = None
    """Live MetricsStore cache entry for address, refreshed on every fetch."""

    ledger_healthy: Optional[bool] = None
    """None when init skipped the health check."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "initialized_at": self.initialized_at.isoformat(),
            "cached": self.cache_entry is not None,
            "ledger_healthy": self.ledger_healthy,
        }


@dataclass
class StepTiming:
    """Duration of one executed stage."""
    stage: FlowStage
    duration_ms: float
    success: bool
    error_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "duration_ms": round(self.duration_ms, 2),
            "success": self.success,
            "error_code": self.error_code,
        }


@dataclass
class IssuanceResult:
    """Outcome of run_full_flow()."""

    success: bool
    transaction_id: Optional[str] = None
    issued_record: Optional[IssuedRecord] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    attempts: int = 1
    timings: List[StepTiming] = field(default_factory=list)

    @classmethod
    def failure(
        cls,
        error: ProofScoreError,
        attempts: int = 1,
        timings: Optional[List[StepTiming]] = None,
    ) -> "IssuanceResult":
        return cls(
            success=False,
            transaction_id=error.transaction_id,
            error_message=str(error),
            error_code=error.code,
            attempts=attempts,
            timings=list(timings or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "transaction_id": self.transaction_id,
            "issued_record": self.issued_record.to_dict() if self.issued_record else None,
            "error_message": self.error_message,
            "error_code": self.error_code,
            "attempts": self.attempts,
            "timings": [t.to_dict() for t in self.timings],
        }
