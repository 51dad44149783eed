"""
Execution Engine - Submission Models.

============================================================
SUBMISSION STATES
============================================================
BUILT      payload assembled and signed, nothing sent
BROADCAST  ledger accepted the transaction, id assigned
PENDING    polling for a terminal status
CONFIRMED  ledger confirmed, record issued           (terminal)
FAILED     ledger marked the transaction failed     (terminal)
REJECTED   broadcast never succeeded                (terminal)
TIMED_OUT  poll ceiling reached, status unknown
           (re-poll by transaction id returns to PENDING)

============================================================
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class SubmissionState(Enum):
    """Lifecycle state of one commitment submission."""
    BUILT = "built"
    BROADCAST = "broadcast"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"

    def is_terminal(self) -> bool:
        return self in (
            SubmissionState.CONFIRMED,
            SubmissionState.FAILED,
            SubmissionState.REJECTED,
        )

    def was_broadcast(self) -> bool:
        """True once the ledger holds the transaction."""
        return self not in (SubmissionState.BUILT, SubmissionState.REJECTED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SubmissionRecord:
    """Bookkeeping for one submission."""

    commitment_hash: str
    """Hash of the commitment being submitted."""

    address: str
    """Submitting account."""

    submission_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    """Local identifier."""

    state: SubmissionState = SubmissionState.BUILT

    previous_state: Optional[SubmissionState] = None

    transaction_id: Optional[str] = None
    """Ledger-assigned id; set on BROADCAST."""

    poll_attempts: int = 0
    """Total status polls across all poll rounds."""

    last_error: Optional[str] = None

    created_at: datetime = field(default_factory=_utcnow)
    broadcast_at: Optional[datetime] = None
    finalized_at: Optional[datetime] = None
    last_update_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "commitment_hash": self.commitment_hash,
            "address": self.address,
            "state": self.state.value,
            "previous_state": self.previous_state.value if self.previous_state else None,
            "transaction_id": self.transaction_id,
            "poll_attempts": self.poll_attempts,
            "last_error": self.last_error,
            "created_at": self.created_at.isoformat(),
            "broadcast_at": self.broadcast_at.isoformat() if self.broadcast_at else None,
            "finalized_at": self.finalized_at.isoformat() if self.finalized_at else None,
        }
