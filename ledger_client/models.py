"""
Ledger Client Models.

Typed views over ledger RPC payloads.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ledger_client.exceptions import LedgerResponseError


class TransactionStatus(str, Enum):
    """Observed status of a broadcast transaction."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @classmethod
    def parse(cls, raw: Any) -> "TransactionStatus":
        """
        Normalize a node-reported status string.

        Nodes report finalize outcomes as accepted/rejected; both
        spellings are accepted.
        """
        if isinstance(raw, cls):
            return raw
        value = str(raw or "").strip().lower()
        if value in _STATUS_ALIASES:
            return _STATUS_ALIASES[value]
        raise LedgerResponseError(f"Unknown transaction status: {raw!r}")


_STATUS_ALIASES: dict[str, TransactionStatus] = {
    "pending": TransactionStatus.PENDING,
    "unconfirmed": TransactionStatus.PENDING,
    "confirmed": TransactionStatus.CONFIRMED,
    "accepted": TransactionStatus.CONFIRMED,
    "finalized": TransactionStatus.CONFIRMED,
    "failed": TransactionStatus.FAILED,
    "rejected": TransactionStatus.FAILED,
    "aborted": TransactionStatus.FAILED,
}


@dataclass(frozen=True)
class LedgerTransaction:
    """Status snapshot of one transaction."""

    transaction_id: str
    status: TransactionStatus
    block_height: Optional[int] = None
    confirmed_at: Optional[int] = None  # epoch ms
    outputs: tuple = field(default_factory=tuple)
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not TransactionStatus.PENDING

    @classmethod
    def from_dict(cls, data: dict[str, Any], transaction_id: Optional[str] = None) -> "LedgerTransaction":
        """Create from an RPC response body."""
        if not isinstance(data, dict):
            raise LedgerResponseError(f"Transaction payload is not an object: {data!r}")

        tx_id = data.get("id") or data.get("transaction_id") or transaction_id
        if not tx_id:
            raise LedgerResponseError("Transaction payload has no id")

        block_height = data.get("block_height", data.get("blockHeight"))
        confirmed_at = data.get("confirmed_at", data.get("timestamp"))
        outputs = data.get("outputs") or ()

        return cls(
            transaction_id=str(tx_id),
            status=TransactionStatus.parse(data.get("status")),
            block_height=parse_ledger_integer(block_height),
            confirmed_at=parse_ledger_integer(confirmed_at),
            outputs=tuple(outputs),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class IssuedRecord:
    """Score record the ledger created for a confirmed submission."""

    owner: str
    score: int
    threshold: int
    issued_block: int
    issued_at: int  # epoch ms
    transaction_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "score": self.score,
            "threshold": self.threshold,
            "issued_block": self.issued_block,
            "issued_at": self.issued_at,
            "transaction_id": self.transaction_id,
        }


_TYPED_INTEGER = re.compile(r"^\s*(\d+)(?:[ui](?:8|16|32|64|128))?(?:\.(?:public|private))?\s*$")


def parse_ledger_integer(value: Any) -> Optional[int]:
    """
    Parse a ledger integer literal such as "720u32".

    Returns None for None; raises LedgerResponseError for garbage.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise LedgerResponseError(f"Not an integer literal: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    match = _TYPED_INTEGER.match(str(value))
    if match is None:
        raise LedgerResponseError(f"Not an integer literal: {value!r}")
    return int(match.group(1))
