"""
Attestation - Models.

Witness: hidden inputs plus the declared public values.
WitnessComponents: opaque prover output (a, b, c).
Commitment: what gets submitted on-chain.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Witness:
    """
    Prover input for one assessment.

    The metric fields and nonce stay private; final_score,
    produced_at and address are the public values.
    """
    score: int
    transaction_count: int
    account_age_months: int
    activity_score: int
    repayment_rate: int
    nonce: str  # 32 random bytes, hex
    score_threshold: int
    produced_at: int  # epoch ms
    address: str

    def public_values(self) -> tuple[str, ...]:
        """Ordered (final score, produced_at, address)."""
        return (str(self.score), str(self.produced_at), self.address)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "transaction_count": self.transaction_count,
            "account_age_months": self.account_age_months,
            "activity_score": self.activity_score,
            "repayment_rate": self.repayment_rate,
            "nonce": self.nonce,
            "score_threshold": self.score_threshold,
            "produced_at": self.produced_at,
            "address": self.address,
        }


@dataclass(frozen=True)
class WitnessComponents:
    """Prover output: a (2), b (2x2), c (2) hex strings."""
    a: tuple[str, str]
    b: tuple[tuple[str, str], tuple[str, str]]
    c: tuple[str, str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "a": list(self.a),
            "b": [list(row) for row in self.b],
            "c": list(self.c),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WitnessComponents":
        return cls(
            a=tuple(data["a"]),
            b=tuple(tuple(row) for row in data["b"]),
            c=tuple(data["c"]),
        )


@dataclass(frozen=True)
class Commitment:
    """Attestation ready for submission. One per attempt."""
    commitment_hash: str
    public_values: tuple[str, ...]
    witness_components: WitnessComponents

    @property
    def public_score(self) -> int:
        return int(self.public_values[0])

    @property
    def produced_at(self) -> int:
        return int(self.public_values[1])

    @property
    def address(self) -> str:
        return self.public_values[2]

    def to_dict(self) -> dict[str, Any]:
        return {
            "commitment_hash": self.commitment_hash,
            "public_values": list(self.public_values),
            "witness_components": self.witness_components.to_dict(),
        }
