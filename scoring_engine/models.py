"""
Scoring Engine - Models.

Immutable records flowing from metrics acquisition into scoring.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class RiskTier(str, Enum):
    """Coarse creditworthiness classification."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class ActivityMetrics:
    """
    Raw activity metrics for one account at one fetch time.

    Ranges are enforced by ScoringEngine.validate(), not here:
    out-of-range data must reach validation verbatim.
    """
    address: str
    transaction_count: int
    account_age_months: int
    activity_score: int  # 0-100
    repayment_rate: int  # 0-100 percentage
    balance: float
    last_activity_timestamp: int  # epoch ms

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "address": self.address,
            "transaction_count": self.transaction_count,
            "account_age_months": self.account_age_months,
            "activity_score": self.activity_score,
            "repayment_rate": self.repayment_rate,
            "balance": self.balance,
            "last_activity_timestamp": self.last_activity_timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActivityMetrics":
        """Create from dictionary."""
        return cls(
            address=data["address"],
            transaction_count=data["transaction_count"],
            account_age_months=data["account_age_months"],
            activity_score=data["activity_score"],
            repayment_rate=data["repayment_rate"],
            balance=data["balance"],
            last_activity_timestamp=data.get("last_activity_timestamp", 0),
        )


@dataclass(frozen=True)
class Assessment:
    """Credit assessment derived purely from one ActivityMetrics."""
    address: str
    metrics: ActivityMetrics
    base_score: int
    bonus_points: int
    final_score: int  # 300-850
    risk_tier: RiskTier
    produced_at: int  # epoch ms

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "metrics": self.metrics.to_dict(),
            "base_score": self.base_score,
            "bonus_points": self.bonus_points,
            "final_score": self.final_score,
            "risk_tier": self.risk_tier.value,
            "produced_at": self.produced_at,
        }


@dataclass(frozen=True)
class ScoreBreakdown:
    """Per-factor contribution of an assessment, for display."""
    base: int
    transactions: int
    account_age: int
    activity: int
    repayment: int
    total: int
    max_possible: int

    @property
    def bonus_total(self) -> int:
        return self.transactions + self.account_age + self.activity + self.repayment

    def to_dict(self) -> dict[str, Any]:
        return {
            "base": self.base,
            "bonuses": {
                "transactions": self.transactions,
                "account_age": self.account_age,
                "activity": self.activity,
                "repayment": self.repayment,
            },
            "total": self.total,
            "max_possible": self.max_possible,
        }
