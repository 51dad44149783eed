"""
Scoring Engine - Credit Score.

============================================================
RESPONSIBILITY
============================================================
Converts raw activity metrics into a bounded credit score
(300-850) and a risk tier.

- Pure and side-effect free apart from the clock read
  that stamps produced_at
- Validation runs before scoring and rejects bad input;
  nothing is clamped
- breakdown() reuses the same bonus functions as calculate()

============================================================
ALGORITHM
============================================================
final = min(850, 300 + tx_bonus + age_bonus + activity_bonus
                 + repayment_bonus)

Each bonus is computed independently and capped before the
sum. Below-threshold inputs contribute 0.

The age bonus multiplies the FULL month count while the other
three multiply the excess above threshold. The asymmetry is
kept as-is; see tests/scoring_engine.

============================================================
"""

import logging
from numbers import Real
from typing import Any, Optional

from core.clock import ClockProtocol, get_clock
from core.constants import (
    ACCOUNT_AGE_RULE,
    ACTIVITY_SCORE_RULE,
    BASE_SCORE,
    LOW_RISK_MIN_SCORE,
    MAX_SCORE,
    MEDIUM_RISK_MIN_SCORE,
    PERCENTAGE_MAX,
    PERCENTAGE_MIN,
    REPAYMENT_RATE_RULE,
    TRANSACTION_COUNT_RULE,
)
from core.exceptions import ValidationError
from scoring_engine.models import ActivityMetrics, Assessment, RiskTier, ScoreBreakdown


logger = logging.getLogger(__name__)


# ============================================================
# BONUS FUNCTIONS
# ============================================================

def transaction_bonus(count: int) -> int:
    """(count - 10) * 5, capped at 100."""
    rule = TRANSACTION_COUNT_RULE
    if count < rule.threshold:
        return 0
    return min((count - rule.threshold) * rule.points_per_unit, rule.max_points)


def account_age_bonus(months: int) -> int:
    """months * 10 on the full value once months >= 3, capped at 100."""
    rule = ACCOUNT_AGE_RULE
    if months < rule.threshold:
        return 0
    return min(months * rule.points_per_unit, rule.max_points)


def activity_bonus(score: int) -> int:
    """(score - 20) * 3, capped at 100."""
    rule = ACTIVITY_SCORE_RULE
    if score < rule.threshold:
        return 0
    return min((score - rule.threshold) * rule.points_per_unit, rule.max_points)


def repayment_bonus(rate: int) -> int:
    """(rate - 75) * 2, capped at 150."""
    rule = REPAYMENT_RATE_RULE
    if rate < rule.threshold:
        return 0
    return min((rate - rule.threshold) * rule.points_per_unit, rule.max_points)


def risk_tier_for(score: int) -> RiskTier:
    """
    Map a final score to its risk tier.

    >=750 low, >=500 medium, otherwise high.
    """
    if score >= LOW_RISK_MIN_SCORE:
        return RiskTier.LOW
    if score >= MEDIUM_RISK_MIN_SCORE:
        return RiskTier.MEDIUM
    return RiskTier.HIGH


# ============================================================
# VALIDATION
# ============================================================

def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _require_non_negative_int(name: str, value: Any) -> None:
    if not _is_integer(value):
        raise ValidationError(f"{name} must be an integer", field_name=name, value=value)
    if value < 0:
        raise ValidationError(f"{name} cannot be negative", field_name=name, value=value)


def _require_percentage(name: str, value: Any) -> None:
    if not _is_integer(value):
        raise ValidationError(f"{name} must be an integer", field_name=name, value=value)
    if value < PERCENTAGE_MIN or value > PERCENTAGE_MAX:
        raise ValidationError(
            f"{name} must be between {PERCENTAGE_MIN} and {PERCENTAGE_MAX}",
            field_name=name,
            value=value,
        )


# ============================================================
# SCORING ENGINE
# ============================================================

class ScoringEngine:
    """
    Deterministic credit scoring over ActivityMetrics.

    Holds no state besides the clock used to stamp assessments,
    so one instance can be shared freely.
    """

    def __init__(self, clock: Optional[ClockProtocol] = None) -> None:
        self._clock = clock or get_clock()

    @staticmethod
    def validate(metrics: ActivityMetrics) -> None:
        """
        Validate every metric field against its declared range.

        Raises:
            ValidationError: naming the first offending field
        """
        _require_non_negative_int("transaction_count", metrics.transaction_count)
        _require_non_negative_int("account_age_months", metrics.account_age_months)
        _require_percentage("activity_score", metrics.activity_score)
        _require_percentage("repayment_rate", metrics.repayment_rate)

        if not isinstance(metrics.balance, Real) or isinstance(metrics.balance, bool):
            raise ValidationError(
                "balance must be a number", field_name="balance", value=metrics.balance
            )
        if metrics.balance < 0:
            raise ValidationError(
                "balance cannot be negative", field_name="balance", value=metrics.balance
            )
        _require_non_negative_int("last_activity_timestamp", metrics.last_activity_timestamp)

    def calculate(self, metrics: ActivityMetrics) -> Assessment:
        """
        Calculate a credit assessment.

        Args:
            metrics: Activity metrics for one account

        Returns:
            Assessment with final score in [300, 850]

        Raises:
            ValidationError: If any field is out of range
        """
        self.validate(metrics)

        bonus_points = (
            transaction_bonus(metrics.transaction_count)
            + account_age_bonus(metrics.account_age_months)
            + activity_bonus(metrics.activity_score)
            + repayment_bonus(metrics.repayment_rate)
        )
        final_score = min(MAX_SCORE, BASE_SCORE + bonus_points)

        assessment = Assessment(
            address=metrics.address,
            metrics=metrics,
            base_score=BASE_SCORE,
            bonus_points=bonus_points,
            final_score=final_score,
            risk_tier=risk_tier_for(final_score),
            produced_at=self._clock.epoch_millis(),
        )

        logger.debug(
            f"[ScoringEngine] {metrics.address}: score={final_score} "
            f"tier={assessment.risk_tier.value} bonus={bonus_points}"
        )
        return assessment

    @staticmethod
    def breakdown(assessment: Assessment) -> ScoreBreakdown:
        """Read-only projection of an assessment's four bonus components."""
        metrics = assessment.metrics
        return ScoreBreakdown(
            base=BASE_SCORE,
            transactions=transaction_bonus(metrics.transaction_count),
            account_age=account_age_bonus(metrics.account_age_months),
            activity=activity_bonus(metrics.activity_score),
            repayment=repayment_bonus(metrics.repayment_rate),
            total=assessment.final_score,
            max_possible=MAX_SCORE,
        )
