"""
Scoring Engine Package.

Computes the 300-850 credit score and risk tier from
account activity metrics.

Modules:
- models: ActivityMetrics, Assessment, RiskTier, ScoreBreakdown
- credit_score: ScoringEngine and the four bonus functions
"""

from scoring_engine.credit_score import (
    ScoringEngine,
    account_age_bonus,
    activity_bonus,
    repayment_bonus,
    risk_tier_for,
    transaction_bonus,
)
from scoring_engine.models import ActivityMetrics, Assessment, RiskTier, ScoreBreakdown

__all__ = [
    "ScoringEngine",
    "ActivityMetrics",
    "Assessment",
    "RiskTier",
    "ScoreBreakdown",
    "transaction_bonus",
    "account_age_bonus",
    "activity_bonus",
    "repayment_bonus",
    "risk_tier_for",
]
