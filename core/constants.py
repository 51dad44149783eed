"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Fixed protocol constants shared by every pipeline stage.

- Scoring table (base, ceiling, per-factor threshold/rate/cap)
- Risk tier breakpoints
- Address format contract
- Default network, cache, RPC and polling parameters

Values here are part of the scoring contract. Changing them
changes every score the system produces.

============================================================
"""

from dataclasses import dataclass
from typing import Final


# ============================================================
# SCORING
# ============================================================

BASE_SCORE: Final[int] = 300
MAX_SCORE: Final[int] = 850


@dataclass(frozen=True)
class BonusRule:
    """Threshold/rate/cap triple for one scoring factor."""

    threshold: int
    """Inputs below this contribute nothing."""

    points_per_unit: int
    """Points per unit (above threshold, or of the full value for age)."""

    max_points: int
    """Per-factor cap applied before summing."""


TRANSACTION_COUNT_RULE: Final = BonusRule(threshold=10, points_per_unit=5, max_points=100)
ACCOUNT_AGE_RULE: Final = BonusRule(threshold=3, points_per_unit=10, max_points=100)
ACTIVITY_SCORE_RULE: Final = BonusRule(threshold=20, points_per_unit=3, max_points=100)
REPAYMENT_RATE_RULE: Final = BonusRule(threshold=75, points_per_unit=2, max_points=150)

PERCENTAGE_MIN: Final[int] = 0
PERCENTAGE_MAX: Final[int] = 100


# ============================================================
# RISK TIERS
# ============================================================

LOW_RISK_MIN_SCORE: Final[int] = 750
MEDIUM_RISK_MIN_SCORE: Final[int] = 500


# ============================================================
# ADDRESS FORMAT
# ============================================================

ADDRESS_PREFIX: Final[str] = "aleo1"
ADDRESS_LENGTH: Final[int] = 63
ADDRESS_CHARSET: Final[str] = "abcdefghijklmnopqrstuvwxyz0123456789"


# ============================================================
# NETWORK DEFAULTS
# ============================================================

MAINNET_RPC_URL: Final[str] = "https://api.explorer.aleo.org/v1"
MAINNET_EXPLORER_URL: Final[str] = "https://explorer.aleo.org"
TESTNET_RPC_URL: Final[str] = "https://api.explorer.aleo.org/v1/testnet3"
TESTNET_EXPLORER_URL: Final[str] = "https://explorer.aleo.org/testnet3"

DEFAULT_PROGRAM_ID: Final[str] = "credit_score.aleo"
VERIFY_FUNCTION_NAME: Final[str] = "verify_and_issue"
SCORES_MAPPING_NAME: Final[str] = "scores"
DEFAULT_FEE_MICROCREDITS: Final[int] = 1_000_000

MIN_ACCEPTABLE_SCORE: Final[int] = BASE_SCORE


# ============================================================
# CACHE / RPC / POLLING DEFAULTS
# ============================================================

METRICS_CACHE_CAPACITY: Final[int] = 100
METRICS_CACHE_TTL_SECONDS: Final[float] = 3600.0
FIELD_QUERY_TIMEOUT_SECONDS: Final[float] = 10.0

RPC_TIMEOUT_SECONDS: Final[float] = 10.0
RPC_MAX_ATTEMPTS: Final[int] = 3
RPC_BACKOFF_BASE_SECONDS: Final[float] = 1.0
HEALTH_TIMEOUT_SECONDS: Final[float] = 5.0

TX_POLL_INTERVAL_SECONDS: Final[float] = 0.5
TX_POLL_MAX_ATTEMPTS: Final[int] = 20

# Settled submissions kept with full history; older ones keep only their hash.
SUBMISSION_REGISTRY_CAPACITY: Final[int] = 256
RETIRED_COMMITMENT_CAPACITY: Final[int] = 10_000

PROOF_MIN_LATENCY_SECONDS: Final[float] = 2.0
PROOF_MAX_LATENCY_SECONDS: Final[float] = 3.0
PROOF_TIMEOUT_SECONDS: Final[float] = 30.0

MILLIS_PER_MONTH: Final[int] = 1000 * 60 * 60 * 24 * 30
