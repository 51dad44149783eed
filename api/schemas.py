"""
Pydantic schemas for the ProofScore HTTP API.
"""
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, Field

# =======================
# COMMON
# =======================

class BaseResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

class ErrorDetail(BaseModel):
    code: str
    message: str
    stage: Optional[str] = None
    transaction_id: Optional[str] = None
    retryable: bool = False
    resubmit_safe: bool = False

class ErrorResponse(BaseResponse):
    success: bool = False
    error: ErrorDetail

# =======================
# 1. HEALTH
# =======================

class CacheStatsData(BaseModel):
    size: int
    capacity: int
    ttl_seconds: float
    hits: int
    misses: int

class HealthData(BaseModel):
    ledger: str
    ledger_healthy: bool
    cache: CacheStatsData

class HealthResponse(BaseResponse):
    data: HealthData

# =======================
# 2. METRICS
# =======================

class FieldProvenance(BaseModel):
    field: str
    value: Any
    source: str  # live, fallback
    fallback_reason: Optional[str] = None

class MetricsData(BaseModel):
    address: str
    transaction_count: int
    account_age_months: int
    activity_score: int
    repayment_rate: int
    balance: float
    last_activity_timestamp: int
    cached: bool
    fields: List[FieldProvenance]

class MetricsResponse(BaseResponse):
    data: MetricsData

# =======================
# 3. ASSESSMENT
# =======================

class BonusBreakdown(BaseModel):
    transactions: int
    account_age: int
    activity: int
    repayment: int

class BreakdownData(BaseModel):
    base: int
    bonuses: BonusBreakdown
    total: int
    max_possible: int

class AssessmentData(BaseModel):
    address: str
    final_score: int
    risk_tier: str  # low, medium, high
    base_score: int
    bonus_points: int
    produced_at: int
    breakdown: BreakdownData
    fallback_fields: List[str]

class AssessmentResponse(BaseResponse):
    data: AssessmentData

# =======================
# 4. ISSUANCE
# =======================

class IssuanceRequest(BaseModel):
    signing_key: str = Field(..., min_length=1)

class IssuedRecordData(BaseModel):
    owner: str
    score: int
    threshold: int
    issued_block: int
    issued_at: int
    transaction_id: str

class IssuanceData(BaseModel):
    transaction_id: str
    issued_record: IssuedRecordData
    attempts: int
    explorer_url: str

class IssuanceResponse(BaseResponse):
    data: IssuanceData

# =======================
# 5. ON-CHAIN SCORE
# =======================

class ScoreData(BaseModel):
    address: str
    score: Optional[int] = None
    issued: bool

class ScoreResponse(BaseResponse):
    data: ScoreData
