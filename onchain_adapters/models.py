"""
On-chain Adapters - Models.

Per-field provenance and cache bookkeeping for MetricsStore.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from scoring_engine.models import ActivityMetrics


class MetricField(Enum):
    """The five independently queried activity metrics."""
    TRANSACTION_COUNT = "transaction_count"
    ACCOUNT_AGE_MONTHS = "account_age_months"
    ACTIVITY_SCORE = "activity_score"
    REPAYMENT_RATE = "repayment_rate"
    BALANCE = "balance"


class FieldSource(Enum):
    """Where a field value came from."""
    LIVE = "live"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class FieldResult:
    """Outcome of one field query."""
    field: MetricField
    value: Any
    source: FieldSource
    fallback_reason: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.source is FieldSource.FALLBACK

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field.value,
            "value": self.value,
            "source": self.source.value,
            "fallback_reason": self.fallback_reason,
        }


@dataclass(frozen=True)
class MetricsFetchReport:
    """ActivityMetrics plus how each field was obtained."""
    metrics: ActivityMetrics
    fields: tuple[FieldResult, ...]
    cached: bool = False

    @property
    def fallback_fields(self) -> tuple[MetricField, ...]:
        return tuple(r.field for r in self.fields if r.is_fallback)

    @property
    def degraded(self) -> bool:
        return bool(self.fallback_fields)

    def to_dict(self) -> dict[str, Any]:
        return {
            "metrics": self.metrics.to_dict(),
            "fields": [r.to_dict() for r in self.fields],
            "cached": self.cached,
            "fallback_fields": [f.value for f in self.fallback_fields],
        }


@dataclass
class CacheEntry:
    """Cache entry for one address. Times are clock timestamps (seconds)."""
    report: MetricsFetchReport
    created_at: float
    expires_at: float
    hits: int = 0

    @property
    def metrics(self) -> ActivityMetrics:
        return self.report.metrics

    def is_expired(self, now: float) -> bool:
        """Check if cache entry is expired."""
        return now >= self.expires_at


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of cache counters."""
    size: int
    capacity: int
    ttl_seconds: float
    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @property
    def hit_rate_percent(self) -> float:
        total = self.hits + self.misses
        return round(self.hits / total * 100, 2) if total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "size": self.size,
            "capacity": self.capacity,
            "ttl_seconds": self.ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate_percent": self.hit_rate_percent,
        }


@dataclass
class ProviderHealth:
    """Health snapshot of a metrics provider."""
    provider_name: str
    healthy: bool
    latency_ms: Optional[float] = None
    last_error: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider_name": self.provider_name,
            "healthy": self.healthy,
            "latency_ms": self.latency_ms,
            "last_error": self.last_error,
            "details": self.details,
        }
