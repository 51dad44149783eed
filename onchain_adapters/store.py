"""
On-chain Adapters - Metrics Store.

============================================================
RESPONSIBILITY
============================================================
Turns an address into ActivityMetrics.

- Address format is checked before any query
- Cache hit: cached metrics returned as-is
- Cache miss: the five field queries run concurrently, each
  with its own deadline; a failed field takes its fallback
  value and records why
- The assembled result is cached, degraded or not, once it
  passes range validation

============================================================
"""

import asyncio
import dataclasses
import logging
from typing import Callable, Optional, Union

from core.clock import ClockProtocol, get_clock
from core.constants import FIELD_QUERY_TIMEOUT_SECONDS
from core.exceptions import MetricsFetchError, ValidationError
from ledger_client.address import shorten, validate_address
from onchain_adapters.base import BaseMetricsProvider
from onchain_adapters.cache import MetricsCache
from onchain_adapters.models import (
    CacheEntry,
    CacheStats,
    FieldResult,
    FieldSource,
    MetricField,
    MetricsFetchReport,
    ProviderHealth,
)
from onchain_adapters.providers.fallback import DeterministicFallback
from scoring_engine.credit_score import ScoringEngine
from scoring_engine.models import ActivityMetrics


logger = logging.getLogger(__name__)


class MetricsStore:
    """
    Cached, fault-tolerant activity metrics acquisition.

    Example:
        store = MetricsStore(ExplorerMetricsProvider(ledger))
        metrics = await store.fetch("aleo1...")
    """

    def __init__(
        self,
        provider: BaseMetricsProvider,
        fallback: Optional[BaseMetricsProvider] = None,
        cache: Optional[MetricsCache] = None,
        field_timeout: float = FIELD_QUERY_TIMEOUT_SECONDS,
        fallback_enabled: bool = True,
        clock: Optional[ClockProtocol] = None,
        validator: Callable[[ActivityMetrics], None] = ScoringEngine.validate,
    ) -> None:
        self._clock = clock or get_clock()
        self._validator = validator
        self._provider = provider
        self._fallback = fallback or DeterministicFallback()
        self._cache = cache or MetricsCache(clock=self._clock)
        self._field_timeout = field_timeout
        self._fallback_enabled = fallback_enabled

    @property
    def provider(self) -> BaseMetricsProvider:
        return self._provider

    @property
    def cache(self) -> MetricsCache:
        return self._cache

    async def fetch(self, address: str) -> ActivityMetrics:
        """
        Fetch activity metrics for an address.

        Raises:
            AddressFormatError: Before any query, for a malformed address
            MetricsFetchError: A field failed and fallback is disabled
        """
        report = await self.fetch_report(address)
        return report.metrics

    async def fetch_report(self, address: str) -> MetricsFetchReport:
        """Fetch metrics together with per-field provenance."""
        validate_address(address)

        entry = self._cache.get(address)
        if entry is not None:
            logger.debug(f"[MetricsStore] Cache hit for {shorten(address)}")
            return dataclasses.replace(entry.report, cached=True)

        outcomes = await asyncio.gather(
            *(self._query_live(metric, address) for metric in MetricField)
        )
        failures = {
            metric: reason
            for metric, reason in zip(MetricField, outcomes)
            if isinstance(reason, str)
        }

        if failures and not self._fallback_enabled:
            names = [metric.value for metric in failures]
            raise MetricsFetchError(
                f"Metric fields unavailable for {address}: {', '.join(names)}",
                failed_fields=names,
                context={"reasons": {m.value: r for m, r in failures.items()}},
            )

        fields: list[FieldResult] = []
        for metric, outcome in zip(MetricField, outcomes):
            if isinstance(outcome, FieldResult):
                fields.append(outcome)
                continue
            value = await self._fallback.query(metric, address)
            logger.warning(
                f"[MetricsStore] {metric.value} for {shorten(address)} "
                f"using fallback ({outcome})"
            )
            fields.append(FieldResult(metric, value, FieldSource.FALLBACK, outcome))

        values = {result.field.value: result.value for result in fields}
        metrics = ActivityMetrics(
            address=address,
            last_activity_timestamp=self._clock.epoch_millis(),
            **values,
        )
        report = MetricsFetchReport(metrics=metrics, fields=tuple(fields), cached=False)
        try:
            self._validator(metrics)
        except ValidationError as e:
            logger.warning(f"[MetricsStore] Not caching {shorten(address)}: {e.message}")
        else:
            self._cache.put(address, report)

        if failures:
            logger.info(
                f"[MetricsStore] Fetched {shorten(address)} degraded: "
                f"{len(failures)}/{len(fields)} fields from fallback"
            )
        else:
            logger.info(f"[MetricsStore] Fetched {shorten(address)} live")
        return report

    async def _query_live(self, metric: MetricField, address: str) -> Union[FieldResult, str]:
        """Query one field; a failure is returned as its reason string."""
        try:
            value = await asyncio.wait_for(
                self._provider.query(metric, address),
                timeout=self._field_timeout,
            )
        except asyncio.TimeoutError:
            return f"timeout after {self._field_timeout}s"
        except Exception as e:
            return f"{e.__class__.__name__}: {e}"
        return FieldResult(metric, value, FieldSource.LIVE)

    def peek(self, address: str) -> Optional[CacheEntry]:
        """Live cache entry for address without touching recency."""
        return self._cache.peek(address)

    def invalidate(self, address: str) -> bool:
        removed = self._cache.invalidate(address)
        if removed:
            logger.debug(f"[MetricsStore] Invalidated {shorten(address)}")
        return removed

    def invalidate_all(self) -> None:
        self._cache.clear()
        logger.info("[MetricsStore] Cache cleared")

    def stats(self) -> CacheStats:
        return self._cache.stats()

    async def health_check(self) -> ProviderHealth:
        return await self._provider.health_check()
