"""
On-chain Adapters Package - Activity metrics acquisition.

Features:
- Per-field queries with individual deadlines
- Deterministic per-field fallback with recorded reason
- TTL + LRU cache keyed by address

Quick Start:
    from ledger_client import LedgerRpcClient
    from onchain_adapters import ExplorerMetricsProvider, MetricsStore

    async def load(address):
        ledger = LedgerRpcClient("https://api.explorer.aleo.org/v1")
        store = MetricsStore(ExplorerMetricsProvider(ledger))
        report = await store.fetch_report(address)
        print(report.metrics.transaction_count, report.fallback_fields)
"""

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
from onchain_adapters.providers import (
    DeterministicFallback,
    ExplorerMetricsProvider,
    address_hash,
)
from onchain_adapters.store import MetricsStore


__all__ = [
    "MetricsStore",
    "MetricsCache",
    "BaseMetricsProvider",
    "ExplorerMetricsProvider",
    "DeterministicFallback",
    "address_hash",
    "MetricField",
    "FieldSource",
    "FieldResult",
    "MetricsFetchReport",
    "CacheEntry",
    "CacheStats",
    "ProviderHealth",
]
