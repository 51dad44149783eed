"""
Providers package - activity metric provider implementations.
"""

from onchain_adapters.providers.explorer import ExplorerMetricsProvider
from onchain_adapters.providers.fallback import DeterministicFallback, address_hash


__all__ = [
    "ExplorerMetricsProvider",
    "DeterministicFallback",
    "address_hash",
]
