"""
Deterministic Fallback Provider.

Address-hash derived values used when a live field query fails.
Same address, same values, across processes.

h = |32-bit signed rolling hash (h * 31 + ord(ch))|

- transaction_count:  h % 100
- account_age_months: h % 36 + 1
- activity_score:     h % 101
- repayment_rate:     h % 50 + 50
- balance:            h % 100000 + 1000
"""

from onchain_adapters.base import BaseMetricsProvider
from onchain_adapters.models import ProviderHealth


def address_hash(address: str) -> int:
    """32-bit signed rolling string hash, absolute value."""
    h = 0
    for ch in address:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


class DeterministicFallback(BaseMetricsProvider):
    """Never fails; values depend only on the address."""

    @property
    def name(self) -> str:
        return "fallback"

    async def query_transaction_count(self, address: str) -> int:
        return address_hash(address) % 100

    async def query_account_age_months(self, address: str) -> int:
        return address_hash(address) % 36 + 1

    async def query_activity_score(self, address: str) -> int:
        return address_hash(address) % 101

    async def query_repayment_rate(self, address: str) -> int:
        return address_hash(address) % 50 + 50

    async def query_balance(self, address: str) -> float:
        return float(address_hash(address) % 100000 + 1000)

    async def health_check(self) -> ProviderHealth:
        return ProviderHealth(provider_name=self.name, healthy=True)
