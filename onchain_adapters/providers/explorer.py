"""
Explorer Metrics Provider - account activity from the ledger node.

Resources (GET /account/{address}/...):
- transactions -> {"count": int}
- info         -> {"firstSeen": epoch ms}
- defi         -> {"score": 0-100}
- lending      -> {"repaymentRate": 0-100}
- balance      -> {"balance": number}

A missing key or a non-numeric value raises, so MetricsStore
falls back for that field alone. Values are not clamped.
"""

import logging
import time
from typing import Any, Optional

from core.clock import ClockProtocol, get_clock
from core.constants import MILLIS_PER_MONTH
from ledger_client.base import LedgerClient
from ledger_client.exceptions import LedgerClientError
from onchain_adapters.base import BaseMetricsProvider, coerce_integer, coerce_number
from onchain_adapters.models import ProviderHealth


logger = logging.getLogger(__name__)


class ExplorerMetricsProvider(BaseMetricsProvider):
    """Reads account activity resources through a LedgerClient."""

    def __init__(
        self,
        ledger: LedgerClient,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._ledger = ledger
        self._clock = clock or get_clock()

    @property
    def name(self) -> str:
        return "explorer"

    async def _read(self, address: str, resource: str, key: str) -> Any:
        body = await self._ledger.get_account_resource(address, resource)
        if key not in body or body[key] is None:
            raise ValueError(f"'{resource}' response has no '{key}'")
        return body[key]

    async def query_transaction_count(self, address: str) -> int:
        value = await self._read(address, "transactions", "count")
        return coerce_integer(value, "transactions.count")

    async def query_account_age_months(self, address: str) -> int:
        first_seen = coerce_number(
            await self._read(address, "info", "firstSeen"), "info.firstSeen"
        )
        age_ms = self._clock.epoch_millis() - first_seen
        return max(0, int(age_ms // MILLIS_PER_MONTH))

    async def query_activity_score(self, address: str) -> int:
        value = await self._read(address, "defi", "score")
        return coerce_integer(value, "defi.score")

    async def query_repayment_rate(self, address: str) -> int:
        value = await self._read(address, "lending", "repaymentRate")
        return coerce_integer(value, "lending.repaymentRate")

    async def query_balance(self, address: str) -> float:
        value = await self._read(address, "balance", "balance")
        return coerce_number(value, "balance.balance")

    async def health_check(self) -> ProviderHealth:
        start = time.monotonic()
        try:
            healthy = await self._ledger.health()
        except LedgerClientError as e:
            logger.warning(f"[{self.name}] Health check failed: {e}")
            return ProviderHealth(
                provider_name=self.name,
                healthy=False,
                latency_ms=(time.monotonic() - start) * 1000,
                last_error=str(e),
            )
        return ProviderHealth(
            provider_name=self.name,
            healthy=bool(healthy),
            latency_ms=(time.monotonic() - start) * 1000,
            details={"ledger": self._ledger.name},
        )
