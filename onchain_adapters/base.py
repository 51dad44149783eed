"""
Base Metrics Provider - Abstract interface for activity metric sources.

All providers MUST:
- Answer each field independently (one failing field never
  blocks the others)
- Raise on unusable data instead of inventing a value
- Never clamp: out-of-range data reaches validation verbatim
"""

import logging
from abc import ABC, abstractmethod
from numbers import Real
from typing import Any, Awaitable, Callable

from onchain_adapters.models import MetricField, ProviderHealth


logger = logging.getLogger(__name__)


class BaseMetricsProvider(ABC):
    """
    Abstract base class for activity metric providers.

    Each provider must implement one coroutine per MetricField
    plus health_check().
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this provider."""
        pass

    @abstractmethod
    async def query_transaction_count(self, address: str) -> int:
        pass

    @abstractmethod
    async def query_account_age_months(self, address: str) -> int:
        pass

    @abstractmethod
    async def query_activity_score(self, address: str) -> int:
        pass

    @abstractmethod
    async def query_repayment_rate(self, address: str) -> int:
        pass

    @abstractmethod
    async def query_balance(self, address: str) -> float:
        pass

    @abstractmethod
    async def health_check(self) -> ProviderHealth:
        pass

    def query_for(self, metric: MetricField) -> Callable[[str], Awaitable[Any]]:
        """Return the coroutine function answering one field."""
        return {
            MetricField.TRANSACTION_COUNT: self.query_transaction_count,
            MetricField.ACCOUNT_AGE_MONTHS: self.query_account_age_months,
            MetricField.ACTIVITY_SCORE: self.query_activity_score,
            MetricField.REPAYMENT_RATE: self.query_repayment_rate,
            MetricField.BALANCE: self.query_balance,
        }[metric]

    async def query(self, metric: MetricField, address: str) -> Any:
        return await self.query_for(metric)(address)


def coerce_integer(value: Any, source: str) -> Any:
    """
    Coerce a JSON number to int where it is integral.

    Non-integral numbers are returned unchanged so that
    validation rejects them. Non-numbers raise ValueError.
    """
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValueError(f"{source} is not a number: {value!r}")
    if isinstance(value, int):
        return value
    if float(value).is_integer():
        return int(value)
    return value


def coerce_number(value: Any, source: str) -> float:
    """Accept any JSON number; raise ValueError otherwise."""
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValueError(f"{source} is not a number: {value!r}")
    return value
