"""
Base Ledger Client - Abstract interface to the ledger RPC node.

Implementations:
- LedgerRpcClient: HTTP JSON node via aiohttp
- MockLedger: in-memory ledger for tests and --mock runs
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from ledger_client.models import LedgerTransaction


class LedgerClient(ABC):
    """
    Abstract ledger client.

    Each client must implement:
    1. broadcast_transaction() - submit a signed transaction
    2. get_transaction() - read its current status
    3. get_mapping_value() - read one public mapping entry
    4. get_account_resource() - read account activity data
    5. health() - liveness check
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this client."""
        pass

    @abstractmethod
    async def broadcast_transaction(self, transaction: dict[str, Any]) -> str:
        """
        Broadcast a signed transaction.

        Returns:
            Ledger-assigned transaction id
        """
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> LedgerTransaction:
        """Get the current status of a transaction."""
        pass

    @abstractmethod
    async def get_mapping_value(
        self,
        program_id: str,
        mapping: str,
        key: str,
    ) -> Optional[str]:
        """Read a mapping entry; None when the key is absent."""
        pass

    @abstractmethod
    async def get_account_resource(self, address: str, resource: str) -> dict[str, Any]:
        """Read an account resource such as "transactions" or "info"."""
        pass

    @abstractmethod
    async def health(self, timeout: Optional[float] = None) -> bool:
        """Return True when the node answers its health endpoint."""
        pass

    async def close(self) -> None:
        """Release any held connections."""
        return None

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
