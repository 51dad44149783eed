"""
Ledger Client Package.

Supporting utilities for talking to the ledger node.

Modules:
- address: Address format contract
- base: LedgerClient interface
- rpc: aiohttp implementation
- mock: In-memory ledger
- signing: Transaction signing
- models: LedgerTransaction, IssuedRecord
- exceptions: Transport-level errors
"""

from ledger_client.address import is_valid_address, shorten, validate_address
from ledger_client.base import LedgerClient
from ledger_client.exceptions import (
    LedgerClientError,
    LedgerNotFoundError,
    LedgerResponseError,
    LedgerRpcError,
    LedgerTimeoutError,
)
from ledger_client.mock import MockLedger, MockLedgerConfig
from ledger_client.models import (
    IssuedRecord,
    LedgerTransaction,
    TransactionStatus,
    parse_ledger_integer,
)
from ledger_client.rpc import LedgerRpcClient
from ledger_client.signing import sign_transaction, verify_signature

__all__ = [
    "is_valid_address",
    "validate_address",
    "shorten",
    "LedgerClient",
    "LedgerRpcClient",
    "MockLedger",
    "MockLedgerConfig",
    "LedgerTransaction",
    "TransactionStatus",
    "IssuedRecord",
    "parse_ledger_integer",
    "sign_transaction",
    "verify_signature",
    "LedgerClientError",
    "LedgerRpcError",
    "LedgerNotFoundError",
    "LedgerTimeoutError",
    "LedgerResponseError",
]
