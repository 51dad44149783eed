"""
Ledger Client - Mock Ledger.

============================================================
PURPOSE
============================================================
In-memory ledger for tests and --mock runs.

FEATURES:
- Configurable confirmation delay (in polls) and final status
- Broadcast / poll / health error injection
- Seedable account resources and score mapping
- Confirmed verify transactions write the scores mapping for
  commitments whose public score was registered
- Full broadcast history

============================================================
"""

import asyncio
import logging
import random
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from core.clock import ClockProtocol, get_clock
from core.constants import DEFAULT_PROGRAM_ID, SCORES_MAPPING_NAME
from ledger_client.base import LedgerClient
from ledger_client.exceptions import (
    LedgerNotFoundError,
    LedgerRpcError,
    LedgerTimeoutError,
)
from ledger_client.models import LedgerTransaction, TransactionStatus


logger = logging.getLogger(__name__)


# ============================================================
# MOCK CONFIGURATION
# ============================================================

@dataclass
class MockLedgerConfig:
    """Configuration for the mock ledger."""

    confirm_after_polls: int = 1
    """Polls answered with pending before the final status is reported."""

    final_status: TransactionStatus = TransactionStatus.CONFIRMED
    """Status reported once confirm_after_polls is reached. PENDING never resolves."""

    healthy: bool = True
    """Health endpoint result."""

    fail_broadcast: bool = False
    """Reject every broadcast."""

    min_latency_ms: float = 0.0
    max_latency_ms: float = 0.0

    start_block_height: int = 1_000_000

    record_owner: Optional[str] = None
    """Override the owner written into confirmed outputs."""

    emit_outputs: bool = True
    """Whether confirmed transactions carry a record output."""


@dataclass
class MockTransaction:
    """Mock transaction state."""

    transaction_id: str
    payload: dict[str, Any]
    polls: int = 0
    status: TransactionStatus = TransactionStatus.PENDING
    block_height: Optional[int] = None
    confirmed_at: Optional[int] = None
    outputs: list = field(default_factory=list)


# ============================================================
# MOCK LEDGER
# ============================================================

class MockLedger(LedgerClient):
    """
    Mock ledger node.

    A broadcast transaction stays pending for confirm_after_polls
    get_transaction() calls, then resolves to final_status.
    """

    def __init__(
        self,
        config: Optional[MockLedgerConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._config = config or MockLedgerConfig()
        self._clock = clock or get_clock()
        self._init_state()

    def _init_state(self) -> None:
        self._transactions: dict[str, MockTransaction] = {}
        self._mappings: dict[tuple[str, str], dict[str, str]] = {}
        self._accounts: dict[str, dict[str, dict[str, Any]]] = {}
        self._failing_resources: set[str] = set()
        self._commitment_scores: dict[str, int] = {}
        self._block_height = self._config.start_block_height
        self._poll_errors_remaining = 0
        self.broadcasts: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "mock_ledger"

    @property
    def config(self) -> MockLedgerConfig:
        return self._config

    # --------------------------------------------------------
    # LedgerClient interface
    # --------------------------------------------------------

    async def broadcast_transaction(self, transaction: dict[str, Any]) -> str:
        await self._simulate_latency()

        if self._config.fail_broadcast:
            raise LedgerRpcError("Broadcast rejected by mock ledger", status_code=503)

        tx_id = f"at1{uuid.uuid4().hex}"
        self._transactions[tx_id] = MockTransaction(
            transaction_id=tx_id,
            payload=dict(transaction),
        )
        self.broadcasts.append(dict(transaction))
        logger.debug(f"[{self.name}] Broadcast accepted: {tx_id}")
        return tx_id

    async def get_transaction(self, transaction_id: str) -> LedgerTransaction:
        await self._simulate_latency()

        if self._poll_errors_remaining > 0:
            self._poll_errors_remaining -= 1
            raise LedgerTimeoutError("Injected poll error")

        tx = self._transactions.get(transaction_id)
        if tx is None:
            raise LedgerNotFoundError(
                f"Unknown transaction {transaction_id}", status_code=404
            )

        tx.polls += 1
        if tx.status is TransactionStatus.PENDING and tx.polls >= self._config.confirm_after_polls:
            self._resolve(tx, self._config.final_status)

        return LedgerTransaction(
            transaction_id=tx.transaction_id,
            status=tx.status,
            block_height=tx.block_height,
            confirmed_at=tx.confirmed_at,
            outputs=tuple(tx.outputs),
        )

    async def get_mapping_value(
        self,
        program_id: str,
        mapping: str,
        key: str,
    ) -> Optional[str]:
        await self._simulate_latency()
        if "mapping" in self._failing_resources:
            raise LedgerRpcError("Injected mapping failure", status_code=500)
        return self._mappings.get((program_id, mapping), {}).get(key)

    async def get_account_resource(self, address: str, resource: str) -> dict[str, Any]:
        await self._simulate_latency()
        if resource in self._failing_resources:
            raise LedgerRpcError(f"Injected failure for {resource}", status_code=500)

        data = self._accounts.get(address, {}).get(resource)
        if data is None:
            raise LedgerNotFoundError(f"No {resource} data for {address}", status_code=404)
        return dict(data)

    async def health(self, timeout: Optional[float] = None) -> bool:
        if not self._config.healthy:
            raise LedgerRpcError("Mock ledger unhealthy", status_code=503)
        return True

    # --------------------------------------------------------
    # TEST HELPERS
    # --------------------------------------------------------

    def set_account(
        self,
        address: str,
        transactions: Optional[int] = None,
        first_seen: Optional[int] = None,
        defi_score: Optional[int] = None,
        repayment_rate: Optional[int] = None,
        balance: Optional[float] = None,
    ) -> None:
        """Seed account resources; None leaves a resource absent."""
        resources = self._accounts.setdefault(address, {})
        if transactions is not None:
            resources["transactions"] = {"count": transactions}
        if first_seen is not None:
            resources["info"] = {"firstSeen": first_seen}
        if defi_score is not None:
            resources["defi"] = {"score": defi_score}
        if repayment_rate is not None:
            resources["lending"] = {"repaymentRate": repayment_rate}
        if balance is not None:
            resources["balance"] = {"balance": balance}

    def set_account_resource(self, address: str, resource: str, data: dict[str, Any]) -> None:
        """Seed one raw resource payload."""
        self._accounts.setdefault(address, {})[resource] = dict(data)

    def fail_resource(self, resource: str) -> None:
        """Make every read of a resource ("transactions", "mapping", ...) fail."""
        self._failing_resources.add(resource)

    def inject_poll_errors(self, count: int) -> None:
        """Fail the next count get_transaction() calls."""
        self._poll_errors_remaining = count

    def issue_score(
        self,
        address: str,
        score: int,
        program_id: str = DEFAULT_PROGRAM_ID,
    ) -> None:
        """Seed the public scores mapping."""
        self._mappings.setdefault((program_id, SCORES_MAPPING_NAME), {})[address] = f"{score}u32"

    def register_commitment(self, commitment_hash: str, score: int) -> None:
        """Public score the simulated program recovers when verifying this commitment."""
        self._commitment_scores[commitment_hash] = score

    def get_broadcast(self, transaction_id: str) -> Optional[dict[str, Any]]:
        tx = self._transactions.get(transaction_id)
        return dict(tx.payload) if tx else None

    def reset(self) -> None:
        """Reset mock state."""
        self._init_state()

    # --------------------------------------------------------
    # INTERNAL
    # --------------------------------------------------------

    def _resolve(self, tx: MockTransaction, status: TransactionStatus) -> None:
        if status is TransactionStatus.PENDING:
            return

        self._block_height += 1
        tx.status = status
        tx.block_height = self._block_height
        tx.confirmed_at = self._clock.epoch_millis()

        if status is not TransactionStatus.CONFIRMED:
            logger.debug(f"[{self.name}] {tx.transaction_id} -> {status.value}")
            return

        inputs = tx.payload.get("inputs") or []
        commitment = inputs[0] if inputs else None
        caller = tx.payload.get("caller")
        score = self._commitment_scores.get(commitment) if commitment else None

        if score is not None and caller:
            self.issue_score(caller, score, tx.payload.get("program") or DEFAULT_PROGRAM_ID)

        if self._config.emit_outputs:
            output = {
                "type": "record",
                "owner": self._config.record_owner or caller,
                "threshold": inputs[1] if len(inputs) > 1 else None,
                "commitment": commitment,
            }
            if score is not None:
                output["score"] = f"{score}u32"
            tx.outputs = [output]

        logger.debug(f"[{self.name}] {tx.transaction_id} -> {status.value}")

    async def _simulate_latency(self) -> None:
        if self._config.max_latency_ms <= 0:
            return
        latency_ms = random.uniform(
            self._config.min_latency_ms,
            self._config.max_latency_ms,
        )
        await asyncio.sleep(latency_ms / 1000)
