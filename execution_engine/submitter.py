"""
Execution Engine - Ledger Submitter.

============================================================
RESPONSIBILITY
============================================================
Commits a Commitment on-chain and tracks it to a terminal state.

1. Structural gate; a commitment already sent is refused
2. Build and sign {program, function, inputs, caller, fee}
3. Broadcast exactly once
4. Poll with a bounded RetryPolicy
5. confirmed -> IssuedRecord, failed -> OnChainExecutionError,
   ceiling -> ConfirmationTimeoutError (re-poll by id, never resubmit)

Transport errors from ledger_client are translated here and
never leave as-is.

============================================================
"""

import logging
from collections import OrderedDict
from typing import Any, Dict, Optional

from attestation.generator import verify_commitment
from attestation.models import Commitment
from core.clock import ClockProtocol, get_clock
from core.constants import (
    DEFAULT_FEE_MICROCREDITS,
    DEFAULT_PROGRAM_ID,
    HEALTH_TIMEOUT_SECONDS,
    MAINNET_EXPLORER_URL,
    MIN_ACCEPTABLE_SCORE,
    RETIRED_COMMITMENT_CAPACITY,
    SCORES_MAPPING_NAME,
    SUBMISSION_REGISTRY_CAPACITY,
    TX_POLL_INTERVAL_SECONDS,
    TX_POLL_MAX_ATTEMPTS,
    VERIFY_FUNCTION_NAME,
)
from core.exceptions import (
    CommitmentInvalidError,
    ConfirmationTimeoutError,
    LedgerQueryError,
    OnChainExecutionError,
    SubmissionBroadcastError,
)
from core.retry import PollDecision, PollOutcome, RetryPolicy
from execution_engine.models import SubmissionRecord, SubmissionState
from execution_engine.state_machine import SubmissionStateMachine
from ledger_client.address import shorten, validate_address
from ledger_client.base import LedgerClient
from ledger_client.exceptions import LedgerClientError, LedgerResponseError
from ledger_client.models import (
    IssuedRecord,
    LedgerTransaction,
    TransactionStatus,
    parse_ledger_integer,
)
from ledger_client.signing import sign_transaction


logger = logging.getLogger(__name__)


def _classify(tx: LedgerTransaction) -> PollDecision:
    if tx.status is TransactionStatus.CONFIRMED:
        return PollDecision.SUCCESS
    if tx.status is TransactionStatus.FAILED:
        return PollDecision.FAILURE
    return PollDecision.CONTINUE


class LedgerSubmitter:
    """
    Submits commitments to the score program and awaits confirmation.

    Tracks every submission it has attempted, keyed by commitment
    hash, so the same commitment can never go out twice from this
    instance. Only the most recent settled submissions keep their
    state machine; older ones are retired to a bounded hash set that
    still backs the duplicate check.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        program_id: str = DEFAULT_PROGRAM_ID,
        function_name: str = VERIFY_FUNCTION_NAME,
        mapping_name: str = SCORES_MAPPING_NAME,
        fee: int = DEFAULT_FEE_MICROCREDITS,
        min_acceptable_score: int = MIN_ACCEPTABLE_SCORE,
        explorer_url: str = MAINNET_EXPLORER_URL,
        poll_policy: Optional[RetryPolicy] = None,
        health_timeout: float = HEALTH_TIMEOUT_SECONDS,
        clock: Optional[ClockProtocol] = None,
        registry_capacity: int = SUBMISSION_REGISTRY_CAPACITY,
        retired_capacity: int = RETIRED_COMMITMENT_CAPACITY,
    ) -> None:
        if registry_capacity < 1 or retired_capacity < 1:
            raise ValueError("Registry capacities must be at least 1")
        self._ledger = ledger
        self._program_id = program_id
        self._function_name = function_name
        self._mapping_name = mapping_name
        self._fee = fee
        self._min_score = min_acceptable_score
        self._explorer_url = explorer_url.rstrip("/")
        self._poll_policy = poll_policy or RetryPolicy.fixed(
            TX_POLL_MAX_ATTEMPTS, TX_POLL_INTERVAL_SECONDS
        )
        self._health_timeout = health_timeout
        self._clock = clock or get_clock()

        self._registry_capacity = registry_capacity
        self._retired_capacity = retired_capacity
        self._submissions: Dict[str, SubmissionStateMachine] = OrderedDict()
        self._by_transaction: Dict[str, SubmissionStateMachine] = OrderedDict()
        # commitment hash -> transaction id ("" when never broadcast)
        self._retired: Dict[str, str] = OrderedDict()

    @property
    def ledger(self) -> LedgerClient:
        return self._ledger

    @property
    def poll_policy(self) -> RetryPolicy:
        return self._poll_policy

    @property
    def tracked_submissions(self) -> int:
        """Submissions currently held with their state machine."""
        return len(self._submissions)

    # --------------------------------------------------------
    # SUBMISSION
    # --------------------------------------------------------

    def build_transaction(
        self,
        commitment: Commitment,
        address: str,
        signing_key: Optional[str],
    ) -> dict[str, Any]:
        """
        Build and sign the verify transaction.

        Raises:
            SubmissionBroadcastError: No signing key (nothing broadcast)
        """
        if not signing_key:
            raise SubmissionBroadcastError(
                "Signing key is required; nothing was broadcast"
            )

        payload: dict[str, Any] = {
            "program": self._program_id,
            "function": self._function_name,
            "inputs": [commitment.commitment_hash, f"{self._min_score}u32"],
            "caller": address,
            "fee": self._fee,
        }
        payload["signature"] = sign_transaction(payload, signing_key)
        return payload

    async def submit(
        self,
        commitment: Commitment,
        address: str,
        signing_key: Optional[str],
    ) -> IssuedRecord:
        """
        Submit a commitment and wait for a terminal status.

        Raises:
            CommitmentInvalidError: Structural gate failed or already sent
            SubmissionBroadcastError: Not accepted for broadcast
            ConfirmationTimeoutError: Poll ceiling reached
            OnChainExecutionError: Ledger marked it failed
        """
        validate_address(address)

        if not verify_commitment(commitment):
            raise CommitmentInvalidError("Commitment failed structural check")
        if commitment.address != address:
            raise CommitmentInvalidError(
                f"Commitment was produced for {commitment.address}, not {address}"
            )

        self._refuse_duplicate(commitment.commitment_hash)

        payload = self.build_transaction(commitment, address, signing_key)

        machine = SubmissionStateMachine(
            SubmissionRecord(commitment_hash=commitment.commitment_hash, address=address),
            clock=self._clock,
        )
        self._submissions[commitment.commitment_hash] = machine

        try:
            try:
                transaction_id = await self._ledger.broadcast_transaction(payload)
            except LedgerClientError as e:
                machine.mark_rejected(str(e))
                logger.warning(f"[LedgerSubmitter] Broadcast failed for {shorten(address)}: {e}")
                raise SubmissionBroadcastError(f"Broadcast failed: {e.message}", cause=e) from e

            machine.mark_broadcast(transaction_id)
            self._by_transaction[transaction_id] = machine
            logger.info(f"[LedgerSubmitter] Broadcast {transaction_id} for {shorten(address)}")

            return await self._confirm(machine, commitment)
        finally:
            self._prune()

    def _refuse_duplicate(self, commitment_hash: str) -> None:
        existing = self._submissions.get(commitment_hash)
        if existing is not None:
            raise CommitmentInvalidError(
                "Commitment was already submitted; generate a new one",
                transaction_id=existing.record.transaction_id,
                context={"state": existing.current_state.value},
            )
        if commitment_hash in self._retired:
            raise CommitmentInvalidError(
                "Commitment was already submitted; generate a new one",
                transaction_id=self._retired[commitment_hash] or None,
                context={"state": "retired"},
            )

    def _prune(self) -> None:
        """Drop the oldest settled submissions beyond registry capacity."""
        self._evict_settled(self._submissions, retire=True)
        self._evict_settled(self._by_transaction, retire=False)

        while len(self._retired) > self._retired_capacity:
            del self._retired[next(iter(self._retired))]

    def _evict_settled(self, registry: Dict[str, SubmissionStateMachine], retire: bool) -> None:
        excess = len(registry) - self._registry_capacity
        if excess <= 0:
            return

        for key, machine in list(registry.items()):
            if excess <= 0:
                break
            state = machine.current_state
            if not (state.is_terminal() or state is SubmissionState.TIMED_OUT):
                continue

            del registry[key]
            excess -= 1
            record = machine.record
            if retire:
                self._retired[record.commitment_hash] = record.transaction_id or ""
                if record.transaction_id and self._by_transaction.get(record.transaction_id) is machine:
                    del self._by_transaction[record.transaction_id]
            elif self._submissions.get(record.commitment_hash) is machine:
                del self._submissions[record.commitment_hash]
                self._retired[record.commitment_hash] = key

        if excess > 0:
            logger.warning(
                f"[LedgerSubmitter] Registry over capacity by {excess}; "
                f"remaining submissions are still in flight"
            )

    async def await_confirmation(
        self,
        transaction_id: str,
        address: str,
        commitment: Optional[Commitment] = None,
    ) -> IssuedRecord:
        """
        Re-poll a transaction that timed out (or any known id).

        Never resubmits anything.
        """
        validate_address(address)
        machine = self._by_transaction.get(transaction_id)

        if machine is None or machine.current_state.is_terminal():
            record = SubmissionRecord(
                commitment_hash=commitment.commitment_hash if commitment else "",
                address=address,
            )
            machine = SubmissionStateMachine(record, clock=self._clock)
            machine.mark_broadcast(transaction_id)
            self._by_transaction[transaction_id] = machine

        try:
            return await self._confirm(machine, commitment)
        finally:
            self._prune()

    async def _confirm(
        self,
        machine: SubmissionStateMachine,
        commitment: Optional[Commitment],
    ) -> IssuedRecord:
        record = machine.record
        transaction_id = record.transaction_id
        machine.mark_pending()

        async def poll_once() -> LedgerTransaction:
            try:
                tx = await self._ledger.get_transaction(transaction_id)
            except LedgerClientError as e:
                machine.record_poll(str(e))
                raise
            machine.record_poll()
            return tx

        result = await self._poll_policy.poll(
            poll_once,
            _classify,
            is_transient=lambda e: isinstance(e, LedgerClientError),
            label="LedgerSubmitter",
        )

        if result.outcome is PollOutcome.SUCCEEDED:
            tx = result.value
            machine.mark_confirmed(tx.block_height)
            issued = await self._extract_record(tx, record.address, commitment)
            logger.info(
                f"[LedgerSubmitter] {transaction_id} confirmed at block "
                f"{issued.issued_block} after {result.attempts} polls"
            )
            return issued

        if result.outcome is PollOutcome.FAILED:
            error = result.value.error if result.value else None
            machine.mark_failed(error)
            raise OnChainExecutionError(
                f"Ledger marked transaction failed{': ' + error if error else ''}",
                transaction_id=transaction_id,
            )

        machine.mark_timed_out(result.attempts)
        logger.warning(
            f"[LedgerSubmitter] {transaction_id} still unresolved after "
            f"{result.attempts} polls"
        )
        raise ConfirmationTimeoutError(
            f"No terminal status after {result.attempts} polls",
            attempts=result.attempts,
            transaction_id=transaction_id,
            cause=result.last_error,
        )

    async def _extract_record(
        self,
        tx: LedgerTransaction,
        address: str,
        commitment: Optional[Commitment],
    ) -> IssuedRecord:
        output = next(
            (o for o in tx.outputs if isinstance(o, dict) and o.get("owner")),
            None,
        )

        try:
            if output is not None:
                owner = str(output["owner"])
                score = parse_ledger_integer(output.get("score"))
                threshold = parse_ledger_integer(output.get("threshold"))
            else:
                owner, score, threshold = address, None, None
        except LedgerResponseError as e:
            raise OnChainExecutionError(
                f"Unreadable record output: {e.message}",
                transaction_id=tx.transaction_id,
                cause=e,
            ) from e

        if owner != address:
            raise OnChainExecutionError(
                f"Issued record owner {owner} does not match {address}",
                transaction_id=tx.transaction_id,
            )

        if score is None and commitment is not None:
            score = commitment.public_score
        if score is None:
            score = await self.fetch_score(address)
        if score is None:
            raise OnChainExecutionError(
                "Confirmed transaction carries no score",
                transaction_id=tx.transaction_id,
            )

        return IssuedRecord(
            owner=owner,
            score=score,
            threshold=threshold if threshold is not None else self._min_score,
            issued_block=tx.block_height or 0,
            issued_at=tx.confirmed_at or self._clock.epoch_millis(),
            transaction_id=tx.transaction_id,
        )

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    async def fetch_score(self, address: str) -> Optional[int]:
        """
        Read the public score for an address.

        Returns None when no score has been issued.

        Raises:
            LedgerQueryError: Transport or parse failure
        """
        validate_address(address)
        try:
            raw = await self._ledger.get_mapping_value(
                self._program_id, self._mapping_name, address
            )
            return parse_ledger_integer(raw)
        except LedgerClientError as e:
            raise LedgerQueryError(f"Score lookup failed: {e.message}", cause=e) from e

    async def check_health(self) -> bool:
        """Ledger liveness; never raises."""
        try:
            return bool(await self._ledger.health(timeout=self._health_timeout))
        except Exception as e:
            logger.warning(f"[LedgerSubmitter] Ledger health check failed: {e}")
            return False

    def get_explorer_url(self, transaction_id: str) -> str:
        return f"{self._explorer_url}/transaction/{transaction_id}"

    def get_submission(self, commitment_hash: str) -> Optional[SubmissionRecord]:
        machine = self._submissions.get(commitment_hash)
        return machine.record if machine else None

    def get_submission_by_transaction(self, transaction_id: str) -> Optional[SubmissionRecord]:
        machine = self._by_transaction.get(transaction_id)
        return machine.record if machine else None

    def submission_state(self, commitment_hash: str) -> Optional[SubmissionState]:
        machine = self._submissions.get(commitment_hash)
        return machine.current_state if machine else None
