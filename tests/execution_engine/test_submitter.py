"""
Ledger Submitter Tests.

============================================================
PURPOSE
============================================================
Commitment submission against MockLedger.

TEST CATEGORIES:
- Payload construction and signing
- Confirmation, failure and poll ceiling outcomes
- Duplicate submission refusal
- Registry bounds
- Record extraction
- Score lookup and health

============================================================
"""

import dataclasses
from unittest.mock import AsyncMock

import pytest

from attestation.generator import AttestationGenerator
from core.exceptions import (
    AddressFormatError,
    CommitmentInvalidError,
    ConfirmationTimeoutError,
    LedgerQueryError,
    OnChainExecutionError,
    SubmissionBroadcastError,
)
from core.retry import RetryPolicy
from execution_engine import LedgerSubmitter, SubmissionState
from ledger_client import MockLedger, MockLedgerConfig, TransactionStatus, verify_signature
from scoring_engine.credit_score import ScoringEngine
from tests.factories import ADDRESS, OTHER_ADDRESS, SIGNING_KEY, make_metrics


def make_submitter(ledger, clock, max_polls=5):
    return LedgerSubmitter(
        ledger,
        poll_policy=RetryPolicy.fixed(max_polls, 0.0),
        explorer_url="https://explorer.example/",
        clock=clock,
    )


@pytest.fixture
def submitter(ledger, clock):
    return make_submitter(ledger, clock)


@pytest.fixture
def assessment(clock):
    return ScoringEngine(clock=clock).calculate(make_metrics())


async def fresh_commitment(prover, assessment):
    return await AttestationGenerator(prover).generate(assessment)


# ============================================================
# PAYLOAD
# ============================================================

class TestBuildTransaction:

    @pytest.mark.asyncio
    async def test_payload_fields_and_signature(self, submitter, prover, assessment):
        commitment = await fresh_commitment(prover, assessment)

        payload = submitter.build_transaction(commitment, ADDRESS, SIGNING_KEY)

        assert payload["program"] == "credit_score.aleo"
        assert payload["function"] == "verify_and_issue"
        assert payload["inputs"] == [commitment.commitment_hash, "300u32"]
        assert payload["caller"] == ADDRESS
        assert payload["fee"] == 1_000_000
        assert verify_signature(payload, SIGNING_KEY)

    @pytest.mark.asyncio
    async def test_missing_signing_key(self, submitter, ledger, prover, assessment):
        commitment = await fresh_commitment(prover, assessment)

        with pytest.raises(SubmissionBroadcastError, match="Signing key"):
            await submitter.submit(commitment, ADDRESS, None)

        assert ledger.broadcasts == []
        assert submitter.submission_state(commitment.commitment_hash) is None


# ============================================================
# SUBMISSION OUTCOMES
# ============================================================

class TestSubmit:

    @pytest.mark.asyncio
    async def test_confirmed_submission_returns_record(self, submitter, ledger, clock, prover, assessment):
        commitment = await fresh_commitment(prover, assessment)

        record = await submitter.submit(commitment, ADDRESS, SIGNING_KEY)

        assert record.owner == ADDRESS
        assert record.score == assessment.final_score
        assert record.threshold == 300
        assert record.issued_block == 1_000_001
        assert record.issued_at == clock.epoch_millis()
        assert len(ledger.broadcasts) == 1

        submission = submitter.get_submission(commitment.commitment_hash)
        assert submission.state is SubmissionState.CONFIRMED
        assert submission.transaction_id == record.transaction_id
        assert submission.poll_attempts == 2

    @pytest.mark.asyncio
    async def test_broadcast_failure_marks_rejected(self, clock, prover, assessment):
        ledger = MockLedger(MockLedgerConfig(fail_broadcast=True), clock=clock)
        submitter = make_submitter(ledger, clock)
        commitment = await fresh_commitment(prover, assessment)

        with pytest.raises(SubmissionBroadcastError) as exc_info:
            await submitter.submit(commitment, ADDRESS, SIGNING_KEY)

        assert exc_info.value.transaction_id is None
        assert exc_info.value.retryable is True
        assert submitter.submission_state(commitment.commitment_hash) is SubmissionState.REJECTED

    @pytest.mark.asyncio
    async def test_onchain_failure(self, clock, prover, assessment):
        ledger = MockLedger(MockLedgerConfig(final_status=TransactionStatus.FAILED), clock=clock)
        submitter = make_submitter(ledger, clock)
        commitment = await fresh_commitment(prover, assessment)

        with pytest.raises(OnChainExecutionError) as exc_info:
            await submitter.submit(commitment, ADDRESS, SIGNING_KEY)

        assert exc_info.value.transaction_id is not None
        assert exc_info.value.retryable is False
        assert submitter.submission_state(commitment.commitment_hash) is SubmissionState.FAILED

    @pytest.mark.asyncio
    async def test_poll_ceiling_raises_timeout_with_transaction_id(self, clock, prover, assessment):
        ledger = MockLedger(MockLedgerConfig(final_status=TransactionStatus.PENDING), clock=clock)
        submitter = make_submitter(ledger, clock, max_polls=3)
        commitment = await fresh_commitment(prover, assessment)

        with pytest.raises(ConfirmationTimeoutError) as exc_info:
            await submitter.submit(commitment, ADDRESS, SIGNING_KEY)

        error = exc_info.value
        assert error.attempts == 3
        assert error.transaction_id is not None
        assert submitter.get_submission_by_transaction(error.transaction_id) is not None
        assert error.resubmit_safe is False
        assert submitter.submission_state(commitment.commitment_hash) is SubmissionState.TIMED_OUT
        assert len(ledger.broadcasts) == 1

    @pytest.mark.asyncio
    async def test_poll_errors_count_toward_ceiling(self, clock, prover, assessment):
        ledger = MockLedger(MockLedgerConfig(confirm_after_polls=1), clock=clock)
        ledger.inject_poll_errors(2)
        submitter = make_submitter(ledger, clock, max_polls=3)
        commitment = await fresh_commitment(prover, assessment)

        record = await submitter.submit(commitment, ADDRESS, SIGNING_KEY)

        submission = submitter.get_submission_by_transaction(record.transaction_id)
        assert submission.poll_attempts == 3
        assert submission.last_error is not None

    @pytest.mark.asyncio
    async def test_poll_errors_exhaust_ceiling(self, clock, prover, assessment):
        ledger = MockLedger(clock=clock)
        ledger.inject_poll_errors(10)
        submitter = make_submitter(ledger, clock, max_polls=3)
        commitment = await fresh_commitment(prover, assessment)

        with pytest.raises(ConfirmationTimeoutError) as exc_info:
            await submitter.submit(commitment, ADDRESS, SIGNING_KEY)

        assert exc_info.value.cause is not None


# ============================================================
# GATES
# ============================================================

class TestSubmissionGates:

    @pytest.mark.asyncio
    async def test_same_commitment_never_sent_twice(self, submitter, ledger, prover, assessment):
        commitment = await fresh_commitment(prover, assessment)
        record = await submitter.submit(commitment, ADDRESS, SIGNING_KEY)

        with pytest.raises(CommitmentInvalidError, match="already submitted") as exc_info:
            await submitter.submit(commitment, ADDRESS, SIGNING_KEY)

        assert exc_info.value.transaction_id == record.transaction_id
        assert len(ledger.broadcasts) == 1

    @pytest.mark.asyncio
    async def test_rejected_commitment_not_resent(self, clock, prover, assessment):
        ledger = MockLedger(MockLedgerConfig(fail_broadcast=True), clock=clock)
        submitter = make_submitter(ledger, clock)
        commitment = await fresh_commitment(prover, assessment)
        with pytest.raises(SubmissionBroadcastError):
            await submitter.submit(commitment, ADDRESS, SIGNING_KEY)

        ledger.config.fail_broadcast = False
        with pytest.raises(CommitmentInvalidError):
            await submitter.submit(commitment, ADDRESS, SIGNING_KEY)

    @pytest.mark.asyncio
    async def test_structurally_invalid_commitment(self, submitter, ledger, prover, assessment):
        commitment = await fresh_commitment(prover, assessment)
        broken = dataclasses.replace(commitment, commitment_hash="0" * 64)

        with pytest.raises(CommitmentInvalidError):
            await submitter.submit(broken, ADDRESS, SIGNING_KEY)

        assert ledger.broadcasts == []

    @pytest.mark.asyncio
    async def test_commitment_for_other_address(self, submitter, prover, assessment):
        commitment = await fresh_commitment(prover, assessment)

        with pytest.raises(CommitmentInvalidError, match="produced for"):
            await submitter.submit(commitment, OTHER_ADDRESS, SIGNING_KEY)

    @pytest.mark.asyncio
    async def test_bad_address(self, submitter, prover, assessment):
        commitment = await fresh_commitment(prover, assessment)

        with pytest.raises(AddressFormatError):
            await submitter.submit(commitment, "aleo1bad", SIGNING_KEY)


# ============================================================
# REGISTRY BOUNDS
# ============================================================

class TestRegistryBounds:

    @pytest.mark.asyncio
    async def test_settled_submissions_evicted_beyond_capacity(self, ledger, clock, prover, assessment):
        submitter = LedgerSubmitter(
            ledger,
            poll_policy=RetryPolicy.fixed(5, 0.0),
            clock=clock,
            registry_capacity=2,
        )
        commitments = [await fresh_commitment(prover, assessment) for _ in range(5)]
        records = [await submitter.submit(c, ADDRESS, SIGNING_KEY) for c in commitments]

        assert submitter.tracked_submissions == 2
        assert submitter.get_submission(commitments[0].commitment_hash) is None
        assert submitter.get_submission_by_transaction(records[0].transaction_id) is None
        assert submitter.get_submission(commitments[-1].commitment_hash) is not None

    @pytest.mark.asyncio
    async def test_evicted_commitment_still_refused(self, ledger, clock, prover, assessment):
        submitter = LedgerSubmitter(
            ledger,
            poll_policy=RetryPolicy.fixed(5, 0.0),
            clock=clock,
            registry_capacity=1,
        )
        first = await fresh_commitment(prover, assessment)
        record = await submitter.submit(first, ADDRESS, SIGNING_KEY)
        await submitter.submit(await fresh_commitment(prover, assessment), ADDRESS, SIGNING_KEY)

        with pytest.raises(CommitmentInvalidError, match="already submitted") as exc_info:
            await submitter.submit(first, ADDRESS, SIGNING_KEY)

        assert exc_info.value.transaction_id == record.transaction_id
        assert len(ledger.broadcasts) == 2

    @pytest.mark.parametrize("kwargs", [
        {"registry_capacity": 0},
        {"retired_capacity": 0},
    ])
    def test_invalid_capacity(self, ledger, kwargs):
        with pytest.raises(ValueError):
            LedgerSubmitter(ledger, **kwargs)


# ============================================================
# RECORD EXTRACTION
# ============================================================

class TestRecordExtraction:

    @pytest.mark.asyncio
    async def test_owner_mismatch(self, clock, prover, assessment):
        ledger = MockLedger(MockLedgerConfig(record_owner=OTHER_ADDRESS), clock=clock)
        submitter = make_submitter(ledger, clock)
        commitment = await fresh_commitment(prover, assessment)

        with pytest.raises(OnChainExecutionError, match="owner"):
            await submitter.submit(commitment, ADDRESS, SIGNING_KEY)

    @pytest.mark.asyncio
    async def test_no_outputs_uses_commitment_score(self, clock, prover, assessment):
        ledger = MockLedger(MockLedgerConfig(emit_outputs=False), clock=clock)
        submitter = make_submitter(ledger, clock)
        commitment = await fresh_commitment(prover, assessment)

        record = await submitter.submit(commitment, ADDRESS, SIGNING_KEY)

        assert record.owner == ADDRESS
        assert record.score == commitment.public_score

    @pytest.mark.asyncio
    async def test_await_confirmation_without_commitment_reads_mapping(self, clock, prover, assessment):
        ledger = MockLedger(MockLedgerConfig(final_status=TransactionStatus.PENDING), clock=clock)
        submitter = make_submitter(ledger, clock, max_polls=2)
        commitment = await fresh_commitment(prover, assessment)
        with pytest.raises(ConfirmationTimeoutError) as exc_info:
            await submitter.submit(commitment, ADDRESS, SIGNING_KEY)
        transaction_id = exc_info.value.transaction_id

        ledger.config.final_status = TransactionStatus.CONFIRMED
        ledger.issue_score(ADDRESS, 612)
        record = await submitter.await_confirmation(transaction_id, ADDRESS)

        assert record.score == 612
        assert record.transaction_id == transaction_id
        assert len(ledger.broadcasts) == 1
        assert submitter.submission_state(commitment.commitment_hash) is SubmissionState.CONFIRMED


# ============================================================
# QUERIES
# ============================================================

class TestQueries:

    @pytest.mark.asyncio
    async def test_fetch_score(self, submitter, ledger):
        assert await submitter.fetch_score(ADDRESS) is None

        ledger.issue_score(ADDRESS, 700)

        assert await submitter.fetch_score(ADDRESS) == 700

    @pytest.mark.asyncio
    async def test_fetch_score_transport_error(self, submitter, ledger):
        ledger.fail_resource("mapping")

        with pytest.raises(LedgerQueryError):
            await submitter.fetch_score(ADDRESS)

    @pytest.mark.asyncio
    async def test_check_health_never_raises(self, clock):
        ledger = MockLedger(MockLedgerConfig(healthy=False), clock=clock)

        assert await make_submitter(ledger, clock).check_health() is False

    def test_explorer_url(self, submitter):
        assert submitter.get_explorer_url("at1abc") == "https://explorer.example/transaction/at1abc"

    @pytest.mark.asyncio
    async def test_fetch_score_unparseable_value(self, submitter, ledger):
        ledger.get_mapping_value = AsyncMock(return_value="lots")

        with pytest.raises(LedgerQueryError, match="Score lookup failed"):
            await submitter.fetch_score(ADDRESS)

    @pytest.mark.asyncio
    async def test_check_health_swallows_unexpected_errors(self, submitter, ledger):
        ledger.health = AsyncMock(side_effect=OSError("socket closed"))

        assert await submitter.check_health() is False
        ledger.health.assert_awaited_once()
