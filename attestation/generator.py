"""
Attestation - Commitment Generator.

============================================================
RESPONSIBILITY
============================================================
Assessment -> Commitment.

1. Build the witness with a fresh 32-byte nonce
2. Run prover.prove() in a worker thread, bounded by a deadline
3. commitment_hash = sha256(canonical_json({a, b, c}))
4. public values = (final score, produced_at, address)

Two calls on the same assessment never yield the same hash.
Any prover failure surfaces as AttestationError.

============================================================
"""

import asyncio
import logging
import re
import secrets
import time
from typing import Callable, List, Optional

from attestation.models import Commitment, Witness, WitnessComponents
from attestation.prover import Prover, SimulatedProver
from core.constants import MIN_ACCEPTABLE_SCORE, PROOF_TIMEOUT_SECONDS
from core.exceptions import AttestationError
from core.hashing import sha256_hex
from scoring_engine.models import Assessment


logger = logging.getLogger(__name__)

NONCE_BYTES = 32
_HASH_PATTERN = re.compile(r"^[0-9a-f]{64}$")


def _pair_ok(pair) -> bool:
    return (
        isinstance(pair, tuple)
        and len(pair) == 2
        and all(isinstance(x, str) and x for x in pair)
    )


def verify_commitment(commitment: Commitment) -> bool:
    """
    Structural check run before any submission.

    Requires a 64-char hex hash matching the components, complete
    a/b/c, and non-empty public values.
    """
    if not isinstance(commitment, Commitment):
        return False
    if not isinstance(commitment.commitment_hash, str) or not _HASH_PATTERN.match(
        commitment.commitment_hash
    ):
        return False

    components = commitment.witness_components
    if not isinstance(components, WitnessComponents):
        return False
    if not _pair_ok(components.a) or not _pair_ok(components.c):
        return False
    if not isinstance(components.b, tuple) or len(components.b) != 2:
        return False
    if not all(_pair_ok(row) for row in components.b):
        return False

    if not commitment.public_values:
        return False
    if not all(isinstance(v, str) and v for v in commitment.public_values):
        return False

    return sha256_hex(components.to_dict()) == commitment.commitment_hash


class AttestationGenerator:
    """Produces commitments from assessments."""

    def __init__(
        self,
        prover: Optional[Prover] = None,
        prove_timeout: float = PROOF_TIMEOUT_SECONDS,
        score_threshold: int = MIN_ACCEPTABLE_SCORE,
    ) -> None:
        self._prover = prover or SimulatedProver()
        self._prove_timeout = prove_timeout
        self._score_threshold = score_threshold
        self._listeners: List[Callable[[Commitment], None]] = []

    @property
    def prover(self) -> Prover:
        return self._prover

    def build_witness(self, assessment: Assessment) -> Witness:
        metrics = assessment.metrics
        return Witness(
            score=assessment.final_score,
            transaction_count=metrics.transaction_count,
            account_age_months=metrics.account_age_months,
            activity_score=metrics.activity_score,
            repayment_rate=metrics.repayment_rate,
            nonce=secrets.token_hex(NONCE_BYTES),
            score_threshold=self._score_threshold,
            produced_at=assessment.produced_at,
            address=assessment.address,
        )

    async def generate(self, assessment: Assessment) -> Commitment:
        """
        Generate a commitment for an assessment.

        Raises:
            AttestationError: Prover raised, timed out, or returned garbage
        """
        witness = self.build_witness(assessment)
        start = time.monotonic()

        try:
            components = await asyncio.wait_for(
                asyncio.to_thread(self._prover.prove, witness),
                timeout=self._prove_timeout,
            )
        except asyncio.TimeoutError as e:
            raise AttestationError(
                f"Prover exceeded {self._prove_timeout}s deadline",
                cause=e,
            ) from e
        except Exception as e:
            raise AttestationError(f"Prover failed: {e}", cause=e) from e

        if not isinstance(components, WitnessComponents):
            raise AttestationError(
                f"Prover returned {type(components).__name__}, expected WitnessComponents"
            )

        commitment = Commitment(
            commitment_hash=sha256_hex(components.to_dict()),
            public_values=witness.public_values(),
            witness_components=components,
        )

        duration_ms = (time.monotonic() - start) * 1000
        logger.info(
            f"[AttestationGenerator] Commitment {commitment.commitment_hash[:12]}... "
            f"generated in {duration_ms:.0f}ms"
        )

        for listener in self._listeners:
            try:
                listener(commitment)
            except Exception as e:
                logger.error(f"[AttestationGenerator] Listener error: {e}")
        return commitment

    def add_listener(self, listener: Callable[[Commitment], None]) -> None:
        """Called with every commitment generate() returns."""
        self._listeners.append(listener)

    def verify(self, commitment: Commitment) -> bool:
        ok = verify_commitment(commitment)
        if not ok:
            logger.warning("[AttestationGenerator] Commitment failed structural check")
        return ok

    def estimate_proof_time(self) -> float:
        """Expected prove duration in seconds."""
        return self._prover.expected_latency_seconds()
