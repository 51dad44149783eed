"""
Orchestrator - Core.

============================================================
RESPONSIBILITY
============================================================
Runs the assessment-attestation-commitment pipeline for one
active address:

    fetch -> validate -> score -> generate -> verify -> submit

- Each step is a public method; run_full_flow() calls exactly
  those methods in order
- Every step is timed and logged
- Failures leave as taxonomy errors tagged with their stage;
  foreign exceptions are wrapped per stage with the cause chained

============================================================
ARCHITECTURAL POSITION
============================================================
- No scoring, fetching or submission logic lives here
- Instances are built explicitly; there is no module singleton
- One active address per instance

============================================================
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Type

from attestation.generator import AttestationGenerator
from attestation.models import Commitment
from attestation.prover import Prover, SimulatedProver
from core.clock import ClockProtocol, get_clock
from core.exceptions import (
    AttestationError,
    CommitmentInvalidError,
    LedgerQueryError,
    MetricsFetchError,
    NotInitializedError,
    ProofScoreError,
    SubmissionBroadcastError,
    ValidationError,
)
from core.retry import RetryPolicy
from execution_engine.submitter import LedgerSubmitter
from ledger_client.address import shorten, validate_address
from ledger_client.base import LedgerClient
from ledger_client.mock import MockLedger
from ledger_client.models import IssuedRecord
from ledger_client.rpc import LedgerRpcClient
from onchain_adapters.cache import MetricsCache
from onchain_adapters.providers.explorer import ExplorerMetricsProvider
from onchain_adapters.store import MetricsStore
from orchestrator.config import OrchestratorConfig
from orchestrator.models import FlowStage, IssuanceResult, SessionState, StepTiming
from scoring_engine.credit_score import ScoringEngine
from scoring_engine.models import ActivityMetrics, Assessment, ScoreBreakdown


logger = logging.getLogger(__name__)


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
) -> logging.Logger:
    """
    Set up root logging.

    Args:
        level: Log level
        log_format: Output format (json or text)

    Returns:
        The orchestrator logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("orchestrator")


# ============================================================
# STAGE ERROR MAPPING
# ============================================================

# Error kind used when a stage raises something outside the taxonomy.
STAGE_ERRORS: Dict[FlowStage, Type[ProofScoreError]] = {
    FlowStage.INIT: LedgerQueryError,
    FlowStage.FETCH_METRICS: MetricsFetchError,
    FlowStage.VALIDATE_METRICS: ValidationError,
    FlowStage.CALCULATE_SCORE: ValidationError,
    FlowStage.GENERATE_COMMITMENT: AttestationError,
    FlowStage.VERIFY_COMMITMENT: CommitmentInvalidError,
    FlowStage.SUBMIT: SubmissionBroadcastError,
    FlowStage.LOOKUP: LedgerQueryError,
}


# ============================================================
# ORCHESTRATOR
# ============================================================

class CreditOrchestrator:
    """
    Pipeline coordinator for one active address.

    Example:
        orchestrator = create_orchestrator(OrchestratorConfig())
        await orchestrator.init("aleo1...")
        result = await orchestrator.run_full_flow(signing_key)
    """

    def __init__(
        self,
        config: Optional[OrchestratorConfig] = None,
        *,
        metrics_store: MetricsStore,
        scoring_engine: ScoringEngine,
        generator: AttestationGenerator,
        submitter: LedgerSubmitter,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._config = config or OrchestratorConfig()
        self._store = metrics_store
        self._engine = scoring_engine
        self._generator = generator
        self._submitter = submitter
        self._clock = clock or get_clock()

        self._session: Optional[SessionState] = None
        self._timings: List[StepTiming] = []

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    @property
    def session(self) -> Optional[SessionState]:
        return self._session

    @property
    def is_initialized(self) -> bool:
        return self._session is not None

    @property
    def metrics_store(self) -> MetricsStore:
        return self._store

    @property
    def submitter(self) -> LedgerSubmitter:
        return self._submitter

    @property
    def timings(self) -> List[StepTiming]:
        return list(self._timings)

    def spawn(self) -> "CreditOrchestrator":
        """New orchestrator sharing this one's components, with no session."""
        return CreditOrchestrator(
            self._config,
            metrics_store=self._store,
            scoring_engine=self._engine,
            generator=self._generator,
            submitter=self._submitter,
            clock=self._clock,
        )

    # --------------------------------------------------------
    # SESSION
    # --------------------------------------------------------

    async def init(self, address: str, check_health: bool = True) -> SessionState:
        """
        Set the active address.

        The ledger health check only warns; it never blocks init.
        Callers that check once up front (the API) pass check_health=False.

        Raises:
            AddressFormatError: Malformed address
        """
        with self._stage(FlowStage.INIT):
            validate_address(address)
            self._session = SessionState(
                address=address,
                initialized_at=self._clock.now(),
                cache_entry=self._store.peek(address),
            )

            if check_health:
                healthy = await self._submitter.check_health()
                self._session.ledger_healthy = healthy
                if not healthy:
                    logger.warning(
                        f"[Orchestrator] Ledger unhealthy; continuing for {shorten(address)}"
                    )

        logger.info(f"[Orchestrator] Initialized for {shorten(address)}")
        return self._session

    def _require_session(self) -> SessionState:
        if self._session is None:
            raise NotInitializedError("Call init(address) before running pipeline steps")
        return self._session

    def reset(self) -> None:
        """Drop the active address and step timings."""
        self._session = None
        self._timings = []

    # --------------------------------------------------------
    # STEPS
    # --------------------------------------------------------

    async def fetch_metrics(self) -> ActivityMetrics:
        """Fetch and validate metrics for the active address."""
        session = self._require_session()

        with self._stage(FlowStage.FETCH_METRICS):
            metrics = await self._store.fetch(session.address)
        session.cache_entry = self._store.peek(session.address)

        with self._stage(FlowStage.VALIDATE_METRICS):
            self._engine.validate(metrics)
        return metrics

    def calculate_score(self, metrics: ActivityMetrics) -> Assessment:
        with self._stage(FlowStage.CALCULATE_SCORE):
            assessment = self._engine.calculate(metrics)
        logger.info(
            f"[Orchestrator] Score {assessment.final_score} "
            f"({assessment.risk_tier.value} risk) for {shorten(assessment.address)}"
        )
        return assessment

    def breakdown(self, assessment: Assessment) -> ScoreBreakdown:
        return self._engine.breakdown(assessment)

    async def generate_commitment(self, assessment: Assessment) -> Commitment:
        """Generate a fresh commitment and verify it locally."""
        with self._stage(FlowStage.GENERATE_COMMITMENT):
            commitment = await self._generator.generate(assessment)

        with self._stage(FlowStage.VERIFY_COMMITMENT):
            if not self._generator.verify(commitment):
                raise CommitmentInvalidError("Generated commitment failed local verification")
        return commitment

    async def submit(self, commitment: Commitment, signing_key: Optional[str]) -> IssuedRecord:
        session = self._require_session()
        with self._stage(FlowStage.SUBMIT):
            return await self._submitter.submit(commitment, session.address, signing_key)

    async def run_full_flow(self, signing_key: Optional[str]) -> IssuanceResult:
        """
        Run every step for the active address.

        Returns a successful IssuanceResult or raises a
        ProofScoreError tagged with the failing stage.
        """
        self._require_session()
        self._timings = []
        retries = self._config.attestation.retries

        metrics = await self.fetch_metrics()
        assessment = self.calculate_score(metrics)

        attempts = 0
        while True:
            attempts += 1
            commitment: Optional[Commitment] = None
            try:
                commitment = await self.generate_commitment(assessment)
                record = await self.submit(commitment, signing_key)
                break
            except ProofScoreError as e:
                if attempts > retries or not self._can_retry(e, commitment):
                    raise
                logger.warning(
                    f"[Orchestrator] Attempt {attempts} failed at {e.stage} "
                    f"({e.code}); retrying with a fresh commitment"
                )

        return IssuanceResult(
            success=True,
            transaction_id=record.transaction_id,
            issued_record=record,
            attempts=attempts,
            timings=list(self._timings),
        )

    def _can_retry(self, error: ProofScoreError, commitment: Optional[Commitment]) -> bool:
        """Only retry-safe failures where nothing reached the ledger."""
        if not error.retryable or error.transaction_id is not None:
            return False
        if commitment is None:
            return True
        state = self._submitter.submission_state(commitment.commitment_hash)
        return state is None or not state.was_broadcast()

    # --------------------------------------------------------
    # LEDGER QUERIES
    # --------------------------------------------------------

    async def fetch_score(self, address: Optional[str] = None) -> Optional[int]:
        """Public on-chain score for address (default: active address)."""
        target = address or self._require_session().address
        with self._stage(FlowStage.LOOKUP):
            return await self._submitter.fetch_score(target)

    async def await_confirmation(
        self,
        transaction_id: str,
        commitment: Optional[Commitment] = None,
    ) -> IssuedRecord:
        session = self._require_session()
        with self._stage(FlowStage.SUBMIT):
            return await self._submitter.await_confirmation(
                transaction_id, session.address, commitment
            )

    def get_explorer_url(self, transaction_id: str) -> str:
        return self._submitter.get_explorer_url(transaction_id)

    def clear_cache(self, address: Optional[str] = None) -> None:
        """Invalidate one address, or the whole cache when address is None."""
        if address is None:
            self._store.invalidate_all()
        else:
            self._store.invalidate(address)
        if self._session is not None and address in (None, self._session.address):
            self._session.cache_entry = None

    async def close(self) -> None:
        await self._submitter.ledger.close()

    # --------------------------------------------------------
    # INTERNAL
    # --------------------------------------------------------

    @contextmanager
    def _stage(self, stage: FlowStage) -> Iterator[None]:
        start = time.monotonic()
        try:
            yield
        except ProofScoreError as e:
            if e.stage is None:
                e.stage = stage.value
            self._record(stage, start, e.code)
            raise
        except Exception as e:
            error_cls = STAGE_ERRORS[stage]
            self._record(stage, start, error_cls.code)
            raise error_cls(
                f"{stage.value} failed: {e}",
                cause=e,
                stage=stage.value,
            ) from e
        else:
            self._record(stage, start, None)

    def _record(self, stage: FlowStage, start: float, error_code: Optional[str]) -> None:
        duration_ms = (time.monotonic() - start) * 1000
        self._timings.append(
            StepTiming(stage, duration_ms, success=error_code is None, error_code=error_code)
        )
        if error_code is None:
            logger.info(f"[Orchestrator] {stage.value} completed in {duration_ms:.0f}ms")
        else:
            logger.warning(
                f"[Orchestrator] {stage.value} failed after {duration_ms:.0f}ms ({error_code})"
            )


# ============================================================
# FACTORY
# ============================================================

def create_orchestrator(
    config: Optional[OrchestratorConfig] = None,
    ledger: Optional[LedgerClient] = None,
    prover: Optional[Prover] = None,
    clock: Optional[ClockProtocol] = None,
) -> CreditOrchestrator:
    """
    Wire production components from config.

    Raises:
        ValueError: If config.validate() reports problems
    """
    config = config or OrchestratorConfig()
    errors = config.validate()
    if errors:
        raise ValueError("Invalid configuration: " + "; ".join(errors))

    clock = clock or get_clock()

    if ledger is None:
        if config.use_mock_ledger:
            ledger = MockLedger(clock=clock)
        else:
            ledger = LedgerRpcClient(
                config.network.resolved_rpc_url,
                timeout=config.rpc.timeout_seconds,
                retry_policy=RetryPolicy.exponential(
                    max_attempts=config.rpc.max_attempts,
                    base_seconds=config.rpc.backoff_base_seconds,
                ),
                health_timeout=config.rpc.health_timeout_seconds,
            )

    store = MetricsStore(
        ExplorerMetricsProvider(ledger, clock=clock),
        cache=MetricsCache(
            capacity=config.cache.capacity,
            ttl_seconds=config.cache.ttl_seconds,
            clock=clock,
            refresh_on_hit=config.cache.refresh_on_hit,
        ),
        field_timeout=config.cache.field_timeout_seconds,
        fallback_enabled=config.cache.fallback_enabled,
        clock=clock,
    )

    generator = AttestationGenerator(
        prover or SimulatedProver(
            config.attestation.min_latency_seconds,
            config.attestation.max_latency_seconds,
        ),
        prove_timeout=config.attestation.prove_timeout_seconds,
        score_threshold=config.min_acceptable_score,
    )
    if isinstance(ledger, MockLedger):
        # Stands in for the program recovering the public score from the proof.
        generator.add_listener(
            lambda c: ledger.register_commitment(c.commitment_hash, c.public_score)
        )

    submitter = LedgerSubmitter(
        ledger,
        program_id=config.network.program_id,
        function_name=config.network.function_name,
        mapping_name=config.network.mapping_name,
        fee=config.network.fee,
        min_acceptable_score=config.min_acceptable_score,
        explorer_url=config.network.resolved_explorer_url,
        poll_policy=RetryPolicy.fixed(
            config.polling.max_attempts,
            config.polling.interval_seconds,
        ),
        health_timeout=config.rpc.health_timeout_seconds,
        clock=clock,
    )

    return CreditOrchestrator(
        config,
        metrics_store=store,
        scoring_engine=ScoringEngine(clock=clock),
        generator=generator,
        submitter=submitter,
        clock=clock,
    )
