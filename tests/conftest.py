"""
Shared fixtures for the ProofScore test suite.

Everything runs against MockClock, MockLedger and a zero-latency
SimulatedProver; no test touches a real ledger node.
"""

from datetime import datetime, timezone

import pytest

from attestation.prover import SimulatedProver
from core.clock import MockClock
from ledger_client.mock import MockLedger, MockLedgerConfig
from orchestrator.config import AttestationConfig, OrchestratorConfig, PollingConfig
from orchestrator.core import create_orchestrator


@pytest.fixture
def clock():
    return MockClock(datetime(2026, 1, 1, tzinfo=timezone.utc))


@pytest.fixture
def ledger(clock):
    return MockLedger(MockLedgerConfig(confirm_after_polls=2), clock=clock)


@pytest.fixture
def prover():
    return SimulatedProver(min_latency=0.0, max_latency=0.0)


@pytest.fixture
def config():
    return OrchestratorConfig(
        polling=PollingConfig(interval_seconds=0.0, max_attempts=5),
        attestation=AttestationConfig(min_latency_seconds=0.0, max_latency_seconds=0.0),
        use_mock_ledger=True,
    )


@pytest.fixture
def orchestrator(config, ledger, prover, clock):
    return create_orchestrator(config, ledger=ledger, prover=prover, clock=clock)
