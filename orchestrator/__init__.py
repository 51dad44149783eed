"""
Orchestrator Package - Pipeline Coordination Layer.

============================================================
PACKAGE OVERVIEW
============================================================
Coordinates one credit assessment from address to on-chain
record. It owns no scoring, fetching or ledger logic; it calls
the components that do, in order, and reports where a failure
happened.

============================================================
FLOW
============================================================
 1. INIT                 - validate address, check ledger health
 2. FETCH_METRICS        - cached, fault-tolerant metrics fetch
 3. VALIDATE_METRICS     - range checks
 4. CALCULATE_SCORE      - base + bonuses, risk tier
 5. GENERATE_COMMITMENT  - witness + prove
 6. VERIFY_COMMITMENT    - local structural check
 7. SUBMIT               - broadcast, poll, extract record

============================================================
QUICK START
============================================================
Command line usage::

    proofscore assess aleo1... --mock
    PROOFSCORE_SIGNING_KEY=... proofscore issue aleo1...

Programmatic usage::

    orchestrator = create_orchestrator(OrchestratorConfig.from_env())
    await orchestrator.init("aleo1...")
    result = await orchestrator.run_full_flow(signing_key)

============================================================
"""

from orchestrator.config import (
    NETWORKS,
    AttestationConfig,
    CacheConfig,
    NetworkConfig,
    OrchestratorConfig,
    PollingConfig,
    RpcConfig,
)
from orchestrator.models import FlowStage, IssuanceResult, SessionState, StepTiming
from orchestrator.core import CreditOrchestrator, create_orchestrator, setup_logging
from orchestrator.cli import build_config, create_parser, main

__version__ = "1.0.0"

__all__ = [
    # Configuration
    "NETWORKS",
    "OrchestratorConfig",
    "NetworkConfig",
    "CacheConfig",
    "RpcConfig",
    "PollingConfig",
    "AttestationConfig",

    # Models
    "FlowStage",
    "SessionState",
    "StepTiming",
    "IssuanceResult",

    # Core
    "CreditOrchestrator",
    "create_orchestrator",
    "setup_logging",

    # CLI
    "create_parser",
    "build_config",
    "main",
]
