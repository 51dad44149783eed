"""
Orchestrator - Configuration.

Typed configuration for every pipeline component.
OrchestratorConfig.from_env() reads PROOFSCORE_* variables after
loading a .env file if present.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from core import constants as C


NETWORKS = {
    "mainnet": (C.MAINNET_RPC_URL, C.MAINNET_EXPLORER_URL),
    "testnet": (C.TESTNET_RPC_URL, C.TESTNET_EXPLORER_URL),
}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class NetworkConfig:
    """Ledger network and score program."""

    network: str = "mainnet"
    """mainnet or testnet; selects default URLs."""

    rpc_url: Optional[str] = None
    """Overrides the network's default node URL."""

    explorer_url: Optional[str] = None
    """Overrides the network's default explorer URL."""

    program_id: str = C.DEFAULT_PROGRAM_ID
    function_name: str = C.VERIFY_FUNCTION_NAME
    mapping_name: str = C.SCORES_MAPPING_NAME

    fee: int = C.DEFAULT_FEE_MICROCREDITS
    """Transaction fee in microcredits."""

    @property
    def resolved_rpc_url(self) -> str:
        return self.rpc_url or NETWORKS.get(self.network, NETWORKS["mainnet"])[0]

    @property
    def resolved_explorer_url(self) -> str:
        return self.explorer_url or NETWORKS.get(self.network, NETWORKS["mainnet"])[1]


@dataclass
class CacheConfig:
    """Metrics cache and field query settings."""
    capacity: int = C.METRICS_CACHE_CAPACITY
    ttl_seconds: float = C.METRICS_CACHE_TTL_SECONDS
    refresh_on_hit: bool = True
    fallback_enabled: bool = True
    field_timeout_seconds: float = C.FIELD_QUERY_TIMEOUT_SECONDS


@dataclass
class RpcConfig:
    """Ledger RPC transport settings."""
    timeout_seconds: float = C.RPC_TIMEOUT_SECONDS
    max_attempts: int = C.RPC_MAX_ATTEMPTS
    backoff_base_seconds: float = C.RPC_BACKOFF_BASE_SECONDS
    health_timeout_seconds: float = C.HEALTH_TIMEOUT_SECONDS


@dataclass
class PollingConfig:
    """Confirmation polling."""
    interval_seconds: float = C.TX_POLL_INTERVAL_SECONDS
    max_attempts: int = C.TX_POLL_MAX_ATTEMPTS


@dataclass
class AttestationConfig:
    """Prover settings."""
    min_latency_seconds: float = C.PROOF_MIN_LATENCY_SECONDS
    max_latency_seconds: float = C.PROOF_MAX_LATENCY_SECONDS
    prove_timeout_seconds: float = C.PROOF_TIMEOUT_SECONDS

    retries: int = 0
    """Extra generate+submit attempts after a retry-safe pre-broadcast failure."""


@dataclass
class OrchestratorConfig:
    """Configuration for the orchestrator."""

    network: NetworkConfig = field(default_factory=NetworkConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    rpc: RpcConfig = field(default_factory=RpcConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    attestation: AttestationConfig = field(default_factory=AttestationConfig)

    min_acceptable_score: int = C.MIN_ACCEPTABLE_SCORE
    """Threshold passed to the verify transition."""

    use_mock_ledger: bool = False
    """Wire an in-memory MockLedger instead of the RPC client."""

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "OrchestratorConfig":
        """
        Load configuration from environment variables.

        Raises:
            ValueError: A numeric variable does not parse; names the variable
        """
        load_dotenv(dotenv_path)

        return cls(
            network=NetworkConfig(
                network=os.getenv("PROOFSCORE_NETWORK", "mainnet"),
                rpc_url=os.getenv("PROOFSCORE_RPC_URL") or None,
                explorer_url=os.getenv("PROOFSCORE_EXPLORER_URL") or None,
                program_id=os.getenv("PROOFSCORE_PROGRAM_ID", C.DEFAULT_PROGRAM_ID),
                fee=_env_int("PROOFSCORE_FEE", C.DEFAULT_FEE_MICROCREDITS),
            ),
            cache=CacheConfig(
                capacity=_env_int("PROOFSCORE_CACHE_CAPACITY", C.METRICS_CACHE_CAPACITY),
                ttl_seconds=_env_float("PROOFSCORE_CACHE_TTL_SECONDS", C.METRICS_CACHE_TTL_SECONDS),
                refresh_on_hit=_env_bool("PROOFSCORE_CACHE_REFRESH_ON_HIT", True),
                fallback_enabled=_env_bool("PROOFSCORE_FALLBACK_ENABLED", True),
                field_timeout_seconds=_env_float("PROOFSCORE_FIELD_TIMEOUT_SECONDS", C.FIELD_QUERY_TIMEOUT_SECONDS),
            ),
            rpc=RpcConfig(
                timeout_seconds=_env_float("PROOFSCORE_RPC_TIMEOUT_SECONDS", C.RPC_TIMEOUT_SECONDS),
                max_attempts=_env_int("PROOFSCORE_RPC_MAX_ATTEMPTS", C.RPC_MAX_ATTEMPTS),
                backoff_base_seconds=_env_float("PROOFSCORE_RPC_BACKOFF_SECONDS", C.RPC_BACKOFF_BASE_SECONDS),
                health_timeout_seconds=_env_float("PROOFSCORE_HEALTH_TIMEOUT_SECONDS", C.HEALTH_TIMEOUT_SECONDS),
            ),
            polling=PollingConfig(
                interval_seconds=_env_float("PROOFSCORE_POLL_INTERVAL_SECONDS", C.TX_POLL_INTERVAL_SECONDS),
                max_attempts=_env_int("PROOFSCORE_POLL_MAX_ATTEMPTS", C.TX_POLL_MAX_ATTEMPTS),
            ),
            attestation=AttestationConfig(
                min_latency_seconds=_env_float("PROOFSCORE_PROOF_MIN_LATENCY_SECONDS", C.PROOF_MIN_LATENCY_SECONDS),
                max_latency_seconds=_env_float("PROOFSCORE_PROOF_MAX_LATENCY_SECONDS", C.PROOF_MAX_LATENCY_SECONDS),
                prove_timeout_seconds=_env_float("PROOFSCORE_PROOF_TIMEOUT_SECONDS", C.PROOF_TIMEOUT_SECONDS),
                retries=_env_int("PROOFSCORE_ATTESTATION_RETRIES", 0),
            ),
            min_acceptable_score=_env_int("PROOFSCORE_MIN_ACCEPTABLE_SCORE", C.MIN_ACCEPTABLE_SCORE),
            use_mock_ledger=_env_bool("PROOFSCORE_USE_MOCK_LEDGER", False),
            log_level=os.getenv("PROOFSCORE_LOG_LEVEL", "INFO"),
            log_format=os.getenv("PROOFSCORE_LOG_FORMAT", "text"),
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.network.network not in NETWORKS and not self.network.rpc_url:
            errors.append(
                f"Unknown network '{self.network.network}' requires an explicit rpc_url"
            )
        if self.network.fee < 0:
            errors.append("fee cannot be negative")

        if self.cache.capacity < 1:
            errors.append("cache capacity must be at least 1")
        if self.cache.ttl_seconds <= 0:
            errors.append("cache ttl_seconds must be positive")
        if self.cache.field_timeout_seconds <= 0:
            errors.append("field_timeout_seconds must be positive")

        if self.rpc.timeout_seconds <= 0:
            errors.append("rpc timeout_seconds must be positive")
        if self.rpc.max_attempts < 1:
            errors.append("rpc max_attempts must be at least 1")
        if self.rpc.health_timeout_seconds <= 0:
            errors.append("health_timeout_seconds must be positive")

        if self.polling.max_attempts < 1:
            errors.append("polling max_attempts must be at least 1")
        if self.polling.interval_seconds < 0:
            errors.append("polling interval_seconds cannot be negative")

        att = self.attestation
        if att.min_latency_seconds < 0 or att.max_latency_seconds < att.min_latency_seconds:
            errors.append("prover latency range must satisfy 0 <= min <= max")
        if att.prove_timeout_seconds <= 0:
            errors.append("prove_timeout_seconds must be positive")
        if att.retries < 0:
            errors.append("attestation retries cannot be negative")

        if not (C.BASE_SCORE <= self.min_acceptable_score <= C.MAX_SCORE):
            errors.append(
                f"min_acceptable_score must be within [{C.BASE_SCORE}, {C.MAX_SCORE}]"
            )

        if self.log_format not in ("json", "text"):
            errors.append("log_format must be 'json' or 'text'")

        return errors
