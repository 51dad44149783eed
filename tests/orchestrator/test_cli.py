"""
CLI Tests.

============================================================
PURPOSE
============================================================
Command-line entry point against the in-memory ledger.

TEST CATEGORIES:
- Parser and config overrides
- Exit codes
- Text and JSON output

============================================================
"""

import json

import pytest

from core.constants import TX_POLL_MAX_ATTEMPTS
from orchestrator.cli import (
    EXIT_CONFIG_ERROR,
    EXIT_OK,
    EXIT_PIPELINE_ERROR,
    build_config,
    create_parser,
    main,
)
from orchestrator.config import OrchestratorConfig
from tests.factories import ADDRESS, SIGNING_KEY


@pytest.fixture(autouse=True)
def fast_env(monkeypatch):
    """No prover latency and no poll sleeps."""
    monkeypatch.setenv("PROOFSCORE_PROOF_MIN_LATENCY_SECONDS", "0")
    monkeypatch.setenv("PROOFSCORE_PROOF_MAX_LATENCY_SECONDS", "0")
    monkeypatch.setenv("PROOFSCORE_POLL_INTERVAL_SECONDS", "0")
    monkeypatch.delenv("PROOFSCORE_SIGNING_KEY", raising=False)
    monkeypatch.delenv("PROOFSCORE_LOG_FORMAT", raising=False)
    monkeypatch.delenv("PROOFSCORE_NETWORK", raising=False)


# ============================================================
# PARSER
# ============================================================

class TestParser:

    def test_command_required(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args([])

    def test_unknown_network_rejected(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--network", "devnet", "lookup", ADDRESS])

    def test_overrides_applied(self):
        args = create_parser().parse_args([
            "--network", "testnet",
            "--rpc-url", "http://localhost:3030",
            "--mock",
            "--log-format", "json",
            "issue", ADDRESS,
            "--retries", "2",
        ])

        config = build_config(args)

        assert config.network.network == "testnet"
        assert config.network.resolved_rpc_url == "http://localhost:3030"
        assert config.use_mock_ledger is True
        assert config.log_format == "json"
        assert config.attestation.retries == 2

    def test_defaults_from_env(self, monkeypatch):
        monkeypatch.setenv("PROOFSCORE_NETWORK", "testnet")

        config = build_config(create_parser().parse_args(["lookup", ADDRESS]))

        assert config.network.network == "testnet"
        assert config.use_mock_ledger is False


# ============================================================
# COMMANDS
# ============================================================

class TestCommands:

    def test_assess_with_fallback_metrics(self, capsys):
        code = main(["--mock", "assess", ADDRESS])

        out = capsys.readouterr().out
        assert code == EXIT_OK
        assert f"Address:    {ADDRESS}" in out
        assert "Fallback:" in out

    def test_assess_json(self, capsys):
        code = main(["--mock", "--json", "assess", ADDRESS])

        data = json.loads(capsys.readouterr().out)
        assert code == EXIT_OK
        assert data["assessment"]["address"] == ADDRESS
        assert 300 <= data["assessment"]["final_score"] <= 1000
        assert sorted(data["fallback_fields"]) == sorted(
            ["transaction_count", "account_age_months", "activity_score", "repayment_rate", "balance"]
        )

    def test_bad_address_is_pipeline_error(self, capsys):
        code = main(["--mock", "assess", "aleo1short"])

        assert code == EXIT_PIPELINE_ERROR
        assert "Error:" in capsys.readouterr().err

    def test_issue_without_key_fails(self, capsys):
        code = main(["--mock", "issue", ADDRESS])

        out = capsys.readouterr().out
        assert code == EXIT_PIPELINE_ERROR
        assert "FAILED [SUBMISSION_BROADCAST]" in out

    def test_issue_with_key(self, monkeypatch, capsys):
        monkeypatch.setenv("PROOFSCORE_SIGNING_KEY", SIGNING_KEY)

        code = main(["--mock", "--json", "issue", ADDRESS])

        data = json.loads(capsys.readouterr().out)
        assert code == EXIT_OK
        assert data["success"] is True
        assert data["issued_record"]["owner"] == ADDRESS
        assert data["explorer_url"].endswith(data["transaction_id"])

    def test_issue_custom_key_variable(self, monkeypatch, capsys):
        monkeypatch.setenv("MY_KEY", SIGNING_KEY)

        code = main(["--mock", "issue", ADDRESS, "--signing-key-env", "MY_KEY"])

        assert code == EXIT_OK
        assert "Issued score" in capsys.readouterr().out

    def test_lookup_without_score(self, capsys):
        code = main(["--mock", "lookup", ADDRESS])

        assert code == EXIT_OK
        assert f"No score issued for {ADDRESS}" in capsys.readouterr().out


# ============================================================
# CONFIG ERRORS
# ============================================================

class TestConfigErrors:

    def test_invalid_env_value(self, monkeypatch, capsys):
        monkeypatch.setenv("PROOFSCORE_LOG_FORMAT", "xml")

        code = main(["--mock", "lookup", ADDRESS])

        assert code == EXIT_CONFIG_ERROR
        assert "log_format" in capsys.readouterr().err

    def test_negative_retries(self, capsys):
        code = main(["--mock", "issue", ADDRESS, "--retries", "-1"])

        assert code == EXIT_CONFIG_ERROR
        assert "retries" in capsys.readouterr().err

    def test_malformed_numeric_env_value(self, monkeypatch, capsys):
        monkeypatch.setenv("PROOFSCORE_CACHE_CAPACITY", "abc")

        code = main(["--mock", "lookup", ADDRESS])

        assert code == EXIT_CONFIG_ERROR
        err = capsys.readouterr().err
        assert "PROOFSCORE_CACHE_CAPACITY" in err
        assert "Traceback" not in err

    def test_from_env_names_bad_variable(self, monkeypatch):
        monkeypatch.setenv("PROOFSCORE_RPC_TIMEOUT_SECONDS", "soon")

        with pytest.raises(ValueError, match="PROOFSCORE_RPC_TIMEOUT_SECONDS"):
            OrchestratorConfig.from_env()

    def test_blank_numeric_env_value_uses_default(self, monkeypatch):
        monkeypatch.setenv("PROOFSCORE_POLL_MAX_ATTEMPTS", "  ")

        assert OrchestratorConfig.from_env().polling.max_attempts == TX_POLL_MAX_ATTEMPTS
