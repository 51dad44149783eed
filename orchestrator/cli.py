"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line entry point for the credit pipeline.

- assess: fetch metrics and print the score breakdown
- issue:  run the full flow and commit the attestation
- lookup: read the public on-chain score

============================================================
USAGE
============================================================
proofscore assess aleo1... --mock
PROOFSCORE_SIGNING_KEY=... proofscore issue aleo1...
proofscore lookup aleo1... --network testnet

============================================================
"""

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Dict, List, Optional

from core.exceptions import ProofScoreError
from orchestrator.config import NETWORKS, OrchestratorConfig
from orchestrator.core import CreditOrchestrator, create_orchestrator, setup_logging
from orchestrator.models import IssuanceResult


DEFAULT_SIGNING_KEY_ENV = "PROOFSCORE_SIGNING_KEY"

EXIT_OK = 0
EXIT_PIPELINE_ERROR = 1
EXIT_CONFIG_ERROR = 2


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="proofscore",
        description="Privacy-preserving on-chain credit scoring",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s assess aleo1...                 # Score an account
  %(prog)s issue aleo1... --mock           # Full flow against an in-memory ledger
  %(prog)s lookup aleo1... --json          # Read the on-chain score
        """,
    )

    # --------------------------------------------------------
    # Global Options
    # --------------------------------------------------------
    parser.add_argument(
        "--network",
        choices=sorted(NETWORKS),
        default=None,
        help="Ledger network (default: PROOFSCORE_NETWORK or mainnet)",
    )
    parser.add_argument(
        "--rpc-url",
        default=None,
        help="Override the ledger node URL",
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use an in-memory ledger (no network access)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Print machine-readable JSON",
    )

    logging_group = parser.add_argument_group("Logging Options")
    logging_group.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (default: PROOFSCORE_LOG_LEVEL or INFO)",
    )
    logging_group.add_argument(
        "--log-format",
        choices=["json", "text"],
        default=None,
        help="Log format (default: PROOFSCORE_LOG_FORMAT or text)",
    )

    # --------------------------------------------------------
    # Commands
    # --------------------------------------------------------
    subparsers = parser.add_subparsers(dest="command", required=True)

    assess = subparsers.add_parser("assess", help="Fetch metrics and compute the score")
    assess.add_argument("address", help="Account address")

    issue = subparsers.add_parser("issue", help="Run the full flow and commit on-chain")
    issue.add_argument("address", help="Account address")
    issue.add_argument(
        "--signing-key-env",
        default=DEFAULT_SIGNING_KEY_ENV,
        help=f"Environment variable holding the signing key (default: {DEFAULT_SIGNING_KEY_ENV})",
    )
    issue.add_argument(
        "--retries",
        type=int,
        default=None,
        help="Extra attempts after a retry-safe pre-broadcast failure",
    )

    lookup = subparsers.add_parser("lookup", help="Read the public on-chain score")
    lookup.add_argument("address", help="Account address")

    return parser


def build_config(args: argparse.Namespace) -> OrchestratorConfig:
    """Environment configuration with CLI overrides applied."""
    config = OrchestratorConfig.from_env()
    if args.network:
        config.network.network = args.network
    if args.rpc_url:
        config.network.rpc_url = args.rpc_url
    if args.mock:
        config.use_mock_ledger = True
    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format
    if getattr(args, "retries", None) is not None:
        config.attestation.retries = args.retries
    return config


# ============================================================
# COMMANDS
# ============================================================

async def run_assess(orchestrator: CreditOrchestrator, address: str) -> Dict[str, Any]:
    await orchestrator.init(address)
    metrics = await orchestrator.fetch_metrics()
    assessment = orchestrator.calculate_score(metrics)
    breakdown = orchestrator.breakdown(assessment)

    report = await orchestrator.metrics_store.fetch_report(address)
    return {
        "assessment": assessment.to_dict(),
        "breakdown": breakdown.to_dict(),
        "fallback_fields": [f.value for f in report.fallback_fields],
    }


async def run_issue(
    orchestrator: CreditOrchestrator,
    address: str,
    signing_key: Optional[str],
) -> IssuanceResult:
    await orchestrator.init(address)
    try:
        return await orchestrator.run_full_flow(signing_key)
    except ProofScoreError as e:
        return IssuanceResult.failure(e, timings=orchestrator.timings)


async def run_lookup(orchestrator: CreditOrchestrator, address: str) -> Dict[str, Any]:
    score = await orchestrator.fetch_score(address)
    return {"address": address, "score": score}


async def async_main(args: argparse.Namespace, config: OrchestratorConfig) -> int:
    orchestrator = create_orchestrator(config)
    try:
        if args.command == "assess":
            output = await run_assess(orchestrator, args.address)
            _emit(output, args.as_json, _format_assessment)
            return EXIT_OK

        if args.command == "issue":
            result = await run_issue(
                orchestrator,
                args.address,
                os.environ.get(args.signing_key_env),
            )
            payload = result.to_dict()
            if result.transaction_id:
                payload["explorer_url"] = orchestrator.get_explorer_url(result.transaction_id)
            _emit(payload, args.as_json, _format_issuance)
            return EXIT_OK if result.success else EXIT_PIPELINE_ERROR

        output = await run_lookup(orchestrator, args.address)
        _emit(output, args.as_json, _format_lookup)
        return EXIT_OK

    except ProofScoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_PIPELINE_ERROR
    finally:
        await orchestrator.close()


# ============================================================
# OUTPUT
# ============================================================

def _emit(payload: Dict[str, Any], as_json: bool, formatter) -> None:
    if as_json:
        print(json.dumps(payload, indent=2, default=str))
    else:
        print(formatter(payload))


def _format_assessment(payload: Dict[str, Any]) -> str:
    a = payload["assessment"]
    b = payload["breakdown"]
    lines = [
        f"Address:    {a['address']}",
        f"Score:      {a['final_score']} / {b['max_possible']}",
        f"Risk tier:  {a['risk_tier']}",
        f"Base:       {b['base']}",
    ]
    for name, points in b["bonuses"].items():
        lines.append(f"  +{points:<4} {name}")
    if payload["fallback_fields"]:
        lines.append(f"Fallback:   {', '.join(payload['fallback_fields'])}")
    return "\n".join(lines)


def _format_issuance(payload: Dict[str, Any]) -> str:
    if not payload["success"]:
        lines = [f"FAILED [{payload['error_code']}] {payload['error_message']}"]
        if payload["transaction_id"]:
            lines.append(f"Transaction: {payload['transaction_id']} (re-poll, do not resubmit)")
        return "\n".join(lines)

    record = payload["issued_record"]
    lines = [
        f"Issued score {record['score']} for {record['owner']}",
        f"Transaction: {payload['transaction_id']}",
        f"Block:       {record['issued_block']}",
    ]
    if payload.get("explorer_url"):
        lines.append(f"Explorer:    {payload['explorer_url']}")
    return "\n".join(lines)


def _format_lookup(payload: Dict[str, Any]) -> str:
    if payload["score"] is None:
        return f"No score issued for {payload['address']}"
    return f"{payload['address']}: {payload['score']}"


# ============================================================
# MAIN
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    setup_logging(config.log_level, config.log_format)
    return asyncio.run(async_main(args, config))


if __name__ == "__main__":
    sys.exit(main())
