from fastapi import Request

from orchestrator.core import CreditOrchestrator


def get_orchestrator(request: Request) -> CreditOrchestrator:
    """Per-request orchestrator sharing the app's components (cache, ledger, submitter)."""
    return request.app.state.orchestrator.spawn()
