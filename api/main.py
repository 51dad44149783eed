"""
ProofScore HTTP API.

Thin FastAPI surface over the credit orchestrator. Every request
gets its own orchestrator session; the metrics cache, ledger
client and submission registry are shared across requests.
The ledger is checked once at startup and on GET /health, never
per account request.

Run with:
    python -m api.main
"""

import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routers import accounts, health
from api.schemas import ErrorDetail, ErrorResponse
from core.exceptions import ProofScoreError
from orchestrator.config import OrchestratorConfig
from orchestrator.core import CreditOrchestrator, create_orchestrator, setup_logging


logger = logging.getLogger(__name__)

# Unlisted codes map to 500.
STATUS_BY_CODE: Dict[str, int] = {
    "ADDRESS_FORMAT": 400,
    "NOT_INITIALIZED": 400,
    "METRICS_VALIDATION": 422,
    "METRICS_FETCH": 503,
    "COMMITMENT_INVALID": 409,
    "ONCHAIN_EXECUTION": 409,
    "SUBMISSION_BROADCAST": 502,
    "LEDGER_QUERY": 502,
    "CONFIRMATION_TIMEOUT": 504,
}


def create_app(orchestrator: Optional[CreditOrchestrator] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        orchestrator: Template orchestrator; built from the environment when None
    """
    if orchestrator is None:
        orchestrator = create_orchestrator(OrchestratorConfig.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not await app.state.orchestrator.submitter.check_health():
            logger.warning("[API] Ledger unreachable at startup; serving anyway")
        yield
        await app.state.orchestrator.close()
        logger.info("[API] Ledger client closed")

    app = FastAPI(
        title="ProofScore API",
        description="Privacy-preserving credit scoring with on-chain attestation.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator

    # CORS (Allow local frontend development)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(accounts.router)

    @app.exception_handler(ProofScoreError)
    async def proofscore_error_handler(request: Request, exc: ProofScoreError) -> JSONResponse:
        status_code = STATUS_BY_CODE.get(exc.code, 500)
        if status_code >= 500:
            logger.warning(f"[API] {request.method} {request.url.path} -> {status_code}: {exc}")
        body = ErrorResponse(
            message=exc.message,
            error=ErrorDetail(
                code=exc.code,
                message=exc.message,
                stage=exc.stage,
                transaction_id=exc.transaction_id,
                retryable=exc.retryable,
                resubmit_safe=exc.resubmit_safe,
            ),
        )
        return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))

    @app.get("/")
    def root():
        return {"status": "ok", "message": "ProofScore API is running"}

    return app


if __name__ == "__main__":
    import uvicorn

    config = OrchestratorConfig.from_env()
    setup_logging(config.log_level, config.log_format)
    uvicorn.run(create_app(create_orchestrator(config)), host="0.0.0.0", port=8000)
