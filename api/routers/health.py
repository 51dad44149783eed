from fastapi import APIRouter, Depends

from api.dependencies import get_orchestrator
from api.schemas import CacheStatsData, HealthData, HealthResponse
from orchestrator.core import CreditOrchestrator

router = APIRouter(prefix="/health", tags=["System Health"])

@router.get("", response_model=HealthResponse)
async def get_health(orchestrator: CreditOrchestrator = Depends(get_orchestrator)):
    """
    Ledger liveness and metrics cache counters. Always 200.
    """
    healthy = await orchestrator.submitter.check_health()
    stats = orchestrator.metrics_store.stats()
    return HealthResponse(
        success=True,
        message=None if healthy else "Ledger unreachable",
        data=HealthData(
            ledger=orchestrator.submitter.ledger.name,
            ledger_healthy=healthy,
            cache=CacheStatsData(
                size=stats.size,
                capacity=stats.capacity,
                ttl_seconds=stats.ttl_seconds,
                hits=stats.hits,
                misses=stats.misses,
            ),
        ),
    )
