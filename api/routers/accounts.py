from fastapi import APIRouter, Depends

from api.dependencies import get_orchestrator
from api.schemas import (
    AssessmentData,
    AssessmentResponse,
    BonusBreakdown,
    BreakdownData,
    FieldProvenance,
    IssuanceData,
    IssuanceRequest,
    IssuanceResponse,
    IssuedRecordData,
    MetricsData,
    MetricsResponse,
    ScoreData,
    ScoreResponse,
)
from orchestrator.core import CreditOrchestrator

router = APIRouter(prefix="/accounts", tags=["Accounts"])


@router.get("/{address}/metrics", response_model=MetricsResponse)
async def get_metrics(address: str, orchestrator: CreditOrchestrator = Depends(get_orchestrator)):
    """
    Activity metrics with per-field provenance (live or fallback).
    """
    session = await orchestrator.init(address, check_health=False)
    was_cached = session.cache_entry is not None
    await orchestrator.fetch_metrics()

    entry = session.cache_entry
    report = entry.report if entry else await orchestrator.metrics_store.fetch_report(address)

    return MetricsResponse(
        success=True,
        data=MetricsData(
            **report.metrics.to_dict(),
            cached=was_cached,
            fields=[FieldProvenance(**f.to_dict()) for f in report.fields],
        ),
    )


@router.get("/{address}/assessment", response_model=AssessmentResponse)
async def get_assessment(address: str, orchestrator: CreditOrchestrator = Depends(get_orchestrator)):
    """
    Credit score, risk tier and per-factor breakdown.
    """
    await orchestrator.init(address, check_health=False)
    metrics = await orchestrator.fetch_metrics()
    assessment = orchestrator.calculate_score(metrics)
    breakdown = orchestrator.breakdown(assessment)
    entry = orchestrator.session.cache_entry

    return AssessmentResponse(
        success=True,
        data=AssessmentData(
            address=assessment.address,
            final_score=assessment.final_score,
            risk_tier=assessment.risk_tier.value,
            base_score=assessment.base_score,
            bonus_points=assessment.bonus_points,
            produced_at=assessment.produced_at,
            breakdown=BreakdownData(
                base=breakdown.base,
                bonuses=BonusBreakdown(
                    transactions=breakdown.transactions,
                    account_age=breakdown.account_age,
                    activity=breakdown.activity,
                    repayment=breakdown.repayment,
                ),
                total=breakdown.total,
                max_possible=breakdown.max_possible,
            ),
            fallback_fields=[f.value for f in entry.report.fallback_fields] if entry else [],
        ),
    )


@router.post("/{address}/issuance", response_model=IssuanceResponse)
async def issue_score(
    address: str,
    request: IssuanceRequest,
    orchestrator: CreditOrchestrator = Depends(get_orchestrator),
):
    """
    Run the full flow and commit the attestation on-chain.
    """
    await orchestrator.init(address, check_health=False)
    result = await orchestrator.run_full_flow(request.signing_key)
    record = result.issued_record

    return IssuanceResponse(
        success=True,
        message="Score issued",
        data=IssuanceData(
            transaction_id=result.transaction_id,
            issued_record=IssuedRecordData(**record.to_dict()),
            attempts=result.attempts,
            explorer_url=orchestrator.get_explorer_url(result.transaction_id),
        ),
    )


@router.get("/{address}/score", response_model=ScoreResponse)
async def get_score(address: str, orchestrator: CreditOrchestrator = Depends(get_orchestrator)):
    """
    Public on-chain score; score is null when none has been issued.
    """
    score = await orchestrator.fetch_score(address)
    return ScoreResponse(
        success=True,
        data=ScoreData(address=address, score=score, issued=score is not None),
    )
