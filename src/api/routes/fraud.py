"""Payee risk endpoints: pre-transaction checks, post-transaction analysis,
blacklist reporting and alert management."""

import structlog
from fastapi import APIRouter, Depends, Header, Query, Request, Response

from src.domains.fraud.models import (
    AlertStatus,
    AlertStatusUpdate,
    BlacklistReportRequest,
    PostTransactionRequest,
    PreTransactionRequest,
)
from src.domains.fraud.scorer import FraudScorer

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/fraud", tags=["fraud"])


def get_fraud_scorer(request: Request) -> FraudScorer:
    """The scorer wired at startup; tests override this dependency."""
    return request.app.state.fraud_scorer


@router.post("/pre-analyze")
async def pre_analyze(
    body: PreTransactionRequest,
    user_id: str = Header(alias="X-User-ID"),
    scorer: FraudScorer = Depends(get_fraud_scorer),  # noqa: B008
) -> dict:
    assessment = await scorer.pre_analyze(user_id, body)
    return assessment.model_dump(mode="json", by_alias=True)


@router.post("/analyze")
async def analyze(
    body: PostTransactionRequest,
    user_id: str | None = Header(default=None, alias="X-User-ID"),
    scorer: FraudScorer = Depends(get_fraud_scorer),  # noqa: B008
) -> dict:
    analysis = await scorer.analyze(user_id, body)
    return analysis.model_dump(mode="json")


@router.post("/blacklist/report", status_code=204)
async def report_payee(
    body: BlacklistReportRequest,
    scorer: FraudScorer = Depends(get_fraud_scorer),  # noqa: B008
) -> Response:
    await scorer.report_payee(body.upi_id, body.reason, body.severity)
    return Response(status_code=204)


@router.get("/blacklist/{identifier}")
async def get_blacklist_entry(
    identifier: str,
    scorer: FraudScorer = Depends(get_fraud_scorer),  # noqa: B008
) -> dict:
    entry = await scorer.get_blacklist_entry(identifier)
    if entry is None:
        raise LookupError(f"Identifier not blacklisted: {identifier.lower()}")
    return entry.model_dump(mode="json")


@router.get("/alerts")
async def list_alerts(
    user_id: str,
    status: AlertStatus | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    scorer: FraudScorer = Depends(get_fraud_scorer),  # noqa: B008
) -> dict:
    alerts, total = await scorer.list_alerts(user_id, status, limit, offset)
    return {
        "items": [a.model_dump(mode="json") for a in alerts],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.post("/alerts/{alert_id}/status")
async def update_alert_status(
    alert_id: str,
    body: AlertStatusUpdate,
    scorer: FraudScorer = Depends(get_fraud_scorer),  # noqa: B008
) -> dict:
    alert = await scorer.update_alert_status(alert_id, body.status)
    return alert.model_dump(mode="json")


@router.get("/analyses/{transaction_id}")
async def list_analyses(
    transaction_id: str,
    scorer: FraudScorer = Depends(get_fraud_scorer),  # noqa: B008
) -> dict:
    analyses = await scorer.list_analyses(transaction_id)
    return {
        "transaction_id": transaction_id,
        "items": [a.model_dump(mode="json") for a in analyses],
        "total": len(analyses),
    }
