"""Post-transaction analysis: classify a completed payment, persist, alert."""

import asyncio
import math
import uuid
from datetime import UTC, datetime

import structlog

from .alerts import AlertEmissionPolicy
from .classifier import AnomalyClassifier
from .config import FraudConfig, default_config
from .errors import ClassifierFailure, InvalidInput
from .models import (
    AnalysisRecommendation,
    ClassificationInput,
    ClassifierVerdict,
    HistoryItem,
    PostTransactionRequest,
    TransactionAnalysis,
)
from .stores import AnalysisStore
from .validation import validate

logger = structlog.get_logger()

DEGRADED_REASON = "Automated analysis unavailable, transaction allowed pending review"

_MAX_HISTORY_IDENTIFIER = 100


def sanitize_history(raw: list[dict], limit: int) -> list[HistoryItem]:
    """Keep the first ``limit`` entries, coercing each to a plain history item."""
    items: list[HistoryItem] = []
    for entry in raw[:limit]:
        if not isinstance(entry, dict):
            continue
        items.append(
            HistoryItem(
                amount=_coerce_amount(entry.get("amount")),
                receiver_identifier=str(
                    entry.get("receiver_identifier")
                    or entry.get("receiverIdentifier")
                    or entry.get("receiver_upi")
                    or ""
                )[:_MAX_HISTORY_IDENTIFIER],
                created_at=str(entry.get("created_at") or entry.get("createdAt") or ""),
            )
        )
    return items


def _coerce_amount(value) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    return amount if math.isfinite(amount) else 0.0


def recommend_from_score(score: float, config: FraudConfig) -> AnalysisRecommendation:
    if score > config.analyzer.block_threshold:
        return AnalysisRecommendation.BLOCK
    if score > config.analyzer.warn_threshold:
        return AnalysisRecommendation.WARN
    return AnalysisRecommendation.ALLOW


class PostTransactionAnalyzer:
    """Runs the anomaly classifier against a completed transaction.

    The classifier is retried with exponential backoff. When every attempt
    fails, a degraded record is stored instead so the transaction is never
    blocked by an unavailable classifier. Persistence and alerting failures
    are logged; the caller always gets the analysis back.
    """

    def __init__(
        self,
        classifier: AnomalyClassifier,
        store: AnalysisStore,
        alerts: AlertEmissionPolicy | None = None,
        config: FraudConfig | None = None,
    ) -> None:
        self._classifier = classifier
        self._store = store
        self._alerts = alerts
        self._config = config or default_config
        self._background: set[asyncio.Task] = set()

    async def analyze(
        self, request: PostTransactionRequest, user_id: str | None = None
    ) -> TransactionAnalysis:
        user_id = user_id or request.user_id
        if not user_id:
            raise InvalidInput("user id is required")
        identifier, amount = validate(request.receiver_identifier, request.amount, self._config)

        payload = ClassificationInput(
            transaction_id=str(request.transaction_id),
            user_id=user_id,
            amount=amount,
            identifier=identifier,
            history=sanitize_history(request.user_history, self._config.analyzer.history_limit),
        )

        verdict = await self._classify_with_retry(payload)
        analysis = self._build_analysis(payload, verdict)

        try:
            await self._store.append(analysis)
        except Exception:
            logger.exception(
                "analysis_persist_failed",
                transaction_id=analysis.transaction_id,
                analysis_id=analysis.analysis_id,
            )

        if self._alerts is not None:
            try:
                await self._alerts.from_analysis(user_id, identifier, amount, analysis)
            except Exception:
                logger.exception("analysis_alert_failed", transaction_id=analysis.transaction_id)

        logger.info(
            "transaction_analyzed",
            transaction_id=analysis.transaction_id,
            risk_score=analysis.risk_score,
            recommendation=analysis.recommendation.value,
            fraud_category=analysis.fraud_category,
            degraded=analysis.degraded,
        )
        return analysis

    def schedule(
        self, request: PostTransactionRequest, user_id: str | None = None
    ) -> asyncio.Task:
        """Run ``analyze`` in the background, detached from the caller."""
        task = asyncio.create_task(self._run_detached(request, user_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _run_detached(
        self, request: PostTransactionRequest, user_id: str | None
    ) -> TransactionAnalysis | None:
        try:
            return await self.analyze(request, user_id)
        except InvalidInput as exc:
            logger.warning(
                "background_analysis_rejected",
                transaction_id=str(request.transaction_id),
                reason=exc.reason,
            )
            return None
        except Exception:
            logger.exception(
                "background_analysis_failed", transaction_id=str(request.transaction_id)
            )
            return None

    async def drain(self) -> None:
        """Wait for in-flight background analyses (used on shutdown)."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def _classify_with_retry(self, payload: ClassificationInput) -> ClassifierVerdict | None:
        """Call the classifier with exponential backoff.

        Any error from the classifier, or a result that is not a verdict,
        counts as a failed attempt. Returns None once attempts are exhausted.
        """
        attempts = self._config.analyzer.classifier_max_attempts
        base = self._config.analyzer.classifier_backoff_base_seconds
        for attempt in range(attempts):
            try:
                verdict = await self._classifier.classify(payload)
                if not isinstance(verdict, ClassifierVerdict):
                    raise ClassifierFailure(
                        f"classifier returned {type(verdict).__name__}, not a verdict"
                    )
                return verdict
            except Exception as exc:
                logger.warning(
                    "classifier_attempt_failed",
                    transaction_id=payload.transaction_id,
                    attempt=attempt + 1,
                    max_attempts=attempts,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                if attempt + 1 < attempts:
                    await asyncio.sleep(base * 2**attempt)

        logger.error("classifier_exhausted", transaction_id=payload.transaction_id)
        return None

    def _build_analysis(
        self, payload: ClassificationInput, verdict: ClassifierVerdict | None
    ) -> TransactionAnalysis:
        common = {
            "analysis_id": str(uuid.uuid4()),
            "transaction_id": payload.transaction_id,
            "user_id": payload.user_id,
            "created_at": datetime.now(UTC),
        }
        if verdict is None:
            return TransactionAnalysis(
                **common,
                risk_score=0.0,
                is_anomaly=False,
                fraud_category=None,
                confidence=0.0,
                reasons=[DEGRADED_REASON],
                recommendation=AnalysisRecommendation.ALLOW,
                degraded=True,
            )

        return TransactionAnalysis(
            **common,
            risk_score=verdict.risk_score,
            is_anomaly=verdict.is_anomaly,
            fraud_category=verdict.fraud_category,
            confidence=verdict.confidence,
            reasons=verdict.reasons,
            recommendation=recommend_from_score(verdict.risk_score, self._config),
        )

    async def history(self, transaction_id: str) -> list[TransactionAnalysis]:
        return await self._store.list_for_transaction(transaction_id)
