"""Alert emission: trigger thresholds, type selection, deduplication, status changes."""

import uuid
from datetime import UTC, datetime

import structlog

from .config import FraudConfig, default_config
from .errors import DuplicateAlert, InvalidTransition
from .events import ALERT_CREATED, ALERT_UPDATED, EventBus
from .locks import KeyedLocks
from .models import (
    Alert,
    AlertStatus,
    AlertType,
    AnalysisRecommendation,
    RiskAssessment,
    RiskLevel,
    Severity,
    TransactionAnalysis,
)
from .stores import AlertStore

logger = structlog.get_logger()

_ASSESSMENT_SEVERITY = {
    RiskLevel.DANGER: Severity.HIGH,
    RiskLevel.CRITICAL: Severity.CRITICAL,
}

_ALLOWED_TRANSITIONS: dict[AlertStatus, frozenset[AlertStatus]] = {
    AlertStatus.UNREAD: frozenset({AlertStatus.READ, AlertStatus.DISMISSED, AlertStatus.ACTIONED}),
    AlertStatus.READ: frozenset({AlertStatus.DISMISSED, AlertStatus.ACTIONED}),
    AlertStatus.DISMISSED: frozenset(),
    AlertStatus.ACTIONED: frozenset(),
}


def alert_type_for_assessment(assessment: RiskAssessment) -> AlertType:
    flags = assessment.behavior_flags
    if flags.is_blacklisted:
        return AlertType.FRAUD_DETECTED
    if flags.suspicious_keywords:
        return AlertType.PHISHING_ATTEMPT
    return AlertType.SUSPICIOUS_TRANSACTION


def alert_type_for_analysis(analysis: TransactionAnalysis) -> AlertType:
    if analysis.fraud_category == "known_fraud":
        return AlertType.FRAUD_DETECTED
    if analysis.fraud_category == "social_engineering":
        return AlertType.PHISHING_ATTEMPT
    return AlertType.SUSPICIOUS_TRANSACTION


def severity_for_analysis(analysis: TransactionAnalysis, config: FraudConfig) -> Severity:
    if analysis.risk_score > config.alerts.critical_severity_score:
        return Severity.CRITICAL
    if analysis.risk_score > config.alerts.high_severity_score:
        return Severity.HIGH
    return Severity.MEDIUM


class AlertEmissionPolicy:
    """Turns high-risk assessments and analyses into deduplicated alerts."""

    def __init__(
        self,
        store: AlertStore,
        events: EventBus | None = None,
        config: FraudConfig | None = None,
    ) -> None:
        self._store = store
        self._events = events
        self._config = config or default_config
        self._locks = KeyedLocks()

    async def from_assessment(
        self,
        user_id: str,
        identifier: str,
        amount: float,
        assessment: RiskAssessment,
        transaction_id: str | None = None,
    ) -> Alert | None:
        severity = _ASSESSMENT_SEVERITY.get(assessment.risk_level)
        if severity is None:
            return None

        title = (
            "High Risk Transaction!"
            if assessment.risk_level == RiskLevel.CRITICAL
            else "Transaction Warning"
        )
        return await self._emit(
            user_id=user_id,
            transaction_id=transaction_id,
            identifier=identifier,
            alert_type=alert_type_for_assessment(assessment),
            severity=severity,
            title=title,
            message=_message(amount, identifier, assessment.reasons),
            metadata={
                "source": "pre_transaction",
                "risk_score": assessment.risk_score,
                "risk_level": assessment.risk_level.value,
                "recommendation": assessment.recommendation.value,
                "reasons": assessment.reasons,
            },
        )

    async def from_analysis(
        self,
        user_id: str,
        identifier: str,
        amount: float,
        analysis: TransactionAnalysis,
    ) -> Alert | None:
        if analysis.recommendation not in (
            AnalysisRecommendation.WARN,
            AnalysisRecommendation.BLOCK,
        ):
            return None

        title = (
            "High Risk Transaction!"
            if analysis.risk_score > self._config.alerts.high_risk_title_score
            else "Transaction Warning"
        )
        return await self._emit(
            user_id=user_id,
            transaction_id=analysis.transaction_id,
            identifier=identifier,
            alert_type=alert_type_for_analysis(analysis),
            severity=severity_for_analysis(analysis, self._config),
            title=title,
            message=_message(amount, identifier, analysis.reasons),
            metadata={
                "source": "post_transaction",
                "analysis_id": analysis.analysis_id,
                "risk_score": analysis.risk_score,
                "is_anomaly": analysis.is_anomaly,
                "fraud_category": analysis.fraud_category,
                "confidence": analysis.confidence,
                "recommendation": analysis.recommendation.value,
                "reasons": analysis.reasons,
            },
        )

    async def _emit(
        self,
        user_id: str,
        transaction_id: str | None,
        identifier: str,
        alert_type: AlertType,
        severity: Severity,
        title: str,
        message: str,
        metadata: dict,
    ) -> Alert:
        dedup = {
            "user_id": user_id,
            "alert_type": alert_type.value,
            "transaction_id": transaction_id,
            "payee_identifier": None if transaction_id else identifier,
        }
        async with self._locks.hold(tuple(dedup.values())):
            now = datetime.now(UTC)
            existing = await self._store.find_open(**dedup)
            if existing is None:
                try:
                    return await self._create(
                        Alert(
                            id=str(uuid.uuid4()),
                            user_id=user_id,
                            transaction_id=transaction_id,
                            payee_identifier=identifier,
                            alert_type=alert_type,
                            title=title,
                            message=message,
                            severity=severity,
                            status=AlertStatus.UNREAD,
                            metadata=metadata,
                            created_at=now,
                        )
                    )
                except DuplicateAlert:
                    # Another process inserted the open alert after our lookup
                    existing = await self._store.find_open(**dedup)
                    if existing is None:
                        raise

            alert = await self._store.touch(existing.id, now, metadata)
            logger.info(
                "alert_deduplicated",
                alert_id=alert.id,
                user_id=user_id,
                transaction_id=transaction_id,
                alert_type=alert_type.value,
            )
            await self._publish(ALERT_UPDATED, alert)
            return alert

    async def _create(self, alert: Alert) -> Alert:
        alert = await self._store.create(alert)
        logger.warning(
            "fraud_alert_created",
            alert_id=alert.id,
            user_id=alert.user_id,
            transaction_id=alert.transaction_id,
            alert_type=alert.alert_type.value,
            severity=alert.severity.value,
        )
        await self._publish(ALERT_CREATED, alert)
        return alert

    async def transition(self, alert_id: str, status: AlertStatus) -> Alert:
        """Move an alert forward. Backward or repeated moves raise InvalidTransition.

        The store applies the change only if the status is still the one
        checked here, so concurrent transitions cannot move an alert back.
        """
        status = AlertStatus(status)
        async with self._locks.hold(alert_id):
            alert = await self._store.get(alert_id)
            if alert is None:
                raise LookupError(f"Alert not found: {alert_id}")

            if status not in _ALLOWED_TRANSITIONS[alert.status]:
                raise InvalidTransition(
                    f"Cannot move alert from {alert.status.value} to {status.value}"
                )

            read_at = datetime.now(UTC) if status == AlertStatus.READ else None
            updated = await self._store.set_status(
                alert_id, status, read_at, expected=alert.status
            )
        logger.info(
            "alert_status_changed",
            alert_id=alert_id,
            previous=alert.status.value,
            status=status.value,
        )
        await self._publish(ALERT_UPDATED, updated)
        return updated

    async def _publish(self, topic: str, alert: Alert) -> None:
        if self._events is None:
            return
        await self._events.publish(topic, alert.model_dump(mode="json"), key=alert.user_id)


def _message(amount: float, identifier: str, reasons: list[str]) -> str:
    headline = reasons[0] if reasons else "elevated risk"
    return f"Transaction of {amount:,.2f} to {identifier} flagged: {headline}"
