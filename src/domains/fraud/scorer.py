"""Payee risk pipeline: signals -> evaluation -> alert, and post-transaction analysis."""

from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .alerts import AlertEmissionPolicy
from .analyzer import PostTransactionAnalyzer
from .blacklist import BlacklistUpsertPolicy
from .classifier import AnomalyClassifier, HttpAnomalyClassifier, RulesAnomalyClassifier
from .config import FraudConfig, default_config
from .evaluator import PreTransactionEvaluator
from .events import EventBus
from .models import (
    Alert,
    AlertStatus,
    BlacklistEntry,
    PostTransactionRequest,
    PreTransactionRequest,
    RiskAssessment,
    Severity,
    TransactionAnalysis,
)
from .signals import SignalAggregator
from .stores import (
    AlertStore,
    AnalysisStore,
    BlacklistStore,
    ContactStore,
    ProfileStore,
    SqlAlertStore,
    SqlAnalysisStore,
    SqlBlacklistStore,
    SqlContactStore,
    SqlProfileStore,
)
from .validation import normalize_identifier

logger = structlog.get_logger()


@dataclass
class Stores:
    contacts: ContactStore
    blacklist: BlacklistStore
    profiles: ProfileStore
    analyses: AnalysisStore
    alerts: AlertStore


class FraudScorer:
    """Orchestrates the engine components behind the HTTP layer."""

    def __init__(
        self,
        stores: Stores,
        classifier: AnomalyClassifier | None = None,
        events: EventBus | None = None,
        config: FraudConfig | None = None,
    ) -> None:
        self._config = config or default_config
        self.events = events or EventBus()
        self.stores = stores

        aggregator = SignalAggregator(
            stores.contacts, stores.blacklist, stores.profiles, config=self._config
        )
        self.evaluator = PreTransactionEvaluator(aggregator, config=self._config)
        self.alerts = AlertEmissionPolicy(stores.alerts, events=self.events, config=self._config)
        self.blacklist = BlacklistUpsertPolicy(
            stores.blacklist, events=self.events, config=self._config
        )
        self._classifier = classifier or RulesAnomalyClassifier(stores.contacts, stores.blacklist)
        self.analyzer = PostTransactionAnalyzer(
            self._classifier,
            stores.analyses,
            alerts=self.alerts,
            config=self._config,
        )

    async def pre_analyze(self, user_id: str, request: PreTransactionRequest) -> RiskAssessment:
        """Assess a payment before it is sent; danger/critical raise an alert."""
        assessment = await self.evaluator.evaluate(
            request.amount,
            request.receiver_identifier,
            user_id,
            request.device_info,
            request.location,
            local_hour=request.local_hour,
            note=request.note,
        )

        identifier = normalize_identifier(request.receiver_identifier, self._config)
        try:
            alert = await self.alerts.from_assessment(
                user_id, identifier, request.amount, assessment
            )
        except Exception:
            # The assessment is still valid when the alert sink is down
            logger.exception("pre_transaction_alert_failed", user_id=user_id)
            alert = None

        logger.info(
            "pre_analysis_completed",
            user_id=user_id,
            risk_level=assessment.risk_level.value,
            alert_created=alert is not None,
        )
        return assessment

    async def analyze(
        self, user_id: str | None, request: PostTransactionRequest
    ) -> TransactionAnalysis:
        return await self.analyzer.analyze(request, user_id)

    def analyze_in_background(self, user_id: str | None, request: PostTransactionRequest):
        return self.analyzer.schedule(request, user_id)

    async def report_payee(
        self, identifier: str, reason: str | None, severity: Severity = Severity.MEDIUM
    ) -> BlacklistEntry:
        return await self.blacklist.report(identifier, reason, severity)

    async def get_blacklist_entry(self, identifier: str) -> BlacklistEntry | None:
        return await self.blacklist.lookup(identifier)

    async def list_alerts(
        self,
        user_id: str,
        status: AlertStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Alert], int]:
        return await self.stores.alerts.list_for_user(user_id, status, limit, offset)

    async def update_alert_status(self, alert_id: str, status: AlertStatus) -> Alert:
        return await self.alerts.transition(alert_id, status)

    async def list_analyses(self, transaction_id: str) -> list[TransactionAnalysis]:
        return await self.analyzer.history(transaction_id)

    async def aclose(self) -> None:
        await self.analyzer.drain()
        if isinstance(self._classifier, HttpAnomalyClassifier):
            await self._classifier.aclose()


def build_sql_scorer(
    session_factory: async_sessionmaker[AsyncSession],
    events: EventBus | None = None,
    classifier_url: str | None = None,
    classifier_timeout_seconds: float = 5.0,
    config: FraudConfig | None = None,
) -> FraudScorer:
    """Wire a scorer over the SQLAlchemy stores."""
    stores = Stores(
        contacts=SqlContactStore(session_factory),
        blacklist=SqlBlacklistStore(session_factory),
        profiles=SqlProfileStore(session_factory),
        analyses=SqlAnalysisStore(session_factory),
        alerts=SqlAlertStore(session_factory),
    )
    classifier = (
        HttpAnomalyClassifier(classifier_url, timeout_seconds=classifier_timeout_seconds)
        if classifier_url
        else None
    )
    logger.info(
        "fraud_scorer_wired",
        classifier="http" if classifier else "rules",
    )
    return FraudScorer(stores, classifier=classifier, events=events, config=config)
