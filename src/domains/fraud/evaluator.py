"""Pre-transaction risk evaluation: flags -> score -> level -> recommendation."""

import structlog

from .config import FraudConfig, RiskBands, default_config
from .flags import evaluate_flags
from .models import (
    BehaviorFlags,
    BehaviorProfile,
    DeviceFingerprint,
    LocationSample,
    ProfileStats,
    Recommendation,
    RiskAssessment,
    RiskLevel,
    Severity,
    SignalBundle,
    TrustStatus,
)
from .signals import SignalAggregator
from .validation import validate, validate_local_hour

logger = structlog.get_logger()

_LEVEL_RECOMMENDATIONS = {
    RiskLevel.SAFE: Recommendation.PROCEED,
    RiskLevel.WARNING: Recommendation.CAUTION,
    RiskLevel.DANGER: Recommendation.AVOID,
    RiskLevel.CRITICAL: Recommendation.BLOCK,
}

_BLOCKING_SEVERITIES = (Severity.HIGH, Severity.CRITICAL)


def classify_risk_level(score: float, bands: RiskBands | None = None) -> RiskLevel:
    """Map a 0-100 score to its band. Lower bounds are inclusive."""
    b = bands or default_config.bands
    if score >= b.critical_min:
        return RiskLevel.CRITICAL
    if score >= b.danger_min:
        return RiskLevel.DANGER
    if score >= b.warning_min:
        return RiskLevel.WARNING
    return RiskLevel.SAFE


def recommend(level: RiskLevel, blacklist_severity: Severity | None = None) -> Recommendation:
    if blacklist_severity in _BLOCKING_SEVERITIES:
        return Recommendation.BLOCK
    return _LEVEL_RECOMMENDATIONS[level]


def is_amount_anomaly(amount: float, profile: BehaviorProfile | None, config: FraudConfig) -> bool:
    if profile is None:
        return False
    w = config.scoring
    if profile.max_amount > 0 and amount > w.amount_max_multiplier * profile.max_amount:
        return True
    return profile.avg_amount > 0 and amount > w.amount_avg_multiplier * profile.avg_amount


def score_signals(
    amount: float,
    bundle: SignalBundle,
    flags: BehaviorFlags,
    config: FraudConfig | None = None,
) -> tuple[float, list[str], bool, bool]:
    """Accumulate weights for active signals.

    Returns (clamped score, ordered reasons, amount_anomaly, impersonation).
    Reason order is fixed: blacklist, impersonation, amount anomaly, new
    contact, time anomaly, suspicious identifier, suspicious keywords,
    flagged contact.
    """
    cfg = config or default_config
    w = cfg.scoring
    score = 0.0
    reasons: list[str] = []

    amount_anomaly = is_amount_anomaly(amount, bundle.profile, cfg)
    # A payee the user already trusts does not impersonate another contact
    payee_trusted = (
        bundle.contact is not None and bundle.contact.trust_status == TrustStatus.TRUSTED
    )
    impersonation = bool(bundle.similar_contacts) and not payee_trusted

    if flags.is_blacklisted and bundle.blacklist is not None:
        entry = bundle.blacklist
        score += w.blacklist_weight(entry.severity.value)
        reasons.append(
            f"Payee has been reported as fraudulent ({entry.reported_count} reports, "
            f"severity: {entry.severity.value})"
        )
    if impersonation:
        first = bundle.similar_contacts[0]
        score += w.impersonation
        reasons.append(
            f"Payee identifier closely resembles your contact "
            f"{first.display_name or first.identifier}"
        )
    if amount_anomaly:
        score += w.amount_anomaly
        reasons.append(
            f"Amount {amount:,.2f} is far above your usual transfers "
            f"(max {bundle.profile.max_amount:,.2f}, avg {bundle.profile.avg_amount:,.2f})"
        )
    if flags.new_contact:
        score += w.new_contact
        reasons.append("New recipient with no established trust")
    if flags.time_anomaly:
        score += w.time_anomaly
        reasons.append("Late-night transfer outside your usual hours")
    if flags.suspicious_upi:
        score += w.suspicious_upi
        reasons.append("Payee identifier looks auto-generated or imitates a known provider")
    if flags.suspicious_keywords:
        score += w.suspicious_keywords
        reasons.append("Payee identifier or note contains words common in scams")
    if bundle.contact is not None and bundle.contact.trust_status == TrustStatus.FLAGGED:
        score += w.flagged_contact
        reasons.append("Recipient has been flagged previously")

    return max(0.0, min(score, 100.0)), reasons, amount_anomaly, impersonation


class PreTransactionEvaluator:
    """Read-only decision function over injected signal stores."""

    def __init__(
        self,
        aggregator: SignalAggregator,
        config: FraudConfig | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._config = config or default_config

    async def evaluate(
        self,
        amount: float,
        identifier: str,
        user_id: str,
        device: DeviceFingerprint | None = None,
        location: LocationSample | None = None,
        *,
        local_hour: int,
        note: str | None = None,
    ) -> RiskAssessment:
        cfg = self._config
        identifier, amount = validate(identifier, amount, cfg)
        local_hour = validate_local_hour(local_hour)

        bundle = await self._aggregator.gather(user_id, identifier)
        flags = evaluate_flags(
            identifier, bundle, local_hour, cfg, note=note, device=device, location=location
        )

        score, reasons, amount_anomaly, impersonation = score_signals(amount, bundle, flags, cfg)
        level = classify_risk_level(score, cfg.bands)
        severity = bundle.blacklist.severity if bundle.blacklist else None
        recommendation = recommend(level, severity)

        profile = bundle.profile
        assessment = RiskAssessment(
            risk_score=score,
            risk_level=level,
            recommendation=recommendation,
            reasons=reasons,
            behavior_flags=flags,
            impersonation_warning=impersonation,
            similar_contacts=[c.identifier for c in bundle.similar_contacts],
            amount_anomaly=amount_anomaly,
            contact_status=bundle.contact.trust_status if bundle.contact else TrustStatus.NEW,
            contact_name=bundle.contact.display_name if bundle.contact else None,
            profile_stats=ProfileStats(
                avg_amount=profile.avg_amount,
                max_amount=profile.max_amount,
                transaction_count=profile.transaction_count,
                known_devices=profile.known_device_count,
            )
            if profile
            else None,
        )

        logger.info(
            "pre_transaction_evaluated",
            user_id=user_id,
            identifier=identifier,
            risk_score=score,
            risk_level=level.value,
            recommendation=recommendation.value,
            reason_count=len(reasons),
            absent_signals=bundle.absent,
            has_device=device is not None,
            has_location=location is not None,
        )
        return assessment
