"""Payee risk engine configuration with sensible defaults."""

import os
from dataclasses import dataclass, field


@dataclass
class ValidationLimits:
    max_amount: float = 10_000_000.0
    identifier_pattern: str = r"^[a-z0-9.\-_]{2,256}@[a-z]{2,64}$"


@dataclass
class SignalSettings:
    lookup_timeout_seconds: float = 1.5
    overall_deadline_seconds: float = 4.0
    similarity_max_distance: int = 2


@dataclass
class FlagSettings:
    high_risk_start_hour: int = 0
    high_risk_end_hour: int = 5
    numeric_ratio_threshold: float = 0.70
    provider_handles: tuple[str, ...] = (
        "okaxis",
        "okhdfcbank",
        "okicici",
        "oksbi",
        "ybl",
        "ibl",
        "axl",
        "paytm",
        "apl",
        "upi",
    )
    keywords: tuple[str, ...] = (
        "cashback",
        "lottery",
        "winner",
        "prize",
        "reward",
        "lucky",
        "free",
        "offer",
        "bonus",
        "refund",
        "claim",
        "urgent",
        "verify",
        "govt",
        "scheme",
        "subsidy",
        "official",
        "kyc",
    )


@dataclass
class ScoringWeights:
    blacklist_low: float = 30.0
    blacklist_medium: float = 45.0
    blacklist_high: float = 65.0
    blacklist_critical: float = 85.0
    impersonation: float = 25.0
    amount_anomaly: float = 25.0
    new_contact: float = 15.0
    time_anomaly: float = 15.0
    suspicious_upi: float = 20.0
    suspicious_keywords: float = 20.0
    flagged_contact: float = 30.0
    # amount > max_multiplier * max_amount or > avg_multiplier * avg_amount
    amount_max_multiplier: float = 3.0
    amount_avg_multiplier: float = 5.0

    def blacklist_weight(self, severity: str) -> float:
        return {
            "low": self.blacklist_low,
            "medium": self.blacklist_medium,
            "high": self.blacklist_high,
            "critical": self.blacklist_critical,
        }[severity]


@dataclass
class RiskBands:
    warning_min: float = 25.0
    danger_min: float = 50.0
    critical_min: float = 75.0


@dataclass
class AnalyzerSettings:
    classifier_max_attempts: int = 3
    classifier_backoff_base_seconds: float = 0.5
    history_limit: int = 20
    warn_threshold: float = 40.0
    block_threshold: float = 70.0


@dataclass
class AlertSettings:
    high_severity_score: float = 60.0
    critical_severity_score: float = 80.0
    high_risk_title_score: float = 70.0


@dataclass
class FraudConfig:
    validation: ValidationLimits = field(default_factory=ValidationLimits)
    signals: SignalSettings = field(default_factory=SignalSettings)
    flags: FlagSettings = field(default_factory=FlagSettings)
    scoring: ScoringWeights = field(default_factory=ScoringWeights)
    bands: RiskBands = field(default_factory=RiskBands)
    analyzer: AnalyzerSettings = field(default_factory=AnalyzerSettings)
    alerts: AlertSettings = field(default_factory=AlertSettings)

    @classmethod
    def from_env(cls) -> "FraudConfig":
        """Load config with env var overrides. Env vars use FRAUD_ prefix."""
        config = cls()

        # Signal aggregation
        if v := os.getenv("FRAUD_LOOKUP_TIMEOUT_SECONDS"):
            config.signals.lookup_timeout_seconds = float(v)
        if v := os.getenv("FRAUD_OVERALL_DEADLINE_SECONDS"):
            config.signals.overall_deadline_seconds = float(v)

        # Flags
        if v := os.getenv("FRAUD_HIGH_RISK_START_HOUR"):
            config.flags.high_risk_start_hour = int(v)
        if v := os.getenv("FRAUD_HIGH_RISK_END_HOUR"):
            config.flags.high_risk_end_hour = int(v)
        if v := os.getenv("FRAUD_KEYWORDS"):
            config.flags.keywords = tuple(
                kw.strip().lower() for kw in v.split(",") if kw.strip()
            )

        # Scoring weights
        if v := os.getenv("FRAUD_WEIGHT_NEW_CONTACT"):
            config.scoring.new_contact = float(v)
        if v := os.getenv("FRAUD_WEIGHT_TIME_ANOMALY"):
            config.scoring.time_anomaly = float(v)
        if v := os.getenv("FRAUD_WEIGHT_AMOUNT_ANOMALY"):
            config.scoring.amount_anomaly = float(v)
        if v := os.getenv("FRAUD_WEIGHT_IMPERSONATION"):
            config.scoring.impersonation = float(v)

        # Analyzer
        if v := os.getenv("FRAUD_CLASSIFIER_MAX_ATTEMPTS"):
            config.analyzer.classifier_max_attempts = int(v)
        if v := os.getenv("FRAUD_CLASSIFIER_BACKOFF_BASE_SECONDS"):
            config.analyzer.classifier_backoff_base_seconds = float(v)

        return config


# Module-level default instance
default_config = FraudConfig()
