"""Tests for application and engine configuration."""

from src.config import Settings
from src.domains.fraud.config import FraudConfig


class TestSettings:
    def test_default_settings(self):
        settings = Settings()
        assert settings.app_name == "payee-risk-engine"
        assert settings.app_version == "0.1.0"
        assert settings.port == 8000

    def test_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("APP_NAME", "test-app")
        monkeypatch.setenv("PORT", "9000")
        monkeypatch.setenv("DEBUG", "true")
        settings = Settings()
        assert settings.app_name == "test-app"
        assert settings.port == 9000
        assert settings.debug is True

    def test_database_url_default(self):
        settings = Settings()
        assert "postgresql+asyncpg" in settings.database_url

    def test_kafka_disabled_by_default(self):
        settings = Settings()
        assert settings.kafka_enabled is False
        assert settings.kafka_alert_topic == "payee-risk.alerts"

    def test_classifier_url_unset_by_default(self, monkeypatch):
        monkeypatch.delenv("CLASSIFIER_URL", raising=False)
        assert Settings().classifier_url is None


class TestFraudConfig:
    def test_defaults(self):
        config = FraudConfig()
        assert config.validation.max_amount == 10_000_000
        assert config.signals.lookup_timeout_seconds == 1.5
        assert config.bands.warning_min == 25
        assert config.bands.danger_min == 50
        assert config.bands.critical_min == 75
        assert config.analyzer.classifier_max_attempts == 3

    def test_blacklist_weights_increase_with_severity(self):
        w = FraudConfig().scoring
        weights = [w.blacklist_weight(s) for s in ("low", "medium", "high", "critical")]
        assert weights == sorted(weights)
        assert w.blacklist_weight("low") == 30

    def test_from_env_overrides(self, monkeypatch):
        monkeypatch.setenv("FRAUD_LOOKUP_TIMEOUT_SECONDS", "0.75")
        monkeypatch.setenv("FRAUD_HIGH_RISK_END_HOUR", "4")
        monkeypatch.setenv("FRAUD_KEYWORDS", "Jackpot, prize ,")
        monkeypatch.setenv("FRAUD_CLASSIFIER_MAX_ATTEMPTS", "5")
        config = FraudConfig.from_env()
        assert config.signals.lookup_timeout_seconds == 0.75
        assert config.flags.high_risk_end_hour == 4
        assert config.flags.keywords == ("jackpot", "prize")
        assert config.analyzer.classifier_max_attempts == 5

    def test_from_env_without_overrides_matches_defaults(self, monkeypatch):
        for name in ("FRAUD_LOOKUP_TIMEOUT_SECONDS", "FRAUD_WEIGHT_NEW_CONTACT"):
            monkeypatch.delenv(name, raising=False)
        assert FraudConfig.from_env().scoring.new_contact == FraudConfig().scoring.new_contact
