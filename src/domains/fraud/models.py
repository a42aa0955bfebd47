"""Pydantic models for the payee risk domain."""

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictFloat, StrictInt


class TrustStatus(StrEnum):
    TRUSTED = "trusted"
    NEW = "new"
    FLAGGED = "flagged"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskLevel(StrEnum):
    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"
    CRITICAL = "critical"


class Recommendation(StrEnum):
    PROCEED = "proceed"
    CAUTION = "caution"
    AVOID = "avoid"
    BLOCK = "block"


class AnalysisRecommendation(StrEnum):
    ALLOW = "allow"
    WARN = "warn"
    BLOCK = "block"


class AlertType(StrEnum):
    FRAUD_DETECTED = "fraud_detected"
    PHISHING_ATTEMPT = "phishing_attempt"
    SUSPICIOUS_TRANSACTION = "suspicious_transaction"
    NEW_CONTACT_WARNING = "new_contact_warning"
    HIGH_RISK_PATTERN = "high_risk_pattern"


class AlertStatus(StrEnum):
    UNREAD = "unread"
    READ = "read"
    DISMISSED = "dismissed"
    ACTIONED = "actioned"


# --- signal provider inputs ---


class DeviceFingerprint(BaseModel):
    """Device signal. Only ``device_id`` is interpreted by the engine."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    device_id: str = Field(validation_alias=AliasChoices("device_id", "deviceId"))


class LocationSample(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: float | None = None
    captured_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("captured_at", "timestamp")
    )


# --- stored records ---


class Contact(BaseModel):
    owner_user_id: str
    identifier: str
    trust_status: TrustStatus = TrustStatus.NEW
    display_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BlacklistEntry(BaseModel):
    identifier: str
    reason: str | None = None
    reported_count: int = Field(default=1, ge=1)
    severity: Severity = Severity.MEDIUM
    source: str = "user_report"
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BehaviorProfile(BaseModel):
    user_id: str
    avg_amount: float = 0.0
    max_amount: float = 0.0
    transaction_count: int = 0
    typical_hours: list[int] = []
    known_device_ids: list[str] = []

    @property
    def known_device_count(self) -> int:
        return len(self.known_device_ids)


class SignalBundle(BaseModel):
    """Result of the concurrent lookups. Missing signals are ``None``/empty."""

    contact: Contact | None = None
    blacklist: BlacklistEntry | None = None
    profile: BehaviorProfile | None = None
    similar_contacts: list[Contact] = []
    absent: list[str] = []


# --- pre-transaction assessment ---


class BehaviorFlags(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_contact: bool = Field(default=False, alias="newContact")
    time_anomaly: bool = Field(default=False, alias="timeAnomaly")
    suspicious_upi: bool = Field(default=False, alias="suspiciousUpi")
    suspicious_keywords: bool = Field(default=False, alias="suspiciousKeywords")
    is_blacklisted: bool = Field(default=False, alias="isBlacklisted")


class ProfileStats(BaseModel):
    avg_amount: float
    max_amount: float
    transaction_count: int
    known_devices: int


class RiskAssessment(BaseModel):
    risk_score: float = Field(ge=0, le=100)
    risk_level: RiskLevel
    recommendation: Recommendation
    reasons: list[str] = []
    behavior_flags: BehaviorFlags
    impersonation_warning: bool = False
    similar_contacts: list[str] = []
    amount_anomaly: bool = False
    contact_status: TrustStatus = TrustStatus.NEW
    contact_name: str | None = None
    profile_stats: ProfileStats | None = None


class PreTransactionRequest(BaseModel):
    amount: StrictInt | StrictFloat
    receiver_identifier: str = Field(
        validation_alias=AliasChoices("receiverIdentifier", "receiverUpi", "receiver_identifier")
    )
    device_info: DeviceFingerprint | None = Field(
        default=None, validation_alias=AliasChoices("deviceInfo", "device_info")
    )
    location: LocationSample | None = None
    local_hour: int = Field(validation_alias=AliasChoices("localHour", "local_hour"))
    note: str | None = None


# --- post-transaction analysis ---


class HistoryItem(BaseModel):
    amount: float = 0.0
    receiver_identifier: str = ""
    created_at: str = ""


class PostTransactionRequest(BaseModel):
    transaction_id: UUID = Field(validation_alias=AliasChoices("transactionId", "transaction_id"))
    user_id: str | None = Field(default=None, validation_alias=AliasChoices("userId", "user_id"))
    amount: StrictInt | StrictFloat
    receiver_identifier: str = Field(
        validation_alias=AliasChoices("receiverIdentifier", "receiverUpi", "receiver_identifier")
    )
    user_history: list[dict] = Field(
        default_factory=list, validation_alias=AliasChoices("userHistory", "user_history")
    )


class ClassificationInput(BaseModel):
    transaction_id: str
    user_id: str
    amount: float
    identifier: str
    history: list[HistoryItem] = []


class ClassifierVerdict(BaseModel):
    risk_score: float = Field(ge=0, le=100)
    is_anomaly: bool
    fraud_category: str | None = None
    confidence: float = Field(ge=0.0, le=1.0)
    reasons: list[str] = []


class TransactionAnalysis(BaseModel):
    analysis_id: str
    transaction_id: str
    user_id: str
    risk_score: float = Field(ge=0, le=100)
    is_anomaly: bool
    fraud_category: str | None = None
    confidence: float = Field(ge=0.0, le=1.0)
    reasons: list[str] = []
    recommendation: AnalysisRecommendation
    degraded: bool = False
    created_at: datetime


# --- blacklist reports ---


class BlacklistReportRequest(BaseModel):
    upi_id: str = Field(validation_alias=AliasChoices("upiId", "identifier", "upi_id"))
    reason: str
    severity: Severity = Severity.MEDIUM


# --- alerts ---


class Alert(BaseModel):
    id: str
    user_id: str
    transaction_id: str | None = None
    payee_identifier: str | None = None
    alert_type: AlertType
    title: str
    message: str
    severity: Severity
    status: AlertStatus = AlertStatus.UNREAD
    metadata: dict = Field(default_factory=dict)
    created_at: datetime
    read_at: datetime | None = None


class AlertStatusUpdate(BaseModel):
    status: AlertStatus
