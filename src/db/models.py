"""SQLAlchemy ORM models for the payee risk engine's state."""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    Index,
    String,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class ContactDB(Base):
    __tablename__ = "trusted_contacts"
    __table_args__ = (UniqueConstraint("owner_user_id", "identifier"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    owner_user_id: Mapped[str] = mapped_column(String, index=True)
    identifier: Mapped[str] = mapped_column(String, index=True)
    trust_status: Mapped[str] = mapped_column(String, default="new")
    display_name: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class BlacklistEntryDB(Base):
    __tablename__ = "payee_blacklist"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    identifier: Mapped[str] = mapped_column(String, unique=True, index=True)
    reason: Mapped[str | None] = mapped_column(String, nullable=True)
    reported_count: Mapped[int] = mapped_column(BigInteger, default=1)
    severity: Mapped[str] = mapped_column(String, default="medium")
    source: Mapped[str] = mapped_column(String, default="user_report")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class BehaviorProfileDB(Base):
    __tablename__ = "behavior_profiles"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    avg_amount: Mapped[float] = mapped_column(Float, default=0.0)
    max_amount: Mapped[float] = mapped_column(Float, default=0.0)
    transaction_count: Mapped[int] = mapped_column(BigInteger, default=0)
    typical_hours: Mapped[list] = mapped_column(JSONB, default=list)
    known_device_ids: Mapped[list] = mapped_column(JSONB, default=list)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class TransactionAnalysisDB(Base):
    __tablename__ = "transaction_analysis"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    analysis_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    # Not unique: re-analysis appends a new row
    transaction_id: Mapped[str] = mapped_column(String, index=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    risk_score: Mapped[float] = mapped_column(Float)
    is_anomaly: Mapped[bool] = mapped_column(Boolean, default=False)
    fraud_category: Mapped[str | None] = mapped_column(String, nullable=True)
    confidence: Mapped[float] = mapped_column(Float, default=0.0)
    reasons: Mapped[list] = mapped_column(JSONB, default=list)
    recommendation: Mapped[str] = mapped_column(String)
    degraded: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class AlertDB(Base):
    __tablename__ = "alerts"
    # At most one open alert per dedup key; dismissed alerts do not count
    __table_args__ = (
        Index(
            "uq_alerts_open_transaction",
            "user_id",
            "transaction_id",
            "alert_type",
            unique=True,
            postgresql_where=text("status <> 'dismissed' AND transaction_id IS NOT NULL"),
        ),
        Index(
            "uq_alerts_open_payee",
            "user_id",
            "payee_identifier",
            "alert_type",
            unique=True,
            postgresql_where=text("status <> 'dismissed' AND transaction_id IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    alert_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    transaction_id: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    payee_identifier: Mapped[str | None] = mapped_column(String, nullable=True)
    alert_type: Mapped[str] = mapped_column(String)
    title: Mapped[str] = mapped_column(String)
    message: Mapped[str] = mapped_column(String)
    severity: Mapped[str] = mapped_column(String)
    status: Mapped[str] = mapped_column(String, default="unread")
    details: Mapped[dict] = mapped_column(JSONB, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
