"""Store interfaces consumed by the engine, with SQLAlchemy-backed implementations.

The engine never talks to tables directly; it receives these stores by
injection so the contact directory, blacklist registry, profile store and
alert sink can be swapped (tests use in-memory fakes).
"""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Protocol

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.models import (
    AlertDB,
    BehaviorProfileDB,
    BlacklistEntryDB,
    ContactDB,
    TransactionAnalysisDB,
)

from .errors import DuplicateAlert, InvalidTransition, ServiceUnavailable
from .models import (
    Alert,
    AlertStatus,
    BehaviorProfile,
    BlacklistEntry,
    Contact,
    TransactionAnalysis,
)

logger = structlog.get_logger()

BlacklistMutation = Callable[[BlacklistEntry | None], BlacklistEntry]


class ContactStore(Protocol):
    async def get_contact(self, user_id: str, identifier: str) -> Contact | None: ...

    async def list_contacts(self, user_id: str) -> list[Contact]: ...


class BlacklistStore(Protocol):
    async def get_entry(self, identifier: str) -> BlacklistEntry | None: ...

    async def apply_report(self, identifier: str, mutate: BlacklistMutation) -> BlacklistEntry:
        """Atomically read the entry, compute its next state with ``mutate``, write it."""
        ...


class ProfileStore(Protocol):
    async def get_profile(self, user_id: str) -> BehaviorProfile | None: ...


class AnalysisStore(Protocol):
    async def append(self, analysis: TransactionAnalysis) -> None: ...

    async def list_for_transaction(self, transaction_id: str) -> list[TransactionAnalysis]: ...


class AlertStore(Protocol):
    async def find_open(
        self,
        user_id: str,
        alert_type: str,
        transaction_id: str | None,
        payee_identifier: str | None,
    ) -> Alert | None:
        """Non-dismissed alert for the dedup key, if any."""
        ...

    async def create(self, alert: Alert) -> Alert:
        """Insert ``alert``. Raises DuplicateAlert if an open alert holds its dedup key."""
        ...

    async def touch(self, alert_id: str, created_at: datetime, metadata: dict) -> Alert: ...

    async def get(self, alert_id: str) -> Alert | None: ...

    async def list_for_user(
        self,
        user_id: str,
        status: AlertStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Alert], int]: ...

    async def set_status(
        self,
        alert_id: str,
        status: AlertStatus,
        read_at: datetime | None,
        expected: AlertStatus,
    ) -> Alert:
        """Compare-and-set: apply only while the stored status is ``expected``.

        Raises InvalidTransition when the status has moved on, LookupError when
        the alert does not exist.
        """
        ...


# ---------------------------------------------------------------------------
# SQLAlchemy implementations
# ---------------------------------------------------------------------------


class _SqlStore:
    """Shared session handling: one session per call, backend outages mapped."""

    store_name = "store"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except (OperationalError, InterfaceError, OSError) as exc:
            logger.warning("store_backend_unavailable", store=self.store_name, error=str(exc))
            raise ServiceUnavailable(f"{self.store_name} backend unreachable") from exc


def _contact_from_row(row: ContactDB) -> Contact:
    return Contact(
        owner_user_id=row.owner_user_id,
        identifier=row.identifier,
        trust_status=row.trust_status,
        display_name=row.display_name,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _entry_from_row(row: BlacklistEntryDB) -> BlacklistEntry:
    return BlacklistEntry(
        identifier=row.identifier,
        reason=row.reason,
        reported_count=row.reported_count,
        severity=row.severity,
        source=row.source,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _analysis_from_row(row: TransactionAnalysisDB) -> TransactionAnalysis:
    return TransactionAnalysis(
        analysis_id=row.analysis_id,
        transaction_id=row.transaction_id,
        user_id=row.user_id,
        risk_score=row.risk_score,
        is_anomaly=row.is_anomaly,
        fraud_category=row.fraud_category,
        confidence=row.confidence,
        reasons=list(row.reasons or []),
        recommendation=row.recommendation,
        degraded=row.degraded,
        created_at=row.created_at,
    )


def _alert_from_row(row: AlertDB) -> Alert:
    return Alert(
        id=row.alert_id,
        user_id=row.user_id,
        transaction_id=row.transaction_id,
        payee_identifier=row.payee_identifier,
        alert_type=row.alert_type,
        title=row.title,
        message=row.message,
        severity=row.severity,
        status=row.status,
        metadata=dict(row.details or {}),
        created_at=row.created_at,
        read_at=row.read_at,
    )


class SqlContactStore(_SqlStore):
    store_name = "contacts"

    async def get_contact(self, user_id: str, identifier: str) -> Contact | None:
        async with self._session() as session:
            stmt = select(ContactDB).where(
                ContactDB.owner_user_id == user_id,
                ContactDB.identifier == identifier.lower(),
            )
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            return _contact_from_row(row) if row else None

    async def list_contacts(self, user_id: str) -> list[Contact]:
        async with self._session() as session:
            stmt = select(ContactDB).where(ContactDB.owner_user_id == user_id)
            result = await session.execute(stmt)
            return [_contact_from_row(r) for r in result.scalars().all()]


class SqlBlacklistStore(_SqlStore):
    store_name = "blacklist"

    async def get_entry(self, identifier: str) -> BlacklistEntry | None:
        async with self._session() as session:
            stmt = select(BlacklistEntryDB).where(BlacklistEntryDB.identifier == identifier.lower())
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            return _entry_from_row(row) if row else None

    async def apply_report(self, identifier: str, mutate: BlacklistMutation) -> BlacklistEntry:
        try:
            return await self._apply_report_once(identifier, mutate)
        except IntegrityError:
            # A concurrent first report inserted the row; the retry takes the update path
            logger.info("blacklist_insert_race_retry", identifier=identifier)
            return await self._apply_report_once(identifier, mutate)

    async def _apply_report_once(
        self, identifier: str, mutate: BlacklistMutation
    ) -> BlacklistEntry:
        async with self._session() as session, session.begin():
            stmt = (
                select(BlacklistEntryDB)
                .where(BlacklistEntryDB.identifier == identifier)
                .with_for_update()
            )
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()

            updated = mutate(_entry_from_row(row) if row else None)

            if row is None:
                session.add(
                    BlacklistEntryDB(
                        identifier=updated.identifier,
                        reason=updated.reason,
                        reported_count=updated.reported_count,
                        severity=updated.severity.value,
                        source=updated.source,
                        created_at=updated.created_at,
                        updated_at=updated.updated_at,
                    )
                )
            else:
                row.reason = updated.reason
                row.reported_count = updated.reported_count
                row.severity = updated.severity.value
                row.updated_at = updated.updated_at
            return updated


class SqlProfileStore(_SqlStore):
    store_name = "profiles"

    async def get_profile(self, user_id: str) -> BehaviorProfile | None:
        async with self._session() as session:
            stmt = select(BehaviorProfileDB).where(BehaviorProfileDB.user_id == user_id)
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            if row is None:
                return None
            return BehaviorProfile(
                user_id=row.user_id,
                avg_amount=row.avg_amount or 0.0,
                max_amount=row.max_amount or 0.0,
                transaction_count=row.transaction_count or 0,
                typical_hours=list(row.typical_hours or []),
                known_device_ids=list(row.known_device_ids or []),
            )


class SqlAnalysisStore(_SqlStore):
    store_name = "analysis"

    async def append(self, analysis: TransactionAnalysis) -> None:
        async with self._session() as session:
            session.add(
                TransactionAnalysisDB(
                    analysis_id=analysis.analysis_id,
                    transaction_id=analysis.transaction_id,
                    user_id=analysis.user_id,
                    risk_score=analysis.risk_score,
                    is_anomaly=analysis.is_anomaly,
                    fraud_category=analysis.fraud_category,
                    confidence=analysis.confidence,
                    reasons=list(analysis.reasons),
                    recommendation=analysis.recommendation.value,
                    degraded=analysis.degraded,
                    created_at=analysis.created_at,
                )
            )
            await session.commit()

    async def list_for_transaction(self, transaction_id: str) -> list[TransactionAnalysis]:
        async with self._session() as session:
            stmt = (
                select(TransactionAnalysisDB)
                .where(TransactionAnalysisDB.transaction_id == transaction_id)
                .order_by(TransactionAnalysisDB.created_at.desc())
            )
            result = await session.execute(stmt)
            return [_analysis_from_row(r) for r in result.scalars().all()]


class SqlAlertStore(_SqlStore):
    store_name = "alerts"

    async def find_open(
        self,
        user_id: str,
        alert_type: str,
        transaction_id: str | None,
        payee_identifier: str | None,
    ) -> Alert | None:
        async with self._session() as session:
            stmt = select(AlertDB).where(
                AlertDB.user_id == user_id,
                AlertDB.alert_type == alert_type,
                AlertDB.status != AlertStatus.DISMISSED.value,
            )
            if transaction_id is not None:
                stmt = stmt.where(AlertDB.transaction_id == transaction_id)
            else:
                stmt = stmt.where(
                    AlertDB.transaction_id.is_(None),
                    AlertDB.payee_identifier == payee_identifier,
                )
            result = await session.execute(stmt.limit(1))
            row = result.scalar_one_or_none()
            return _alert_from_row(row) if row else None

    async def create(self, alert: Alert) -> Alert:
        try:
            async with self._session() as session:
                session.add(
                    AlertDB(
                        alert_id=alert.id,
                        user_id=alert.user_id,
                        transaction_id=alert.transaction_id,
                        payee_identifier=alert.payee_identifier,
                        alert_type=alert.alert_type.value,
                        title=alert.title,
                        message=alert.message,
                        severity=alert.severity.value,
                        status=alert.status.value,
                        details=alert.metadata,
                        created_at=alert.created_at,
                        read_at=alert.read_at,
                    )
                )
                await session.commit()
        except IntegrityError as exc:
            raise DuplicateAlert(f"Open {alert.alert_type.value} alert already exists") from exc
        return alert

    async def _update(self, alert_id: str, **values) -> Alert:
        async with self._session() as session:
            result = await session.execute(select(AlertDB).where(AlertDB.alert_id == alert_id))
            row = result.scalar_one_or_none()
            if row is None:
                raise LookupError(f"Alert not found: {alert_id}")
            for key, value in values.items():
                setattr(row, key, value)
            await session.commit()
            return _alert_from_row(row)

    async def touch(self, alert_id: str, created_at: datetime, metadata: dict) -> Alert:
        return await self._update(alert_id, created_at=created_at, details=metadata)

    async def get(self, alert_id: str) -> Alert | None:
        async with self._session() as session:
            result = await session.execute(select(AlertDB).where(AlertDB.alert_id == alert_id))
            row = result.scalar_one_or_none()
            return _alert_from_row(row) if row else None

    async def list_for_user(
        self,
        user_id: str,
        status: AlertStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Alert], int]:
        async with self._session() as session:
            stmt = select(AlertDB).where(AlertDB.user_id == user_id)
            count_stmt = select(func.count()).select_from(AlertDB).where(AlertDB.user_id == user_id)
            if status:
                stmt = stmt.where(AlertDB.status == status.value)
                count_stmt = count_stmt.where(AlertDB.status == status.value)

            total_result = await session.execute(count_stmt)
            total = total_result.scalar_one()

            stmt = stmt.order_by(AlertDB.created_at.desc()).offset(offset).limit(limit)
            result = await session.execute(stmt)
            return [_alert_from_row(r) for r in result.scalars().all()], total

    async def set_status(
        self,
        alert_id: str,
        status: AlertStatus,
        read_at: datetime | None,
        expected: AlertStatus,
    ) -> Alert:
        async with self._session() as session, session.begin():
            stmt = select(AlertDB).where(AlertDB.alert_id == alert_id).with_for_update()
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            if row is None:
                raise LookupError(f"Alert not found: {alert_id}")
            if row.status != expected.value:
                raise InvalidTransition(
                    f"Alert {alert_id} is already {row.status}, cannot move to {status.value}"
                )
            row.status = status.value
            if read_at is not None:
                row.read_at = read_at
            return _alert_from_row(row)
