"""Blacklist upsert policy: idempotent reporting with severity escalation."""

from datetime import UTC, datetime

import structlog

from .config import FraudConfig, default_config
from .events import BLACKLIST_UPDATED, EventBus
from .locks import KeyedLocks
from .models import BlacklistEntry, Severity
from .stores import BlacklistStore
from .validation import normalize_identifier

logger = structlog.get_logger()

ESCALATION_REPORT_COUNT = 3
USER_REPORT_SOURCE = "user_report"


def next_entry(
    current: BlacklistEntry | None,
    identifier: str,
    reason: str | None,
    severity: Severity,
    now: datetime,
) -> BlacklistEntry:
    """Compute the entry state after one more report.

    The report being filed counts towards escalation: the third report on an
    identifier makes it critical. Critical is sticky; any other severity
    follows the latest report.
    """
    if current is None:
        return BlacklistEntry(
            identifier=identifier,
            reason=reason,
            reported_count=1,
            severity=severity,
            source=USER_REPORT_SOURCE,
            created_at=now,
            updated_at=now,
        )

    count = current.reported_count + 1
    if count >= ESCALATION_REPORT_COUNT or current.severity == Severity.CRITICAL:
        new_severity = Severity.CRITICAL
    else:
        new_severity = severity

    return current.model_copy(
        update={
            "reported_count": count,
            "severity": new_severity,
            "reason": current.reason or reason,
            "updated_at": now,
        }
    )


class BlacklistUpsertPolicy:
    """Applies user reports to the shared blacklist registry.

    Reports on the same identifier are serialised in-process with a
    per-identifier lock; the store performs the read-increment-write as one
    atomic unit so concurrent writers in other processes do not lose updates.
    """

    def __init__(
        self,
        store: BlacklistStore,
        events: EventBus | None = None,
        config: FraudConfig | None = None,
    ) -> None:
        self._store = store
        self._events = events
        self._config = config or default_config
        self._locks = KeyedLocks()

    async def report(
        self,
        identifier: str,
        reason: str | None,
        severity: Severity = Severity.MEDIUM,
    ) -> BlacklistEntry:
        identifier = normalize_identifier(identifier, self._config)
        severity = Severity(severity)

        async with self._locks.hold(identifier):
            previous: list[BlacklistEntry | None] = []

            def mutate(current: BlacklistEntry | None) -> BlacklistEntry:
                previous.append(current)
                return next_entry(current, identifier, reason, severity, datetime.now(UTC))

            entry = await self._store.apply_report(identifier, mutate)

        escalated = bool(previous) and previous[-1] is not None and (
            previous[-1].severity != Severity.CRITICAL and entry.severity == Severity.CRITICAL
        )
        logger.info(
            "blacklist_report_applied",
            identifier=identifier,
            reported_count=entry.reported_count,
            severity=entry.severity.value,
            escalated=escalated,
        )

        if self._events is not None:
            await self._events.publish(
                BLACKLIST_UPDATED, entry.model_dump(mode="json"), key=identifier
            )
        return entry

    async def lookup(self, identifier: str) -> BlacklistEntry | None:
        identifier = normalize_identifier(identifier, self._config)
        return await self._store.get_entry(identifier)
