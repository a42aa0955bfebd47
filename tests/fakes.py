"""In-memory store implementations for unit and API tests."""

import asyncio
from datetime import datetime

from src.domains.fraud.errors import DuplicateAlert, InvalidTransition, ServiceUnavailable
from src.domains.fraud.models import (
    Alert,
    AlertStatus,
    BehaviorProfile,
    BlacklistEntry,
    Contact,
    TransactionAnalysis,
)


class _Latency:
    """Optional artificial delay and outage switch shared by the fakes."""

    def __init__(self, delay: float = 0.0, unavailable: bool = False) -> None:
        self.delay = delay
        self.unavailable = unavailable
        self.calls = 0

    async def _io(self) -> None:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.unavailable:
            raise ServiceUnavailable("backend down")


class FakeContactStore(_Latency):
    def __init__(self, contacts: list[Contact] | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.contacts = list(contacts or [])

    async def get_contact(self, user_id: str, identifier: str) -> Contact | None:
        await self._io()
        for c in self.contacts:
            if c.owner_user_id == user_id and c.identifier == identifier.lower():
                return c
        return None

    async def list_contacts(self, user_id: str) -> list[Contact]:
        await self._io()
        return [c for c in self.contacts if c.owner_user_id == user_id]


class FakeBlacklistStore(_Latency):
    def __init__(self, entries: list[BlacklistEntry] | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.entries = {e.identifier: e for e in entries or []}
        self.writes = 0

    async def get_entry(self, identifier: str) -> BlacklistEntry | None:
        await self._io()
        return self.entries.get(identifier.lower())

    async def apply_report(self, identifier, mutate) -> BlacklistEntry:
        current = self.entries.get(identifier)
        # Yield between read and write so unserialised callers would interleave
        await asyncio.sleep(0)
        await self._io()
        updated = mutate(current)
        self.entries[identifier] = updated
        self.writes += 1
        return updated


class FakeProfileStore(_Latency):
    def __init__(self, profiles: list[BehaviorProfile] | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.profiles = {p.user_id: p for p in profiles or []}

    async def get_profile(self, user_id: str) -> BehaviorProfile | None:
        await self._io()
        return self.profiles.get(user_id)


class FakeAnalysisStore(_Latency):
    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.records: list[TransactionAnalysis] = []

    async def append(self, analysis: TransactionAnalysis) -> None:
        await self._io()
        self.records.append(analysis)

    async def list_for_transaction(self, transaction_id: str) -> list[TransactionAnalysis]:
        await self._io()
        matching = [r for r in self.records if r.transaction_id == transaction_id]
        return sorted(matching, key=lambda r: r.created_at, reverse=True)


class FakeAlertStore(_Latency):
    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.alerts: dict[str, Alert] = {}

    async def find_open(self, user_id, alert_type, transaction_id, payee_identifier):
        await self._io()
        return self._match(user_id, alert_type, transaction_id, payee_identifier)

    def _match(self, user_id, alert_type, transaction_id, payee_identifier):
        for alert in self.alerts.values():
            if (
                alert.user_id != user_id
                or alert.alert_type != alert_type
                or alert.status == AlertStatus.DISMISSED
            ):
                continue
            if transaction_id is not None and alert.transaction_id == transaction_id:
                return alert
            if (
                transaction_id is None
                and alert.transaction_id is None
                and alert.payee_identifier == payee_identifier
            ):
                return alert
        return None

    async def create(self, alert: Alert) -> Alert:
        await self._io()
        # Mirrors the partial unique indexes on the alerts table
        open_alert = self._match(
            alert.user_id,
            alert.alert_type,
            alert.transaction_id,
            None if alert.transaction_id else alert.payee_identifier,
        )
        if open_alert is not None:
            raise DuplicateAlert(f"open alert {open_alert.id} already exists")
        self.alerts[alert.id] = alert
        return alert

    async def touch(self, alert_id: str, created_at: datetime, metadata: dict) -> Alert:
        await self._io()
        alert = self.alerts[alert_id].model_copy(
            update={"created_at": created_at, "metadata": metadata}
        )
        self.alerts[alert_id] = alert
        return alert

    async def get(self, alert_id: str) -> Alert | None:
        await self._io()
        return self.alerts.get(alert_id)

    async def list_for_user(self, user_id, status=None, limit=50, offset=0):
        await self._io()
        matching = [
            a
            for a in self.alerts.values()
            if a.user_id == user_id and (status is None or a.status == status)
        ]
        matching.sort(key=lambda a: a.created_at, reverse=True)
        return matching[offset : offset + limit], len(matching)

    async def set_status(self, alert_id, status, read_at, expected):
        await self._io()
        if alert_id not in self.alerts:
            raise LookupError(f"Alert not found: {alert_id}")
        if self.alerts[alert_id].status != expected:
            raise InvalidTransition(f"Alert {alert_id} is already {self.alerts[alert_id].status}")
        update: dict = {"status": status}
        if read_at is not None:
            update["read_at"] = read_at
        alert = self.alerts[alert_id].model_copy(update=update)
        self.alerts[alert_id] = alert
        return alert
