"""Tests for the concurrent signal aggregator."""

import asyncio
import time

import pytest

from src.domains.fraud.config import FraudConfig
from src.domains.fraud.errors import ServiceUnavailable
from src.domains.fraud.models import BehaviorProfile, BlacklistEntry, Contact, TrustStatus
from src.domains.fraud.signals import SignalAggregator
from tests.fakes import FakeBlacklistStore, FakeContactStore, FakeProfileStore

USER = "user-001"
IDENTIFIER = "rahul.sharma@okaxis"


def _config(lookup_timeout: float = 0.2, deadline: float = 0.5) -> FraudConfig:
    config = FraudConfig()
    config.signals.lookup_timeout_seconds = lookup_timeout
    config.signals.overall_deadline_seconds = deadline
    return config


def _stores(contacts_kwargs=None, blacklist_kwargs=None, profile_kwargs=None):
    contacts = FakeContactStore(
        [
            Contact(owner_user_id=USER, identifier=IDENTIFIER, trust_status=TrustStatus.TRUSTED),
            Contact(owner_user_id=USER, identifier="priya@ybl"),
        ],
        **(contacts_kwargs or {}),
    )
    blacklist = FakeBlacklistStore(
        [BlacklistEntry(identifier=IDENTIFIER)], **(blacklist_kwargs or {})
    )
    profiles = FakeProfileStore([BehaviorProfile(user_id=USER)], **(profile_kwargs or {}))
    return contacts, blacklist, profiles


class TestSignalAggregator:
    @pytest.mark.asyncio
    async def test_all_signals_present(self):
        aggregator = SignalAggregator(*_stores(), config=_config())
        bundle = await aggregator.gather(USER, IDENTIFIER)
        assert bundle.contact.identifier == IDENTIFIER
        assert bundle.blacklist is not None
        assert bundle.profile.user_id == USER
        assert bundle.similar_contacts == []
        assert bundle.absent == []

    @pytest.mark.asyncio
    async def test_slow_lookup_times_out_to_absent(self):
        aggregator = SignalAggregator(
            *_stores(blacklist_kwargs={"delay": 1.0}), config=_config(lookup_timeout=0.1)
        )
        bundle = await aggregator.gather(USER, IDENTIFIER)
        assert bundle.blacklist is None
        assert bundle.absent == ["blacklist"]
        assert bundle.contact is not None

    @pytest.mark.asyncio
    async def test_overall_deadline_marks_pending_absent(self):
        aggregator = SignalAggregator(
            *_stores(profile_kwargs={"delay": 1.0}),
            config=_config(lookup_timeout=5.0, deadline=0.1),
        )
        start = time.perf_counter()
        bundle = await aggregator.gather(USER, IDENTIFIER)
        assert time.perf_counter() - start < 0.5
        assert bundle.profile is None
        assert "profile" in bundle.absent

    @pytest.mark.asyncio
    async def test_lookups_run_concurrently(self):
        delay = {"delay": 0.15}
        aggregator = SignalAggregator(
            *_stores(delay, delay, delay), config=_config(lookup_timeout=1.0, deadline=2.0)
        )
        start = time.perf_counter()
        await aggregator.gather(USER, IDENTIFIER)
        # Four sequential lookups would take at least 0.6s
        assert time.perf_counter() - start < 0.45

    @pytest.mark.asyncio
    async def test_partial_outage_degrades(self):
        aggregator = SignalAggregator(
            *_stores(blacklist_kwargs={"unavailable": True}), config=_config()
        )
        bundle = await aggregator.gather(USER, IDENTIFIER)
        assert bundle.blacklist is None
        assert bundle.absent == ["blacklist"]

    @pytest.mark.asyncio
    async def test_full_outage_raises_service_unavailable(self):
        down = {"unavailable": True}
        aggregator = SignalAggregator(*_stores(down, down, down), config=_config())
        with pytest.raises(ServiceUnavailable):
            await aggregator.gather(USER, IDENTIFIER)

    @pytest.mark.asyncio
    async def test_unexpected_error_is_absent_not_raised(self):
        contacts, blacklist, profiles = _stores()

        async def broken(user_id):
            raise RuntimeError("boom")

        profiles.get_profile = broken
        aggregator = SignalAggregator(contacts, blacklist, profiles, config=_config())
        bundle = await aggregator.gather(USER, IDENTIFIER)
        assert bundle.absent == ["profile"]

    @pytest.mark.asyncio
    async def test_caller_cancellation_propagates(self):
        slow = {"delay": 5.0}
        aggregator = SignalAggregator(
            *_stores(slow, slow, slow), config=_config(lookup_timeout=10.0, deadline=10.0)
        )
        task = asyncio.create_task(aggregator.gather(USER, IDENTIFIER))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
