"""Concurrent signal lookups with degrade-to-absent fallback."""

import asyncio
from collections.abc import Awaitable
from typing import Any

import structlog

from .config import FraudConfig, default_config
from .errors import ServiceUnavailable, SignalAbsent
from .models import SignalBundle
from .similarity import find_similar_contacts
from .stores import BlacklistStore, ContactStore, ProfileStore

logger = structlog.get_logger()


class SignalAggregator:
    """Fans out the contact, blacklist, profile and similar-contact lookups.

    Every lookup runs as its own task with an independent timeout, and the
    whole fan-out is joined against an overall deadline, so latency is
    bounded by the slowest lookup rather than their sum. A lookup that times
    out, finds nothing, or hits an unreachable store leaves its signal absent.
    Only when every lookup reports the backend unreachable does the fan-out
    raise ServiceUnavailable.
    """

    def __init__(
        self,
        contacts: ContactStore,
        blacklist: BlacklistStore,
        profiles: ProfileStore,
        config: FraudConfig | None = None,
    ) -> None:
        self._contacts = contacts
        self._blacklist = blacklist
        self._profiles = profiles
        self._config = config or default_config

    async def gather(self, user_id: str, identifier: str) -> SignalBundle:
        cfg = self._config.signals
        lookups: dict[str, Awaitable[Any]] = {
            "contact": self._contacts.get_contact(user_id, identifier),
            "blacklist": self._blacklist.get_entry(identifier),
            "profile": self._profiles.get_profile(user_id),
            "similar_contacts": self._similar_contacts(user_id, identifier),
        }
        tasks = {
            name: asyncio.create_task(self._bounded(name, coro, cfg.lookup_timeout_seconds))
            for name, coro in lookups.items()
        }

        try:
            _, pending = await asyncio.wait(
                tasks.values(), timeout=cfg.overall_deadline_seconds
            )
        except asyncio.CancelledError:
            # Caller abandoned the evaluation; lookups are read-only
            for task in tasks.values():
                task.cancel()
            raise

        for task in pending:
            task.cancel()

        values: dict[str, Any] = {}
        absent: list[str] = []
        unavailable: list[str] = []
        for name, task in tasks.items():
            if task in pending:
                logger.warning("signal_deadline_exceeded", signal=name, user_id=user_id)
                absent.append(name)
                continue
            exc = task.exception()
            if isinstance(exc, ServiceUnavailable):
                unavailable.append(name)
                absent.append(name)
            elif isinstance(exc, SignalAbsent):
                absent.append(name)
            elif exc is not None:
                logger.error(
                    "signal_lookup_failed", signal=name, user_id=user_id, error=repr(exc)
                )
                absent.append(name)
            else:
                values[name] = task.result()

        if len(unavailable) == len(tasks):
            logger.error("signal_backend_unavailable", user_id=user_id)
            raise ServiceUnavailable("Risk signal backend is unreachable")

        bundle = SignalBundle(
            contact=values.get("contact"),
            blacklist=values.get("blacklist"),
            profile=values.get("profile"),
            similar_contacts=values.get("similar_contacts") or [],
            absent=absent,
        )
        logger.debug(
            "signals_gathered",
            user_id=user_id,
            identifier=identifier,
            absent=absent,
            has_contact=bundle.contact is not None,
            is_blacklisted=bundle.blacklist is not None,
            has_profile=bundle.profile is not None,
        )
        return bundle

    async def _bounded(self, name: str, coro: Awaitable[Any], timeout: float) -> Any:
        try:
            return await asyncio.wait_for(coro, timeout=timeout)
        except TimeoutError as exc:
            logger.warning("signal_lookup_timeout", signal=name, timeout_seconds=timeout)
            raise SignalAbsent(name, "timeout") from exc

    async def _similar_contacts(self, user_id: str, identifier: str):
        contacts = await self._contacts.list_contacts(user_id)
        return find_similar_contacts(
            identifier, contacts, self._config.signals.similarity_max_distance
        )
