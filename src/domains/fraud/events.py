"""Publish/subscribe for engine writes (alerts, blacklist changes).

Writers publish; consumers subscribe per topic, optionally filtered by key
(alerts are keyed by user id). How a consumer refreshes its view is its own
concern. When a Kafka producer is attached, every event is mirrored to the
topic's Kafka counterpart as well.
"""

from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog

logger = structlog.get_logger()

ALERT_CREATED = "alert.created"
ALERT_UPDATED = "alert.updated"
BLACKLIST_UPDATED = "blacklist.updated"

Handler = Callable[[dict], Awaitable[None]]


@dataclass
class _Subscription:
    handler: Handler
    key: str | None


class EventBus:
    def __init__(
        self,
        producer=None,
        kafka_topics: dict[str, str] | None = None,
    ) -> None:
        self._subscriptions: dict[str, list[_Subscription]] = defaultdict(list)
        self._producer = producer
        self._kafka_topics = kafka_topics or {}

    def subscribe(self, topic: str, handler: Handler, key: str | None = None) -> Callable[[], None]:
        """Register a handler. Returns a callable that removes it."""
        subscription = _Subscription(handler=handler, key=key)
        self._subscriptions[topic].append(subscription)

        def unsubscribe() -> None:
            if subscription in self._subscriptions[topic]:
                self._subscriptions[topic].remove(subscription)

        return unsubscribe

    def subscribe_alerts(self, user_id: str, handler: Handler) -> Callable[[], None]:
        """Receive newly created alerts for one user."""
        return self.subscribe(ALERT_CREATED, handler, key=user_id)

    async def publish(self, topic: str, payload: dict, key: str | None = None) -> None:
        """Deliver to subscribers and Kafka. Never raises into the writer."""
        for subscription in list(self._subscriptions.get(topic, [])):
            if subscription.key is not None and subscription.key != key:
                continue
            try:
                await subscription.handler(payload)
            except Exception:
                logger.exception("event_handler_failed", topic=topic, key=key)

        await self._mirror_to_kafka(topic, payload, key)

    async def _mirror_to_kafka(self, topic: str, payload: dict, key: str | None) -> None:
        kafka_topic = self._kafka_topics.get(topic)
        if self._producer is None or kafka_topic is None:
            return
        try:
            await self._producer.send_and_wait(
                kafka_topic,
                value={"event_type": topic, "payload": payload},
                key=key.encode("utf-8") if key else None,
            )
            logger.debug("event_published_to_kafka", topic=kafka_topic, event_type=topic)
        except Exception:
            logger.exception("event_publish_failed", topic=kafka_topic, event_type=topic)
