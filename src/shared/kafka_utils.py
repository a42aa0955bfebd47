"""Kafka producer helpers."""

import json

import structlog
from aiokafka import AIOKafkaProducer

from src.config import Settings

logger = structlog.get_logger()


def event_topic_map(settings: Settings) -> dict[str, str]:
    """Map engine event types to the Kafka topics they are mirrored to."""
    return {
        "alert.created": settings.kafka_alert_topic,
        "alert.updated": settings.kafka_alert_topic,
        "blacklist.updated": settings.kafka_blacklist_topic,
    }


async def create_producer(bootstrap_servers: str) -> AIOKafkaProducer:
    """Create and start a Kafka producer."""
    producer = AIOKafkaProducer(
        bootstrap_servers=bootstrap_servers,
        value_serializer=lambda v: json.dumps(v, default=str).encode("utf-8"),
    )
    await producer.start()
    logger.info("kafka_producer_started", bootstrap_servers=bootstrap_servers)
    return producer
