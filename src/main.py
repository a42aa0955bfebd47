"""FastAPI application entry point for the payee risk engine."""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.middleware.error_handler import global_exception_handler
from src.api.middleware.logging import StructuredLoggingMiddleware
from src.api.routes.fraud import router as fraud_router
from src.api.routes.health import router as health_router
from src.config import settings
from src.domains.fraud.config import FraudConfig
from src.domains.fraud.errors import FraudEngineError
from src.domains.fraud.events import EventBus
from src.domains.fraud.scorer import build_sql_scorer
from src.shared.kafka_utils import create_producer, event_topic_map
from src.shared.logging import setup_logging

logger = structlog.get_logger()

# Track app start time for uptime calculation
APP_START_TIME: float = 0.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown logic."""
    global APP_START_TIME
    APP_START_TIME = time.time()
    setup_logging(settings.log_level)

    logger.info(
        "payee_risk_engine_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
    )

    from src.db.database import async_session_factory, init_db

    await init_db()

    producer = None
    if settings.kafka_enabled:
        try:
            producer = await create_producer(settings.kafka_bootstrap_servers)
        except Exception:
            logger.warning("kafka_producer_failed_to_start", exc_info=True)

    events = EventBus(
        producer=producer,
        kafka_topics=event_topic_map(settings) if producer else None,
    )
    app.state.fraud_scorer = build_sql_scorer(
        async_session_factory,
        events=events,
        classifier_url=settings.classifier_url,
        classifier_timeout_seconds=settings.classifier_timeout_seconds,
        config=FraudConfig.from_env(),
    )

    yield

    await app.state.fraud_scorer.aclose()
    if producer is not None:
        await producer.stop()
    logger.info("payee_risk_engine_shutting_down")


app = FastAPI(
    title="Payee Risk Engine",
    description="Payee fraud risk scoring for peer-to-peer payments",
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Structured logging middleware
app.add_middleware(StructuredLoggingMiddleware)

# Domain errors are handled in the exception middleware; the Exception
# handler catches everything else as a 500
for exc_class in (FraudEngineError, ValueError, LookupError, Exception):
    app.add_exception_handler(exc_class, global_exception_handler)

# Register routers
app.include_router(health_router)
app.include_router(fraud_router)


def get_uptime() -> int:
    """Get application uptime in seconds."""
    if APP_START_TIME == 0.0:
        return 0
    return int(time.time() - APP_START_TIME)
