"""Health and readiness endpoints."""

import redis.asyncio as aioredis
import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from src.config import settings
from src.db.database import check_db

logger = structlog.get_logger()
router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    from src.main import get_uptime

    return {
        "status": "healthy",
        "version": settings.app_version,
        "uptime_seconds": get_uptime(),
    }


async def _check_redis() -> bool:
    client = aioredis.from_url(settings.redis_url)
    try:
        await client.ping()
        return True
    except (RedisError, OSError):
        logger.warning("redis_check_failed")
        return False
    finally:
        await client.aclose()


@router.get("/ready")
async def ready() -> JSONResponse:
    db_ok = await check_db()
    redis_ok = await _check_redis()

    all_ready = db_ok and redis_ok
    return JSONResponse(
        status_code=200 if all_ready else 503,
        content={
            "status": "ready" if all_ready else "degraded",
            "kafka": settings.kafka_enabled,
            "database": db_ok,
            "redis": redis_ok,
        },
    )
