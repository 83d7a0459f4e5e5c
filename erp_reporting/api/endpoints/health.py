"""Health check endpoints."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text
from redis.asyncio import Redis

from ...config import settings
from ..deps import get_db

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Liveness probe - always returns ok if app is running.

    Returns:
        dict: Health status
    """
    return {"status": "healthy", "environment": settings.environment}


@router.get("/health/ready")
async def readiness_check(db: Session = Depends(get_db)):
    """
    Readiness probe - checks the database and the Celery broker.

    Args:
        db: Database session

    Returns:
        dict: Readiness status with dependency checks
    """
    errors = []

    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        errors.append(f"database: {str(e)}")

    redis_client = Redis.from_url(settings.redis_url, socket_connect_timeout=2, socket_timeout=2)
    try:
        await redis_client.ping()
    except Exception as e:
        errors.append(f"redis: {str(e)}")
    finally:
        await redis_client.aclose()

    if errors:
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "errors": errors}
        )

    return {"status": "ready", "database": "ok", "redis": "ok"}
