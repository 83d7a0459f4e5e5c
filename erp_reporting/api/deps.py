"""Dependency injection for FastAPI endpoints."""

import asyncio
import logging
from typing import AsyncGenerator, Generator
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ..core.database import SessionLocal
from ..core.middleware import get_current_request_id, get_current_tenant
from ..reporting.fields import FieldRegistry, default_registry
from ..reporting.row_source import CancellationToken
from ..services.report_service import ReportService

logger = logging.getLogger(__name__)

DISCONNECT_POLL_SECONDS = 0.5


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency for FastAPI.

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_registry() -> FieldRegistry:
    """Field catalog shared by all requests."""
    return default_registry()


def get_report_service(
    db: Session = Depends(get_db),
    registry: FieldRegistry = Depends(get_registry),
) -> ReportService:
    """
    Dependency for ReportService scoped to the tenant in context.

    Args:
        db: Database session
        registry: Field registry

    Returns:
        ReportService instance
    """
    return ReportService(db=db, registry=registry, tenant_id=get_current_tenant())


async def watch_disconnect(request: Request, token: CancellationToken, interval: float = DISCONNECT_POLL_SECONDS) -> None:
    """Cancel the token once the client goes away."""
    while not token.cancelled:
        if await request.is_disconnected():
            logger.info(f"[{get_current_request_id()}] Client disconnected, cancelling report")
            token.cancel()
            return
        await asyncio.sleep(interval)


async def get_cancel_token(request: Request) -> AsyncGenerator[CancellationToken, None]:
    """
    Cancellation token for one request, cancelled if the client disconnects.

    Yields:
        CancellationToken shared with the running report
    """
    token = CancellationToken()
    watcher = asyncio.create_task(watch_disconnect(request, token))
    try:
        yield token
    finally:
        watcher.cancel()
