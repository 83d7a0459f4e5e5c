"""Prometheus metrics for monitoring report engine operations."""

from contextlib import contextmanager
from time import time
from typing import Generator

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models.report import SavedReport


# =============================================================================
# Counters
# =============================================================================

reports_executed = Counter(
    "erp_reports_executed_total",
    "Total report executions",
    ["report_type", "status"],  # success, failed
)

validation_failures = Counter(
    "erp_report_validation_failures_total",
    "Total validation issues reported for report configs",
    ["kind"],
)


# =============================================================================
# Histograms
# =============================================================================

report_execution_time = Histogram(
    "erp_report_execution_seconds",
    "Report execution duration",
    ["report_type"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

rows_fetched = Histogram(
    "erp_report_rows_fetched",
    "Rows returned to the report engine per execution",
    buckets=(10, 100, 1000, 10000, 100000, 1000000),
)


# =============================================================================
# Gauges
# =============================================================================

saved_reports = Gauge(
    "erp_saved_reports",
    "Number of saved report definitions",
)


# =============================================================================
# Helper Functions
# =============================================================================

def track_report_execution(report_type: str, status: str) -> None:
    """
    Increment the reports executed counter.

    Args:
        report_type: Report type ('table', 'chart', 'summary')
        status: Outcome ('success', 'failed')
    """
    reports_executed.labels(report_type=report_type, status=status).inc()


def track_validation_failure(kind: str) -> None:
    validation_failures.labels(kind=kind).inc()


def track_rows_fetched(count: int) -> None:
    rows_fetched.observe(count)


@contextmanager
def track_report_execution_time(report_type: str) -> Generator[None, None, None]:
    """
    Context manager to track report execution duration.

    Args:
        report_type: Type of report being executed

    Example:
        with track_report_execution_time("table"):
            # Execute report
            pass
    """
    start_time = time()
    try:
        yield
    finally:
        duration = time() - start_time
        report_execution_time.labels(report_type=report_type).observe(duration)


def update_saved_reports_gauge(db: Session) -> None:
    """
    Update the saved reports gauge with current count.

    Args:
        db: Database session
    """
    count = db.scalar(select(func.count()).select_from(SavedReport))
    saved_reports.set(count or 0)


# =============================================================================
# FastAPI Endpoint
# =============================================================================

metrics_router = APIRouter()


@metrics_router.get("/metrics")
def get_metrics() -> Response:
    """
    FastAPI endpoint to expose Prometheus metrics.

    Returns:
        Response with Prometheus metrics in text format
    """
    metrics_data = generate_latest()
    return Response(content=metrics_data, media_type=CONTENT_TYPE_LATEST)
