"""Celery tasks for scheduled and background report runs."""

from celery import shared_task
from datetime import datetime
from typing import Optional
import asyncio
import logging
import pytz

from ..core.database import SessionLocal
from ..core.exceptions import ReportingException
from ..models.report import ReportSchedule, ReportFrequency
from ..services.report_service import ReportService

logger = logging.getLogger(__name__)


def is_schedule_due(schedule: ReportSchedule, now_utc: datetime) -> bool:
    """
    Check whether a schedule should run in the current hour.

    Args:
        schedule: Report schedule
        now_utc: Current time, timezone-aware UTC

    Returns:
        True when frequency, day and hour match in the schedule's timezone
        and the schedule has not already run this hour
    """
    if not schedule.is_active or schedule.frequency == ReportFrequency.DISABLED:
        return False

    tz = pytz.timezone(schedule.timezone)
    now_local = now_utc.astimezone(tz)

    if not schedule.time_of_day or now_local.hour != schedule.time_of_day.hour:
        return False

    if schedule.frequency == ReportFrequency.WEEKLY:
        # 0=Monday, 6=Sunday
        if schedule.day_of_week is None or now_local.weekday() != schedule.day_of_week:
            return False
    elif schedule.frequency == ReportFrequency.MONTHLY:
        if schedule.day_of_month is None or now_local.day != schedule.day_of_month:
            return False

    if schedule.last_run_at is not None:
        # last_run_at is stored as naive UTC
        last_local = pytz.UTC.localize(schedule.last_run_at).astimezone(tz)
        if last_local.strftime("%Y%m%d%H") == now_local.strftime("%Y%m%d%H"):
            return False

    return True


@shared_task(name="erp_reporting.tasks.report_tasks.run_scheduled_reports")
def run_scheduled_reports(now: Optional[str] = None):
    """Check for due report schedules and run them."""
    db = SessionLocal()
    processed = 0
    try:
        logger.info("Checking for scheduled reports...")

        now_utc = datetime.fromisoformat(now).astimezone(pytz.UTC) if now else datetime.now(pytz.UTC)

        schedules = db.query(ReportSchedule).filter(
            ReportSchedule.is_active == True  # noqa: E712
        ).all()

        logger.info(f"Found {len(schedules)} active schedules")

        for schedule in schedules:
            try:
                if not is_schedule_due(schedule, now_utc):
                    continue

                logger.info(f"Schedule {schedule.id} is due - running saved report {schedule.saved_report_id}")

                report_service = ReportService(db=db, tenant_id=schedule.report.tenant_id)
                run = asyncio.run(report_service.run_schedule(schedule, now=now_utc.replace(tzinfo=None)))
                processed += 1
                logger.info(f"Scheduled run {run.id} written to {run.export_path}")

            except ReportingException as e:
                logger.error(f"Schedule {schedule.id} failed: {e.message}")
                db.rollback()
                continue
            except Exception as e:
                logger.error(f"Error processing schedule {schedule.id}: {e}", exc_info=True)
                db.rollback()
                continue

    except Exception as e:
        logger.error(f"Error in run_scheduled_reports: {e}", exc_info=True)
    finally:
        db.close()

    return processed


@shared_task(name="erp_reporting.tasks.report_tasks.run_saved_report")
def run_saved_report(saved_report_id: int, tenant_id: Optional[str] = None):
    """Run a saved report in the background and record the run."""
    db = SessionLocal()
    try:
        logger.info(f"Running saved report {saved_report_id} in background")
        report_service = ReportService(db=db, tenant_id=tenant_id)
        run, _ = asyncio.run(report_service.run_saved(saved_report_id, trigger="background"))
        return {"run_id": run.id, "status": run.status.value, "row_count": run.row_count}
    except ReportingException as e:
        logger.error(f"Background run of saved report {saved_report_id} failed: {e.message}")
        return {"status": "failed", "error": e.message}
    finally:
        db.close()
