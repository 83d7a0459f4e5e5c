"""Report service: validation, execution, persistence and export of ad-hoc reports."""

from datetime import datetime
from pathlib import Path
from time import perf_counter
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple, Union
import logging
import re

import pytz
from sqlalchemy.orm import Session

from ..config import settings
from ..core.exceptions import ExecutionError, NotFoundError, ReportValidationError, ShapeError
from ..core.metrics import (
    track_report_execution,
    track_report_execution_time,
    track_rows_fetched,
    track_validation_failure,
    update_saved_reports_gauge,
)
from ..models.report import SavedReport, ReportSchedule, ReportRun, ExportFormat, RunStatus
from ..reporting.definitions import ReportConfig, ValidatedConfig
from ..reporting.executor import ReportExecutor
from ..reporting.export import to_chart_image, to_csv, to_pdf
from ..reporting.fields import FieldRegistry, default_registry
from ..reporting.filters import FilterEvaluator
from ..reporting.output import ChartResult, SummaryResult, TableResult
from ..reporting.row_source import CancellationToken, Row, RowSource, SqlRowSource
from ..reporting.validator import ConfigValidator, ValidationOutcome

logger = logging.getLogger(__name__)

Result = Union[TableResult, ChartResult, SummaryResult]

MEDIA_TYPES = {
    ExportFormat.CSV: "text/csv; charset=utf-8",
    ExportFormat.PNG: "image/png",
    ExportFormat.PDF: "application/pdf",
}


class _CountingRowSource:
    """Passes rows through while counting them for the rows-fetched metric."""

    def __init__(self, source: RowSource):
        self.source = source
        self.count = 0

    async def fetch(self, tables: Sequence[str], cancel_token: CancellationToken) -> AsyncIterator[Row]:
        async for row in self.source.fetch(tables, cancel_token):
            self.count += 1
            yield row


def result_size(result: Result) -> int:
    """Number of output rows, points or metrics in a result."""
    if isinstance(result, TableResult):
        return len(result.rows)
    if isinstance(result, ChartResult):
        return len(result.series)
    return len(result.metrics)


def export_filename(name: str, fmt: ExportFormat) -> str:
    stem = re.sub(r"[^A-Za-z0-9_-]+", "_", name).strip("_") or "report"
    return f"{stem}.{fmt.value}"


class ReportService:
    """Service for building, saving, running and exporting ERP reports."""

    def __init__(
        self,
        db: Session,
        registry: Optional[FieldRegistry] = None,
        validator: Optional[ConfigValidator] = None,
        executor: Optional[ReportExecutor] = None,
        tenant_id: Optional[str] = None,
    ):
        self.db = db
        self.registry = registry or default_registry()
        self.validator = validator or ConfigValidator(self.registry)
        self.executor = executor or ReportExecutor(
            self.registry,
            evaluator=FilterEvaluator(case_sensitive=settings.text_case_sensitive),
        )
        self.tenant_id = tenant_id

    # ------------------------------------------------------------------
    # Validation and execution
    # ------------------------------------------------------------------

    def validate(self, config: Union[ReportConfig, Dict[str, Any]]) -> ValidationOutcome:
        """
        Validate a report configuration and record failures in metrics.

        Args:
            config: Wire config or its JSON dict

        Returns:
            ValidationOutcome with either a validated config or every issue found
        """
        outcome = self.validator.validate(config)
        for issue in outcome.errors:
            track_validation_failure(issue.kind.value)
        if not outcome.ok:
            logger.info(f"Report config rejected with {len(outcome.errors)} issue(s)")
        return outcome

    async def execute(
        self,
        config: ValidatedConfig,
        source: Optional[RowSource] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Result:
        """
        Execute a validated config, against the database unless a source is given.

        Raises:
            ExecutionError: Propagated from the executor after being counted
        """
        counting = _CountingRowSource(source or SqlRowSource(self.db, self.registry, settings.row_batch_size))
        try:
            with track_report_execution_time(config.type):
                result = await self.executor.execute(config, counting, cancel_token)
        except ExecutionError:
            track_report_execution(config.type, RunStatus.FAILED.value)
            raise
        track_report_execution(config.type, RunStatus.SUCCESS.value)
        track_rows_fetched(counting.count)
        return result

    async def preview(
        self,
        config: Union[ReportConfig, Dict[str, Any]],
        cancel_token: Optional[CancellationToken] = None,
    ) -> Result:
        """Validate and run an unsaved config."""
        validated = self.validate(config).unwrap()
        return await self.execute(validated, cancel_token=cancel_token)

    # ------------------------------------------------------------------
    # Saved reports
    # ------------------------------------------------------------------

    def _query_saved(self):
        query = self.db.query(SavedReport)
        if self.tenant_id is not None:
            query = query.filter(SavedReport.tenant_id == self.tenant_id)
        return query

    def list_saved(self) -> List[SavedReport]:
        return self._query_saved().order_by(SavedReport.id).all()

    def get_saved(self, report_id: int) -> SavedReport:
        report = self._query_saved().filter(SavedReport.id == report_id).first()
        if not report:
            raise NotFoundError("saved_report", report_id)
        return report

    def create_saved(self, config: Union[ReportConfig, Dict[str, Any]]) -> SavedReport:
        """
        Validate and persist a report configuration.

        The stored payload is the normalized wire form of the validated config,
        so loading it later validates to the same config.

        Raises:
            ReportValidationError: If the config is invalid
        """
        validated = self.validate(config).unwrap()
        report = SavedReport(
            tenant_id=self.tenant_id,
            name=validated.name,
            description=validated.description,
            config=validated.to_config().to_payload(),
        )
        self.db.add(report)
        self.db.commit()
        self.db.refresh(report)
        update_saved_reports_gauge(self.db)
        logger.info(f"Saved report {report.id} '{report.name}' for tenant {self.tenant_id or 'default'}")
        return report

    def update_saved(self, report_id: int, config: Union[ReportConfig, Dict[str, Any]]) -> SavedReport:
        report = self.get_saved(report_id)
        validated = self.validate(config).unwrap()
        report.name = validated.name
        report.description = validated.description
        report.config = validated.to_config().to_payload()
        self.db.commit()
        self.db.refresh(report)
        logger.info(f"Updated saved report {report.id}")
        return report

    def delete_saved(self, report_id: int) -> None:
        report = self.get_saved(report_id)
        self.db.delete(report)
        self.db.commit()
        update_saved_reports_gauge(self.db)
        logger.info(f"Deleted saved report {report_id}")

    def load_config(self, report: SavedReport) -> ValidatedConfig:
        """
        Re-validate a stored payload against the current registry.

        Raises:
            ReportValidationError: If the catalog changed under the saved report
        """
        outcome = self.validate(report.config)
        if not outcome.ok:
            logger.warning(f"Saved report {report.id} no longer validates: {len(outcome.errors)} issue(s)")
        return outcome.unwrap()

    async def run_saved(
        self,
        report_id: int,
        trigger: str = "manual",
        cancel_token: Optional[CancellationToken] = None,
    ) -> Tuple[ReportRun, Result]:
        """
        Execute a saved report and record the run.

        Args:
            report_id: Saved report ID
            trigger: 'manual' or 'schedule'
            cancel_token: Optional cancellation token

        Returns:
            Tuple of (recorded run, result)

        Raises:
            ExecutionError: After a failed run has been recorded
        """
        report = self.get_saved(report_id)
        started = perf_counter()
        try:
            config = self.load_config(report)
            result = await self.execute(config, cancel_token=cancel_token)
        except (ExecutionError, ReportValidationError) as e:
            kind = getattr(e, "kind", "invalid_report_config")
            self._record_run(report, trigger, started, status=RunStatus.FAILED, error_kind=kind, error_message=e.message)
            logger.error(f"Run of saved report {report_id} failed ({kind}): {e.message}")
            raise

        run = self._record_run(report, trigger, started, status=RunStatus.SUCCESS, row_count=result_size(result))
        logger.info(f"Saved report {report_id} ran in {run.duration_ms}ms with {run.row_count} row(s)")
        return run, result

    def _record_run(self, report: SavedReport, trigger: str, started: float, **fields) -> ReportRun:
        run = ReportRun(
            saved_report_id=report.id,
            trigger=trigger,
            duration_ms=int((perf_counter() - started) * 1000),
            **fields,
        )
        self.db.add(run)
        self.db.commit()
        self.db.refresh(run)
        return run

    def list_runs(self, report_id: int, limit: int = 50) -> List[ReportRun]:
        self.get_saved(report_id)
        return (
            self.db.query(ReportRun)
            .filter(ReportRun.saved_report_id == report_id)
            .order_by(ReportRun.created_at.desc(), ReportRun.id.desc())
            .limit(limit)
            .all()
        )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def render(self, result: Result, fmt: ExportFormat, title: str, description: Optional[str] = None) -> bytes:
        """
        Render a result in the requested export format.

        Raises:
            ShapeError: If a PNG is requested for a non-chart result
        """
        if fmt == ExportFormat.CSV:
            return to_csv(result, self.registry, delimiter=settings.csv_delimiter)
        if fmt == ExportFormat.PNG:
            if not isinstance(result, ChartResult):
                raise ShapeError("png export is only available for chart reports")
            return to_chart_image(result, title=title, registry=self.registry, dpi=settings.chart_dpi)
        return to_pdf(result, title, description, registry=self.registry, dpi=settings.chart_dpi)

    async def export(
        self,
        report_id: int,
        fmt: ExportFormat,
        trigger: str = "manual",
        cancel_token: Optional[CancellationToken] = None,
    ) -> Tuple[bytes, str, str]:
        """
        Run a saved report and render it.

        Returns:
            Tuple of (payload, media type, filename)
        """
        _, result = await self.run_saved(report_id, trigger=trigger, cancel_token=cancel_token)
        report = self.get_saved(report_id)
        payload = self.render(result, fmt, report.name, report.description)
        logger.info(f"Exported saved report {report_id} as {fmt.value} ({len(payload)} bytes)")
        return payload, MEDIA_TYPES[fmt], export_filename(report.name, fmt)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def set_schedule(self, report_id: int, schedule_data: Dict[str, Any]) -> ReportSchedule:
        report = self.get_saved(report_id)
        schedule = report.schedule
        if schedule is None:
            schedule = ReportSchedule(saved_report_id=report.id)
            self.db.add(schedule)
        for key, value in schedule_data.items():
            setattr(schedule, key, value)
        self.db.commit()
        self.db.refresh(schedule)
        logger.info(f"Schedule for saved report {report_id} set to {schedule.frequency}")
        return schedule

    def delete_schedule(self, report_id: int) -> None:
        report = self.get_saved(report_id)
        if report.schedule is None:
            raise NotFoundError("report_schedule", report_id)
        self.db.delete(report.schedule)
        self.db.commit()
        logger.info(f"Removed schedule of saved report {report_id}")

    async def run_schedule(self, schedule: ReportSchedule, now: Optional[datetime] = None) -> ReportRun:
        """
        Run a due schedule and write its export under the export directory.

        The schedule's last_run_at is stamped even when the run fails so a
        broken report is not retried every beat within the same hour.
        """
        report = schedule.report
        # Stored as naive UTC
        schedule.last_run_at = now or datetime.now(pytz.UTC).replace(tzinfo=None)
        self.db.commit()

        fmt = ExportFormat(schedule.export_format)
        run, result = await self.run_saved(report.id, trigger="schedule")
        payload = self.render(result, fmt, report.name, report.description)

        target = Path(settings.export_dir) / str(report.id)
        target.mkdir(parents=True, exist_ok=True)
        path = target / f"{schedule.last_run_at:%Y%m%dT%H%M%S}_{export_filename(report.name, fmt)}"
        path.write_bytes(payload)

        run.export_path = str(path)
        self.db.commit()
        logger.info(f"Scheduled export of saved report {report.id} written to {path}")
        return run
