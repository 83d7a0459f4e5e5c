"""Report builder endpoints."""

from fastapi import APIRouter, Depends, Query, Response, status
from typing import Dict, List

from ...models.report import ExportFormat
from ...reporting.definitions import ReportConfig
from ...reporting.fields import FieldRegistry
from ...reporting.output import ReportResult
from ...reporting.row_source import CancellationToken
from ...schemas.report import (
    FieldResponse,
    ValidationResponse,
    ScheduleRequest,
    ScheduleResponse,
    SavedReportResponse,
    ReportRunResponse,
)
from ...services.report_service import ReportService
from ..deps import get_cancel_token, get_registry, get_report_service

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/fields", response_model=Dict[str, List[FieldResponse]])
async def list_fields(registry: FieldRegistry = Depends(get_registry)):
    """
    List every reportable field grouped by source table.

    Returns:
        Mapping of table name to its fields
    """
    return {
        table: [
            FieldResponse(id=f.id, label=f.label, type=f.type, options=list(f.options))
            for f in fields
        ]
        for table, fields in registry.by_table().items()
    }


@router.post("/validate", response_model=ValidationResponse)
async def validate_report(
    config: ReportConfig,
    report_service: ReportService = Depends(get_report_service),
):
    """
    Validate a report configuration without running it.

    Invalid configs still answer 200; the issues are listed in the body.
    """
    outcome = report_service.validate(config)
    return ValidationResponse(
        valid=outcome.ok,
        errors=outcome.errors,
        config=outcome.config.to_config().to_payload() if outcome.ok else None,
    )


@router.post("/preview", response_model=ReportResult)
async def preview_report(
    config: ReportConfig,
    report_service: ReportService = Depends(get_report_service),
    cancel_token: CancellationToken = Depends(get_cancel_token),
):
    """
    Validate and run an unsaved report against the ERP tables.

    Raises:
        ReportValidationError: 422 with every issue found
        ExecutionError: Mapped by the registered exception handlers
    """
    return await report_service.preview(config, cancel_token=cancel_token)


@router.post("/saved", response_model=SavedReportResponse, status_code=status.HTTP_201_CREATED)
async def create_saved_report(
    config: ReportConfig,
    report_service: ReportService = Depends(get_report_service),
):
    return report_service.create_saved(config)


@router.get("/saved", response_model=List[SavedReportResponse])
async def list_saved_reports(report_service: ReportService = Depends(get_report_service)):
    return report_service.list_saved()


@router.get("/saved/{report_id}", response_model=SavedReportResponse)
async def get_saved_report(report_id: int, report_service: ReportService = Depends(get_report_service)):
    return report_service.get_saved(report_id)


@router.put("/saved/{report_id}", response_model=SavedReportResponse)
async def update_saved_report(
    report_id: int,
    config: ReportConfig,
    report_service: ReportService = Depends(get_report_service),
):
    return report_service.update_saved(report_id, config)


@router.delete("/saved/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_saved_report(report_id: int, report_service: ReportService = Depends(get_report_service)):
    report_service.delete_saved(report_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/saved/{report_id}/run", response_model=ReportResult)
async def run_saved_report(
    report_id: int,
    report_service: ReportService = Depends(get_report_service),
    cancel_token: CancellationToken = Depends(get_cancel_token),
):
    """Run a saved report and record the run in its history."""
    _, result = await report_service.run_saved(report_id, cancel_token=cancel_token)
    return result


@router.get("/saved/{report_id}/export")
async def export_saved_report(
    report_id: int,
    fmt: ExportFormat = Query(default=ExportFormat.CSV, alias="format"),
    report_service: ReportService = Depends(get_report_service),
    cancel_token: CancellationToken = Depends(get_cancel_token),
):
    """
    Run a saved report and download it as CSV, PNG or PDF.

    Returns:
        Binary payload with a Content-Disposition attachment filename
    """
    payload, media_type, filename = await report_service.export(report_id, fmt, cancel_token=cancel_token)
    return Response(
        content=payload,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.put("/saved/{report_id}/schedule", response_model=ScheduleResponse)
async def set_report_schedule(
    report_id: int,
    request: ScheduleRequest,
    report_service: ReportService = Depends(get_report_service),
):
    return report_service.set_schedule(report_id, request.model_dump())


@router.delete("/saved/{report_id}/schedule", status_code=status.HTTP_204_NO_CONTENT)
async def delete_report_schedule(report_id: int, report_service: ReportService = Depends(get_report_service)):
    report_service.delete_schedule(report_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/saved/{report_id}/runs", response_model=List[ReportRunResponse])
async def list_report_runs(
    report_id: int,
    limit: int = Query(default=50, ge=1, le=500),
    report_service: ReportService = Depends(get_report_service),
):
    return report_service.list_runs(report_id, limit=limit)
