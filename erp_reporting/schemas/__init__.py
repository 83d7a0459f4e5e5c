from .report import (
    FieldResponse,
    ValidationResponse,
    ScheduleRequest,
    ScheduleResponse,
    SavedReportResponse,
    ReportRunResponse,
)

__all__ = [
    "FieldResponse",
    "ValidationResponse",
    "ScheduleRequest",
    "ScheduleResponse",
    "SavedReportResponse",
    "ReportRunResponse",
]
