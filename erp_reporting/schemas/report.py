from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from datetime import datetime, time
from typing import Any, Dict, List, Optional
import pytz

from ..models.report import ReportFrequency, ExportFormat, RunStatus
from ..reporting.definitions import ReportConfig
from ..reporting.fields import FieldType
from ..reporting.validator import ValidationIssue


class FieldResponse(BaseModel):
    id: str
    label: str
    type: FieldType
    options: List[str] = Field(default_factory=list)


class ValidationResponse(BaseModel):
    valid: bool
    errors: List[ValidationIssue]
    config: Optional[Dict[str, Any]] = None


class ScheduleRequest(BaseModel):
    frequency: ReportFrequency = ReportFrequency.WEEKLY
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)  # 0=Monday
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    time_of_day: time = time(9, 0)
    timezone: str = "UTC"
    export_format: ExportFormat = ExportFormat.PDF
    is_active: bool = True

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        if v not in pytz.all_timezones_set:
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @model_validator(mode="after")
    def check_day(self) -> "ScheduleRequest":
        if self.frequency == ReportFrequency.WEEKLY and self.day_of_week is None:
            raise ValueError("weekly schedules need day_of_week")
        if self.frequency == ReportFrequency.MONTHLY and self.day_of_month is None:
            raise ValueError("monthly schedules need day_of_month")
        return self


class ScheduleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    saved_report_id: int
    frequency: ReportFrequency
    day_of_week: Optional[int] = None
    day_of_month: Optional[int] = None
    time_of_day: time
    timezone: str
    export_format: ExportFormat
    is_active: bool
    last_run_at: Optional[datetime] = None


class SavedReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    config: Dict[str, Any]
    created_at: datetime
    updated_at: datetime
    schedule: Optional[ScheduleResponse] = None


class ReportRunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    saved_report_id: int
    trigger: str
    status: RunStatus
    row_count: Optional[int] = None
    error_kind: Optional[str] = None
    error_message: Optional[str] = None
    duration_ms: Optional[int] = None
    export_path: Optional[str] = None
    created_at: datetime


__all__ = [
    "ReportConfig",
    "FieldResponse",
    "ValidationResponse",
    "ScheduleRequest",
    "ScheduleResponse",
    "SavedReportResponse",
    "ReportRunResponse",
]
