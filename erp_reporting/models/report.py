"""Saved report, scheduling and run history models."""

from sqlalchemy import String, Integer, DateTime, Boolean, JSON, Enum as SQLEnum, Time, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, time
from typing import Optional
import enum

from .base import Base


class ReportFrequency(str, enum.Enum):
    """Report frequency options."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    DISABLED = "disabled"


class ExportFormat(str, enum.Enum):
    """Payload format produced by scheduled runs and exports."""
    CSV = "csv"
    PNG = "png"
    PDF = "pdf"


class RunStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"


class SavedReport(Base):
    """A persisted report configuration in its wire format."""

    __tablename__ = "saved_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    config: Mapped[dict] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    schedule = relationship(
        "ReportSchedule", back_populates="report", uselist=False, cascade="all, delete-orphan"
    )
    runs = relationship("ReportRun", back_populates="report", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<SavedReport(id={self.id}, name={self.name})>"


class ReportSchedule(Base):
    """Report scheduling configuration."""

    __tablename__ = "report_schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    saved_report_id: Mapped[int] = mapped_column(ForeignKey("saved_reports.id"), unique=True, index=True)
    frequency: Mapped[str] = mapped_column(SQLEnum(ReportFrequency), default=ReportFrequency.WEEKLY)
    day_of_week: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # 0=Monday, 6=Sunday
    day_of_month: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # 1-31
    time_of_day: Mapped[time] = mapped_column(Time, default=time(9, 0))  # Default 09:00
    timezone: Mapped[str] = mapped_column(String(50), default="UTC")
    export_format: Mapped[str] = mapped_column(SQLEnum(ExportFormat), default=ExportFormat.PDF)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_run_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    report = relationship("SavedReport", back_populates="schedule")

    def __repr__(self) -> str:
        return f"<ReportSchedule(report_id={self.saved_report_id}, frequency={self.frequency})>"


class ReportRun(Base):
    """History of report executions."""

    __tablename__ = "report_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    saved_report_id: Mapped[int] = mapped_column(ForeignKey("saved_reports.id"), index=True)
    trigger: Mapped[str] = mapped_column(String(20), default="manual")  # manual, schedule
    status: Mapped[str] = mapped_column(SQLEnum(RunStatus))
    row_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    error_kind: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    export_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    report = relationship("SavedReport", back_populates="runs")

    def __repr__(self) -> str:
        return f"<ReportRun(id={self.id}, status={self.status})>"
