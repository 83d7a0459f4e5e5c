"""Database models."""

from .base import Base
from .user import User
from .catalog import Product
from .crm import Customer, Lead
from .order import Order
from .report import SavedReport, ReportSchedule, ReportRun, ReportFrequency, ExportFormat, RunStatus

__all__ = [
    "Base",
    "User",
    "Product",
    "Customer",
    "Lead",
    "Order",
    "SavedReport",
    "ReportSchedule",
    "ReportRun",
    "ReportFrequency",
    "ExportFormat",
    "RunStatus",
]
