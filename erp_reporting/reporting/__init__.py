"""Ad-hoc report engine: field catalog, validation, execution, shaping and export."""

from .fields import FieldType, ReportField, FieldRegistry, ERP_FIELDS, default_registry
from .definitions import (
    Operator,
    ReportType,
    ChartType,
    SortDirection,
    ReportFilter,
    OrderBy,
    DateRange,
    ReportConfig,
    ValidatedFilter,
    TableReport,
    ChartReport,
    SummaryReport,
    ValidatedConfig,
)
from .filters import FilterEvaluator
from .validator import ConfigValidator, IssueKind, ValidationIssue, ValidationOutcome
from .aggregates import Aggregator, Count
from .output import OutputAdapter, ReportResult, TableResult, ChartResult, ChartPoint, SummaryResult, SummaryMetric
from .row_source import CancellationToken, RowSource, InMemoryRowSource, SqlRowSource
from .executor import ReportExecutor
from .export import as_table, to_csv, to_chart_image, to_pdf

__all__ = [
    "FieldType",
    "ReportField",
    "FieldRegistry",
    "ERP_FIELDS",
    "default_registry",
    "Operator",
    "ReportType",
    "ChartType",
    "SortDirection",
    "ReportFilter",
    "OrderBy",
    "DateRange",
    "ReportConfig",
    "ValidatedFilter",
    "TableReport",
    "ChartReport",
    "SummaryReport",
    "ValidatedConfig",
    "FilterEvaluator",
    "ConfigValidator",
    "IssueKind",
    "ValidationIssue",
    "ValidationOutcome",
    "Aggregator",
    "Count",
    "OutputAdapter",
    "ReportResult",
    "TableResult",
    "ChartResult",
    "ChartPoint",
    "SummaryResult",
    "SummaryMetric",
    "CancellationToken",
    "RowSource",
    "InMemoryRowSource",
    "SqlRowSource",
    "ReportExecutor",
    "as_table",
    "to_csv",
    "to_chart_image",
    "to_pdf",
]
