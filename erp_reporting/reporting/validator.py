"""Report configuration validation."""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Union
import enum
import logging

from pydantic import BaseModel, Field

from ..core.exceptions import ReportValidationError
from .definitions import (
    ChartReport,
    ChartType,
    LIST_OPERATORS,
    Operator,
    RANGE_OPERATORS,
    ReportConfig,
    ReportType,
    SummaryReport,
    TableReport,
    ValidatedConfig,
    ValidatedFilter,
    operator_allowed,
)
from .fields import FieldRegistry, FieldType

logger = logging.getLogger(__name__)

_SUBSTRING_OPERATORS = frozenset({Operator.CONTAINS, Operator.STARTS_WITH, Operator.ENDS_WITH})


class IssueKind(str, enum.Enum):
    """Kinds of configuration problems."""
    UNKNOWN_FIELD = "unknown_field"
    INVALID_OPERATOR_FOR_TYPE = "invalid_operator_for_type"
    ARITY_MISMATCH = "arity_mismatch"
    MISSING_CHART_TYPE = "missing_chart_type"
    INVALID_DATE_RANGE = "invalid_date_range"
    EMPTY_FIELDS = "empty_fields"
    DUPLICATE_FIELD = "duplicate_field"
    INVALID_FILTER_VALUE = "invalid_filter_value"
    TOO_MANY_PIE_SERIES = "too_many_pie_series"
    ORDER_BY_NOT_IN_OUTPUT = "order_by_not_in_output"


class ValidationIssue(BaseModel):
    """A single configuration problem, addressed by its location in the config."""

    kind: IssueKind
    message: str
    location: str
    field: Optional[str] = None


class ValidationOutcome(BaseModel):
    """Either a validated config or the complete list of issues."""

    config: Optional[Union[TableReport, ChartReport, SummaryReport]] = None
    errors: List[ValidationIssue] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def unwrap(self) -> ValidatedConfig:
        """
        Return the validated config.

        Raises:
            ReportValidationError: If validation found any issue
        """
        if self.errors:
            raise ReportValidationError(self.errors)
        return self.config


class _InvalidValue(ValueError):
    pass


def _parse_scalar(field_type: FieldType, value: Any) -> Any:
    """Parse one wire value into the field's native type."""
    if value is None:
        raise _InvalidValue("value is required")
    if field_type == FieldType.NUMBER:
        if isinstance(value, bool):
            raise _InvalidValue("expected a number")
        if isinstance(value, (int, float, Decimal)):
            return value
        if isinstance(value, str):
            try:
                parsed = Decimal(value.strip())
            except InvalidOperation:
                raise _InvalidValue(f"{value!r} is not a number")
            if not parsed.is_finite():
                raise _InvalidValue(f"{value!r} is not a finite number")
            return parsed
        raise _InvalidValue("expected a number")
    if field_type == FieldType.DATE:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value.strip())
            except ValueError:
                raise _InvalidValue(f"{value!r} is not an ISO date")
        raise _InvalidValue("expected an ISO date")
    if field_type == FieldType.BOOLEAN:
        if not isinstance(value, bool):
            raise _InvalidValue("expected true or false")
        return value
    if not isinstance(value, str):
        raise _InvalidValue("expected a string")
    return value


class ConfigValidator:
    """
    Validates report configurations against a field registry.

    All checks run on every call so that one pass surfaces every problem.
    """

    def __init__(self, registry: FieldRegistry):
        self.registry = registry

    def validate(self, config: Union[ReportConfig, Dict[str, Any]]) -> ValidationOutcome:
        """
        Validate a report configuration.

        Args:
            config: Draft config, or its wire payload

        Returns:
            ValidationOutcome holding either the validated config or the issues
        """
        if not isinstance(config, ReportConfig):
            config = ReportConfig.model_validate(config)

        issues: List[ValidationIssue] = []
        self._check_fields(config, issues)
        filters = self._check_filters(config, issues)
        self._check_grouping(config, issues)
        self._check_chart(config, issues)
        self._check_date_range(config, issues)

        if issues:
            logger.debug(f"Report '{config.name}' failed validation with {len(issues)} issue(s)")
            return ValidationOutcome(errors=issues)

        common = dict(
            name=config.name,
            description=config.description,
            fields=tuple(config.fields),
            filters=tuple(filters),
            group_by=tuple(config.group_by),
            order_by=tuple(config.order_by),
            date_range=config.date_range,
        )
        if config.type == ReportType.CHART:
            validated = ChartReport(chart_type=config.chart_type, **common)
        else:
            if config.chart_type is not None:
                logger.debug(f"Dropping chartType from non-chart report '{config.name}'")
            if config.type == ReportType.SUMMARY:
                validated = SummaryReport(**common)
            else:
                validated = TableReport(**common)
        return ValidationOutcome(config=validated)

    def _resolve(self, field_id: str, location: str, issues: List[ValidationIssue]):
        field = self.registry.get(field_id)
        if field is None:
            issues.append(ValidationIssue(
                kind=IssueKind.UNKNOWN_FIELD,
                message=f"Unknown field '{field_id}'",
                location=location,
                field=field_id,
            ))
        return field

    def _check_fields(self, config: ReportConfig, issues: List[ValidationIssue]) -> None:
        if not config.fields:
            issues.append(ValidationIssue(
                kind=IssueKind.EMPTY_FIELDS,
                message="Select at least one field",
                location="fields",
            ))
        seen = set()
        for i, field_id in enumerate(config.fields):
            if field_id in seen:
                issues.append(ValidationIssue(
                    kind=IssueKind.DUPLICATE_FIELD,
                    message=f"Field '{field_id}' is selected more than once",
                    location=f"fields[{i}]",
                    field=field_id,
                ))
                continue
            seen.add(field_id)
            self._resolve(field_id, f"fields[{i}]", issues)

    def _check_filters(self, config: ReportConfig, issues: List[ValidationIssue]) -> List[ValidatedFilter]:
        validated: List[ValidatedFilter] = []
        for i, flt in enumerate(config.filters):
            location = f"filters[{i}]"
            field = self._resolve(flt.field, f"{location}.field", issues)
            if field is None:
                continue

            if not operator_allowed(flt.operator, field.type):
                issues.append(ValidationIssue(
                    kind=IssueKind.INVALID_OPERATOR_FOR_TYPE,
                    message=f"Operator '{flt.operator.value}' cannot be used on {field.type.value} field '{field.id}'",
                    location=f"{location}.operator",
                    field=field.id,
                ))
                continue

            try:
                value = self._parse_value(flt.operator, field.type, flt.value, location, issues)
            except _InvalidValue as e:
                issues.append(ValidationIssue(
                    kind=IssueKind.INVALID_FILTER_VALUE,
                    message=f"Invalid value for '{field.id}': {e}",
                    location=f"{location}.value",
                    field=field.id,
                ))
                continue
            if value is None:
                continue

            validated.append(ValidatedFilter(
                field=field.id,
                field_type=field.type,
                operator=flt.operator,
                value=value,
                label=flt.label,
            ))
        return validated

    def _parse_value(self, operator: Operator, field_type: FieldType, value: Any, location: str, issues: List[ValidationIssue]):
        """Parse a filter value; returns None after recording an arity issue."""
        is_list = isinstance(value, (list, tuple))

        if operator in RANGE_OPERATORS:
            if not is_list or len(value) != 2:
                issues.append(ValidationIssue(
                    kind=IssueKind.ARITY_MISMATCH,
                    message="'between' requires exactly two values",
                    location=f"{location}.value",
                ))
                return None
            return tuple(_parse_scalar(field_type, v) for v in value)

        if operator in LIST_OPERATORS:
            if not is_list or len(value) == 0:
                issues.append(ValidationIssue(
                    kind=IssueKind.ARITY_MISMATCH,
                    message=f"'{operator.value}' requires a non-empty list of values",
                    location=f"{location}.value",
                ))
                return None
            return tuple(_parse_scalar(field_type, v) for v in value)

        if is_list:
            issues.append(ValidationIssue(
                kind=IssueKind.ARITY_MISMATCH,
                message=f"'{operator.value}' takes a single value",
                location=f"{location}.value",
            ))
            return None
        parsed = _parse_scalar(field_type, value)
        if operator in _SUBSTRING_OPERATORS and parsed == "":
            raise _InvalidValue("search text must not be empty")
        return parsed

    def _check_grouping(self, config: ReportConfig, issues: List[ValidationIssue]) -> None:
        for i, field_id in enumerate(config.group_by):
            self._resolve(field_id, f"groupBy[{i}]", issues)
        for i, order in enumerate(config.order_by):
            location = f"orderBy[{i}].field"
            if self._resolve(order.field, location, issues) is None:
                continue
            # Grouped rows only carry the selected and key columns
            if config.group_by and order.field not in config.fields and order.field not in config.group_by:
                issues.append(ValidationIssue(
                    kind=IssueKind.ORDER_BY_NOT_IN_OUTPUT,
                    message=f"Cannot order grouped report by '{order.field}'; select it or group by it",
                    location=location,
                    field=order.field,
                ))

    def _check_chart(self, config: ReportConfig, issues: List[ValidationIssue]) -> None:
        if config.type != ReportType.CHART:
            return
        if config.chart_type is None:
            issues.append(ValidationIssue(
                kind=IssueKind.MISSING_CHART_TYPE,
                message="Chart reports need a chart type",
                location="chartType",
            ))
            return
        if config.chart_type != ChartType.PIE:
            return

        # After grouping every non-key field becomes a count
        value_fields = []
        for field_id in config.fields:
            field = self.registry.get(field_id)
            if field is None or field_id in config.group_by:
                continue
            if config.group_by or field.type == FieldType.NUMBER:
                value_fields.append(field_id)
        if len(value_fields) > 1:
            issues.append(ValidationIssue(
                kind=IssueKind.TOO_MANY_PIE_SERIES,
                message=f"Pie charts show a single series, got {len(value_fields)}: {', '.join(value_fields)}",
                location="fields",
            ))

    def _check_date_range(self, config: ReportConfig, issues: List[ValidationIssue]) -> None:
        date_range = config.date_range
        if date_range is None:
            return
        field = self._resolve(date_range.field, "dateRange.field", issues)
        if field is not None and field.type != FieldType.DATE:
            issues.append(ValidationIssue(
                kind=IssueKind.INVALID_DATE_RANGE,
                message=f"Date range field '{field.id}' is not a date field",
                location="dateRange.field",
                field=field.id,
            ))
        if date_range.start > date_range.end:
            issues.append(ValidationIssue(
                kind=IssueKind.INVALID_DATE_RANGE,
                message=f"Date range starts after it ends ({date_range.start} > {date_range.end})",
                location="dateRange",
            ))
