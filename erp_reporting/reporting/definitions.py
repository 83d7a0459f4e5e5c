"""Report configuration models.

``ReportConfig`` is the draft/wire shape a user edits and the application
persists. It is deliberately loose (``chartType`` is optional, filter values
are whatever JSON carried). ``ConfigValidator`` turns it into one of the
``ValidatedConfig`` variants, which are the only inputs the executor takes.
"""

from datetime import date
from typing import Any, Dict, FrozenSet, List, Literal, Optional, Tuple, Union
import enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .fields import FieldType


class Operator(str, enum.Enum):
    """Filter operators."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    BETWEEN = "between"
    IN = "in"
    NOT_IN = "not_in"


class ReportType(str, enum.Enum):
    TABLE = "table"
    CHART = "chart"
    SUMMARY = "summary"


class ChartType(str, enum.Enum):
    BAR = "bar"
    LINE = "line"
    PIE = "pie"
    AREA = "area"


class SortDirection(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


_EQUALITY = frozenset({Operator.EQUALS, Operator.NOT_EQUALS, Operator.IN, Operator.NOT_IN})
_ORDERED = _EQUALITY | {Operator.GREATER_THAN, Operator.LESS_THAN, Operator.BETWEEN}

# Operators legal for each field type
OPERATORS_BY_TYPE: Dict[FieldType, FrozenSet[Operator]] = {
    FieldType.TEXT: _EQUALITY | {Operator.CONTAINS, Operator.STARTS_WITH, Operator.ENDS_WITH},
    FieldType.NUMBER: _ORDERED,
    FieldType.DATE: _ORDERED,
    FieldType.BOOLEAN: frozenset({Operator.EQUALS, Operator.NOT_EQUALS}),
    FieldType.ENUM: _EQUALITY,
}

RANGE_OPERATORS = frozenset({Operator.BETWEEN})
LIST_OPERATORS = frozenset({Operator.IN, Operator.NOT_IN})


def operator_allowed(operator: Operator, field_type: FieldType) -> bool:
    return operator in OPERATORS_BY_TYPE[field_type]


class WireModel(BaseModel):
    """Base for models persisted and exchanged as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReportFilter(WireModel):
    field: str
    operator: Operator
    value: Any = None
    label: Optional[str] = None


class OrderBy(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    field: str
    direction: SortDirection = SortDirection.ASC


class DateRange(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    field: str
    start: date
    end: date


class ReportConfig(WireModel):
    """Declarative description of a report as authored by a user."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: ReportType = ReportType.TABLE
    chart_type: Optional[ChartType] = None
    fields: List[str] = Field(default_factory=list)
    filters: List[ReportFilter] = Field(default_factory=list)
    group_by: List[str] = Field(default_factory=list)
    order_by: List[OrderBy] = Field(default_factory=list)
    date_range: Optional[DateRange] = None

    def to_payload(self) -> Dict[str, Any]:
        """Plain JSON-ready dict in the camelCase wire format."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# Validated configuration variants
# ============================================================================

class ValidatedFilter(BaseModel):
    """A filter whose operator is legal for its field and whose value is parsed."""

    model_config = ConfigDict(frozen=True)

    field: str
    field_type: FieldType
    operator: Operator
    value: Any
    label: Optional[str] = None


class _ValidatedReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: Optional[str] = None
    fields: Tuple[str, ...]
    filters: Tuple[ValidatedFilter, ...] = ()
    group_by: Tuple[str, ...] = ()
    order_by: Tuple[OrderBy, ...] = ()
    date_range: Optional[DateRange] = None

    def referenced_fields(self) -> List[str]:
        """Every field id the report touches, in first-use order."""
        ids: List[str] = []
        candidates = list(self.fields) + [f.field for f in self.filters] + list(self.group_by)
        candidates += [o.field for o in self.order_by]
        if self.date_range is not None:
            candidates.append(self.date_range.field)
        for field_id in candidates:
            if field_id not in ids:
                ids.append(field_id)
        return ids

    def to_config(self) -> ReportConfig:
        """Back to the wire shape, e.g. for persistence."""
        data = self.model_dump(mode="json")
        for item in data["filters"]:
            item.pop("field_type", None)
        return ReportConfig.model_validate(data)


class TableReport(_ValidatedReport):
    type: Literal["table"] = "table"


class ChartReport(_ValidatedReport):
    type: Literal["chart"] = "chart"
    chart_type: ChartType


class SummaryReport(_ValidatedReport):
    type: Literal["summary"] = "summary"


ValidatedConfig = Union[TableReport, ChartReport, SummaryReport]
