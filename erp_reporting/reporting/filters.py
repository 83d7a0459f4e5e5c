"""Filter predicate evaluation."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

from ..core.exceptions import TypeMismatchError
from .definitions import Operator, ValidatedFilter, operator_allowed
from .fields import FieldType

Row = Mapping[str, Any]


def check_value(field_id: str, field_type: FieldType, value: Any) -> Any:
    """
    Check a non-null row value against the field's declared type.

    Returns the value in comparable form. Datetimes in a date column are
    compared by calendar date; nothing else is converted.

    Raises:
        TypeMismatchError: If the runtime type does not match
    """
    if field_type == FieldType.NUMBER:
        if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
            raise TypeMismatchError(field_id, "number", value)
        return value
    if field_type == FieldType.DATE:
        if isinstance(value, datetime):
            return value.date()
        if not isinstance(value, date):
            raise TypeMismatchError(field_id, "date", value)
        return value
    if field_type == FieldType.BOOLEAN:
        if not isinstance(value, bool):
            raise TypeMismatchError(field_id, "boolean", value)
        return value
    if not isinstance(value, str):
        raise TypeMismatchError(field_id, field_type.value, value)
    return value


class FilterEvaluator:
    """
    Evaluates a validated filter against a single row.

    Text equality (``equals``, ``not_equals``, ``in``, ``not_in``) is
    case-insensitive unless ``case_sensitive`` is set. Substring operators
    are always case-insensitive.
    """

    def __init__(self, case_sensitive: bool = False):
        self.case_sensitive = case_sensitive

    def matches(self, flt: ValidatedFilter, row: Row) -> bool:
        if not operator_allowed(flt.operator, flt.field_type):
            raise TypeMismatchError(flt.field, f"operator valid for {flt.field_type.value}", flt.operator.value)

        raw = row.get(flt.field)
        if raw is None:
            # Missing data only satisfies exclusion filters
            return flt.operator in (Operator.NOT_EQUALS, Operator.NOT_IN)

        value = check_value(flt.field, flt.field_type, raw)
        op = flt.operator

        if op == Operator.EQUALS:
            return self._equal(flt.field_type, value, flt.value)
        if op == Operator.NOT_EQUALS:
            return not self._equal(flt.field_type, value, flt.value)
        if op == Operator.IN:
            return any(self._equal(flt.field_type, value, v) for v in flt.value)
        if op == Operator.NOT_IN:
            return not any(self._equal(flt.field_type, value, v) for v in flt.value)
        if op == Operator.CONTAINS:
            return flt.value.casefold() in value.casefold()
        if op == Operator.STARTS_WITH:
            return value.casefold().startswith(flt.value.casefold())
        if op == Operator.ENDS_WITH:
            return value.casefold().endswith(flt.value.casefold())
        if op == Operator.GREATER_THAN:
            return value > flt.value
        if op == Operator.LESS_THAN:
            return value < flt.value
        if op == Operator.BETWEEN:
            low, high = flt.value
            return low <= value <= high

        raise TypeMismatchError(flt.field, "supported operator", op)

    def matches_all(self, filters, row: Row) -> bool:
        """Conjunction of all filters."""
        return all(self.matches(flt, row) for flt in filters)

    def _equal(self, field_type: FieldType, value: Any, expected: Any) -> bool:
        if field_type == FieldType.TEXT and not self.case_sensitive:
            return value.casefold() == expected.casefold()
        return value == expected
