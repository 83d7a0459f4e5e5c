"""Unit tests for filter evaluation."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from erp_reporting.core.exceptions import TypeMismatchError
from erp_reporting.reporting.definitions import Operator, ValidatedFilter
from erp_reporting.reporting.fields import FieldType
from erp_reporting.reporting.filters import FilterEvaluator, check_value


def make_filter(field, field_type, operator, value):
    return ValidatedFilter(field=field, field_type=field_type, operator=operator, value=value)


class TestTextFilters:
    """Test text operators."""

    def test_equals_is_case_insensitive_by_default(self):
        flt = make_filter("customer_company", FieldType.TEXT, Operator.EQUALS, "acme")
        assert FilterEvaluator().matches(flt, {"customer_company": "ACME"})

    def test_equals_case_sensitive_when_configured(self):
        flt = make_filter("customer_company", FieldType.TEXT, Operator.EQUALS, "acme")
        assert not FilterEvaluator(case_sensitive=True).matches(flt, {"customer_company": "ACME"})

    def test_contains_starts_and_ends_with(self):
        evaluator = FilterEvaluator()
        row = {"product_name": "Ergonomic Desk Chair"}
        assert evaluator.matches(make_filter("product_name", FieldType.TEXT, Operator.CONTAINS, "desk"), row)
        assert evaluator.matches(make_filter("product_name", FieldType.TEXT, Operator.STARTS_WITH, "ergo"), row)
        assert evaluator.matches(make_filter("product_name", FieldType.TEXT, Operator.ENDS_WITH, "CHAIR"), row)
        assert not evaluator.matches(make_filter("product_name", FieldType.TEXT, Operator.ENDS_WITH, "desk"), row)

    def test_in_and_not_in(self):
        evaluator = FilterEvaluator()
        row = {"customer_company": "Globex"}
        assert evaluator.matches(make_filter("customer_company", FieldType.TEXT, Operator.IN, ("acme", "globex")), row)
        assert not evaluator.matches(
            make_filter("customer_company", FieldType.TEXT, Operator.NOT_IN, ("acme", "globex")), row
        )


class TestOrderedFilters:
    """Test number and date comparisons."""

    def test_between_is_inclusive(self):
        """Test between includes both bounds."""
        evaluator = FilterEvaluator()
        flt = make_filter("product_price", FieldType.NUMBER, Operator.BETWEEN, (Decimal("100"), Decimal("500")))
        assert evaluator.matches(flt, {"product_price": Decimal("100")})
        assert evaluator.matches(flt, {"product_price": 500})
        assert not evaluator.matches(flt, {"product_price": Decimal("500.01")})

    def test_greater_and_less_than(self):
        evaluator = FilterEvaluator()
        assert evaluator.matches(make_filter("order_total", FieldType.NUMBER, Operator.GREATER_THAN, 10), {"order_total": 10.5})
        assert not evaluator.matches(make_filter("order_total", FieldType.NUMBER, Operator.LESS_THAN, 10), {"order_total": 10})

    def test_datetime_compared_by_calendar_date(self):
        flt = make_filter("customer_since", FieldType.DATE, Operator.EQUALS, date(2024, 1, 10))
        assert FilterEvaluator().matches(flt, {"customer_since": datetime(2024, 1, 10, 23, 59)})


class TestNullSemantics:
    """Test missing values only satisfy exclusion operators."""

    @pytest.mark.parametrize("operator,value,expected", [
        (Operator.EQUALS, "x", False),
        (Operator.CONTAINS, "x", False),
        (Operator.IN, ("x",), False),
        (Operator.NOT_EQUALS, "x", True),
        (Operator.NOT_IN, ("x",), True),
    ])
    def test_null_value(self, operator, value, expected):
        flt = make_filter("customer_phone", FieldType.TEXT, operator, value)
        assert FilterEvaluator().matches(flt, {"customer_phone": None}) is expected

    def test_missing_key_treated_as_null(self):
        flt = make_filter("lead_value", FieldType.NUMBER, Operator.GREATER_THAN, 0)
        assert not FilterEvaluator().matches(flt, {})


class TestTypeChecks:
    """Test runtime type mismatches raise."""

    def test_text_in_number_column_raises(self):
        flt = make_filter("product_price", FieldType.NUMBER, Operator.GREATER_THAN, 10)
        with pytest.raises(TypeMismatchError) as exc_info:
            FilterEvaluator().matches(flt, {"product_price": "cheap"})
        assert exc_info.value.kind == "type_mismatch"

    def test_bool_is_not_a_number(self):
        with pytest.raises(TypeMismatchError):
            check_value("product_stock", FieldType.NUMBER, True)

    def test_illegal_operator_raises(self):
        """Test operators outside the type's legal set never evaluate."""
        flt = make_filter("product_price", FieldType.NUMBER, Operator.CONTAINS, "1")
        with pytest.raises(TypeMismatchError):
            FilterEvaluator().matches(flt, {"product_price": 10})

    def test_matches_all_is_conjunctive(self):
        evaluator = FilterEvaluator()
        filters = [
            make_filter("order_status", FieldType.ENUM, Operator.EQUALS, "completed"),
            make_filter("order_total", FieldType.NUMBER, Operator.GREATER_THAN, 500),
        ]
        assert evaluator.matches_all(filters, {"order_status": "completed", "order_total": 1250})
        assert not evaluator.matches_all(filters, {"order_status": "completed", "order_total": 400})
        assert evaluator.matches_all([], {"order_status": "pending"})
