"""Unit tests for report configuration validation."""

from datetime import date
from decimal import Decimal

import pytest

from erp_reporting.core.exceptions import ReportValidationError
from erp_reporting.reporting.definitions import ChartReport, ReportConfig, SummaryReport, TableReport
from erp_reporting.reporting.fields import default_registry
from erp_reporting.reporting.validator import ConfigValidator, IssueKind


@pytest.fixture
def validator():
    return ConfigValidator(default_registry())


class TestConfigValidator:
    """Test ConfigValidator."""

    def test_valid_table_config(self, validator):
        """Test a well-formed config validates to a TableReport."""
        outcome = validator.validate({
            "name": "Open orders",
            "type": "table",
            "fields": ["order_number", "order_total"],
            "filters": [{"field": "order_status", "operator": "equals", "value": "pending"}],
            "orderBy": [{"field": "order_total", "direction": "desc"}],
        })
        assert outcome.ok
        assert isinstance(outcome.config, TableReport)
        assert outcome.config.filters[0].value == "pending"

    def test_contains_on_number_is_rejected(self, validator):
        """Test contains on a Number field yields invalid_operator_for_type."""
        outcome = validator.validate({
            "name": "Bad filter",
            "fields": ["product_name"],
            "filters": [{"field": "product_price", "operator": "contains", "value": "1"}],
        })
        assert not outcome.ok
        assert [e.kind for e in outcome.errors] == [IssueKind.INVALID_OPERATOR_FOR_TYPE]
        assert outcome.errors[0].location == "filters[0].operator"

    def test_every_unknown_field_reported(self, validator):
        """Test one unknown_field issue per unknown id across all sections."""
        outcome = validator.validate({
            "name": "Typos",
            "fields": ["product_nam", "product_price"],
            "filters": [{"field": "product_colour", "operator": "equals", "value": "red"}],
            "groupBy": ["product_categ"],
            "orderBy": [{"field": "product_weight"}],
        })
        unknown = [e for e in outcome.errors if e.kind == IssueKind.UNKNOWN_FIELD]
        assert sorted(e.field for e in unknown) == ["product_categ", "product_colour", "product_nam", "product_weight"]
        assert outcome.config is None

    def test_issues_accumulate_across_checks(self, validator):
        outcome = validator.validate({
            "name": "Many problems",
            "type": "chart",
            "fields": ["order_total"],
            "filters": [{"field": "order_total", "operator": "between", "value": [1]}],
            "dateRange": {"field": "order_date", "start": "2024-05-01", "end": "2024-04-01"},
        })
        kinds = {e.kind for e in outcome.errors}
        assert kinds == {IssueKind.ARITY_MISMATCH, IssueKind.MISSING_CHART_TYPE, IssueKind.INVALID_DATE_RANGE}

    def test_between_values_parsed(self, validator):
        outcome = validator.validate({
            "name": "Mid-range",
            "fields": ["product_name"],
            "filters": [{"field": "product_price", "operator": "between", "value": ["100", 500]}],
        })
        assert outcome.ok
        assert outcome.config.filters[0].value == (Decimal("100"), 500)

    def test_date_values_parsed(self, validator):
        outcome = validator.validate({
            "name": "Recent",
            "fields": ["order_number"],
            "filters": [{"field": "order_date", "operator": "greater_than", "value": "2024-03-01"}],
        })
        assert outcome.config.filters[0].value == date(2024, 3, 1)

    @pytest.mark.parametrize("operator,value", [
        ("in", []),
        ("in", "pending"),
        ("equals", ["pending", "completed"]),
    ])
    def test_arity_mismatch(self, validator, operator, value):
        outcome = validator.validate({
            "name": "Arity",
            "fields": ["order_number"],
            "filters": [{"field": "order_status", "operator": operator, "value": value}],
        })
        assert [e.kind for e in outcome.errors] == [IssueKind.ARITY_MISMATCH]

    def test_invalid_filter_value(self, validator):
        outcome = validator.validate({
            "name": "Bad number",
            "fields": ["product_name"],
            "filters": [{"field": "product_price", "operator": "greater_than", "value": "lots"}],
        })
        assert [e.kind for e in outcome.errors] == [IssueKind.INVALID_FILTER_VALUE]

    def test_date_range_on_non_date_field(self, validator):
        outcome = validator.validate({
            "name": "Wrong range",
            "fields": ["order_number"],
            "dateRange": {"field": "order_total", "start": "2024-01-01", "end": "2024-12-31"},
        })
        assert [e.kind for e in outcome.errors] == [IssueKind.INVALID_DATE_RANGE]

    def test_empty_and_duplicate_fields(self, validator):
        assert [e.kind for e in validator.validate({"name": "Empty", "fields": []}).errors] == [IssueKind.EMPTY_FIELDS]
        outcome = validator.validate({"name": "Dup", "fields": ["order_number", "order_number"]})
        assert [e.kind for e in outcome.errors] == [IssueKind.DUPLICATE_FIELD]

    def test_chart_type_dropped_for_table(self, validator):
        outcome = validator.validate({"name": "T", "type": "table", "chartType": "bar", "fields": ["order_number"]})
        assert outcome.ok
        assert "chartType" not in outcome.config.to_config().to_payload()

    def test_chart_and_summary_variants(self, validator):
        chart = validator.validate({
            "name": "C", "type": "chart", "chartType": "bar",
            "fields": ["product_category", "product_name"], "groupBy": ["product_category"],
        })
        assert isinstance(chart.config, ChartReport)
        summary = validator.validate({"name": "S", "type": "summary", "fields": ["order_total"]})
        assert isinstance(summary.config, SummaryReport)

    def test_pie_with_two_series_rejected(self, validator):
        outcome = validator.validate({
            "name": "Pie", "type": "chart", "chartType": "pie",
            "fields": ["product_category", "product_price", "product_cost"],
        })
        assert [e.kind for e in outcome.errors] == [IssueKind.TOO_MANY_PIE_SERIES]

    def test_grouped_order_by_must_be_in_output(self, validator):
        """Test ordering a grouped report by a column grouping drops is rejected."""
        outcome = validator.validate({
            "name": "Grouped",
            "fields": ["product_category"],
            "groupBy": ["product_category"],
            "orderBy": [{"field": "product_category"}, {"field": "product_price", "direction": "desc"}],
        })
        assert not outcome.ok
        assert [(e.kind, e.location) for e in outcome.errors] == [
            (IssueKind.ORDER_BY_NOT_IN_OUTPUT, "orderBy[1].field"),
        ]

    def test_ungrouped_order_by_any_field(self, validator):
        outcome = validator.validate({
            "name": "Products",
            "fields": ["product_name"],
            "orderBy": [{"field": "product_price"}],
        })
        assert outcome.ok

    def test_unwrap_raises_with_all_issues(self, validator):
        outcome = validator.validate({"name": "X", "fields": ["nope", "also_nope"]})
        with pytest.raises(ReportValidationError) as exc_info:
            outcome.unwrap()
        assert len(exc_info.value.details["errors"]) == 2
        assert exc_info.value.details["errors"][0]["kind"] == "unknown_field"

    def test_persisted_round_trip(self, validator):
        """Test a validated config survives serialize and re-validate unchanged."""
        original = validator.validate({
            "name": "Round trip",
            "description": "Orders by customer",
            "type": "chart",
            "chartType": "line",
            "fields": ["order_date", "order_total"],
            "filters": [
                {"field": "order_total", "operator": "between", "value": ["10.50", 2000]},
                {"field": "customer_company", "operator": "in", "value": ["Acme", "Globex"], "label": "Key accounts"},
                {"field": "order_date", "operator": "greater_than", "value": "2024-01-01"},
            ],
            "orderBy": [{"field": "order_date"}],
            "dateRange": {"field": "order_date", "start": "2024-01-01", "end": "2024-12-31"},
        }).unwrap()

        payload = original.to_config().to_payload()
        restored = validator.validate(ReportConfig.model_validate(payload)).unwrap()
        assert restored == original
