"""Unit tests for the report executor."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from erp_reporting.core.exceptions import (
    MissingColumnError,
    ReportCancelledError,
    RowSourceError,
    ShapeError,
    TypeMismatchError,
)
from erp_reporting.reporting.definitions import OrderBy, TableReport
from erp_reporting.reporting.executor import ReportExecutor
from erp_reporting.reporting.fields import FieldRegistry, FieldType, ReportField
from erp_reporting.reporting.output import ChartResult, SummaryResult, TableResult
from erp_reporting.reporting.row_source import CancellationToken, InMemoryRowSource
from erp_reporting.reporting.validator import ConfigValidator


SALES_FIELDS = [
    ReportField(id="category", table="sales", label="Category", type=FieldType.TEXT),
    ReportField(id="region", table="sales", label="Region", type=FieldType.TEXT),
    ReportField(id="revenue", table="sales", label="Revenue", type=FieldType.NUMBER),
    ReportField(id="price", table="sales", label="Price", type=FieldType.NUMBER),
    ReportField(id="sold_on", table="sales", label="Sold On", type=FieldType.DATE),
]


@pytest.fixture
def registry():
    return FieldRegistry(SALES_FIELDS)


@pytest.fixture
def validator(registry):
    return ConfigValidator(registry)


@pytest.fixture
def executor(registry):
    return ReportExecutor(registry)


def run(executor, config, rows, token=None):
    return asyncio.run(executor.execute(config, InMemoryRowSource(rows), token))


class FailingSource:
    """Row source whose connection drops after the first row."""

    async def fetch(self, tables, cancel_token):
        yield {"category": "Electronics", "revenue": 1}
        raise ConnectionError("connection reset by peer")


class TestReportExecutor:
    """Test ReportExecutor."""

    def test_group_by_counts_rows(self, executor, validator):
        """Test grouping by category yields one row per category with counts."""
        config = validator.validate({
            "name": "By category",
            "fields": ["category", "revenue"],
            "groupBy": ["category"],
        }).unwrap()
        rows = [
            {"category": "Electronics", "revenue": 100},
            {"category": "Electronics", "revenue": 50},
            {"category": "Furniture", "revenue": 30},
        ]

        result = run(executor, config, rows)

        assert isinstance(result, TableResult)
        assert result.columns == ("category", "revenue")
        assert list(result.rows) == [
            {"category": "Electronics", "revenue": 2},
            {"category": "Furniture", "revenue": 1},
        ]

    def test_between_on_price(self, executor, validator):
        """Test between keeps only rows inside the range."""
        config = validator.validate({
            "name": "Mid price",
            "fields": ["price"],
            "filters": [{"field": "price", "operator": "between", "value": [100000, 500000]}],
        }).unwrap()
        rows = [{"price": 50000}, {"price": 275000}, {"price": 1200000}]

        result = run(executor, config, rows)

        assert [r["price"] for r in result.rows] == [275000]

    def test_pie_with_duplicate_categories_raises(self, executor, validator):
        """Test a pie chart with repeated x values after grouping fails to shape."""
        config = validator.validate({
            "name": "Pie",
            "type": "chart",
            "chartType": "pie",
            "fields": ["category", "region", "revenue"],
            "groupBy": ["category", "region"],
        }).unwrap()
        rows = [
            {"category": "Electronics", "region": "North", "revenue": 1},
            {"category": "Electronics", "region": "South", "revenue": 2},
        ]

        with pytest.raises(ShapeError):
            run(executor, config, rows)

    def test_execute_is_idempotent(self, executor, validator):
        config = validator.validate({
            "name": "Sorted",
            "fields": ["category", "price"],
            "orderBy": [{"field": "price", "direction": "desc"}],
        }).unwrap()
        rows = [{"category": "A", "price": 3}, {"category": "B", "price": 7}, {"category": "C", "price": 5}]
        assert run(executor, config, rows) == run(executor, config, rows)

    def test_filters_are_conjunctive(self, executor, validator):
        config = validator.validate({
            "name": "Both",
            "fields": ["category"],
            "filters": [
                {"field": "category", "operator": "equals", "value": "electronics"},
                {"field": "price", "operator": "greater_than", "value": 10},
            ],
        }).unwrap()
        rows = [
            {"category": "Electronics", "price": 20},
            {"category": "Electronics", "price": 5},
            {"category": "Furniture", "price": 50},
        ]
        assert list(run(executor, config, rows).rows) == [{"category": "Electronics"}]

    def test_sort_is_stable_with_multiple_keys(self, executor, validator):
        """Test ties keep input order and secondary keys apply within ties."""
        config = validator.validate({
            "name": "Multi sort",
            "fields": ["category", "region", "price"],
            "orderBy": [{"field": "category"}, {"field": "price", "direction": "desc"}],
        }).unwrap()
        rows = [
            {"category": "B", "region": "r1", "price": 1},
            {"category": "A", "region": "r2", "price": 5},
            {"category": "A", "region": "r3", "price": 5},
            {"category": "A", "region": "r4", "price": 9},
        ]

        result = run(executor, config, rows)

        assert [r["region"] for r in result.rows] == ["r4", "r2", "r3", "r1"]

    def test_nulls_sort_last(self, executor, validator):
        for direction in ("asc", "desc"):
            config = validator.validate({
                "name": "Nulls",
                "fields": ["price"],
                "orderBy": [{"field": "price", "direction": direction}],
            }).unwrap()
            result = run(executor, config, [{"price": None}, {"price": 2}, {"price": 1}])
            assert result.rows[-1]["price"] is None

    def test_sort_on_dropped_column_raises(self, executor):
        """Test a hand-built config ordering by a column grouping removed raises MissingColumnError."""
        config = TableReport(
            name="Grouped",
            fields=("category",),
            group_by=("category",),
            order_by=(OrderBy(field="price"),),
        )
        with pytest.raises(MissingColumnError):
            run(executor, config, [{"category": "A", "price": 1}])

    def test_date_range_narrows_rows(self, executor, validator):
        config = validator.validate({
            "name": "March",
            "fields": ["sold_on"],
            "dateRange": {"field": "sold_on", "start": "2024-03-01", "end": "2024-03-31"},
        }).unwrap()
        rows = [{"sold_on": date(2024, 2, 29)}, {"sold_on": date(2024, 3, 31)}, {"sold_on": None}]
        assert [r["sold_on"] for r in run(executor, config, rows).rows] == [date(2024, 3, 31)]

    def test_type_mismatch_aborts_report(self, executor, validator):
        config = validator.validate({
            "name": "Bad data",
            "fields": ["price"],
            "filters": [{"field": "price", "operator": "greater_than", "value": 1}],
        }).unwrap()
        with pytest.raises(TypeMismatchError):
            run(executor, config, [{"price": 5}, {"price": "five"}])

    def test_row_source_failure_wrapped(self, executor, validator):
        """Test arbitrary source errors surface as retryable RowSourceError."""
        config = validator.validate({"name": "Flaky", "fields": ["category"]}).unwrap()
        with pytest.raises(RowSourceError) as exc_info:
            asyncio.run(executor.execute(config, FailingSource()))
        assert exc_info.value.retryable is True
        assert exc_info.value.kind == "row_source_failure"

    def test_snapshot_missing_table_fails(self, executor, validator):
        config = validator.validate({"name": "Sales", "fields": ["category"]}).unwrap()
        source = InMemoryRowSource([], tables={"orders"})
        with pytest.raises(RowSourceError):
            asyncio.run(executor.execute(config, source))

    def test_cancelled_token_aborts(self, executor, validator):
        config = validator.validate({"name": "Cancelled", "fields": ["category"]}).unwrap()
        token = CancellationToken()
        token.cancel()
        with pytest.raises(ReportCancelledError):
            run(executor, config, [{"category": "A"}], token)

    def test_chart_result_axes(self, executor, validator):
        config = validator.validate({
            "name": "Revenue by category",
            "type": "chart",
            "chartType": "bar",
            "fields": ["category", "revenue"],
        }).unwrap()
        rows = [{"category": "A", "revenue": Decimal("10")}, {"category": "B", "revenue": Decimal("4")}]

        result = run(executor, config, rows)

        assert isinstance(result, ChartResult)
        assert result.x_field == "category"
        assert result.y_field == "revenue"
        assert [(p.key, p.x, p.y) for p in result.series] == [
            ("revenue", "A", Decimal("10")),
            ("revenue", "B", Decimal("4")),
        ]

    def test_summary_counts_values(self, executor, validator):
        config = validator.validate({"name": "Summary", "type": "summary", "fields": ["category", "price"]}).unwrap()
        result = run(executor, config, [{"category": "A", "price": 1}, {"category": "B", "price": None}])

        assert isinstance(result, SummaryResult)
        assert [(m.field, m.aggregate, m.value) for m in result.metrics] == [
            ("category", "count", 2),
            ("price", "count", 1),
        ]

    def test_run_sync_wrapper(self, executor, validator):
        config = validator.validate({"name": "Sync", "fields": ["category"]}).unwrap()
        result = executor.run(config, InMemoryRowSource([{"category": "A"}]))
        assert list(result.rows) == [{"category": "A"}]
