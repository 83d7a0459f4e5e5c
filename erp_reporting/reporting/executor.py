"""Report execution pipeline: filter, date range, group, sort, shape."""

from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
import asyncio
import logging

from ..core.exceptions import ExecutionError, MissingColumnError, RowSourceError
from .aggregates import Aggregator, Count
from .definitions import SortDirection, ValidatedConfig
from .fields import FieldRegistry, FieldType
from .filters import FilterEvaluator, check_value
from .output import ChartResult, OutputAdapter, SummaryResult, TableResult
from .row_source import CancellationToken, Row, RowSource

logger = logging.getLogger(__name__)

Result = Union[TableResult, ChartResult, SummaryResult]


class ReportExecutor:
    """
    Executes validated report configurations against a row source.

    Each call works on its own snapshot of rows; nothing is shared between
    concurrent executions. Any failure aborts the whole report.
    """

    def __init__(
        self,
        registry: FieldRegistry,
        evaluator: Optional[FilterEvaluator] = None,
        aggregator: Optional[Aggregator] = None,
        output: Optional[OutputAdapter] = None,
    ):
        self.registry = registry
        self.evaluator = evaluator or FilterEvaluator()
        self.aggregator = aggregator or Count()
        self.output = output or OutputAdapter()

    async def execute(
        self,
        config: ValidatedConfig,
        source: RowSource,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Result:
        """
        Run the report pipeline.

        Args:
            config: Config produced by ConfigValidator
            source: Row source for the referenced tables
            cancel_token: Token checked while rows are fetched

        Returns:
            Shaped report result

        Raises:
            ExecutionError: On any type mismatch, row source failure or shape problem
        """
        token = cancel_token or CancellationToken()
        rows = await self.fetch(config, source, token)
        fetched = len(rows)

        rows = [row for row in rows if self.evaluator.matches_all(config.filters, row)]
        rows = self._narrow_date_range(config, rows)
        token.raise_if_cancelled()

        column_types = {field.id: field.type for field in self.registry}
        if config.group_by:
            rows, column_types = self._group(config, rows, column_types)

        rows = self._sort(config, rows, column_types)
        token.raise_if_cancelled()

        result = self.output.shape(rows, config, column_types)
        logger.info(
            f"Executed report '{config.name}': type={config.type} fetched={fetched} output_rows={len(rows)}"
        )
        return result

    async def fetch(self, config: ValidatedConfig, source: RowSource, token: CancellationToken) -> List[Row]:
        """Materialize the row snapshot for the tables the config references."""
        tables = self.registry.tables_for(config.referenced_fields())
        token.raise_if_cancelled()
        rows: List[Row] = []
        try:
            async for row in source.fetch(tables, token):
                token.raise_if_cancelled()
                rows.append(row)
        except (ExecutionError, asyncio.CancelledError):
            raise
        except Exception as e:
            logger.error(f"Row source failed for report '{config.name}': {e}", exc_info=True)
            raise RowSourceError(str(e) or e.__class__.__name__) from e
        return rows

    def _narrow_date_range(self, config: ValidatedConfig, rows: List[Row]) -> List[Row]:
        date_range = config.date_range
        if date_range is None:
            return rows
        narrowed = []
        for row in rows:
            raw = row.get(date_range.field)
            if raw is None:
                continue
            value = check_value(date_range.field, FieldType.DATE, raw)
            if date_range.start <= value <= date_range.end:
                narrowed.append(row)
        return narrowed

    def _group(
        self,
        config: ValidatedConfig,
        rows: List[Row],
        column_types: Dict[str, FieldType],
    ) -> Tuple[List[Row], Dict[str, FieldType]]:
        keys = config.group_by
        partitions: Dict[Tuple[Any, ...], List[Row]] = {}
        for row in rows:
            group_key = tuple(self._group_value(row, field_id, column_types[field_id]) for field_id in keys)
            partitions.setdefault(group_key, []).append(row)

        aggregated = [f for f in config.fields if f not in keys]
        grouped: List[Row] = []
        for group_key, members in partitions.items():
            key_values = dict(zip(keys, group_key))
            out: Row = {}
            for field_id in config.fields:
                if field_id in key_values:
                    out[field_id] = key_values[field_id]
                else:
                    out[field_id] = self.aggregator(field_id, members)
            for field_id in keys:
                out.setdefault(field_id, key_values[field_id])
            grouped.append(out)

        types = dict(column_types)
        for field_id in aggregated:
            types[field_id] = FieldType.NUMBER
        logger.debug(f"Grouped {len(rows)} rows into {len(grouped)} partitions by {list(keys)}")
        return grouped, types

    @staticmethod
    def _group_value(row: Row, field_id: str, field_type: FieldType) -> Any:
        raw = row.get(field_id)
        if raw is None:
            return None
        return check_value(field_id, field_type, raw)

    def _sort(self, config: ValidatedConfig, rows: List[Row], column_types: Mapping[str, FieldType]) -> List[Row]:
        if not config.order_by or not rows:
            return rows

        for order in config.order_by:
            for row in rows:
                if order.field not in row:
                    raise MissingColumnError(order.field)

        ordered = list(rows)
        # Stable sorts applied from the least significant key to the most significant
        for order in reversed(config.order_by):
            field_type = column_types[order.field]
            descending = order.direction == SortDirection.DESC

            def sort_key(row: Row, field_id=order.field, field_type=field_type, descending=descending):
                raw = row[field_id]
                if raw is None:
                    # Nulls last in both directions; reverse=True flips the rank
                    return (0, None) if descending else (1, None)
                value = check_value(field_id, field_type, raw)
                if field_type == FieldType.BOOLEAN:
                    value = int(value)
                return (1, value) if descending else (0, value)

            ordered.sort(key=sort_key, reverse=descending)
        return ordered

    def run(self, config: ValidatedConfig, source: RowSource, cancel_token: Optional[CancellationToken] = None) -> Result:
        """Synchronous entry point for workers without a running event loop."""
        return asyncio.run(self.execute(config, source, cancel_token))
