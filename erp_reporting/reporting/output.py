"""Shaping of final report rows into table, chart or summary results."""

from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Sequence, Tuple, Union
import logging

from pydantic import BaseModel, ConfigDict, Field

from ..core.exceptions import ShapeError
from .aggregates import Aggregator, Count
from .definitions import ChartReport, ChartType, SummaryReport, ValidatedConfig
from .fields import FieldType

logger = logging.getLogger(__name__)


class _Result(BaseModel):
    model_config = ConfigDict(frozen=True)


class TableResult(_Result):
    kind: Literal["table"] = "table"
    columns: Tuple[str, ...]
    rows: Tuple[Dict[str, Any], ...]


class ChartPoint(_Result):
    key: str
    x: Any
    y: Any


class ChartResult(_Result):
    kind: Literal["chart"] = "chart"
    chart_type: ChartType
    x_field: str
    y_field: str
    series: Tuple[ChartPoint, ...]


class SummaryMetric(_Result):
    field: str
    aggregate: str
    value: Any


class SummaryResult(_Result):
    kind: Literal["summary"] = "summary"
    metrics: Tuple[SummaryMetric, ...]


ReportResult = Annotated[Union[TableResult, ChartResult, SummaryResult], Field(discriminator="kind")]


class OutputAdapter:
    """Maps the executor's final rows to the output shape the config asks for."""

    def __init__(self, summary_aggregator: Optional[Aggregator] = None):
        self.summary_aggregator = summary_aggregator or Count(skip_nulls=True)

    def shape(
        self,
        rows: Sequence[Mapping[str, Any]],
        config: ValidatedConfig,
        column_types: Mapping[str, FieldType],
    ) -> Union[TableResult, ChartResult, SummaryResult]:
        if isinstance(config, ChartReport):
            return self._chart(rows, config, column_types)
        if isinstance(config, SummaryReport):
            return self._summary(rows, config)
        return self._table(rows, config)

    def _table(self, rows, config: ValidatedConfig) -> TableResult:
        columns = tuple(config.fields)
        return TableResult(
            columns=columns,
            rows=tuple({c: row.get(c) for c in columns} for row in rows),
        )

    def _chart(self, rows, config: ChartReport, column_types: Mapping[str, FieldType]) -> ChartResult:
        keys = set(config.group_by)

        y_field = next(
            (f for f in config.fields if f not in keys and column_types.get(f) == FieldType.NUMBER),
            None,
        )
        if y_field is None:
            raise ShapeError("chart needs a numeric or aggregated field for the value axis")

        x_field = next(
            (f for f in config.fields
             if f != y_field and (f in keys or column_types.get(f) != FieldType.NUMBER)),
            None,
        )
        if x_field is None:
            raise ShapeError("chart needs a categorical field for the x axis")

        series = tuple(ChartPoint(key=y_field, x=row.get(x_field), y=row.get(y_field)) for row in rows)

        if config.chart_type == ChartType.PIE:
            seen = set()
            for point in series:
                if point.x in seen:
                    raise ShapeError(
                        f"pie chart categories must be unique, '{point.x}' appears more than once in {x_field}",
                        details={"field": x_field},
                    )
                seen.add(point.x)

        logger.debug(f"Chart axes for '{config.name}': x={x_field} y={y_field}")
        return ChartResult(chart_type=config.chart_type, x_field=x_field, y_field=y_field, series=series)

    def _summary(self, rows, config: SummaryReport) -> SummaryResult:
        aggregate = self.summary_aggregator
        return SummaryResult(metrics=tuple(
            SummaryMetric(field=field_id, aggregate=aggregate.name, value=aggregate(field_id, rows))
            for field_id in config.fields
        ))
