"""
Export of report results to CSV, PNG chart images and PDF documents.

All functions are pure transforms of an already shaped result.
"""

import csv
import io
import xml.sax.saxutils as saxutils
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional, Sequence, Tuple, Union
import logging

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend
from matplotlib.figure import Figure
import pytz

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer, Image

from ..core.exceptions import ShapeError
from .definitions import ChartType
from .fields import FieldRegistry
from .output import ChartResult, SummaryResult, TableResult

logger = logging.getLogger(__name__)

Result = Union[TableResult, ChartResult, SummaryResult]

CHART_COLORS = [
    "#DC143C", "#1A1A1A", "#4CAF50", "#FF9800", "#2196F3",
    "#9C27B0", "#607D8B", "#795548", "#E91E63", "#00BCD4",
]


def _label(field_id: str, registry: Optional[FieldRegistry]) -> str:
    if registry is None:
        return field_id
    field = registry.get(field_id)
    return field.label if field else field_id


def format_value(value: Any) -> str:
    """Render a scalar for text output."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat(sep=" ", timespec="seconds")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def as_table(result: Result) -> Tuple[List[str], List[List[Any]]]:
    """Tabular view of any result: column ids and row values."""
    if isinstance(result, TableResult):
        columns = list(result.columns)
        return columns, [[row.get(c) for c in columns] for row in result.rows]
    if isinstance(result, ChartResult):
        return [result.x_field, result.y_field], [[p.x, p.y] for p in result.series]
    return ["field", "aggregate", "value"], [[m.field, m.aggregate, m.value] for m in result.metrics]


def to_csv(result: Result, registry: Optional[FieldRegistry] = None, delimiter: str = ";") -> bytes:
    """
    Returns CSV bytes optimized for Excel (UTF-8 with BOM).

    Args:
        result: Shaped report result
        registry: Used to print field labels in the header row
        delimiter: Column delimiter
    """
    columns, rows = as_table(result)
    if isinstance(result, SummaryResult):
        header = ["Field", "Aggregate", "Value"]
        rows = [[_label(r[0], registry), r[1], r[2]] for r in rows]
    else:
        header = [_label(c, registry) for c in columns]

    output = io.StringIO(newline="")
    writer = csv.writer(output, delimiter=delimiter)
    writer.writerow(header)
    for row in rows:
        writer.writerow([format_value(v) for v in row])
    return b"\xef\xbb\xbf" + output.getvalue().encode("utf-8")


def _numeric(value: Any, field_id: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ShapeError(f"chart values of {field_id} must be numeric")
    return float(value)


def to_chart_image(
    chart: ChartResult,
    title: Optional[str] = None,
    registry: Optional[FieldRegistry] = None,
    dpi: int = 120,
) -> bytes:
    """
    Render a chart result as a PNG image.

    Raises:
        ShapeError: If the series cannot be drawn (e.g. negative pie slices)
    """
    labels = [format_value(p.x) or "(empty)" for p in chart.series]
    values = [_numeric(p.y, chart.y_field) for p in chart.series]

    if chart.chart_type == ChartType.PIE and any(v < 0 for v in values):
        raise ShapeError("pie chart values must not be negative")

    fig = Figure(figsize=(10, 5))
    ax = fig.add_subplot(111)

    if not values or (chart.chart_type == ChartType.PIE and sum(values) == 0):
        ax.text(0.5, 0.5, "No data", ha="center", va="center", fontsize=14, color="#7f8c8d")
        ax.set_axis_off()
    elif chart.chart_type == ChartType.PIE:
        ax.pie(values, labels=labels, autopct="%1.1f%%", colors=CHART_COLORS[:len(values)] or None,
               startangle=90, counterclock=False)
        ax.axis("equal")
    else:
        positions = list(range(len(values)))
        if chart.chart_type == ChartType.BAR:
            ax.bar(positions, values, color=CHART_COLORS[0])
        elif chart.chart_type == ChartType.LINE:
            ax.plot(positions, values, color=CHART_COLORS[0], marker="o")
        else:
            ax.fill_between(positions, values, color=CHART_COLORS[0], alpha=0.35)
            ax.plot(positions, values, color=CHART_COLORS[0])
        ax.set_xticks(positions)
        ax.set_xticklabels(labels, rotation=30 if len(labels) > 6 else 0, ha="right" if len(labels) > 6 else "center")
        ax.set_xlabel(_label(chart.x_field, registry))
        ax.set_ylabel(_label(chart.y_field, registry))
        ax.grid(axis="y", alpha=0.3)

    if title:
        ax.set_title(title)

    logger.debug(f"Rendering {chart.chart_type.value} chart with {len(values)} point(s) at {dpi} dpi")
    buffer = io.BytesIO()
    fig.savefig(buffer, format="png", dpi=dpi, bbox_inches="tight")
    return buffer.getvalue()


class PdfReportGenerator:
    """Generates PDF documents from report results using ReportLab."""

    def __init__(self, registry: Optional[FieldRegistry] = None, dpi: int = 120, pagesize=A4):
        self.registry = registry
        self.dpi = dpi
        self.pagesize = pagesize
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        self.styles.add(ParagraphStyle(
            name="ReportTitle",
            parent=self.styles["Heading1"],
            fontSize=18,
            spaceAfter=0.5 * cm,
            alignment=TA_CENTER,
            textColor=colors.HexColor("#2c3e50"),
        ))
        self.styles.add(ParagraphStyle(
            name="ReportSubTitle",
            parent=self.styles["Normal"],
            fontSize=10,
            spaceAfter=1 * cm,
            alignment=TA_CENTER,
            textColor=colors.HexColor("#7f8c8d"),
        ))

    def generate(self, result: Result, title: str, description: Optional[str] = None) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=self.pagesize,
            rightMargin=1.5 * cm,
            leftMargin=1.5 * cm,
            topMargin=2 * cm,
            bottomMargin=2 * cm,
            title=title,
        )

        story = [Paragraph(saxutils.escape(title), self.styles["ReportTitle"])]
        generated = datetime.now(pytz.UTC).strftime("%Y-%m-%d %H:%M UTC")
        story.append(Paragraph(f"Generated: {generated}", self.styles["ReportSubTitle"]))
        if description:
            story.append(Paragraph(saxutils.escape(description), self.styles["Normal"]))
            story.append(Spacer(1, 0.4 * cm))

        if isinstance(result, ChartResult):
            png = to_chart_image(result, registry=self.registry, dpi=self.dpi)
            img = Image(io.BytesIO(png), width=17 * cm, height=8.5 * cm, kind="proportional")
            img.hAlign = "CENTER"
            story.append(img)
            story.append(Spacer(1, 0.5 * cm))

        story.append(self._table(result))

        def add_page_number(canvas, doc):
            width, _ = doc.pagesize
            canvas.saveState()
            canvas.setFont("Helvetica", 8)
            canvas.setStrokeColor(colors.HexColor("#e2e8f0"))
            canvas.line(1.5 * cm, 1.5 * cm, width - 1.5 * cm, 1.5 * cm)
            canvas.drawCentredString(width / 2.0, 1 * cm, f"Page {canvas.getPageNumber()}")
            canvas.restoreState()

        doc.build(story, onFirstPage=add_page_number, onLaterPages=add_page_number)
        return buffer.getvalue()

    def _table(self, result: Result) -> Table:
        columns, rows = as_table(result)
        if isinstance(result, SummaryResult):
            headers = ["Field", "Aggregate", "Value"]
            rows = [[_label(r[0], self.registry), r[1], r[2]] for r in rows]
        else:
            headers = [_label(c, self.registry) for c in columns]

        table_data: List[Sequence[str]] = [headers]
        table_data += [[format_value(v) for v in row] for row in rows]
        if len(table_data) == 1:
            table_data.append(["No rows"] + [""] * (len(headers) - 1))

        available_width = 18 * cm
        col_widths = [available_width / len(headers)] * len(headers)
        t = Table(table_data, hAlign="LEFT", colWidths=col_widths, repeatRows=1)

        style = [
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f8f9fa")),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.HexColor("#2c3e50")),
            ("ALIGN", (0, 0), (-1, -1), "LEFT"),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 8),
            ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
            ("TOPPADDING", (0, 0), (-1, -1), 4),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#e2e8f0")),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ]
        for i in range(2, len(table_data), 2):
            style.append(("BACKGROUND", (0, i), (-1, i), colors.HexColor("#f9fbff")))
        t.setStyle(TableStyle(style))
        return t


def to_pdf(
    result: Result,
    title: str,
    description: Optional[str] = None,
    registry: Optional[FieldRegistry] = None,
    dpi: int = 120,
) -> bytes:
    """Render any report result as a PDF document."""
    return PdfReportGenerator(registry=registry, dpi=dpi).generate(result, title, description)
