"""PDF export of the current budget plan."""

from __future__ import annotations

import io
import logging
from datetime import datetime
from xml.sax.saxutils import escape
from typing import Dict, List, Optional, Sequence, Tuple

import plotly.io as pio
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Image as RLImage
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .formatting import format_currency, format_hours, format_percent
from .models import BudgetParameters, IterationRecord
from .projection import consumption_summary, consumption_table, project
from .visualization import create_cumulative_chart

logger = logging.getLogger(__name__)

REPORT_TITLE = "Budget Visualization Report"
TABLE_HEADERS = ['Iteration #', 'Hours', 'Cost', 'Cumulative', 'Remaining', 'Consumed (%)']
CHART_PLACEHOLDER = "Error capturing chart visualization"

CURRENT_ROW_COLOR = colors.HexColor("#e0e7ff")
EXHAUSTION_ROW_COLOR = colors.HexColor("#fee2e2")
HEADER_COLOR = colors.HexColor("#4f46e5")


def figure_to_png(figure, width: int = 1000, height: int = 500) -> Optional[bytes]:
    """Rasterize a plotly figure, or None when no image engine is usable."""
    try:
        return pio.to_image(figure, format='png', width=width, height=height)
    except (ValueError, RuntimeError, OSError) as e:
        logger.warning("Chart rasterization failed: %s", e)
        return None


def _parameter_lines(parameters: BudgetParameters) -> List[str]:
    cur = escape(parameters.currency)
    return [
        f"<b>Cost per hour:</b> {format_currency(parameters.cost_per_hour, cur)}",
        f"<b>Budget size:</b> {format_currency(parameters.budget_size, cur)}",
        f"<b>Team size:</b> {parameters.team_size}",
        f"<b>Working days per iteration:</b> {parameters.working_days_per_iteration:g}",
        f"<b>Standard iteration cost:</b> {format_currency(parameters.standard_iteration_cost, cur)}",
    ]


def _summary_table(parameters: BudgetParameters, iterations: Sequence[IterationRecord]) -> Table:
    summary = consumption_summary(parameters, iterations)
    cur = parameters.currency
    data = [
        ['Total Budget', 'Consumed', 'Remaining'],
        [
            format_currency(summary['total'], cur),
            f"{format_currency(summary['consumed'], cur)} ({format_percent(summary['percent'])})",
            format_currency(summary['remaining'], cur),
        ],
    ]
    table = Table(data, colWidths=[170, 170, 170])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f3f4f6")),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 1), (-1, 1), 12),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("BOX", (0, 0), (-1, -1), 0.5, colors.grey),
        ("INNERGRID", (0, 0), (-1, -1), 0.3, colors.lightgrey),
    ]))
    return table


def table_rows(
    parameters: BudgetParameters, iterations: Sequence[IterationRecord],
) -> Tuple[List[List[str]], Dict[int, str]]:
    """Formatted table body plus highlights keyed by table row (header is row 0).

    A row is highlighted as ``'exhaustion'`` or ``'current'``; exhaustion wins
    when both apply.
    """
    frame = consumption_table(parameters, iterations)
    cur = parameters.currency
    data = [list(TABLE_HEADERS)]
    highlights: Dict[int, str] = {}
    for idx, row in enumerate(frame.to_dict('records'), start=1):
        data.append([
            str(row['Iteration']),
            format_hours(row['Hours']),
            format_currency(row['Cost'], cur),
            format_currency(row['Cumulative'], cur),
            format_currency(row['Remaining'], cur),
            format_percent(row['Consumed (%)']),
        ])
        if row['Exhaustion']:
            highlights[idx] = 'exhaustion'
        elif row['Current']:
            highlights[idx] = 'current'
    return data, highlights


def _iteration_table(parameters: BudgetParameters, iterations: Sequence[IterationRecord]) -> Table:
    data, highlights = table_rows(parameters, iterations)
    style = [
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("ALIGN", (0, 0), (-1, 0), "CENTER"),
        ("ALIGN", (1, 1), (-1, -1), "RIGHT"),
        ("GRID", (0, 0), (-1, -1), 0.3, colors.grey),
    ]
    for idx, kind in highlights.items():
        if kind == 'exhaustion':
            style.append(("BACKGROUND", (0, idx), (-1, idx), EXHAUSTION_ROW_COLOR))
            style.append(("FONTNAME", (0, idx), (-1, idx), "Helvetica-Bold"))
        else:
            style.append(("BACKGROUND", (0, idx), (-1, idx), CURRENT_ROW_COLOR))

    table = Table(data, repeatRows=1)
    table.setStyle(TableStyle(style))
    return table


def build_pdf_report(
    parameters: BudgetParameters,
    iterations: Sequence[IterationRecord],
    figure=None,
    generated_on: Optional[datetime] = None,
) -> bytes:
    """Compose the A4 budget report and return the PDF bytes.

    When ``figure`` is omitted the cumulative chart is built from the
    projection. A chart that cannot be rasterized is replaced by a text
    placeholder so the rest of the report still renders.
    """
    generated_on = generated_on or datetime.now()
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf, pagesize=A4, rightMargin=36, leftMargin=36, topMargin=36, bottomMargin=36,
        title=REPORT_TITLE,
    )
    styles = getSampleStyleSheet()
    story = []

    story.append(Paragraph(f"<b>{REPORT_TITLE}</b>", styles["Title"]))
    story.append(Paragraph(f"Generated on {generated_on.strftime('%Y-%m-%d %H:%M')}", styles["Normal"]))
    story.append(Spacer(1, 12))

    story.append(Paragraph("Budget Parameters", styles["Heading2"]))
    for line in _parameter_lines(parameters):
        story.append(Paragraph(line, styles["Normal"]))
    story.append(Spacer(1, 12))

    story.append(_summary_table(parameters, iterations))
    story.append(Spacer(1, 12))

    if figure is None:
        figure = create_cumulative_chart(
            project(parameters, iterations),
            currency=parameters.currency,
            budget_size=parameters.budget_size,
        )
    png = figure_to_png(figure)
    if png is not None:
        story.append(RLImage(io.BytesIO(png), width=500, height=250))
    else:
        story.append(Paragraph(f"<i>{CHART_PLACEHOLDER}</i>", styles["Normal"]))
    story.append(Spacer(1, 12))

    story.append(Paragraph("Iteration Breakdown", styles["Heading2"]))
    if iterations:
        story.append(_iteration_table(parameters, iterations))
        story.append(Spacer(1, 8))
        story.append(Paragraph(
            "Highlighted in blue: current iteration. Highlighted in red: the iteration "
            "in which the budget is exhausted.",
            styles["Italic"],
        ))
    else:
        story.append(Paragraph("No iterations recorded.", styles["Normal"]))

    doc.build(story)
    buf.seek(0)
    logger.info("Built PDF report with %d iterations", len(iterations))
    return buf.getvalue()


def report_filename(generated_on: Optional[datetime] = None) -> str:
    generated_on = generated_on or datetime.now()
    return f"budget-report-{generated_on.strftime('%Y-%m-%d')}.pdf"
