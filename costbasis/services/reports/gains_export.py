# FILE: costbasis/services/reports/gains_export.py

"""
gains_export.py

Flat tabular exports of a GainsLossesResult.

Four CSV reports, each with a fixed column order:
    - disposals:      one row per DisposalEvent
    - asset_summary:  one row per asset plus a trailing TOTAL row
    - holdings:       one row per open holding
    - summary:        narrative block (period, method, headline metrics)

Every cell goes through escape_csv(): values containing a comma, a double
quote, or a newline are wrapped in double quotes, inner quotes doubled.

Formatting:
    - asset amounts => 8 decimals
    - money         => currency symbol + 2 decimals (e.g. "$1234.50", "$-3.00")
    - dates         => ISO (YYYY-MM-DD), US (M/D/YYYY) or EU (DD/MM/YYYY)

generate_gains_report_pdf() renders the same sections with reportlab for the
presentation layer. It is a readable report, not a tax form.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from xml.sax.saxutils import escape as xml_escape
from typing import Callable, Dict, List, Optional, Sequence

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.pdfgen.canvas import Canvas
from reportlab.platypus import (
    SimpleDocTemplate, Paragraph, Table, TableStyle, Spacer
)

from costbasis import config
from costbasis.constants import AMOUNT_DECIMALS, MONEY_DECIMALS
from costbasis.schemas.gains import COST_BASIS_METHODS, GainsLossesResult

logger = logging.getLogger(__name__)

DISPOSAL_HEADERS = [
    "Asset",
    "Disposal Date",
    "Amount",
    "Proceeds",
    "Cost Basis",
    "Gain/Loss",
    "Term",
    "Holding Period (Days)",
    "Exchange",
    "Transaction ID",
]

ASSET_SUMMARY_HEADERS = [
    "Asset",
    "Total Proceeds",
    "Total Cost Basis",
    "Net Gain/Loss",
    "Short-Term Gain",
    "Short-Term Loss",
    "Long-Term Gain",
    "Long-Term Loss",
    "Disposal Count",
]

HOLDINGS_HEADERS = [
    "Asset",
    "Amount",
    "Average Cost",
    "Total Cost Basis",
    "Earliest Acquisition",
    "Latest Acquisition",
    "Number of Lots",
]

DATE_FORMATS = ("ISO", "US", "EU")


@dataclass
class CSVExportOptions:
    include_headers: bool = True
    date_format: str = "ISO"
    currency_symbol: str = field(default_factory=lambda: config.CURRENCY_SYMBOL)

    def __post_init__(self):
        self.date_format = (self.date_format or "ISO").upper()
        if self.date_format not in DATE_FORMATS:
            raise ValueError(f"date_format must be one of {DATE_FORMATS}, got {self.date_format!r}")


# -----------------------------------------------------------------------------
# Formatting helpers
# -----------------------------------------------------------------------------
def escape_csv(val) -> str:
    """
    Standard CSV escaping: wrap in quotes if there's a comma, quote or newline.
    Double any existing quotes. None => ''.
    """
    if val is None:
        return ""
    text = str(val)
    if "," in text or '"' in text or "\n" in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def format_date(value: Optional[datetime], date_format: str = "ISO") -> str:
    if value is None:
        return ""
    if date_format == "US":
        return f"{value.month}/{value.day}/{value.year}"
    if date_format == "EU":
        return value.strftime("%d/%m/%Y")
    return value.strftime("%Y-%m-%d")


def format_amount(value: Decimal) -> str:
    return f"{Decimal(value):.{AMOUNT_DECIMALS}f}"


def format_money(value: Decimal, currency_symbol: str) -> str:
    return f"{currency_symbol}{Decimal(value):.{MONEY_DECIMALS}f}"


def _csv_line(cells: Sequence) -> str:
    return ",".join(escape_csv(c) for c in cells)


# -----------------------------------------------------------------------------
# Row builders (shared by CSV and PDF)
# -----------------------------------------------------------------------------
def _disposal_rows(result: GainsLossesResult, options: CSVExportOptions) -> List[List[str]]:
    sym = options.currency_symbol
    return [
        [
            event.asset,
            format_date(event.disposal_date, options.date_format),
            format_amount(event.amount),
            format_money(event.proceeds, sym),
            format_money(event.cost_basis, sym),
            format_money(event.gain_loss, sym),
            "Short-term" if event.short_term else "Long-term",
            str(event.holding_period),
            event.exchange or "",
            event.transaction_id,
        ]
        for event in result.disposal_events
    ]


def _asset_summary_rows(result: GainsLossesResult, options: CSVExportOptions) -> List[List[str]]:
    sym = options.currency_symbol
    rows = [
        [
            asset.asset,
            format_money(asset.total_proceeds, sym),
            format_money(asset.total_cost_basis, sym),
            format_money(asset.net_realized_gain_loss, sym),
            format_money(asset.short_term_gain, sym),
            format_money(asset.short_term_loss, sym),
            format_money(asset.long_term_gain, sym),
            format_money(asset.long_term_loss, sym),
            str(asset.disposal_count),
        ]
        for asset in result.asset_breakdown
    ]

    # Portfolio row: the short/long columns carry net figures, loss columns stay blank
    summary = result.summary
    rows.append([
        "TOTAL",
        format_money(summary.total_proceeds, sym),
        format_money(summary.total_cost_basis, sym),
        format_money(summary.net_realized_gain_loss, sym),
        format_money(summary.short_term_gain_loss, sym),
        "",
        format_money(summary.long_term_gain_loss, sym),
        "",
        str(len(result.disposal_events)),
    ])
    return rows


def _holdings_rows(result: GainsLossesResult, options: CSVExportOptions) -> List[List[str]]:
    sym = options.currency_symbol
    return [
        [
            holding.asset,
            format_amount(holding.total_amount),
            format_money(holding.average_cost, sym),
            format_money(holding.total_cost_basis, sym),
            format_date(holding.earliest_acquisition, options.date_format),
            format_date(holding.latest_acquisition, options.date_format),
            str(len(holding.lots)),
        ]
        for holding in result.current_holdings
    ]


def _summary_rows(result: GainsLossesResult, options: CSVExportOptions) -> List[List[str]]:
    sym = options.currency_symbol
    summary = result.summary
    period = f"{format_date(result.period.start)} - {format_date(result.period.end)}"
    return [
        ["Tax Report Summary"],
        ["Period", period],
        ["Cost Basis Method", COST_BASIS_METHODS[result.method]["label"]],
        [],
        ["Metric", "Value"],
        ["Total Proceeds", format_money(summary.total_proceeds, sym)],
        ["Total Cost Basis", format_money(summary.total_cost_basis, sym)],
        ["Net Realized Gain/Loss", format_money(summary.net_realized_gain_loss, sym)],
        ["Short-Term Gain/Loss", format_money(summary.short_term_gain_loss, sym)],
        ["Long-Term Gain/Loss", format_money(summary.long_term_gain_loss, sym)],
        ["Total Disposals", str(len(result.disposal_events))],
        ["Assets Traded", str(len(result.asset_breakdown))],
    ]


# -----------------------------------------------------------------------------
# CSV exports
# -----------------------------------------------------------------------------
def _generate_csv(headers: Optional[List[str]], rows: List[List[str]]) -> str:
    lines = []
    if headers:
        lines.append(_csv_line(headers))
    lines.extend(_csv_line(r) for r in rows)
    return "\n".join(lines)


def export_disposals_csv(result: GainsLossesResult, options: Optional[CSVExportOptions] = None) -> str:
    options = options or CSVExportOptions()
    headers = DISPOSAL_HEADERS if options.include_headers else None
    csv_data = _generate_csv(headers, _disposal_rows(result, options))
    logger.info("Generated disposals CSV, %d rows.", len(result.disposal_events))
    return csv_data


def export_asset_summary_csv(result: GainsLossesResult, options: Optional[CSVExportOptions] = None) -> str:
    options = options or CSVExportOptions()
    headers = ASSET_SUMMARY_HEADERS if options.include_headers else None
    return _generate_csv(headers, _asset_summary_rows(result, options))


def export_holdings_csv(result: GainsLossesResult, options: Optional[CSVExportOptions] = None) -> str:
    options = options or CSVExportOptions()
    headers = HOLDINGS_HEADERS if options.include_headers else None
    return _generate_csv(headers, _holdings_rows(result, options))


def export_summary_csv(result: GainsLossesResult, options: Optional[CSVExportOptions] = None) -> str:
    """Narrative block; it has its own layout so include_headers does not apply."""
    options = options or CSVExportOptions()
    return _generate_csv(None, _summary_rows(result, options))


REPORT_EXPORTERS: Dict[str, Callable[[GainsLossesResult, Optional[CSVExportOptions]], str]] = {
    "disposals": export_disposals_csv,
    "asset_summary": export_asset_summary_csv,
    "holdings": export_holdings_csv,
    "summary": export_summary_csv,
}


def export_tax_report(result: GainsLossesResult, options: Optional[CSVExportOptions] = None) -> Dict[str, str]:
    """All four CSV sections keyed by report name."""
    options = options or CSVExportOptions()
    return {name: exporter(result, options) for name, exporter in REPORT_EXPORTERS.items()}


# -----------------------------------------------------------------------------
# PDF
# -----------------------------------------------------------------------------
def generate_gains_report_pdf(result: GainsLossesResult, options: Optional[CSVExportOptions] = None) -> bytes:
    """
    Build a PDF with the summary block followed by the asset summary,
    disposals and holdings tables.
    """
    options = options or CSVExportOptions()
    buffer = BytesIO()
    styles = getSampleStyleSheet()

    heading_style = ParagraphStyle(
        name="Heading1Left",
        parent=styles["Heading1"],
        alignment=0,
        spaceBefore=12,
        spaceAfter=8,
    )
    section_style = ParagraphStyle(
        name="Heading2Left",
        parent=styles["Heading2"],
        alignment=0,
        spaceBefore=10,
        spaceAfter=6,
    )
    normal_style = styles["Normal"]
    wrapped_style = ParagraphStyle(
        name="Wrapped",
        parent=normal_style,
        fontSize=7,
        leading=9,
        wordWrap="CJK",
    )

    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(letter),
        leftMargin=0.5 * inch,
        rightMargin=0.5 * inch,
        topMargin=0.5 * inch,
        bottomMargin=0.75 * inch,
    )

    def on_page(canvas: Canvas, doc_obj):
        canvas.setFont("Helvetica", 8)
        canvas.drawString(0.5 * inch, 0.4 * inch, "Realized gains/losses report")
        canvas.drawRightString(10.5 * inch, 0.4 * inch, f"Page {doc_obj.page}")

    def table_for(headers: List[str], rows: List[List[str]]) -> Table:
        data = [[Paragraph(xml_escape(h), wrapped_style) for h in headers]]
        data.extend([Paragraph(xml_escape(cell), wrapped_style) for cell in r] for r in rows)
        table = Table(data, repeatRows=1)
        table.setStyle(TableStyle([
            ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
            ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
            ("ALIGN", (0, 0), (-1, -1), "LEFT"),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ]))
        return table

    story = [Paragraph("Realized Gains &amp; Losses", heading_style)]

    for row in _summary_rows(result, options)[1:]:
        if row and row[0] != "Metric":
            story.append(Paragraph(f"<b>{xml_escape(row[0])}:</b> {xml_escape(row[1])}", normal_style))
    story.append(Spacer(1, 0.2 * inch))

    story.append(Paragraph("Asset Summary", section_style))
    story.append(table_for(ASSET_SUMMARY_HEADERS, _asset_summary_rows(result, options)))

    story.append(Paragraph("Disposals", section_style))
    disposal_rows = _disposal_rows(result, options)
    if disposal_rows:
        story.append(table_for(DISPOSAL_HEADERS, disposal_rows))
    else:
        story.append(Paragraph("No disposals in this period.", normal_style))

    story.append(Paragraph("Current Holdings", section_style))
    holdings_rows = _holdings_rows(result, options)
    if holdings_rows:
        story.append(table_for(HOLDINGS_HEADERS, holdings_rows))
    else:
        story.append(Paragraph("No open holdings.", normal_style))

    if result.warnings:
        story.append(Paragraph("Input Warnings", section_style))
        for warning in result.warnings:
            story.append(Paragraph(xml_escape(warning), wrapped_style))

    doc.build(story, onFirstPage=on_page, onLaterPages=on_page)
    pdf_bytes = buffer.getvalue()
    buffer.close()
    logger.info("Generated gains PDF: %d disposals, %d holdings.",
                len(result.disposal_events), len(result.current_holdings))
    return pdf_bytes
