"""
Report Module

Everything the delivery report shows or exports, independent of Streamlit:
summary figures, the 13-column report frame, pagination and the XLSX/PDF
exports. All functions take the currently filtered records.
"""

import io
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from constants.data_models import (
    BUYER_FIELD,
    DATE_COLUMNS,
    DEFAULT_PAGE_SIZE,
    DELIVERY_QTY_FIELD,
    VISIBLE_COLUMNS,
)
from utils.filter_engine import parse_report_date
from utils.record_mapper import cell_text, coerce_numeric, is_blank

logger = logging.getLogger(__name__)

EMPTY_CELL = "-"
EXPORT_SHEET_NAME = "Delivery_Report"
EXPORT_FILE_PREFIX = "Delivery_Report"
REPORT_TITLE = "IOM Delivery Report"

HEADER_BAND_COLOR = colors.HexColor("#334155")
ALTERNATE_ROW_COLOR = colors.HexColor("#f8fafc")

# Widths follow VISIBLE_COLUMNS and fit the printable width of landscape A4
PDF_COLUMN_WIDTHS_MM = [16, 22, 30, 26, 16, 18, 16, 16, 18, 15, 15, 18, 47]


@dataclass
class ReportSummary:
    total_records: int
    unique_buyers: int
    delivery_qty: float

    @property
    def delivery_qty_label(self) -> str:
        return format_quantity(self.delivery_qty)


@dataclass
class ReportPage:
    rows: pd.DataFrame
    page: int
    page_size: int
    page_count: int
    total_records: int

    @property
    def start(self) -> int:
        """1-based index of the first row shown (0 when there are no rows)."""
        return (self.page - 1) * self.page_size + 1 if self.total_records else 0

    @property
    def end(self) -> int:
        return min(self.page * self.page_size, self.total_records)

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.page_count


def summarize(records: pd.DataFrame) -> ReportSummary:
    """Record count, distinct buyers and total delivery quantity."""
    if records is None or records.empty:
        return ReportSummary(total_records=0, unique_buyers=0, delivery_qty=0.0)

    unique_buyers = 0
    if BUYER_FIELD in records.columns:
        buyers = {cell_text(v).strip() for v in records[BUYER_FIELD]}
        buyers.discard("")
        unique_buyers = len(buyers)

    delivery_qty = 0.0
    if DELIVERY_QTY_FIELD in records.columns:
        delivery_qty = float(sum(coerce_numeric(v) or 0 for v in records[DELIVERY_QTY_FIELD]))

    return ReportSummary(
        total_records=len(records),
        unique_buyers=unique_buyers,
        delivery_qty=delivery_qty,
    )


def format_quantity(total: float) -> str:
    """'1.2 K' from 1000 up, otherwise the plain number with up to two decimals."""
    if total >= 1000:
        return f"{total / 1000:,.1f} K"
    text = f"{total:,.2f}"
    return text.rstrip("0").rstrip(".")


def format_report_date(value: Any) -> str:
    """DD-MM-YY for readable dates, the raw text for unreadable ones, '-' for blanks."""
    if is_blank(value):
        return EMPTY_CELL
    parsed = parse_report_date(value)
    if parsed is None:
        return cell_text(value)
    return parsed.strftime("%d-%m-%y")


def display_value(value: Any) -> str:
    text = cell_text(value)
    return text if text else EMPTY_CELL


def build_report_frame(records: pd.DataFrame) -> pd.DataFrame:
    """The 13 report columns with dates formatted and blanks shown as '-'."""
    if records is None or records.empty:
        return pd.DataFrame(columns=VISIBLE_COLUMNS)

    report = pd.DataFrame(index=records.index)
    for column in VISIBLE_COLUMNS:
        if column not in records.columns:
            report[column] = EMPTY_CELL
        elif column in DATE_COLUMNS:
            report[column] = records[column].map(format_report_date)
        else:
            report[column] = records[column].map(display_value)
    return report.reset_index(drop=True)


def build_export_frame(records: pd.DataFrame) -> pd.DataFrame:
    """The 13 report columns with raw cell values, so numbers stay numeric in a workbook.

    Only the date columns are formatted; blanks become '-'.
    """
    if records is None or records.empty:
        return pd.DataFrame(columns=VISIBLE_COLUMNS)

    export = pd.DataFrame(index=records.index)
    for column in VISIBLE_COLUMNS:
        if column not in records.columns:
            export[column] = EMPTY_CELL
        elif column in DATE_COLUMNS:
            export[column] = records[column].map(format_report_date)
        else:
            export[column] = records[column].map(lambda v: EMPTY_CELL if is_blank(v) else v)
    return export.reset_index(drop=True)


def page_count_for(total_records: int, page_size: int) -> int:
    return math.ceil(total_records / page_size) if page_size > 0 else 0


def clamp_page(page: int, page_count: int) -> int:
    return min(max(1, int(page)), max(1, page_count))


def paginate(records: pd.DataFrame, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> ReportPage:
    """Slice one page of records; out-of-range pages are clamped to the first/last page."""
    if page_size <= 0:
        raise ValueError(f"page_size must be positive, got {page_size}")

    total = 0 if records is None else len(records)
    page_count = page_count_for(total, page_size)
    page = clamp_page(page, page_count)

    start = (page - 1) * page_size
    rows = records.iloc[start:start + page_size] if total else pd.DataFrame()
    return ReportPage(
        rows=rows,
        page=page,
        page_size=page_size,
        page_count=page_count,
        total_records=total,
    )


def export_filename(extension: str, today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"{EXPORT_FILE_PREFIX}_{today.isoformat()}.{extension.lstrip('.')}"


def export_xlsx(records: pd.DataFrame) -> bytes:
    """One-sheet workbook with the 13 report columns; quantities are written as numbers."""
    report = build_export_frame(records)
    buffer = io.BytesIO()

    with pd.ExcelWriter(buffer, engine="xlsxwriter") as writer:
        report.to_excel(writer, index=False, sheet_name=EXPORT_SHEET_NAME)

        workbook = writer.book
        worksheet = writer.sheets[EXPORT_SHEET_NAME]
        header_format = workbook.add_format(
            {
                "bold": True,
                "font_color": "white",
                "bg_color": "#334155",
                "valign": "top",
                "border": 1,
            }
        )
        for col_idx, column in enumerate(report.columns):
            worksheet.write(0, col_idx, column, header_format)
            longest = max([len(column)] + [len(str(v)) for v in report[column]])
            worksheet.set_column(col_idx, col_idx, min(longest + 2, 40))
        worksheet.freeze_panes(1, 1)

    logger.info(f"Exported {len(report)} records to XLSX")
    return buffer.getvalue()


def export_pdf(records: pd.DataFrame, generated_on: Optional[datetime] = None) -> bytes:
    """Landscape A4 PDF with a title, generation date and the report grid."""
    generated_on = generated_on or datetime.now()
    report = build_report_frame(records)
    buffer = io.BytesIO()

    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        rightMargin=10 * mm,
        leftMargin=10 * mm,
        topMargin=12 * mm,
        bottomMargin=12 * mm,
        title=REPORT_TITLE,
    )
    styles = getSampleStyleSheet()
    cell_style = ParagraphStyle("ReportCell", parent=styles["Normal"], fontSize=6.5, leading=8)
    head_style = ParagraphStyle(
        "ReportHead", parent=cell_style, fontName="Helvetica-Bold", textColor=colors.white
    )

    story = [
        Paragraph(REPORT_TITLE, styles["Heading1"]),
        Paragraph(f"Generated on: {generated_on.strftime('%d/%m/%Y')}", styles["Normal"]),
        Spacer(1, 4 * mm),
    ]

    # Paragraph cells wrap long text instead of overflowing the column
    data = [[Paragraph(col, head_style) for col in VISIBLE_COLUMNS]]
    for row in report.itertuples(index=False):
        data.append([Paragraph(_escape(v), cell_style) for v in row])

    table = Table(data, colWidths=[w * mm for w in PDF_COLUMN_WIDTHS_MM], repeatRows=1)
    style = [
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_BAND_COLOR),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("TOPPADDING", (0, 0), (-1, -1), 2),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
    ]
    for row_idx in range(2, len(data), 2):
        style.append(("BACKGROUND", (0, row_idx), (-1, row_idx), ALTERNATE_ROW_COLOR))
    table.setStyle(TableStyle(style))
    story.append(table)

    doc.build(story)
    logger.info(f"Exported {len(report)} records to PDF")
    return buffer.getvalue()


def _escape(value: Any) -> str:
    return str(value).replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
