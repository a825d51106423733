"""Write report tables as CSV, XLSX or PDF."""

import csv
import io
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import IO
from xml.sax.saxutils import escape

import structlog
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ledgerline.aging import AgingKind
from ledgerline.config import get_settings
from ledgerline.exports.tables import Cell, ExportError, ReportTable, RowKind
from ledgerline.money import format_currency

logger = structlog.get_logger(__name__)

CURRENCY_FORMAT = "$#,##0.00"
HEADER_FILL = "FF4472C4"
TOTAL_FILL = "FFE7E6E6"
MAX_COLUMN_WIDTH = 50

Target = str | Path | IO[bytes]


def default_filename(template_id: str, today: date, ext: str = "csv") -> str:
    return f"{template_id}-{today.isoformat()}.{ext}"


def aging_filename(kind: AgingKind, as_of: date, ext: str = "xlsx") -> str:
    return f"{kind.file_stem}_{as_of.isoformat()}.{ext}"


def output_path(filename: str, directory: str | Path | None = None) -> Path:
    """Path under the export directory, created if missing."""
    folder = Path(directory if directory is not None else get_settings().export_dir)
    folder.mkdir(parents=True, exist_ok=True)
    return folder / filename


# === CSV ===


def _csv_value(cell: Cell) -> str:
    if cell is None:
        return ""
    if isinstance(cell, Decimal):
        return f"{cell:.2f}"
    return str(cell)


def to_csv(table: ReportTable) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    for row in table.rows:
        if row.kind is RowKind.BLANK:
            writer.writerow([])
        else:
            writer.writerow([_csv_value(cell) for cell in row.cells])
    return buffer.getvalue()


def write_csv(table: ReportTable, path: str | Path) -> Path:
    path = Path(path)
    path.write_text(to_csv(table), encoding="utf-8")
    logger.info("report_exported", format="csv", path=str(path), rows=len(table.rows))
    return path


# === XLSX ===


def _sheet_title(title: str) -> str:
    cleaned = "".join(ch for ch in title if ch not in "[]:*?/\\")
    return (cleaned or "Report")[:31]


def _column_widths(table: ReportTable) -> list[int]:
    if table.column_widths:
        return list(table.column_widths)
    widths = [10] * table.width
    for row in table.body():
        for index, cell in enumerate(row.cells):
            text = format_currency(cell) if isinstance(cell, Decimal) else str(cell or "")
            widths[index] = max(widths[index], min(len(text) + 2, MAX_COLUMN_WIDTH))
    return widths


def write_xlsx(table: ReportTable, target: Target) -> None:
    """Write a single-sheet workbook.

    The title row is bold and merged across the table, header rows get a
    blue fill with white text and total rows a grey fill.
    """
    if not table.rows:
        raise ExportError(f"No {table.title} data to export")

    wb = Workbook()
    ws = wb.active
    ws.title = _sheet_title(table.title)
    width = max(table.width, 1)
    last_column = get_column_letter(width)

    header_fill = PatternFill(start_color=HEADER_FILL, end_color=HEADER_FILL, fill_type="solid")
    total_fill = PatternFill(start_color=TOTAL_FILL, end_color=TOTAL_FILL, fill_type="solid")

    for row in table.rows:
        ws.append([float(c) if isinstance(c, Decimal) else c for c in row.cells])
        index = ws.max_row

        for column, cell in enumerate(row.cells, start=1):
            if isinstance(cell, Decimal):
                ws.cell(row=index, column=column).number_format = CURRENCY_FORMAT

        if row.kind is RowKind.TITLE:
            if width > 1 and len(row.cells) == 1:
                ws.merge_cells(f"A{index}:{last_column}{index}")
            ws.cell(row=index, column=1).font = Font(bold=True, size=16)
            ws.cell(row=index, column=1).alignment = Alignment(horizontal="center")
        elif row.kind is RowKind.META:
            if width > 1 and len(row.cells) == 1:
                ws.merge_cells(f"A{index}:{last_column}{index}")
            ws.cell(row=index, column=1).alignment = Alignment(horizontal="center")
        elif row.kind is RowKind.SECTION:
            ws.cell(row=index, column=1).font = Font(bold=True)
        elif row.kind is RowKind.HEADER:
            for column in range(1, width + 1):
                cell = ws.cell(row=index, column=column)
                cell.font = Font(bold=True, color="FFFFFFFF")
                cell.fill = header_fill
                cell.alignment = Alignment(horizontal="center", vertical="center")
        elif row.kind is RowKind.TOTAL:
            for column in range(1, width + 1):
                cell = ws.cell(row=index, column=column)
                cell.font = Font(bold=True)
                cell.fill = total_fill

    for column, column_width in enumerate(_column_widths(table), start=1):
        ws.column_dimensions[get_column_letter(column)].width = column_width

    wb.save(target)
    logger.info(
        "report_exported",
        format="xlsx",
        path=str(target) if isinstance(target, (str, Path)) else None,
        rows=len(table.rows),
    )


# === PDF ===


def _footer_timestamp(now: datetime) -> str:
    """``Monday, December 8, 2025 12:08 PM GMT-05:00``."""
    offset = now.strftime("%z") or "+0000"
    hour = now.hour % 12 or 12
    return (
        f"{now:%A}, {now:%B} {now.day}, {now.year} "
        f"{hour}:{now:%M} {now:%p} GMT{offset[:3]}:{offset[3:]}"
    )


def _pdf_cell(cell: Cell) -> str:
    if isinstance(cell, Decimal):
        return format_currency(cell)
    return "" if cell is None else str(cell)


def write_pdf(
    table: ReportTable,
    target: Target,
    firm_name: str | None = None,
    basis: str = "Accrual Basis",
) -> None:
    """Render a table as a letter-size PDF.

    The header names the company (the report's client, else the firm)
    above the report title and period. Each page footer shows the print
    time and page number.
    """
    body = table.body()
    if not body:
        raise ExportError(f"No {table.title} data to export")

    company = table.client_name or firm_name or get_settings().firm_name
    printed = f"{basis} {_footer_timestamp(datetime.now().astimezone())}"

    doc = SimpleDocTemplate(
        str(target) if isinstance(target, Path) else target,
        pagesize=letter,
        leftMargin=0.75 * inch,
        rightMargin=0.75 * inch,
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
        title=table.title,
    )
    styles = getSampleStyleSheet()
    company_style = ParagraphStyle(
        "ReportCompany", parent=styles["Title"], fontSize=18, alignment=TA_CENTER, spaceAfter=4
    )
    title_style = ParagraphStyle(
        "ReportName", parent=styles["Normal"], fontSize=12, alignment=TA_CENTER, spaceAfter=2
    )
    period_style = ParagraphStyle(
        "ReportPeriod", parent=styles["Normal"], fontSize=9, alignment=TA_CENTER
    )

    elements = [
        Paragraph(escape(company), company_style),
        Paragraph(escape(table.title), title_style),
    ]
    if table.subtitle:
        elements.append(Paragraph(escape(table.subtitle), period_style))
    elements.append(Spacer(1, 16))

    width = max(table.width, 1)
    data = [
        [_pdf_cell(cell) for cell in row.cells] + [""] * (width - len(row.cells))
        for row in body
    ]
    if width == 1:
        col_widths = [doc.width]
    else:
        first = doc.width * (0.5 if width <= 3 else 0.25)
        col_widths = [first] + [(doc.width - first) / (width - 1)] * (width - 1)

    commands: list[tuple] = [
        ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING", (0, 0), (-1, -1), 2),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
    ]
    for index, row in enumerate(body):
        for column, cell in enumerate(row.cells):
            if isinstance(cell, Decimal):
                commands.append(("ALIGN", (column, index), (column, index), "RIGHT"))
        if row.kind is RowKind.SECTION:
            commands.append(("FONTNAME", (0, index), (-1, index), "Helvetica-Bold"))
            commands.append(("FONTSIZE", (0, index), (-1, index), 10))
        elif row.kind is RowKind.HEADER:
            commands.append(("FONTNAME", (0, index), (-1, index), "Helvetica-Bold"))
            commands.append(("BACKGROUND", (0, index), (-1, index), colors.lightgrey))
            commands.append(("LINEBELOW", (0, index), (-1, index), 0.5, colors.black))
        elif row.kind is RowKind.TOTAL:
            commands.append(("FONTNAME", (0, index), (-1, index), "Helvetica-Bold"))
            commands.append(("LINEABOVE", (1, index), (-1, index), 0.5, colors.black))

    report = Table(data, colWidths=col_widths)
    report.setStyle(TableStyle(commands))
    elements.append(report)

    def footer(canvas, document):
        canvas.saveState()
        page_width, _ = letter
        canvas.setStrokeColor(colors.black)
        canvas.setLineWidth(0.5)
        right = page_width - document.rightMargin
        canvas.line(document.leftMargin, 0.6 * inch, right, 0.6 * inch)
        canvas.setFont("Helvetica", 8)
        canvas.setFillColor(colors.grey)
        canvas.drawString(document.leftMargin, 0.4 * inch, "CONFIDENTIAL")
        canvas.drawCentredString(page_width / 2, 0.4 * inch, printed)
        canvas.drawRightString(right, 0.4 * inch, f"Page {document.page}")
        canvas.restoreState()

    doc.build(elements, onFirstPage=footer, onLaterPages=footer)
    logger.info(
        "report_exported",
        format="pdf",
        path=str(target) if isinstance(target, (str, Path)) else None,
        rows=len(body),
    )
