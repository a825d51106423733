"""Report export to CSV, XLSX and PDF."""

from ledgerline.exports.tables import (
    ExportError,
    ReportTable,
    Row,
    RowKind,
    aging_table,
    report_table,
)
from ledgerline.exports.writers import (
    aging_filename,
    default_filename,
    output_path,
    to_csv,
    write_csv,
    write_pdf,
    write_xlsx,
)

__all__ = [
    "ExportError",
    "ReportTable",
    "Row",
    "RowKind",
    "aging_filename",
    "aging_table",
    "default_filename",
    "output_path",
    "report_table",
    "to_csv",
    "write_csv",
    "write_pdf",
    "write_xlsx",
]
