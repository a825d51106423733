"""Financial report generation."""

from ledgerline.reports.generator import (
    CASH_FLOW_METHODS,
    PERIOD_TYPES,
    BooksClosed,
    ReportGenerator,
    ReportRequest,
    ReportResult,
)
from ledgerline.reports.templates import (
    REPORT_TEMPLATES,
    ReportTemplate,
    UnsupportedReportError,
    get_template,
)

__all__ = [
    "BooksClosed",
    "CASH_FLOW_METHODS",
    "PERIOD_TYPES",
    "REPORT_TEMPLATES",
    "ReportGenerator",
    "ReportRequest",
    "ReportResult",
    "ReportTemplate",
    "UnsupportedReportError",
    "get_template",
]
