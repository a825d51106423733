"""Ledgerline - business rules, API client and report exports for small-business bookkeeping."""

__version__ = "0.1.0"

from ledgerline.aging import AgingBucket, AgingKind, AgingReport, build_aging_report
from ledgerline.api import LedgerAPIClient, LedgerAPIError
from ledgerline.classification import TransactionClassifier
from ledgerline.config import configure_logging, get_settings
from ledgerline.periods import DateRange, FiscalYearEnd, date_range_for_preset, parse_date_text
from ledgerline.reconciliation import BankFeedReconciler
from ledgerline.reports import ReportGenerator, ReportRequest
from ledgerline.splits import AccountSplit, SplitValidationError
from ledgerline.tax import TaxTable

__all__ = [
    # Version
    "__version__",
    # API
    "LedgerAPIClient",
    "LedgerAPIError",
    # Periods
    "DateRange",
    "FiscalYearEnd",
    "date_range_for_preset",
    "parse_date_text",
    # Aging
    "AgingBucket",
    "AgingKind",
    "AgingReport",
    "build_aging_report",
    # Classification
    "AccountSplit",
    "SplitValidationError",
    "TaxTable",
    "TransactionClassifier",
    # Reconciliation
    "BankFeedReconciler",
    # Reports
    "ReportGenerator",
    "ReportRequest",
    # Config
    "get_settings",
    "configure_logging",
]
