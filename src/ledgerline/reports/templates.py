"""Catalogue of the reports a client can generate."""

from dataclasses import dataclass


class UnsupportedReportError(ValueError):
    """Report template is unknown or cannot be generated."""


@dataclass(frozen=True)
class ReportTemplate:
    id: str
    name: str
    category: str
    description: str
    frequency: tuple[str, ...]
    data_source: str

    @property
    def point_in_time(self) -> bool:
        """Reported as of a single date rather than over a range."""
        return self.id in ("balance-sheet", "trial-balance")

    @property
    def is_aging(self) -> bool:
        return self.id in ("accounts-receivable", "accounts-payable")

    @property
    def compares_prior_period(self) -> bool:
        return self.id in ("balance-sheet", "profit-loss", "trial-balance")


REPORT_TEMPLATES: tuple[ReportTemplate, ...] = (
    ReportTemplate(
        "balance-sheet",
        "Balance Sheet",
        "Financial Statements",
        "Assets, liabilities, and equity at a point in time",
        ("Monthly", "Quarterly", "Yearly"),
        "accounts",
    ),
    ReportTemplate(
        "profit-loss",
        "Profit & Loss",
        "Financial Statements",
        "Revenue and expenses over time",
        ("Monthly", "Quarterly", "Yearly"),
        "transactions",
    ),
    ReportTemplate(
        "cash-flow",
        "Cash Flow Statement",
        "Financial Statements",
        "Cash receipts and payments",
        ("Monthly", "Quarterly", "Yearly"),
        "transactions",
    ),
    ReportTemplate(
        "trial-balance",
        "Trial Balance",
        "Financial Statements",
        "Account balances for verification",
        ("Monthly", "Quarterly", "Yearly"),
        "accounts",
    ),
    ReportTemplate(
        "general-ledger",
        "General Ledger",
        "Transaction Reports",
        "Detailed account transactions",
        ("Daily", "Weekly", "Monthly"),
        "transactions",
    ),
    ReportTemplate(
        "accounts-receivable",
        "Accounts Receivable",
        "Transaction Reports",
        "Outstanding customer invoices",
        ("Weekly", "Monthly"),
        "transactions",
    ),
    ReportTemplate(
        "accounts-payable",
        "Accounts Payable",
        "Transaction Reports",
        "Outstanding vendor bills",
        ("Weekly", "Monthly"),
        "transactions",
    ),
    ReportTemplate(
        "revenue-analysis",
        "Revenue Analysis",
        "Analytics",
        "Revenue trends and breakdowns",
        ("Monthly", "Quarterly"),
        "transactions",
    ),
    ReportTemplate(
        "expense-analysis",
        "Expense Analysis",
        "Analytics",
        "Expense categorization and trends",
        ("Monthly", "Quarterly"),
        "transactions",
    ),
)

_BY_ID = {template.id: template for template in REPORT_TEMPLATES}


def get_template(template_id: str) -> ReportTemplate:
    try:
        return _BY_ID[template_id]
    except KeyError:
        raise UnsupportedReportError(f"Unknown report template: {template_id}") from None
