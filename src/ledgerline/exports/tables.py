"""Flatten report payloads into rows for CSV, spreadsheet and PDF output."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from ledgerline.aging import AgingBucket, AgingReport, AgingRow
from ledgerline.money import ZERO, to_decimal
from ledgerline.periods import DateRange, format_display_date
from ledgerline.reports.templates import get_template

Cell = str | Decimal | None


class ExportError(Exception):
    """Report data cannot be exported."""


class RowKind(str, Enum):
    TITLE = "title"
    META = "meta"
    SECTION = "section"
    HEADER = "header"
    DETAIL = "detail"
    TOTAL = "total"
    BLANK = "blank"


@dataclass
class Row:
    cells: list[Cell]
    kind: RowKind = RowKind.DETAIL


@dataclass
class ReportTable:
    """A report laid out as rows, with a role per row for styling."""

    title: str
    rows: list[Row] = field(default_factory=list)
    subtitle: str = ""
    client_name: str = ""
    column_widths: tuple[int, ...] | None = None

    @property
    def width(self) -> int:
        return max((len(row.cells) for row in self.rows), default=0)

    def values(self) -> list[list[Cell]]:
        return [list(row.cells) for row in self.rows]

    def body(self) -> list[Row]:
        """Rows below the title block."""
        return [row for row in self.rows if row.kind not in (RowKind.TITLE, RowKind.META)]

    def add(self, *cells: Cell, kind: RowKind = RowKind.DETAIL) -> None:
        self.rows.append(Row(list(cells), kind))

    def blank(self) -> None:
        self.rows.append(Row([""], RowKind.BLANK))


def _amount(value: Any) -> Decimal:
    return to_decimal(value) or ZERO


def _positive_or_blank(value: Any) -> Cell:
    amount = _amount(value)
    return amount if amount > 0 else ""


def _optional_amount(value: Any) -> Cell:
    if value in (None, "", 0, "0"):
        return ""
    return _amount(value)


def _accounts(section: dict[str, Any], grouped: str, flat: str) -> list[dict[str, Any]]:
    group = section.get(grouped)
    if isinstance(group, dict) and group.get("accounts"):
        return list(group["accounts"])
    return list(section.get(flat) or [])


def _section_total(section: dict[str, Any], grouped: str, flat_total: str) -> Decimal:
    group = section.get(grouped)
    if isinstance(group, dict) and group.get("total") is not None:
        return _amount(group["total"])
    return _amount(section.get(flat_total))


def _display(value: Any) -> str:
    try:
        return format_display_date(date.fromisoformat(str(value)[:10]))
    except ValueError:
        return str(value or "")


def _matching(accounts: list[dict[str, Any]], account: dict[str, Any]) -> dict[str, Any]:
    """The same account in another period, by id when there is one, else by name."""
    key = "id" if account.get("id") is not None else "name"
    return next((other for other in accounts if other.get(key) == account.get(key)), {})


@dataclass
class _Layout:
    """Rows of one report, with a prior-period column when prior data exists."""

    table: ReportTable
    prior: dict[str, Any] | None = None

    @property
    def comparing(self) -> bool:
        return self.prior is not None

    def prior_section(self, key: str) -> dict[str, Any]:
        return (self.prior or {}).get(key) or {}

    def header(self) -> None:
        if self.comparing:
            self.table.add("Account", "Current Period", "Prior Period", kind=RowKind.HEADER)

    def section(self, label: str) -> None:
        self.table.add(label, kind=RowKind.SECTION)

    def line(
        self, label: Any, current: Any, prior: Any = None, kind: RowKind = RowKind.DETAIL
    ) -> None:
        cells: list[Cell] = [label, _amount(current)]
        if self.comparing:
            cells.append(_amount(prior))
        self.table.add(*cells, kind=kind)

    def accounts(self, accounts: list[dict[str, Any]], prior: list[dict[str, Any]]) -> None:
        for account in accounts:
            self.line(
                account.get("name"),
                account.get("balance"),
                _matching(prior, account).get("balance"),
            )

    def blank(self) -> None:
        self.table.blank()


def _balance_sheet(out: _Layout, data: dict[str, Any]) -> None:
    assets = data.get("assets") or {}
    liabilities = data.get("liabilities") or {}
    equity = data.get("equity") or {}
    prior_assets = out.prior_section("assets")
    prior_liabilities = out.prior_section("liabilities")
    prior_equity = out.prior_section("equity")

    out.header()
    out.section("ASSETS")
    out.section("Current Assets")
    out.accounts(
        _accounts(assets, "currentAssets", "current"),
        _accounts(prior_assets, "currentAssets", "current"),
    )
    out.line(
        "Total Current Assets",
        _section_total(assets, "currentAssets", "totalCurrent"),
        _section_total(prior_assets, "currentAssets", "totalCurrent"),
        kind=RowKind.TOTAL,
    )
    out.blank()
    out.section("Fixed Assets")
    out.accounts(
        _accounts(assets, "fixedAssets", "fixed"),
        _accounts(prior_assets, "fixedAssets", "fixed"),
    )
    out.line(
        "Total Fixed Assets",
        _section_total(assets, "fixedAssets", "totalFixed"),
        _section_total(prior_assets, "fixedAssets", "totalFixed"),
        kind=RowKind.TOTAL,
    )
    out.blank()
    out.line("TOTAL ASSETS", assets.get("total"), prior_assets.get("total"), kind=RowKind.TOTAL)
    out.blank()

    out.section("LIABILITIES & EQUITY")
    out.section("Current Liabilities")
    out.accounts(
        _accounts(liabilities, "currentLiabilities", "current"),
        _accounts(prior_liabilities, "currentLiabilities", "current"),
    )
    out.line(
        "Total Current Liabilities",
        _section_total(liabilities, "currentLiabilities", "totalCurrent"),
        _section_total(prior_liabilities, "currentLiabilities", "totalCurrent"),
        kind=RowKind.TOTAL,
    )
    long_term = liabilities.get("longTermLiabilities") or {}
    prior_long_term = prior_liabilities.get("longTermLiabilities") or {}
    if long_term.get("accounts"):
        out.blank()
        out.section("Long-Term Liabilities")
        out.accounts(long_term["accounts"], prior_long_term.get("accounts") or [])
        out.line(
            "Total Long-Term Liabilities",
            long_term.get("total"),
            prior_long_term.get("total"),
            kind=RowKind.TOTAL,
        )
    out.blank()
    out.line(
        "TOTAL LIABILITIES",
        liabilities.get("total"),
        prior_liabilities.get("total"),
        kind=RowKind.TOTAL,
    )
    out.blank()
    out.section("Equity")
    out.accounts(equity.get("accounts") or [], prior_equity.get("accounts") or [])
    out.line("TOTAL EQUITY", equity.get("total"), prior_equity.get("total"), kind=RowKind.TOTAL)


def _profit_loss(out: _Layout, data: dict[str, Any]) -> None:
    income = data.get("income") or {}
    expenses = data.get("expenses") or {}
    prior_income = out.prior_section("income")
    prior_expenses = out.prior_section("expenses")

    out.header()
    out.section("INCOME")
    out.accounts(income.get("accounts") or [], prior_income.get("accounts") or [])
    out.line("Total Income", income.get("total"), prior_income.get("total"), kind=RowKind.TOTAL)
    out.blank()
    out.section("EXPENSES")
    out.accounts(expenses.get("accounts") or [], prior_expenses.get("accounts") or [])
    out.line(
        "Total Expenses", expenses.get("total"), prior_expenses.get("total"), kind=RowKind.TOTAL
    )
    out.blank()
    out.line(
        "NET INCOME",
        data.get("netIncome"),
        (out.prior or {}).get("netIncome"),
        kind=RowKind.TOTAL,
    )


def _trial_balance(out: _Layout, data: dict[str, Any]) -> None:
    table = out.table
    prior = out.prior or {}
    prior_accounts = list(prior.get("accounts") or [])
    if out.comparing:
        table.add(
            "Account", "Debit", "Credit", "Prior Debit", "Prior Credit", kind=RowKind.HEADER
        )
    else:
        table.add("Account", "Debit", "Credit", kind=RowKind.HEADER)
    for account in data.get("accounts") or []:
        cells: list[Cell] = [
            account.get("name"),
            _positive_or_blank(account.get("debitBalance")),
            _positive_or_blank(account.get("creditBalance")),
        ]
        if out.comparing:
            earlier = _matching(prior_accounts, account)
            cells += [
                _positive_or_blank(earlier.get("debitBalance")),
                _positive_or_blank(earlier.get("creditBalance")),
            ]
        table.add(*cells)
    table.blank()
    totals: list[Cell] = [
        "Total",
        _amount(data.get("totalDebits")),
        _amount(data.get("totalCredits")),
    ]
    if out.comparing:
        totals += [_amount(prior.get("totalDebits")), _amount(prior.get("totalCredits"))]
    table.add(*totals, kind=RowKind.TOTAL)


_CASH_FLOW_SECTIONS = (
    ("operatingActivities", "OPERATING", "Operating"),
    ("investingActivities", "INVESTING", "Investing"),
    ("financingActivities", "FINANCING", "Financing"),
)


def _cash_flow(out: _Layout, data: dict[str, Any]) -> None:
    table = out.table
    for key, heading, label in _CASH_FLOW_SECTIONS:
        section = data.get(key)
        if section is None and key != "operatingActivities":
            continue
        section = section or {}
        table.add(f"CASH FLOWS FROM {heading} ACTIVITIES", kind=RowKind.SECTION)
        for activity in section.get("activities") or []:
            table.add(activity.get("description"), _amount(activity.get("amount")))
        table.add(
            f"Net Cash from {label} Activities",
            _amount(section.get("total")),
            kind=RowKind.TOTAL,
        )
        table.blank()

    table.add("NET CHANGE IN CASH", _amount(data.get("netCashChange")), kind=RowKind.TOTAL)
    table.add("Cash at Beginning of Period", _amount(data.get("beginningCash")))
    table.add("Cash at End of Period", _amount(data.get("endingCash")), kind=RowKind.TOTAL)


def _general_ledger(out: _Layout, data: dict[str, Any]) -> None:
    table = out.table
    for account in data.get("accounts") or []:
        table.add(
            f"Account: {account.get('name')} ({account.get('accountNumber')})",
            kind=RowKind.SECTION,
        )
        table.add(
            "Date", "Description", "Reference", "Debit", "Credit", "Balance",
            kind=RowKind.HEADER,
        )
        table.add("Opening Balance", "", "", "", "", _amount(account.get("openingBalance")))
        for txn in account.get("transactions") or []:
            table.add(
                _display(txn.get("date")),
                str(txn.get("description") or ""),
                str(txn.get("reference") or ""),
                _optional_amount(txn.get("debitAmount")),
                _optional_amount(txn.get("creditAmount")),
                _amount(txn.get("runningBalance")),
            )
        table.add(
            "Ending Balance",
            "",
            "",
            _amount(account.get("totalDebits")),
            _amount(account.get("totalCredits")),
            _amount(account.get("endingBalance")),
            kind=RowKind.TOTAL,
        )
        table.blank()


# Builder plus the payload key that must be present
_BUILDERS = {
    "balance-sheet": (_balance_sheet, "assets"),
    "profit-loss": (_profit_loss, "income"),
    "trial-balance": (_trial_balance, "accounts"),
    "cash-flow": (_cash_flow, "operatingActivities"),
    "general-ledger": (_general_ledger, "accounts"),
}


def report_table(
    template_id: str,
    data: dict[str, Any],
    date_range: DateRange,
    report_name: str | None = None,
    prior_data: dict[str, Any] | None = None,
    prior_range: DateRange | None = None,
) -> ReportTable:
    """Lay out a financial report payload.

    With ``prior_data`` the balance sheet, profit & loss and trial balance
    gain prior-period columns next to the current amounts.

    Raises:
        ExportError: The template has no tabular layout or the payload is
            missing its main section.
    """
    if template_id not in _BUILDERS:
        raise ExportError(f"No export layout for report type: {template_id}")
    builder, required = _BUILDERS[template_id]
    template = get_template(template_id)
    name = report_name or template.name
    if not data.get(required):
        raise ExportError(f"No {name} data to export")

    if template.point_in_time:
        subtitle = f"As of {format_display_date(date_range.end)}"
    else:
        subtitle = date_range.label()

    client_name = str(data.get("clientName") or "")
    table = ReportTable(title=name, subtitle=subtitle, client_name=client_name)
    table.add(name, client_name, kind=RowKind.TITLE)
    if template_id == "balance-sheet":
        table.add("As of", format_display_date(date_range.end), kind=RowKind.META)
    else:
        table.add(subtitle, kind=RowKind.META)
    if not template.compares_prior_period:
        prior_data = None
    if prior_data is not None and prior_range is not None:
        if template.point_in_time:
            prior_label = f"As of {format_display_date(prior_range.end)}"
        else:
            prior_label = prior_range.label()
        table.add(f"Prior Period: {prior_label}", kind=RowKind.META)
    table.blank()
    builder(_Layout(table, prior_data), data)
    return table


def aging_table(report: AgingReport, detailed: bool = False) -> ReportTable:
    """Summary aging table with one row per party and a TOTALS row.

    ``detailed`` appends a document section listing, per party, the open
    invoices or bills behind the summary amounts.
    """
    subtitle = f"As of {format_display_date(report.as_of)}"
    table = ReportTable(
        title=report.kind.title,
        subtitle=subtitle,
        column_widths=(30, 18, 18, 18, 18, 18, 12) if detailed else (30, 18, 18, 18, 18, 18),
    )
    table.add(report.kind.title, kind=RowKind.TITLE)
    table.add(subtitle, kind=RowKind.META)
    table.blank()
    table.add(
        report.kind.party_label,
        *(bucket.label for bucket in AgingBucket),
        "Total Balance",
        kind=RowKind.HEADER,
    )

    def cells(row: AgingRow) -> list[Cell]:
        return [
            row.party_name,
            *(row.amount_in(bucket) for bucket in AgingBucket),
            row.total_balance,
        ]

    for row in report.rows:
        table.add(*cells(row))
    table.add(*cells(report.totals), kind=RowKind.TOTAL)

    if detailed:
        _document_detail(table, report)
    return table


def _document_detail(table: ReportTable, report: AgingReport) -> None:
    table.blank()
    table.add("DOCUMENT DETAIL", kind=RowKind.SECTION)
    table.add(
        report.kind.document_label,
        "Date",
        "Due Date",
        "Total",
        "Paid",
        "Balance",
        "Days Old",
        kind=RowKind.HEADER,
    )
    for row in report.rows:
        if not row.documents:
            continue
        table.add(row.party_name, kind=RowKind.SECTION)
        for document in row.documents:
            table.add(
                document.number,
                format_display_date(document.document_date),
                format_display_date(document.due_date) if document.due_date else "",
                document.total_amount,
                document.paid_amount,
                document.balance,
                str(document.days_old),
            )
