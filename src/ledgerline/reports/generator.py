"""Fetch financial reports for a period, with an optional prior-period comparison."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import structlog

from ledgerline.aging import (
    AgingKind,
    AgingReport,
    age_documents,
    attach_documents,
)
from ledgerline.api.client import ClientId, LedgerAPIClient, LedgerAPIError
from ledgerline.config import get_settings
from ledgerline.money import ZERO, to_decimal
from ledgerline.periods import (
    DateRange,
    FiscalYearEnd,
    date_range_for_preset,
    last_closed_fiscal_year_end,
    prior_period_range,
)
from ledgerline.reports.templates import ReportTemplate, UnsupportedReportError, get_template

logger = structlog.get_logger(__name__)

PERIOD_TYPES = ("single", "monthly", "quarterly", "yearly")
CASH_FLOW_METHODS = ("direct", "indirect")
DIMENSION_KEYS = ("projectId", "locationId", "classId")


@dataclass
class ReportRequest:
    """What to generate.

    ``date_range`` overrides ``preset`` when given. Aging reports use
    ``as_of`` (default: the range end, else today).
    """

    template: str
    client_id: ClientId
    preset: str = "current-fiscal-year"
    date_range: DateRange | None = None
    period_type: str = "single"
    cash_flow_method: str = "indirect"
    dimensions: dict[str, Any] = field(default_factory=dict)
    include_prior_period: bool = False
    as_of: date | None = None
    detailed: bool = False

    def __post_init__(self) -> None:
        if self.period_type not in PERIOD_TYPES:
            raise ValueError(f"Unknown period type: {self.period_type}")
        if self.cash_flow_method not in CASH_FLOW_METHODS:
            raise ValueError(f"Unknown cash flow method: {self.cash_flow_method}")
        unknown = set(self.dimensions) - set(DIMENSION_KEYS)
        if unknown:
            raise ValueError(f"Unknown report dimensions: {', '.join(sorted(unknown))}")


@dataclass
class ReportResult:
    template: ReportTemplate
    client_id: ClientId
    date_range: DateRange
    data: dict[str, Any]
    prior_range: DateRange | None = None
    prior_data: dict[str, Any] | None = None
    aging: AgingReport | None = None
    generated_at: datetime = field(default_factory=datetime.now)

    @property
    def client_name(self) -> str:
        return str(self.data.get("clientName") or "")


@dataclass
class BooksClosed:
    """Result of a year-end close."""

    fiscal_year_end: date
    net_income: Decimal
    closing_entry_id: Any
    message: str
    raw: dict[str, Any]


class ReportGenerator:
    """Generate reports for clients through the API.

    Args:
        client: API client.
        fiscal_year_end: Fixed fiscal year end. When omitted it is read
            from each client's bookkeeping settings, falling back to the
            configured default.
    """

    def __init__(self, client: LedgerAPIClient, fiscal_year_end: FiscalYearEnd | None = None):
        self._client = client
        self._fiscal_year_end = fiscal_year_end

    async def fiscal_year_end(self, client_id: ClientId) -> FiscalYearEnd:
        if self._fiscal_year_end is not None:
            return self._fiscal_year_end

        settings = get_settings()
        default = FiscalYearEnd(settings.fiscal_year_end_month, settings.fiscal_year_end_day)
        try:
            bookkeeping = await self._client.get_bookkeeping_settings(client_id)
        except LedgerAPIError as exc:
            logger.warning(
                "bookkeeping_settings_unavailable", client_id=str(client_id), error=str(exc)
            )
            return default
        return FiscalYearEnd.from_settings(bookkeeping, default)

    async def generate(self, request: ReportRequest, today: date | None = None) -> ReportResult:
        """Generate a report.

        Prior-period data is fetched only for templates that support a
        comparison; a failed prior-period fetch is logged and left empty.

        Raises:
            UnsupportedReportError: The template cannot be generated.
        """
        template = get_template(request.template)
        today = today or date.today()
        log = logger.bind(template=template.id, client_id=str(request.client_id))

        if template.is_aging:
            as_of = request.as_of or (request.date_range.end if request.date_range else today)
            kind = (
                AgingKind.RECEIVABLE
                if template.id == "accounts-receivable"
                else AgingKind.PAYABLE
            )
            aging = await self.aging(request.client_id, kind, as_of, detailed=request.detailed)
            log.info("report_generated", as_of=as_of.isoformat(), rows=len(aging.rows))
            return ReportResult(
                template=template,
                client_id=request.client_id,
                date_range=DateRange(as_of, as_of),
                data={"type": template.id},
                aging=aging,
            )

        fye = await self.fiscal_year_end(request.client_id)
        if request.date_range is not None:
            preset = "custom"
            current = request.date_range
        else:
            preset = request.preset
            current = date_range_for_preset(preset, today, fye)

        data = await self._fetch(template, request, current)
        result = ReportResult(
            template=template, client_id=request.client_id, date_range=current, data=data
        )

        if request.include_prior_period and template.compares_prior_period:
            prior = prior_period_range(template.id, preset, current, today, fye)
            result.prior_range = prior
            try:
                result.prior_data = await self._fetch(template, request, prior, prior_period=True)
            except LedgerAPIError as exc:
                log.warning("prior_period_unavailable", error=str(exc), period=prior.label())

        log.info(
            "report_generated",
            start=current.start.isoformat(),
            end=current.end.isoformat(),
            prior_period=result.prior_data is not None,
        )
        return result

    async def _fetch(
        self,
        template: ReportTemplate,
        request: ReportRequest,
        period: DateRange,
        prior_period: bool = False,
    ) -> dict[str, Any]:
        client_id = request.client_id
        if template.id == "balance-sheet":
            return await self._client.get_balance_sheet(client_id, period.end)
        if template.id == "profit-loss":
            return await self._client.get_profit_loss(
                client_id,
                period.start,
                period.end,
                # Comparison columns are always a single period
                period_type=None if prior_period else request.period_type,
                dimensions=request.dimensions,
            )
        if template.id == "cash-flow":
            return await self._client.get_cash_flow(
                client_id, period.start, period.end, method=request.cash_flow_method
            )
        if template.id == "trial-balance":
            return await self._client.get_trial_balance(client_id, period.end)
        if template.id == "general-ledger":
            return await self._client.get_general_ledger(client_id, period.start, period.end)
        raise UnsupportedReportError(f"Unsupported report type: {template.id}")

    async def aging(
        self,
        client_id: ClientId,
        kind: AgingKind,
        as_of: date,
        detailed: bool = False,
    ) -> AgingReport:
        """Backend aging summary, optionally with per-document detail aged locally."""
        if kind is AgingKind.RECEIVABLE:
            rows = await self._client.get_ar_aging(client_id, as_of)
        else:
            rows = await self._client.get_ap_aging(client_id, as_of)
        report = AgingReport.from_api(kind, as_of, rows)

        if detailed:
            if kind is AgingKind.RECEIVABLE:
                records = await self._client.list_invoices(client_id)
            else:
                records = await self._client.list_bills(client_id)
            attach_documents(report, age_documents(records, as_of, kind))
        return report

    async def close_books(self, client_id: ClientId, today: date | None = None) -> BooksClosed:
        """Close the most recent fiscal year that has fully ended.

        Raises:
            LedgerAPIError: The backend refused to close the year.
        """
        fye = await self.fiscal_year_end(client_id)
        year_end = last_closed_fiscal_year_end(fye, today or date.today())
        result = await self._client.close_books(client_id, year_end)
        if not result.get("success"):
            message = str(result.get("message") or "Failed to close books")
            raise LedgerAPIError(message, details=result)

        entry = result.get("closingEntry") or {}
        closed = BooksClosed(
            fiscal_year_end=year_end,
            net_income=to_decimal(result.get("netIncome")) or ZERO,
            closing_entry_id=entry.get("id") if isinstance(entry, dict) else None,
            message=str(result.get("message") or ""),
            raw=result,
        )
        logger.info(
            "books_closed",
            client_id=str(client_id),
            fiscal_year_end=year_end.isoformat(),
            net_income=str(closed.net_income),
            closing_entry_id=closed.closing_entry_id,
        )
        return closed
