"""Receivables and payables aging.

Outstanding balances are bucketed by document age (days between the
invoice/bill date and the as-of date), not by due date. Documents dated
after the as-of date are left out entirely.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

import structlog

from ledgerline.money import ZERO, to_decimal

logger = structlog.get_logger(__name__)


class AgingKind(str, Enum):
    """Which side of the ledger is being aged."""

    RECEIVABLE = "receivable"
    PAYABLE = "payable"

    @property
    def title(self) -> str:
        if self is AgingKind.RECEIVABLE:
            return "Accounts Receivable Aging Report"
        return "Accounts Payable Aging Report"

    @property
    def party_label(self) -> str:
        return "Customer" if self is AgingKind.RECEIVABLE else "Vendor"

    @property
    def document_label(self) -> str:
        return "Invoice #" if self is AgingKind.RECEIVABLE else "Bill #"

    @property
    def file_stem(self) -> str:
        if self is AgingKind.RECEIVABLE:
            return "accounts_receivable_aging"
        return "accounts_payable_aging"


# Backend field names per kind
_FIELDS: dict[AgingKind, dict[str, str]] = {
    AgingKind.RECEIVABLE: {
        "date": "date",
        "number": "invoiceNumber",
        "party_id": "customerId",
        "party_name": "customerName",
    },
    AgingKind.PAYABLE: {
        "date": "billDate",
        "number": "billNumber",
        "party_id": "vendorId",
        "party_name": "vendorName",
    },
}


class AgingBucket(str, Enum):
    """Age bands; values are the backend's column keys."""

    CURRENT = "current"
    DAYS_31_60 = "thirtyDays"
    DAYS_61_90 = "sixtyDays"
    OVER_90 = "ninetyDays"

    @property
    def label(self) -> str:
        return _BUCKET_LABELS[self]


_BUCKET_LABELS = {
    AgingBucket.CURRENT: "Current (0-30)",
    AgingBucket.DAYS_31_60: "31-60 Days",
    AgingBucket.DAYS_61_90: "61-90 Days",
    AgingBucket.OVER_90: "90+ Days",
}


def bucket_for_age(days: int) -> AgingBucket:
    """Bucket for a document that is ``days`` old (must be non-negative)."""
    if days < 0:
        raise ValueError(f"Cannot bucket a future-dated document ({days} days)")
    if days <= 30:
        return AgingBucket.CURRENT
    if days <= 60:
        return AgingBucket.DAYS_31_60
    if days <= 90:
        return AgingBucket.DAYS_61_90
    return AgingBucket.OVER_90


def age_in_days(document_date: date, as_of: date) -> int:
    return (as_of - document_date).days


def outstanding_balance(record: dict[str, Any]) -> Decimal:
    """Balance still owed: ``balanceDue`` when supplied, else total less paid."""
    if record.get("balanceDue") is not None:
        return to_decimal(record["balanceDue"]) or ZERO
    total = to_decimal(record.get("totalAmount")) or ZERO
    paid = to_decimal(record.get("paidAmount")) or ZERO
    return total - paid


def _parse_date(value: Any) -> date | None:
    if isinstance(value, date):
        return value
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


@dataclass
class AgedDocument:
    """One outstanding invoice or bill with its age bucket."""

    document_id: Any
    number: str
    party_id: Any
    party_name: str
    document_date: date
    due_date: date | None
    total_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    days_old: int
    bucket: AgingBucket

    def amount_in(self, bucket: AgingBucket) -> Decimal:
        return self.balance if bucket is self.bucket else ZERO


def age_documents(
    records: Iterable[dict[str, Any]],
    as_of: date,
    kind: AgingKind = AgingKind.RECEIVABLE,
) -> list[AgedDocument]:
    """Age invoices or bills as of a date.

    Future-dated documents, undated documents and fully paid documents are
    skipped.
    """
    fields = _FIELDS[kind]
    aged: list[AgedDocument] = []
    for record in records:
        document_date = _parse_date(record.get(fields["date"]))
        if document_date is None:
            logger.warning("aging_document_undated", document_id=record.get("id"))
            continue

        days_old = age_in_days(document_date, as_of)
        if days_old < 0:
            logger.debug(
                "aging_document_future_dated",
                number=record.get(fields["number"]),
                document_date=document_date.isoformat(),
                as_of=as_of.isoformat(),
            )
            continue

        balance = outstanding_balance(record)
        if balance <= 0:
            continue

        aged.append(
            AgedDocument(
                document_id=record.get("id"),
                number=str(record.get(fields["number"]) or ""),
                party_id=record.get(fields["party_id"]),
                party_name=str(record.get(fields["party_name"]) or ""),
                document_date=document_date,
                due_date=_parse_date(record.get("dueDate")),
                total_amount=to_decimal(record.get("totalAmount")) or ZERO,
                paid_amount=to_decimal(record.get("paidAmount")) or ZERO,
                balance=balance,
                days_old=days_old,
                bucket=bucket_for_age(days_old),
            )
        )
    return aged


@dataclass
class AgingRow:
    """Balances for one customer or vendor, split across the age buckets."""

    party_id: Any
    party_name: str
    current: Decimal = ZERO
    thirty_days: Decimal = ZERO
    sixty_days: Decimal = ZERO
    ninety_days: Decimal = ZERO
    documents: list[AgedDocument] = field(default_factory=list)

    @property
    def total_balance(self) -> Decimal:
        return self.current + self.thirty_days + self.sixty_days + self.ninety_days

    def amount_in(self, bucket: AgingBucket) -> Decimal:
        return {
            AgingBucket.CURRENT: self.current,
            AgingBucket.DAYS_31_60: self.thirty_days,
            AgingBucket.DAYS_61_90: self.sixty_days,
            AgingBucket.OVER_90: self.ninety_days,
        }[bucket]

    def add(self, document: AgedDocument) -> None:
        if document.bucket is AgingBucket.CURRENT:
            self.current += document.balance
        elif document.bucket is AgingBucket.DAYS_31_60:
            self.thirty_days += document.balance
        elif document.bucket is AgingBucket.DAYS_61_90:
            self.sixty_days += document.balance
        else:
            self.ninety_days += document.balance
        self.documents.append(document)

    @classmethod
    def from_api(cls, data: dict[str, Any], kind: AgingKind) -> "AgingRow":
        fields = _FIELDS[kind]
        return cls(
            party_id=data.get(fields["party_id"]),
            party_name=str(data.get(fields["party_name"]) or ""),
            current=to_decimal(data.get("current")) or ZERO,
            thirty_days=to_decimal(data.get("thirtyDays")) or ZERO,
            sixty_days=to_decimal(data.get("sixtyDays")) or ZERO,
            ninety_days=to_decimal(data.get("ninetyDays")) or ZERO,
        )


@dataclass
class AgingReport:
    """Aging rows per party plus a totals line."""

    kind: AgingKind
    as_of: date
    rows: list[AgingRow] = field(default_factory=list)

    @property
    def totals(self) -> AgingRow:
        totals = AgingRow(party_id=None, party_name="TOTALS")
        for row in self.rows:
            totals.current += row.current
            totals.thirty_days += row.thirty_days
            totals.sixty_days += row.sixty_days
            totals.ninety_days += row.ninety_days
        return totals

    def row_for(self, party_id: Any) -> AgingRow | None:
        for row in self.rows:
            if row.party_id == party_id:
                return row
        return None

    @classmethod
    def from_api(
        cls, kind: AgingKind, as_of: date, payload: Iterable[dict[str, Any]]
    ) -> "AgingReport":
        """Wrap the backend's pre-computed summary rows."""
        return cls(kind=kind, as_of=as_of, rows=[AgingRow.from_api(r, kind) for r in payload])


def attach_documents(report: AgingReport, documents: Iterable[AgedDocument]) -> AgingReport:
    """Attach aged documents to the summary rows of their parties.

    Bucket amounts on the rows are left as they are; documents for parties
    missing from the summary are dropped.
    """
    for row in report.rows:
        row.documents = []
    for document in documents:
        row = report.row_for(document.party_id)
        if row is not None:
            row.documents.append(document)
    return report


def build_aging_report(
    records: Iterable[dict[str, Any]],
    as_of: date,
    kind: AgingKind = AgingKind.RECEIVABLE,
) -> AgingReport:
    """Compute an aging report locally from invoice or bill records.

    Rows keep first-seen party order; every row carries its aged documents
    for drill-down.
    """
    rows: dict[Any, AgingRow] = {}
    for document in age_documents(records, as_of, kind):
        row = rows.get(document.party_id)
        if row is None:
            row = AgingRow(party_id=document.party_id, party_name=document.party_name)
            rows[document.party_id] = row
        row.add(document)

    report = AgingReport(kind=kind, as_of=as_of, rows=list(rows.values()))
    logger.info(
        "aging_report_built",
        kind=kind.value,
        as_of=as_of.isoformat(),
        parties=len(report.rows),
        total=str(report.totals.total_balance),
    )
    return report
