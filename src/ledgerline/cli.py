"""Command line entry point.

Usage:
    ledgerline report profit-loss --client 12 --preset last-fiscal-year --format pdf
    ledgerline report balance-sheet --client 12 --to 2024-12-31 --no-prior
    ledgerline aging ar --client 12 --as-of 2024-06-30
    ledgerline close-books --client 12
    ledgerline classify --client 12 --transaction 881 --account 4010 --tax-code HST
    ledgerline classify --client 12 --transaction 881 --split 4010:70 --split 5020:30
"""

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path
from typing import Any

from ledgerline.aging import AgingKind
from ledgerline.api.client import LedgerAPIClient, LedgerAPIError
from ledgerline.classification import ClassificationError, TransactionClassifier
from ledgerline.config import configure_logging, get_logger
from ledgerline.exports import (
    ExportError,
    aging_filename,
    aging_table,
    default_filename,
    output_path,
    report_table,
    write_csv,
    write_pdf,
    write_xlsx,
)
from ledgerline.exports.tables import ReportTable
from ledgerline.money import format_currency, to_decimal
from ledgerline.periods import DATE_PRESETS, DateParseError, DateRange, parse_date_or_raise
from ledgerline.reports import (
    CASH_FLOW_METHODS,
    PERIOD_TYPES,
    REPORT_TEMPLATES,
    ReportGenerator,
    ReportRequest,
    UnsupportedReportError,
)
from ledgerline.splits import SplitValidationError

logger = get_logger(__name__)

FORMATS = ("csv", "xlsx", "pdf")


def _date_arg(value: str) -> date:
    try:
        return parse_date_or_raise(value)
    except DateParseError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _preset_arg(value: str) -> str:
    suffix = value.removeprefix("fiscal-")
    if value in DATE_PRESETS or (value.startswith("fiscal-") and suffix.isdigit()):
        return value
    raise argparse.ArgumentTypeError(
        f"unknown preset {value!r} (choose from {', '.join(DATE_PRESETS)} or fiscal-YYYY)"
    )


def _split_arg(value: str) -> tuple[str, str, str | None]:
    parts = value.split(":")
    if len(parts) not in (2, 3) or not parts[0] or not parts[1]:
        raise argparse.ArgumentTypeError(f"expected ACCOUNT:AMOUNT[:TAX], got {value!r}")
    if to_decimal(parts[1], default=None) is None:
        raise argparse.ArgumentTypeError(f"invalid split amount {parts[1]!r}")
    return parts[0], parts[1], parts[2] if len(parts) == 3 else None


def _account_id(value: str) -> Any:
    return int(value) if value.lstrip("-").isdigit() else value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledgerline",
        description="Generate reports, age receivables and classify transactions",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override LOG_LEVEL",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    report = commands.add_parser("report", help="Generate and export a financial report")
    report.add_argument("template", choices=[t.id for t in REPORT_TEMPLATES])
    report.add_argument("--client", required=True, help="Client id")
    report.add_argument("--preset", type=_preset_arg, default="current-fiscal-year")
    report.add_argument("--from", dest="start", type=_date_arg, help="Custom range start")
    report.add_argument("--to", dest="end", type=_date_arg, help="Custom range end")
    report.add_argument("--period-type", choices=PERIOD_TYPES, default="single")
    report.add_argument("--method", choices=CASH_FLOW_METHODS, default="indirect")
    report.add_argument("--project", help="Profit & loss project filter")
    report.add_argument("--location", help="Profit & loss location filter")
    report.add_argument("--class", dest="class_id", help="Profit & loss class filter")
    report.add_argument(
        "--no-prior",
        dest="prior",
        action="store_false",
        help="Skip the prior-period comparison",
    )
    report.add_argument("--format", choices=FORMATS, default="csv")
    report.add_argument("--output", type=Path, help="Output file (default: EXPORT_DIR)")

    aging = commands.add_parser("aging", help="Export a receivables or payables aging report")
    aging.add_argument("kind", choices=["ar", "ap"])
    aging.add_argument("--client", required=True, help="Client id")
    aging.add_argument("--as-of", type=_date_arg, help="As-of date (default: today)")
    aging.add_argument("--detailed", action="store_true", help="Include per-document detail")
    aging.add_argument("--format", choices=FORMATS, default="xlsx")
    aging.add_argument("--output", type=Path)

    close = commands.add_parser("close-books", help="Close the last completed fiscal year")
    close.add_argument("--client", required=True, help="Client id")

    classify = commands.add_parser("classify", help="Classify a transaction")
    classify.add_argument("--client", required=True, help="Client id")
    classify.add_argument("--transaction", required=True, help="Transaction id")
    classify.add_argument("--account", help="Account id for a single-account classification")
    classify.add_argument("--tax-code", help="Tax code id or name (e.g. HST)")
    classify.add_argument(
        "--split",
        action="append",
        type=_split_arg,
        default=[],
        metavar="ACCOUNT:AMOUNT[:TAX]",
        help="Split row; repeat for each account",
    )
    link = classify.add_mutually_exclusive_group()
    link.add_argument("--link-bill", help="Mark this bill paid by the transaction")
    link.add_argument("--link-invoice", help="Mark this invoice paid by the transaction")
    return parser


def _write(table: ReportTable, fmt: str, path: Path) -> Path:
    if fmt == "csv":
        write_csv(table, path)
    elif fmt == "xlsx":
        write_xlsx(table, path)
    else:
        write_pdf(table, path)
    return path


async def _run_report(client: LedgerAPIClient, args: argparse.Namespace) -> int:
    date_range = None
    if args.start or args.end:
        if not (args.start and args.end):
            raise ValueError("--from and --to must be given together")
        date_range = DateRange(args.start, args.end)

    dimensions = {
        key: value
        for key, value in (
            ("projectId", args.project),
            ("locationId", args.location),
            ("classId", args.class_id),
        )
        if value
    }
    request = ReportRequest(
        template=args.template,
        client_id=args.client,
        preset=args.preset,
        date_range=date_range,
        period_type=args.period_type,
        cash_flow_method=args.method,
        dimensions=dimensions,
        include_prior_period=args.prior,
    )
    result = await ReportGenerator(client).generate(request)

    if result.aging is not None:
        table = aging_table(result.aging)
    else:
        table = report_table(
            result.template.id,
            result.data,
            result.date_range,
            prior_data=result.prior_data,
            prior_range=result.prior_range,
        )
    path = args.output or output_path(default_filename(args.template, date.today(), args.format))
    print(_write(table, args.format, path))
    return 0


async def _run_aging(client: LedgerAPIClient, args: argparse.Namespace) -> int:
    kind = AgingKind.RECEIVABLE if args.kind == "ar" else AgingKind.PAYABLE
    as_of = args.as_of or date.today()
    generator = ReportGenerator(client)
    report = await generator.aging(args.client, kind, as_of, detailed=args.detailed)
    totals = report.totals
    path = args.output or output_path(aging_filename(kind, as_of, args.format))
    print(_write(aging_table(report, detailed=args.detailed), args.format, path))
    print(
        f"{len(report.rows)} {kind.party_label.lower()}s, "
        f"{format_currency(totals.total_balance)} outstanding"
    )
    return 0


async def _run_close_books(client: LedgerAPIClient, args: argparse.Namespace) -> int:
    closed = await ReportGenerator(client).close_books(args.client)
    print(
        f"Books closed for fiscal year ending {closed.fiscal_year_end.isoformat()}. "
        f"Net income of {format_currency(closed.net_income)} transferred to Retained "
        f"Earnings. Closing entry #{closed.closing_entry_id} created."
    )
    return 0


def _find(records: list[dict[str, Any]], record_id: str, label: str) -> dict[str, Any]:
    for record in records:
        if str(record.get("id")) == record_id:
            return record
    raise LookupError(f"{label} {record_id} not found")


async def _run_classify(client: LedgerAPIClient, args: argparse.Namespace) -> int:
    transactions = await client.list_transactions(args.client)
    transaction = _find(transactions, args.transaction, "Transaction")
    accounts = await client.list_accounts(args.client)

    classifier = TransactionClassifier(client, args.client, transaction, accounts)
    await classifier.load()

    tax_code = None
    if args.tax_code:
        option = classifier.tax_table.get(args.tax_code)
        tax_code = option.id if option else classifier.tax_table.resolve_code(args.tax_code)

    if args.split:
        classifier.enable_split()
        classifier.splits = []
        for account, amount, split_tax in args.split:
            code = classifier.tax_table.resolve_code(split_tax) if split_tax else tax_code
            classifier.add_split(_account_id(account), amount, tax_code=code)
    else:
        if classifier.is_split:
            classifier.disable_split()
        if args.account:
            classifier.set_account(_account_id(args.account))
        if tax_code:
            classifier.set_tax_code(tax_code)

    link_bill = link_invoice = None
    if args.link_bill:
        link_bill = _find(await client.list_bills(args.client), args.link_bill, "Bill")
    if args.link_invoice:
        invoices = await client.list_invoices(args.client)
        link_invoice = _find(invoices, args.link_invoice, "Invoice")

    try:
        outcome = await classifier.save(link_bill=link_bill, link_invoice=link_invoice)
    except SplitValidationError as exc:
        for error in exc.errors:
            print(error, file=sys.stderr)
        return 1

    if outcome.split:
        print(
            f"Transaction {outcome.transaction_id} split across "
            f"{len(classifier.splits)} accounts"
        )
    else:
        breakdown = classifier.tax_breakdown()
        category = classifier.transaction.get("category")
        line = f"Transaction {outcome.transaction_id} classified to {category}"
        if breakdown is not None:
            line += (
                f" (net {format_currency(breakdown.net_amount)}, "
                f"{breakdown.tax_name} {format_currency(breakdown.tax_amount)})"
            )
        print(line)
    if outcome.payment_error:
        print(f"Payment link failed: {outcome.payment_error}", file=sys.stderr)
    return 0


_COMMANDS = {
    "report": _run_report,
    "aging": _run_aging,
    "close-books": _run_close_books,
    "classify": _run_classify,
}


async def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(level=args.log_level)

    logger.info("command_started", command=args.command)
    try:
        async with LedgerAPIClient() as client:
            return await _COMMANDS[args.command](client, args)
    except (
        LedgerAPIError,
        ExportError,
        UnsupportedReportError,
        ClassificationError,
        LookupError,
        ValueError,
    ) as exc:
        logger.error("command_failed", command=args.command, error=str(exc))
        print(f"error: {exc}", file=sys.stderr)
        return 1


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
