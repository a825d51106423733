"""Tests for the command line interface."""

from datetime import date
from unittest.mock import AsyncMock, patch

import pytest

from ledgerline.api.client import LedgerAPIClient
from ledgerline.cli import build_parser, main


@pytest.fixture
def patched_client(mock_api):
    """Make ``LedgerAPIClient()`` inside the CLI yield the mock API."""
    with patch("ledgerline.cli.LedgerAPIClient") as client_cls:
        client_cls.return_value.__aenter__.return_value = mock_api
        yield mock_api


class TestParser:
    """Tests for argument parsing."""

    def test_report_defaults(self):
        args = build_parser().parse_args(["report", "profit-loss", "--client", "12"])

        assert args.preset == "current-fiscal-year"
        assert args.format == "csv"
        assert args.prior is True

    def test_dates_are_parsed(self):
        args = build_parser().parse_args(
            ["report", "balance-sheet", "--client", "12", "--to", "Dec 31, 2023"]
        )

        assert args.end == date(2023, 12, 31)

    def test_named_fiscal_year_preset(self):
        args = build_parser().parse_args(
            ["report", "trial-balance", "--client", "12", "--preset", "fiscal-2020"]
        )

        assert args.preset == "fiscal-2020"

    @pytest.mark.parametrize(
        "argv",
        [
            ["report", "profit-loss", "--client", "12", "--preset", "next-year"],
            ["report", "profit-loss", "--client", "12", "--from", "someday"],
            ["classify", "--client", "12", "--transaction", "1", "--split", "5020"],
            ["classify", "--client", "12", "--transaction", "1", "--split", "5020:abc"],
            ["aging", "ar", "--client", "12", "--format", "docx"],
        ],
    )
    def test_invalid_arguments(self, argv):
        with pytest.raises(SystemExit):
            build_parser().parse_args(argv)

    def test_split_rows(self):
        args = build_parser().parse_args(
            [
                "classify",
                "--client",
                "12",
                "--transaction",
                "881",
                "--split",
                "5020:79.10",
                "--split",
                "5030:33.90:GST",
            ]
        )

        assert args.split == [("5020", "79.10", None), ("5030", "33.90", "GST")]


class TestCommands:
    """Tests for running commands end to end against a mock API."""

    @pytest.mark.asyncio
    async def test_report_writes_csv(self, patched_client, profit_loss, tmp_path, capsys):
        patched_client.get_profit_loss.return_value = profit_loss
        target = tmp_path / "pl.csv"

        code = await main(
            [
                "report",
                "profit-loss",
                "--client",
                "12",
                "--from",
                "2024-01-01",
                "--to",
                "2024-03-31",
                "--no-prior",
                "--output",
                str(target),
            ]
        )

        assert code == 0
        assert target.read_text(encoding="utf-8").startswith("Profit & Loss,Northwind Traders")
        assert str(target) in capsys.readouterr().out
        patched_client.get_profit_loss.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_report_includes_prior_period(
        self, patched_client, profit_loss, tmp_path, capsys
    ):
        prior = {**profit_loss, "netIncome": "999999.99"}
        patched_client.get_profit_loss.side_effect = [profit_loss, prior]
        target = tmp_path / "pl.csv"

        code = await main(
            [
                "report",
                "profit-loss",
                "--client",
                "12",
                "--from",
                "2024-01-01",
                "--to",
                "2024-03-31",
                "--output",
                str(target),
            ]
        )

        text = target.read_text(encoding="utf-8")
        assert code == 0
        assert patched_client.get_profit_loss.await_count == 2
        assert "Account,Current Period,Prior Period" in text
        assert "NET INCOME,30799.50,999999.99" in text

    @pytest.mark.asyncio
    async def test_report_needs_both_dates(self, patched_client, capsys):
        code = await main(["report", "profit-loss", "--client", "12", "--from", "2024-01-01"])

        assert code == 1
        assert "--from and --to" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_aging_writes_xlsx(self, patched_client, tmp_path, capsys):
        patched_client.get_ar_aging.return_value = [
            {"customerId": 7, "customerName": "Acme Corp", "current": "1130.00"}
        ]
        target = tmp_path / "ar.xlsx"

        code = await main(
            ["aging", "ar", "--client", "12", "--as-of", "2024-07-31", "--output", str(target)]
        )

        assert code == 0
        assert target.exists()
        assert "1 customers, $1,130.00 outstanding" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_aging_detailed_lists_documents(self, patched_client, invoices, tmp_path):
        patched_client.get_ar_aging.return_value = [
            {"customerId": 7, "customerName": "Acme Corp", "current": "1130.00"}
        ]
        patched_client.list_invoices.return_value = invoices
        summary = tmp_path / "summary.csv"
        detailed = tmp_path / "detailed.csv"
        base = ["aging", "ar", "--client", "12", "--as-of", "2024-07-31", "--format", "csv"]

        assert await main([*base, "--output", str(summary)]) == 0
        assert await main([*base, "--detailed", "--output", str(detailed)]) == 0

        summary_text = summary.read_text(encoding="utf-8")
        detailed_text = detailed.read_text(encoding="utf-8")
        assert detailed_text.startswith(summary_text)
        assert "INV-1001" not in summary_text
        assert 'INV-1001,"Jun 20, 2024","Jul 20, 2024",1130.00,0.00,1130.00,41' in detailed_text
        assert "Globex" not in detailed_text
        patched_client.list_invoices.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_books(self, patched_client, capsys):
        patched_client.close_books.return_value = {
            "success": True,
            "netIncome": 1500,
            "closingEntry": {"id": 42},
        }

        code = await main(["close-books", "--client", "12"])

        out = capsys.readouterr().out
        assert code == 0
        assert "Net income of $1,500.00 transferred to Retained Earnings" in out
        assert "Closing entry #42 created" in out

    @pytest.mark.asyncio
    async def test_close_books_failure(self, patched_client, capsys):
        patched_client.close_books.return_value = {"success": False, "message": "Already closed"}

        code = await main(["close-books", "--client", "12"])

        assert code == 1
        assert "Already closed" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_classify_single_account(
        self, patched_client, transaction, accounts, bookkeeping_settings, capsys
    ):
        patched_client.list_transactions.return_value = [transaction]
        patched_client.list_accounts.return_value = accounts
        patched_client.get_bookkeeping_settings.return_value = bookkeeping_settings

        code = await main(
            [
                "classify",
                "--client",
                "12",
                "--transaction",
                "881",
                "--account",
                "5020",
                "--tax-code",
                "HST",
            ]
        )

        assert code == 0
        assert (
            "Transaction 881 classified to Office Supplies (net $100.00, HST $13.00)"
            in capsys.readouterr().out
        )
        payload = patched_client.save_classification.call_args.args[0]
        assert payload["accountId"] == 5020
        assert payload["taxCode"] == "11"

    @pytest.mark.asyncio
    async def test_classify_unbalanced_split(
        self, patched_client, transaction, accounts, capsys
    ):
        patched_client.list_transactions.return_value = [transaction]
        patched_client.list_accounts.return_value = accounts

        code = await main(
            [
                "classify",
                "--client",
                "12",
                "--transaction",
                "881",
                "--split",
                "5020:50",
                "--split",
                "5030:50",
            ]
        )

        assert code == 1
        assert "Split amounts total $100.00" in capsys.readouterr().err
        patched_client.save_split.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_classify_unknown_transaction(self, patched_client, capsys):
        patched_client.list_transactions.return_value = []

        code = await main(["classify", "--client", "12", "--transaction", "404"])

        assert code == 1
        assert "Transaction 404 not found" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_login_failure_exits_cleanly(self, json_response, capsys):
        http = AsyncMock()
        http.post = AsyncMock(return_value=json_response({}, status_code=500))

        with patch.object(LedgerAPIClient, "_get_client", AsyncMock(return_value=http)):
            code = await main(["close-books", "--client", "12"])

        assert code == 1
        assert "Login failed: 500" in capsys.readouterr().err
