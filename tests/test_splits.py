"""Tests for split transactions."""

from decimal import Decimal

from ledgerline.splits import (
    AccountSplit,
    initial_splits,
    parse_split_memo,
    rebalance,
    split_memo,
    split_total,
    transaction_amount,
    validate_splits,
)


def _split(split_id, account_id, amount, tax_code="exempt"):
    return AccountSplit(split_id, account_id, Decimal(amount), "Staples", tax_code)


class TestTransactionAmount:
    """Tests for transaction_amount."""

    def test_uses_debit_amount(self, transaction):
        assert transaction_amount(transaction) == Decimal("113.00")

    def test_falls_back_to_absolute_amount(self):
        assert transaction_amount({"debitAmount": "0", "amount": "-42.10"}) == Decimal("42.10")

    def test_missing_amounts(self):
        assert transaction_amount({}) == Decimal("0")


class TestInitialSplits:
    """Tests for the starting split pair."""

    def test_seventy_thirty(self, transaction):
        transaction["accountId"] = 5020

        first, second = initial_splits(transaction, Decimal("113.00"), "11")

        assert first.account_id == 5020
        assert first.amount == Decimal("79.10")
        assert second.account_id is None
        assert second.amount == Decimal("33.90")
        assert first.tax_code == second.tax_code == "11"

    def test_odd_cents_keep_total(self):
        splits = initial_splits({}, Decimal("0.05"), "exempt")

        assert split_total(splits) == Decimal("0.05")


class TestRebalance:
    """Tests for rebalancing stored splits to the transaction amount."""

    def test_balanced_rows_unchanged(self):
        rows = [_split("1", 1, "60"), _split("2", 2, "40")]

        assert rebalance(rows, Decimal("100")) == rows

    def test_scales_proportionally(self):
        rows = [_split("1", 1, "50"), _split("2", 2, "50")]

        result = rebalance(rows, Decimal("113.00"))

        assert [row.amount for row in result] == [Decimal("56.50"), Decimal("56.50")]

    def test_residue_on_last_of_equal_rows(self):
        rows = [_split("1", 1, "1"), _split("2", 2, "1"), _split("3", 3, "1")]

        result = rebalance(rows, Decimal("10.00"))

        assert [row.amount for row in result] == [
            Decimal("3.33"),
            Decimal("3.33"),
            Decimal("3.34"),
        ]

    def test_residue_never_leaves_a_negative_row(self):
        rows = [_split("1", 1, "0.50"), _split("2", 2, "0.50"), _split("3", 3, "0.00")]

        result = rebalance(rows, Decimal("0.01"))

        assert [row.amount for row in result] == [
            Decimal("0.01"),
            Decimal("0.00"),
            Decimal("0.00"),
        ]
        assert all(row.amount >= 0 for row in result)

    def test_residue_on_largest_row(self):
        rows = [_split("1", 1, "2"), _split("2", 2, "1"), _split("3", 3, "1")]

        result = rebalance(rows, Decimal("10.03"))

        assert [row.amount for row in result] == [
            Decimal("5.01"),
            Decimal("2.51"),
            Decimal("2.51"),
        ]

    def test_zero_total_resets_to_halves(self):
        rows = [_split("a", 5020, "0", "11"), _split("b", None, "0", "11")]

        first, second = rebalance(rows, Decimal("100.01"), fallback_account_id=5030)

        assert first.amount == Decimal("50.01")
        assert second.amount == Decimal("50.00")
        assert second.account_id == 5030
        assert (first.id, second.id) == ("1", "2")
        assert first.tax_code == "exempt"


class TestValidateSplits:
    """Tests for split validation."""

    def test_valid(self):
        rows = [_split("1", 1, "79.10"), _split("2", 2, "33.90")]

        assert validate_splits(rows, Decimal("113.00")) == []

    def test_within_one_cent(self):
        rows = [_split("1", 1, "79.10"), _split("2", 2, "33.89")]

        assert validate_splits(rows, Decimal("113.00")) == []

    def test_total_mismatch(self):
        rows = [_split("1", 1, "79.10"), _split("2", 2, "30.00")]

        errors = validate_splits(rows, Decimal("113.00"))

        assert errors == ["Split amounts total $109.10 but transaction amount is $113.00"]

    def test_missing_account_and_amount(self):
        rows = [_split("1", None, "113.00"), _split("2", 2, "0")]

        errors = validate_splits(rows, Decimal("113.00"))

        assert "Split 1: Account is required" in errors
        assert "Split 2: Amount must be greater than 0" in errors

    def test_empty(self):
        assert validate_splits([], Decimal("1")) == ["At least one split is required"]


class TestSplitMemo:
    """Tests for the split memo format."""

    def test_memo_text(self):
        rows = [_split("1", 5020, "79.10", "11"), _split("2", 5030, "33.90")]

        assert split_memo(rows) == "Split into 2 accounts: 5020:79.10:11, 5030:33.90:exempt"

    def test_parse_memo(self):
        memo = "Split into 2 accounts: 5020:79.10:11, 5030:33.90:exempt"

        rows = parse_split_memo(memo, "Staples")

        assert [(r.account_id, r.amount, r.tax_code) for r in rows] == [
            (5020, Decimal("79.10"), "11"),
            (5030, Decimal("33.90"), "exempt"),
        ]
        assert rows[0].description == "Staples"

    def test_other_memo_ignored(self):
        assert parse_split_memo("Office supplies") == []
        assert parse_split_memo(None) == []

    def test_to_api(self):
        payload = _split("1", 5020, "79.10", "11").to_api()

        assert payload == {
            "id": "1",
            "accountId": 5020,
            "amount": 79.1,
            "description": "Staples",
            "taxCode": "11",
        }
