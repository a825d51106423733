"""Account splits for a single bank transaction.

A split transaction allocates one transaction's amount across several
ledger accounts. The split amounts must add up to the transaction amount
within one cent before the classification can be saved.
"""

from collections.abc import Sequence
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any

import structlog

from ledgerline.money import CENT, ZERO, round_cents, to_decimal
from ledgerline.tax import EXEMPT_ID

logger = structlog.get_logger(__name__)

SPLIT_TOLERANCE = CENT


class SplitValidationError(ValueError):
    """Splits cannot be saved as they stand."""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


@dataclass(frozen=True)
class AccountSplit:
    """One allocation row."""

    id: str
    account_id: Any
    amount: Decimal
    description: str = ""
    tax_code: str = EXEMPT_ID

    @classmethod
    def from_api(
        cls, data: dict[str, Any], index: int, default_description: str = ""
    ) -> "AccountSplit":
        account_id = data.get("accountId")
        if isinstance(account_id, str):
            account_id = account_id.strip()
            if account_id.lstrip("-").isdigit():
                account_id = int(account_id)
            elif account_id in ("", "None", "null"):
                account_id = None
        return cls(
            id=str(data.get("id") or f"split-{index + 1}"),
            account_id=account_id,
            amount=to_decimal(data.get("amount")) or ZERO,
            description=str(data.get("description") or default_description),
            tax_code=str(data.get("taxCode") or EXEMPT_ID),
        )

    def to_api(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "accountId": self.account_id,
            "amount": float(self.amount),
            "description": self.description,
            "taxCode": self.tax_code or EXEMPT_ID,
        }


def transaction_amount(transaction: dict[str, Any]) -> Decimal:
    """Absolute amount of a transaction.

    Uses the first non-zero of ``debitAmount``, ``creditAmount`` and
    ``amount``.
    """
    for key in ("debitAmount", "creditAmount", "amount"):
        value = to_decimal(transaction.get(key)) or ZERO
        if value != 0:
            return abs(value)
    return ZERO


def split_total(splits: Sequence[AccountSplit]) -> Decimal:
    return sum((split.amount for split in splits), ZERO)


def splits_balance(splits: Sequence[AccountSplit], amount: Decimal) -> bool:
    return abs(split_total(splits) - amount) <= SPLIT_TOLERANCE


def initial_splits(
    transaction: dict[str, Any],
    amount: Decimal,
    tax_code: str,
) -> list[AccountSplit]:
    """Two starting rows, 70% on the transaction's account and 30% unassigned."""
    description = str(transaction.get("description") or "")
    first = round_cents(amount * Decimal("0.7"))
    return [
        AccountSplit("1", transaction.get("accountId"), first, description, tax_code),
        AccountSplit("2", None, amount - first, description, tax_code),
    ]


def rebalance(
    splits: Sequence[AccountSplit],
    amount: Decimal,
    fallback_account_id: Any = None,
) -> list[AccountSplit]:
    """Scale split amounts so they add up to ``amount``.

    Each row is scaled by ``amount / total`` and rounded to cents; the
    rounding residue goes on the largest row, the last one among equals.
    When the rows total zero there is nothing to scale, so the first two
    rows are reset to a half/half pair.
    """
    rows = list(splits)
    if not rows or splits_balance(rows, amount):
        return rows

    total = split_total(rows)
    if total > 0:
        ratio = amount / total
        scaled = [replace(row, amount=round_cents(row.amount * ratio)) for row in rows]
        residue = amount - split_total(scaled)
        if residue:
            index = max(range(len(scaled)), key=lambda i: (scaled[i].amount, i))
            scaled[index] = replace(scaled[index], amount=scaled[index].amount + residue)
        logger.info(
            "splits_rebalanced",
            previous_total=str(total),
            transaction_amount=str(amount),
            rows=len(scaled),
        )
        return scaled

    half = round_cents(amount / 2)
    first = replace(rows[0], id="1", amount=half, tax_code=EXEMPT_ID)
    if len(rows) == 1:
        return [replace(first, amount=amount)]
    second = replace(
        rows[1],
        id="2",
        account_id=rows[1].account_id if rows[1].account_id is not None else fallback_account_id,
        amount=amount - half,
        tax_code=EXEMPT_ID,
    )
    logger.info("splits_reset", transaction_amount=str(amount))
    return [first, second, *rows[2:]]


def validate_splits(splits: Sequence[AccountSplit], amount: Decimal) -> list[str]:
    """Problems preventing a save; empty when the splits are valid."""
    if not splits:
        return ["At least one split is required"]

    errors: list[str] = []
    for index, split in enumerate(splits, start=1):
        if split.account_id in (None, ""):
            errors.append(f"Split {index}: Account is required")
        if split.amount <= 0:
            errors.append(f"Split {index}: Amount must be greater than 0")

    total = split_total(splits)
    if abs(total - amount) > SPLIT_TOLERANCE:
        errors.append(
            f"Split amounts total ${total:,.2f} but transaction amount is ${amount:,.2f}"
        )
    return errors


def split_memo(splits: Sequence[AccountSplit]) -> str:
    """Memo text the backend uses to reconstruct splits."""
    parts = ", ".join(
        f"{split.account_id}:{split.amount}:{split.tax_code or EXEMPT_ID}" for split in splits
    )
    return f"Split into {len(splits)} accounts: {parts}"


def parse_split_memo(memo: str | None, description: str = "") -> list[AccountSplit]:
    """Recover splits from a memo written by :func:`split_memo`."""
    if not memo or not memo.startswith("Split into"):
        return []
    _, _, body = memo.partition(": ")
    splits: list[AccountSplit] = []
    for index, chunk in enumerate(part.strip() for part in body.split(",")):
        fields = chunk.split(":")
        if len(fields) != 3:
            continue
        account, amount, code = fields
        splits.append(
            AccountSplit.from_api(
                {"accountId": account, "amount": amount, "taxCode": code},
                index,
                default_description=description,
            )
        )
    return splits
