"""Classify one bank transaction to a ledger account, or split it across several.

The classifier walks a small state machine::

    UNLOADED --load()--> SINGLE | SPLIT --save()--> SAVED

``enable_split``/``disable_split`` toggle between the single-account and
split modes. A saved classification remembers its mode, so saving again
re-sends the same kind of classification. A split save is refused
locally, before anything is sent, unless the rows add up to the
transaction amount.
"""

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Literal

import structlog

from ledgerline.api.client import ClientId, LedgerAPIClient, LedgerAPIError
from ledgerline.money import ZERO, round_cents, to_decimal
from ledgerline.rules import CategorizationRule, find_matching_rule
from ledgerline.splits import (
    AccountSplit,
    SplitValidationError,
    initial_splits,
    parse_split_memo,
    rebalance,
    split_memo,
    transaction_amount,
    validate_splits,
)
from ledgerline.tax import TaxBreakdown, TaxTable

logger = structlog.get_logger(__name__)

ACCOUNT_REQUIRED_MESSAGE = "Please select an account for this transaction"
SPLIT_CATEGORY = "Split Transaction"

_SPLIT_FIELDS = {"account_id", "amount", "description", "tax_code"}


class ClassificationState(str, Enum):
    UNLOADED = "unloaded"
    SINGLE = "single"
    SPLIT = "split"
    SAVED = "saved"


class ClassificationError(Exception):
    """Operation not possible in the classifier's current state."""


@dataclass(frozen=True)
class PaymentLink:
    """An open bill or invoice to mark paid with the saved transaction."""

    kind: Literal["bill", "invoice"]
    document: dict[str, Any]

    @property
    def document_id(self) -> Any:
        return self.document.get("id")

    @property
    def number(self) -> str:
        key = "billNumber" if self.kind == "bill" else "invoiceNumber"
        return str(self.document.get(key) or self.document_id)

    @property
    def total_amount(self) -> Decimal:
        return to_decimal(self.document.get("totalAmount")) or ZERO


@dataclass
class SaveOutcome:
    """What ``save`` sent and what came back."""

    transaction_id: Any
    split: bool
    response: dict[str, Any]
    payment: dict[str, Any] | None = None
    payment_error: str | None = None


class TransactionClassifier:
    """Account, tax code and split editing for a single transaction.

    Args:
        client: API client used for loading and saving.
        client_id: Tenant the transaction belongs to.
        transaction: Transaction record as returned by the backend.
        accounts: The client's chart of accounts, used to name categories
            and to validate suggestions.
    """

    def __init__(
        self,
        client: LedgerAPIClient,
        client_id: ClientId,
        transaction: dict[str, Any],
        accounts: list[dict[str, Any]] | None = None,
    ):
        self._client = client
        self.client_id = client_id
        self.transaction = dict(transaction)
        self.accounts = list(accounts or [])
        self.amount = transaction_amount(transaction)
        self.tax_table = TaxTable([], None)
        self.rules: list[CategorizationRule] = []
        self.splits: list[AccountSplit] = []
        self.applied_rule: CategorizationRule | None = None
        self._split_mode = False
        self.state = ClassificationState.UNLOADED
        self._logger = logger.bind(
            transaction_id=transaction.get("id"), client_id=str(client_id)
        )

    @property
    def transaction_id(self) -> Any:
        return self.transaction.get("id")

    @property
    def is_split(self) -> bool:
        return self._split_mode

    # === Loading ===

    async def load(self) -> ClassificationState:
        """Fetch tax settings, rules and stored splits, then pick a mode."""
        try:
            settings = await self._client.get_bookkeeping_settings(self.client_id)
        except LedgerAPIError as exc:
            self._logger.warning("tax_settings_unavailable", error=str(exc))
            settings = {}
        self.tax_table = TaxTable.from_settings(settings)
        if len(self.tax_table) or self.transaction.get("taxCode"):
            self.transaction["taxCode"] = self.tax_table.initial_code(self.transaction)

        try:
            raw_rules = await self._client.list_rules(self.client_id)
        except LedgerAPIError as exc:
            self._logger.warning("rules_unavailable", error=str(exc))
            raw_rules = []
        self.rules = [CategorizationRule.from_api(rule) for rule in raw_rules]

        if not self.transaction.get("accountId"):
            rule = find_matching_rule(self.rules, self.transaction.get("description"))
            if rule is not None:
                self._assign_rule(rule, tax_code=self.tax_table.default_id)
                self._logger.info("rule_auto_applied", rule=rule.name)

        self.splits = await self._load_splits()
        self._split_mode = bool(self.splits)
        self.state = ClassificationState.SPLIT if self._split_mode else ClassificationState.SINGLE
        self._logger.info(
            "classification_loaded",
            state=self.state.value,
            tax_options=len(self.tax_table),
            rules=len(self.rules),
            splits=len(self.splits),
        )
        return self.state

    async def _load_splits(self) -> list[AccountSplit]:
        description = str(self.transaction.get("description") or "")
        try:
            data = await self._client.get_split_data(self.transaction_id)
        except LedgerAPIError as exc:
            self._logger.warning("split_data_unavailable", error=str(exc))
            data = {}

        raw = data.get("splits") if data.get("isSplit") else None
        if raw:
            rows = [
                AccountSplit.from_api(item, index, description)
                for index, item in enumerate(raw)
            ]
            return rebalance(rows, self.amount, self._secondary_account_id())

        memo = str(self.transaction.get("memo") or "")
        rows = parse_split_memo(memo, description)
        if rows:
            self._logger.info("splits_recovered_from_memo", rows=len(rows))
            return rebalance(rows, self.amount, self._secondary_account_id())
        if "Split into" in memo or self.transaction.get("category") == SPLIT_CATEGORY:
            return initial_splits(self.transaction, self.amount, self._tax_code())
        return []

    def _secondary_account_id(self) -> Any:
        """Account to offer on the second row of a reset split."""
        current = self.transaction.get("accountId")
        first = self._account(current)
        preferred = {"income": "expense", "expense": "income"}.get(
            str((first or {}).get("type") or "")
        )
        for account_type in (preferred, "asset", "expense", "income"):
            if account_type is None:
                continue
            match = next(
                (
                    account
                    for account in self.accounts
                    if account.get("type") == account_type and account.get("id") != current
                ),
                None,
            )
            if match is not None:
                return match.get("id")
        return None

    # === Single-account editing ===

    def _account(self, account_id: Any) -> dict[str, Any] | None:
        if account_id in (None, ""):
            return None
        return next(
            (a for a in self.accounts if str(a.get("id")) == str(account_id)), None
        )

    def _tax_code(self) -> str:
        return str(self.transaction.get("taxCode") or self.tax_table.default_id)

    def set_account(self, account_id: Any) -> None:
        account = self._account(account_id)
        self.transaction["accountId"] = account_id
        self.transaction["category"] = account.get("name") if account else "Uncategorized"

    def set_tax_code(self, tax_id: str) -> None:
        if self.tax_table.get(tax_id) is None:
            raise ValueError(f"Unknown tax code: {tax_id}")
        self.transaction["taxCode"] = tax_id

    def _assign_rule(self, rule: CategorizationRule, tax_code: str) -> None:
        self.set_account(rule.account_id)
        self.transaction["taxCode"] = tax_code
        if rule.memo:
            self.transaction["memo"] = rule.memo
        self.applied_rule = rule

    def apply_rule(self, rule: CategorizationRule) -> None:
        """Apply a rule chosen by the user, honouring its tax code name."""
        if rule.tax_code:
            tax_code = self.tax_table.resolve_code(rule.tax_code)
        else:
            tax_code = self._tax_code()
        self._assign_rule(rule, tax_code)
        self._logger.info("rule_applied", rule=rule.name, account_id=rule.account_id)

    def apply_suggestion(self, suggestion: dict[str, Any]) -> bool:
        """Apply an account/tax suggestion if its account exists.

        Returns False (leaving the transaction untouched) when the suggested
        account is not in the chart of accounts.
        """
        account = self._account(suggestion.get("accountId"))
        if account is None:
            self._logger.warning(
                "suggestion_account_missing", account_id=suggestion.get("accountId")
            )
            return False
        self.set_account(account.get("id"))
        if suggestion.get("category"):
            self.transaction["category"] = suggestion["category"]
        self.transaction["taxCode"] = self.tax_table.resolve_code(suggestion.get("taxCode"))
        return True

    def tax_breakdown(self) -> TaxBreakdown | None:
        return self.tax_table.breakdown(self.amount, self._tax_code())

    # === Split editing ===

    def _require_split(self) -> None:
        if not self._split_mode:
            raise ClassificationError("Transaction is not in split mode")

    def enable_split(self) -> list[AccountSplit]:
        if self.state is ClassificationState.UNLOADED:
            raise ClassificationError("Load the transaction before splitting it")
        if not self.splits:
            self.splits = initial_splits(self.transaction, self.amount, self._tax_code())
        self._split_mode = True
        self.state = ClassificationState.SPLIT
        return self.splits

    def disable_split(self) -> None:
        """Return to single-account mode; split rows are kept for re-enabling."""
        self._require_split()
        self._split_mode = False
        self.state = ClassificationState.SINGLE

    def add_split(
        self,
        account_id: Any = None,
        amount: Decimal | int | str = ZERO,
        description: str | None = None,
        tax_code: str | None = None,
    ) -> AccountSplit:
        self._require_split()
        used = [int(s.id) for s in self.splits if s.id.isdigit()]
        split = AccountSplit(
            id=str(max(used, default=0) + 1),
            account_id=account_id,
            amount=round_cents(to_decimal(amount) or ZERO),
            description=(
                description
                if description is not None
                else str(self.transaction.get("description") or "")
            ),
            tax_code=tax_code or self._tax_code(),
        )
        self.splits.append(split)
        return split

    def remove_split(self, split_id: str) -> None:
        self._require_split()
        remaining = [s for s in self.splits if s.id != split_id]
        if len(remaining) == len(self.splits):
            raise KeyError(split_id)
        self.splits = remaining

    def update_split(self, split_id: str, **changes: Any) -> AccountSplit:
        """Change fields of one row (``account_id``, ``amount``, ``description``, ``tax_code``)."""
        self._require_split()
        unknown = set(changes) - _SPLIT_FIELDS
        if unknown:
            raise TypeError(f"Unknown split fields: {', '.join(sorted(unknown))}")
        if "amount" in changes:
            changes["amount"] = round_cents(to_decimal(changes["amount"]) or ZERO)
        for index, split in enumerate(self.splits):
            if split.id == split_id:
                self.splits[index] = replace(split, **changes)
                return self.splits[index]
        raise KeyError(split_id)

    def split_breakdowns(self) -> list[tuple[AccountSplit, TaxBreakdown | None]]:
        return [(s, self.tax_table.breakdown(s.amount, s.tax_code)) for s in self.splits]

    def validation_errors(self) -> list[str]:
        if self._split_mode:
            return validate_splits(self.splits, self.amount)
        if not self.transaction.get("accountId"):
            return [ACCOUNT_REQUIRED_MESSAGE]
        return []

    # === Saving ===

    async def save(
        self,
        link_bill: dict[str, Any] | None = None,
        link_invoice: dict[str, Any] | None = None,
    ) -> SaveOutcome:
        """Persist the classification.

        Raises:
            SplitValidationError: Split rows are invalid; nothing is sent.
            ClassificationError: No account chosen, or not loaded.
        """
        if self.state is ClassificationState.UNLOADED:
            raise ClassificationError("Load the transaction before saving it")
        if link_bill is not None and link_invoice is not None:
            raise ValueError("Link either a bill or an invoice, not both")

        if self._split_mode:
            outcome = await self._save_split()
        else:
            outcome = await self._save_single()

        link = None
        if link_bill is not None:
            link = PaymentLink("bill", link_bill)
        elif link_invoice is not None:
            link = PaymentLink("invoice", link_invoice)
        if link is not None and outcome.transaction_id is not None:
            await self._link_payment(link, outcome)

        self.transaction["status"] = "categorized"
        self.state = ClassificationState.SAVED
        return outcome

    async def _save_split(self) -> SaveOutcome:
        errors = validate_splits(self.splits, self.amount)
        if errors:
            self._logger.info("split_save_rejected", errors=errors)
            raise SplitValidationError(errors)

        memo = split_memo(self.splits)
        response = await self._client.save_split(
            self.transaction_id,
            [split.to_api() for split in self.splits],
            self.client_id,
            memo=memo,
        )
        self.transaction["memo"] = memo
        self.transaction["category"] = SPLIT_CATEGORY
        self._logger.info("split_saved", rows=len(self.splits), amount=str(self.amount))
        return SaveOutcome(self.transaction_id, split=True, response=response)

    async def _save_single(self) -> SaveOutcome:
        if not self.transaction.get("accountId"):
            raise ClassificationError(ACCOUNT_REQUIRED_MESSAGE)

        breakdown = self.tax_breakdown()
        payload = {
            **self.transaction,
            "hstCalculation": breakdown.to_api() if breakdown else None,
            "status": "categorized",
        }
        response = await self._client.save_classification(payload, self.client_id)
        saved = response.get("transaction")
        saved_id = saved.get("id") if isinstance(saved, dict) else None
        self._logger.info(
            "classification_saved",
            account_id=self.transaction.get("accountId"),
            tax_code=self._tax_code(),
        )
        return SaveOutcome(saved_id or self.transaction_id, split=False, response=response)

    def _payment_date(self) -> str:
        raw = self.transaction.get("transactionDate") or self.transaction.get("date")
        if raw:
            return str(raw)[:10]
        return date.today().isoformat()

    async def _link_payment(self, link: PaymentLink, outcome: SaveOutcome) -> None:
        payment = {
            "amount": float(min(self.amount, link.total_amount)),
            "paymentDate": self._payment_date(),
            "paymentMethod": "bank_transfer",
            "transactionId": outcome.transaction_id,
        }
        if link.kind == "bill":
            payment["reference"] = f"Transaction {outcome.transaction_id}"
            payment["notes"] = ""
        try:
            if link.kind == "bill":
                await self._client.record_bill_payment(link.document_id, payment)
            else:
                await self._client.record_invoice_payment(link.document_id, payment)
        except LedgerAPIError as exc:
            # The classification itself is already saved.
            self._logger.warning(
                "payment_link_failed", kind=link.kind, number=link.number, error=str(exc)
            )
            outcome.payment_error = str(exc)
            return
        outcome.payment = payment
        self._logger.info(
            "payment_linked", kind=link.kind, number=link.number, amount=payment["amount"]
        )
