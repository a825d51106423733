"""Bank feed reconciliation: turning imported bank lines into ledger entries."""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import structlog

from ledgerline.api.client import ClientId, LedgerAPIClient
from ledgerline.money import ZERO, to_decimal

logger = structlog.get_logger(__name__)

UNRECONCILED = "unreconciled"


def ledger_transaction_from_bank(
    bank_transaction: dict[str, Any], account_id: ClientId
) -> dict[str, Any]:
    """Ledger transaction payload for a bank line.

    Credits become income and everything else an expense; the amount is
    always positive.
    """
    amount = to_decimal(bank_transaction.get("amount")) or ZERO
    return {
        "clientId": bank_transaction.get("clientId"),
        "date": bank_transaction.get("date"),
        "description": bank_transaction.get("description"),
        "amount": float(abs(amount)),
        "type": "income" if bank_transaction.get("type") == "credit" else "expense",
        "status": "confirmed",
        "bankTransactionId": bank_transaction.get("id"),
        "accountId": account_id,
    }


def is_pending(bank_transaction: dict[str, Any]) -> bool:
    return bank_transaction.get("status") == UNRECONCILED


@dataclass
class FeedSummary:
    feed_id: Any
    name: str
    status: str
    uncategorized: int


@dataclass
class ReconciliationSummary:
    """Outcome of reconciling a batch against a statement."""

    account_id: ClientId
    reconciled: int
    total_reconciled: Decimal
    opening_balance: Decimal
    closing_balance: Decimal
    statement_balance: Decimal

    @property
    def difference(self) -> Decimal:
        return self.statement_balance - self.closing_balance


class BankFeedReconciler:
    """Categorize and reconcile a client's imported bank transactions."""

    def __init__(self, client: LedgerAPIClient, client_id: ClientId):
        self._client = client
        self.client_id = client_id
        self._logger = logger.bind(client_id=str(client_id))

    async def transactions(self) -> list[dict[str, Any]]:
        return await self._client.list_bank_transactions(self.client_id)

    async def pending(self) -> list[dict[str, Any]]:
        """Bank transactions still waiting for an account."""
        return [tx for tx in await self.transactions() if is_pending(tx)]

    @staticmethod
    def filter_transactions(
        transactions: Iterable[dict[str, Any]],
        feed_id: Any = None,
        status: str = "all",
        search: str | None = None,
    ) -> list[dict[str, Any]]:
        needle = (search or "").strip().lower()
        result = []
        for tx in transactions:
            if feed_id is not None and tx.get("bankFeedId") != feed_id:
                continue
            if status != "all" and tx.get("status") != status:
                continue
            if needle and needle not in str(tx.get("description") or "").lower():
                continue
            result.append(tx)
        return result

    async def feed_summaries(self) -> list[FeedSummary]:
        feeds = await self._client.list_bank_feeds(self.client_id)
        transactions = await self.transactions()
        summaries = []
        for feed in feeds:
            count = sum(
                1
                for tx in transactions
                if tx.get("bankFeedId") == feed.get("id") and is_pending(tx)
            )
            summaries.append(
                FeedSummary(
                    feed_id=feed.get("id"),
                    name=str(feed.get("name") or feed.get("accountName") or ""),
                    status=str(feed.get("status") or ""),
                    uncategorized=count,
                )
            )
        return summaries

    async def sync(self, feed_id: ClientId) -> dict[str, Any]:
        result = await self._client.sync_bank_feed(feed_id)
        self._logger.info("bank_feed_synced", feed_id=feed_id)
        return result

    async def categorize(
        self, bank_transaction: dict[str, Any], account_id: ClientId
    ) -> dict[str, Any]:
        """Create the ledger transaction, then mark the bank line categorized.

        The bank line is only updated once the ledger transaction exists.
        """
        payload = ledger_transaction_from_bank(bank_transaction, account_id)
        if payload["clientId"] is None:
            payload["clientId"] = self.client_id
        created = await self._client.create_transaction(payload)
        await self._client.categorize_bank_transaction(bank_transaction["id"], account_id)
        self._logger.info(
            "bank_transaction_categorized",
            bank_transaction_id=bank_transaction["id"],
            account_id=account_id,
            type=payload["type"],
        )
        return created

    async def auto_reconcile(self) -> int:
        """Let the backend match transactions; returns how many it matched."""
        result = await self._client.auto_reconcile(self.client_id)
        matched = int(result.get("matchedCount") or 0)
        self._logger.info("auto_reconcile_complete", matched=matched)
        return matched

    async def reconcile(
        self,
        transaction_ids: list[Any],
        account: dict[str, Any],
        statement_balance: Decimal | str | float,
    ) -> ReconciliationSummary:
        """Reconcile the selected bank transactions against a statement balance."""
        if not transaction_ids:
            raise ValueError("Select at least one transaction to reconcile")
        statement = to_decimal(statement_balance, default=None)
        if statement is None:
            raise ValueError(f"Invalid statement balance: {statement_balance!r}")

        account_id = account["id"]
        for transaction_id in transaction_ids:
            await self._client.reconcile_bank_transaction(transaction_id, account_id, statement)

        selected = set(transaction_ids)
        transactions = await self.transactions()
        total = sum(
            (
                to_decimal(tx.get("amount")) or ZERO
                for tx in transactions
                if tx.get("id") in selected
            ),
            ZERO,
        )
        opening = to_decimal(account.get("balance")) or ZERO
        summary = ReconciliationSummary(
            account_id=account_id,
            reconciled=len(transaction_ids),
            total_reconciled=total,
            opening_balance=opening,
            closing_balance=opening + total,
            statement_balance=statement,
        )
        self._logger.info(
            "bank_transactions_reconciled",
            account_id=account_id,
            count=summary.reconciled,
            closing_balance=str(summary.closing_balance),
        )
        return summary

    async def ignore(self, transaction_ids: list[Any]) -> int:
        for transaction_id in transaction_ids:
            await self._client.ignore_bank_transaction(transaction_id)
        self._logger.info("bank_transactions_ignored", count=len(transaction_ids))
        return len(transaction_ids)
