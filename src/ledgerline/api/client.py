"""Ledgerline API client with bearer-token authentication."""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Any, cast

import httpx
import structlog

from ledgerline.config import get_settings

logger = structlog.get_logger(__name__)

ClientId = int | str


class LedgerAPIError(Exception):
    """Base exception for Ledgerline API errors."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class AuthenticationError(LedgerAPIError):
    """Authentication failed or the stored token was rejected."""

    pass


class NotFoundError(LedgerAPIError):
    """Requested resource does not exist."""

    pass


class RateLimitError(LedgerAPIError):
    """Rate limit exceeded."""

    pass


def _iso(value: date | str) -> str:
    return value.isoformat() if isinstance(value, date) else value


class LedgerAPIClient:
    """Async client for the Ledgerline accounting backend."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        username: str | None = None,
        password: str | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self._username = username or settings.username
        if password is None and settings.password is not None:
            password = settings.password.get_secret_value()
        self._password = password
        if token is None and settings.api_token is not None:
            token = settings.api_token.get_secret_value()
        self._token: str | None = token
        self._timeout = settings.timeout
        self._max_retries = settings.max_retries

        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "LedgerAPIClient":
        if not self._token and self.has_credentials:
            await self.login()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # === Authentication ===

    @property
    def has_credentials(self) -> bool:
        return bool(self._username and self._password)

    @property
    def token(self) -> str | None:
        return self._token

    def clear_token(self) -> None:
        """Forget the stored token so the next request re-authenticates."""
        if self._token:
            logger.info("token_cleared")
        self._token = None

    async def login(self) -> dict[str, Any]:
        """Authenticate with username/password and store the issued token."""
        if not self.has_credentials:
            raise AuthenticationError("No credentials configured")

        client = await self._get_client()
        try:
            response = await client.post(
                "/api/login",
                json={"username": self._username, "password": self._password},
            )
        except httpx.RequestError as e:
            raise LedgerAPIError(f"Login request failed: {e}") from e

        if response.status_code == 401:
            raise AuthenticationError("Invalid credentials", status_code=401)
        if response.status_code >= 400:
            message, detail = self._error_message(
                response, f"Login failed: {response.status_code}"
            )
            logger.warning("login_failed", status_code=response.status_code)
            raise LedgerAPIError(message, status_code=response.status_code, details=detail)

        data_raw = response.json()
        if not isinstance(data_raw, dict) or not data_raw.get("token"):
            raise AuthenticationError("Invalid login response format")
        data = cast(dict[str, Any], data_raw)
        self._token = data["token"]

        logger.info("logged_in", user=self._username)
        return data

    async def _ensure_authenticated(self) -> None:
        async with self._lock:
            if not self._token and self.has_credentials:
                await self.login()

    def _get_headers(self) -> dict[str, str]:
        """Get request headers with auth token."""
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    # === Generic Request Methods ===

    @staticmethod
    def _error_message(response: httpx.Response, default: str) -> tuple[str, Any]:
        try:
            detail = response.json() if response.content else {}
        except ValueError:
            detail = {"raw": response.text[:500] if response.text else "empty response"}
        if isinstance(detail, dict) and isinstance(detail.get("message"), str):
            return detail["message"], detail
        return default, detail

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
        retry_count: int = 0,
        reauthenticated: bool = False,
    ) -> Any:
        """Make an authenticated API request.

        Transport failures are retried with exponential backoff. A 401 clears
        the stored token and, when credentials are configured, logs in again
        once before giving up.
        """
        await self._ensure_authenticated()
        client = await self._get_client()

        try:
            response = await client.request(
                method=method,
                url=path,
                params=params,
                json=json,
                headers=self._get_headers(),
            )
        except httpx.RequestError as e:
            if retry_count < self._max_retries:
                logger.warning(
                    "request_retry", method=method, path=path, attempt=retry_count + 1
                )
                await asyncio.sleep(2**retry_count)
                return await self._request(
                    method, path, params, json, retry_count + 1, reauthenticated
                )
            raise LedgerAPIError(f"Request failed: {e}") from e

        if response.status_code == 401:
            self.clear_token()
            if self.has_credentials and not reauthenticated:
                return await self._request(
                    method, path, params, json, retry_count, reauthenticated=True
                )
            message, detail = self._error_message(
                response, "Authentication required. Please log in again."
            )
            raise AuthenticationError(message, status_code=401, details=detail)

        if response.status_code == 404:
            message, detail = self._error_message(response, f"Not found: {path}")
            raise NotFoundError(message, status_code=404, details=detail)

        if response.status_code == 429:
            retry_after = int(response.headers.get("Retry-After", "60"))
            raise RateLimitError(
                f"Rate limited, retry after {retry_after}s",
                status_code=429,
                details={"retry_after": retry_after},
            )

        if response.status_code >= 400:
            message, detail = self._error_message(
                response, f"API error: {response.status_code}"
            )
            logger.warning(
                "api_error", method=method, path=path, status_code=response.status_code
            )
            raise LedgerAPIError(message, status_code=response.status_code, details=detail)

        return response.json() if response.content else {}

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Make GET request."""
        return await self._request("GET", path, params=params)

    async def post(
        self,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Make POST request."""
        return await self._request("POST", path, params=params, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        """Make PUT request."""
        return await self._request("PUT", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        """Make PATCH request."""
        return await self._request("PATCH", path, json=json)

    async def delete(self, path: str) -> Any:
        """Make DELETE request."""
        return await self._request("DELETE", path)

    @staticmethod
    def _extract_items(result: Any) -> list[dict[str, Any]]:
        """Return list of items from a bare list or an enveloped response."""
        if isinstance(result, list):
            return result
        if isinstance(result, dict):
            for key in ("data", "items", "rules", "transactions"):
                items = result.get(key)
                if isinstance(items, list):
                    return items
        return []

    @staticmethod
    def _as_dict(result: Any) -> dict[str, Any]:
        return result if isinstance(result, dict) else {}

    # === Client Settings & Accounts ===

    async def get_bookkeeping_settings(self, client_id: ClientId) -> dict[str, Any]:
        """Get fiscal year and tax settings for a client."""
        result = await self.get(f"/api/clients/{client_id}/bookkeeping-settings")
        return self._as_dict(result)

    async def list_accounts(self, client_id: ClientId) -> list[dict[str, Any]]:
        """List the client's chart of accounts."""
        result = await self.get(f"/api/accounts/{client_id}")
        return self._extract_items(result)

    # === Contact Endpoints ===

    async def list_contacts(
        self, client_id: ClientId, contact_type: str = "customer"
    ) -> list[dict[str, Any]]:
        """List customers or vendors for a client."""
        if contact_type not in ("customer", "vendor"):
            raise ValueError(f"Unknown contact type: {contact_type}")
        result = await self.get(f"/api/crm/contacts/{client_id}/{contact_type}")
        return self._extract_items(result)

    async def create_contact(self, data: dict[str, Any]) -> dict[str, Any]:
        """Create a customer or vendor contact."""
        result = await self.post("/api/crm/contacts", json=data)
        return self._as_dict(result)

    # === Report Endpoints ===

    async def get_balance_sheet(self, client_id: ClientId, as_of: date | str) -> dict[str, Any]:
        """Get balance sheet as of a date."""
        result = await self.get(
            f"/api/reports/balance-sheet/{client_id}", params={"date": _iso(as_of)}
        )
        return self._as_dict(result)

    async def get_profit_loss(
        self,
        client_id: ClientId,
        start: date | str,
        end: date | str,
        period_type: str | None = None,
        dimensions: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Get profit and loss for a period, optionally columnar and filtered."""
        params: dict[str, Any] = {"startDate": _iso(start), "endDate": _iso(end)}
        if period_type and period_type != "single":
            params["periodType"] = period_type
        for key, value in (dimensions or {}).items():
            if value not in (None, "", "all"):
                params[key] = value
        result = await self.get(f"/api/reports/profit-loss/{client_id}", params=params)
        return self._as_dict(result)

    async def get_cash_flow(
        self,
        client_id: ClientId,
        start: date | str,
        end: date | str,
        method: str = "indirect",
    ) -> dict[str, Any]:
        """Get cash flow statement using the direct or indirect method."""
        result = await self.get(
            f"/api/reports/cash-flow/{client_id}",
            params={"startDate": _iso(start), "endDate": _iso(end), "method": method},
        )
        return self._as_dict(result)

    async def get_trial_balance(self, client_id: ClientId, as_of: date | str) -> dict[str, Any]:
        """Get trial balance as of a date."""
        result = await self.get(
            f"/api/reports/trial-balance/{client_id}", params={"date": _iso(as_of)}
        )
        return self._as_dict(result)

    async def get_general_ledger(
        self, client_id: ClientId, start: date | str, end: date | str
    ) -> dict[str, Any]:
        """Get general ledger detail for a period."""
        result = await self.get(
            f"/api/reports/general-ledger/{client_id}",
            params={"startDate": _iso(start), "endDate": _iso(end)},
        )
        return self._as_dict(result)

    async def close_books(self, client_id: ClientId, fiscal_year_end: date | str) -> dict[str, Any]:
        """Close the fiscal year, moving net income to retained earnings."""
        result = await self.post(
            f"/api/reports/close-books/{client_id}",
            json={"fiscalYearEnd": _iso(fiscal_year_end)},
        )
        return self._as_dict(result)

    # === Aging Endpoints ===

    async def get_ar_aging(self, client_id: ClientId, as_of: date | str) -> list[dict[str, Any]]:
        """Get backend-computed receivables aging rows per customer."""
        result = await self.get(
            "/api/crm/customers/aging-report",
            params={"clientId": client_id, "asOfDate": _iso(as_of)},
        )
        return self._extract_items(result)

    async def get_ap_aging(self, client_id: ClientId, as_of: date | str) -> list[dict[str, Any]]:
        """Get backend-computed payables aging rows per vendor."""
        result = await self.get(
            "/api/crm/vendors/aging-report",
            params={"clientId": client_id, "asOfDate": _iso(as_of)},
        )
        return self._extract_items(result)

    async def list_invoices(self, client_id: ClientId) -> list[dict[str, Any]]:
        """List invoices for a client."""
        result = await self.get(f"/api/crm/invoices/{client_id}")
        return self._extract_items(result)

    async def list_bills(self, client_id: ClientId) -> list[dict[str, Any]]:
        """List bills for a client."""
        result = await self.get("/api/bills", params={"clientId": client_id})
        return self._extract_items(result)

    async def record_bill_payment(
        self, bill_id: ClientId, payment: dict[str, Any]
    ) -> dict[str, Any]:
        """Record a payment against a bill."""
        result = await self.post(f"/api/crm/bill/{bill_id}/payment", json=payment)
        return self._as_dict(result)

    async def record_invoice_payment(
        self, invoice_id: ClientId, payment: dict[str, Any]
    ) -> dict[str, Any]:
        """Record a payment against an invoice."""
        result = await self.post(f"/api/crm/invoice/{invoice_id}/payment", json=payment)
        return self._as_dict(result)

    # === Bank Feed Endpoints ===

    async def list_bank_feeds(self, client_id: ClientId) -> list[dict[str, Any]]:
        """List connected bank feeds."""
        result = await self.get(f"/api/bank-feeds/{client_id}")
        return self._extract_items(result)

    async def sync_bank_feed(self, bank_feed_id: ClientId) -> dict[str, Any]:
        """Pull new transactions for a bank feed."""
        result = await self.post(f"/api/bank-feeds/{bank_feed_id}/sync")
        return self._as_dict(result)

    async def list_bank_transactions(self, client_id: ClientId) -> list[dict[str, Any]]:
        """List imported bank transactions."""
        result = await self.get(f"/api/bank-transactions/{client_id}")
        return self._extract_items(result)

    async def categorize_bank_transaction(
        self, transaction_id: ClientId, account_id: ClientId
    ) -> dict[str, Any]:
        """Assign a ledger account to a bank transaction."""
        result = await self.post(
            f"/api/bank-transactions/{transaction_id}/categorize",
            json={"accountId": account_id},
        )
        return self._as_dict(result)

    async def auto_reconcile(self, client_id: ClientId) -> dict[str, Any]:
        """Ask the backend to match bank transactions automatically."""
        result = await self.post(
            "/api/bank-transactions/auto-reconcile", json={"clientId": client_id}
        )
        return self._as_dict(result)

    async def reconcile_bank_transaction(
        self,
        transaction_id: ClientId,
        account_id: ClientId,
        statement_balance: Decimal | float,
    ) -> dict[str, Any]:
        """Mark a bank transaction reconciled against a statement."""
        result = await self.post(
            f"/api/bank-transactions/{transaction_id}/reconcile",
            json={"accountId": account_id, "statementBalance": float(statement_balance)},
        )
        return self._as_dict(result)

    async def ignore_bank_transaction(self, transaction_id: ClientId) -> dict[str, Any]:
        """Exclude a bank transaction from reconciliation."""
        result = await self.post(f"/api/bank-transactions/{transaction_id}/ignore", json={})
        return self._as_dict(result)

    async def list_transactions(self, client_id: ClientId) -> list[dict[str, Any]]:
        """List ledger transactions for a client."""
        result = await self.get(f"/api/transactions/{client_id}")
        return self._extract_items(result)

    async def create_transaction(self, data: dict[str, Any]) -> dict[str, Any]:
        """Create a ledger transaction."""
        result = await self.post("/api/transactions", json=data)
        return self._as_dict(result)

    # === Classification Endpoints ===

    async def list_rules(self, client_id: ClientId) -> list[dict[str, Any]]:
        """List categorization rules for a client."""
        result = await self.get("/api/rules", params={"clientId": client_id})
        return self._extract_items(result)

    async def get_split_data(self, transaction_id: ClientId) -> dict[str, Any]:
        """Get stored account splits for a transaction."""
        result = await self.get(
            f"/api/transactions/classification/split-data/{transaction_id}"
        )
        return self._as_dict(result)

    async def save_split(
        self,
        transaction_id: ClientId,
        splits: list[dict[str, Any]],
        client_id: ClientId,
        memo: str | None = None,
    ) -> dict[str, Any]:
        """Save a transaction classified across several accounts."""
        payload: dict[str, Any] = {
            "transactionId": transaction_id,
            "splits": splits,
            "clientId": client_id,
        }
        if memo:
            payload["memo"] = memo
        result = await self.post("/api/transactions/classification/save-split", json=payload)
        return self._as_dict(result)

    async def save_classification(
        self, transaction: dict[str, Any], client_id: ClientId
    ) -> dict[str, Any]:
        """Save a transaction classified to a single account."""
        result = await self.post(
            "/api/transactions/classification/save",
            json={"transaction": transaction, "clientId": client_id},
        )
        return self._as_dict(result)
