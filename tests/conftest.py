"""Pytest configuration and fixtures."""

import os
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("LEDGERLINE_USERNAME", "test@example.com")
os.environ.setdefault("LEDGERLINE_PASSWORD", "testpassword")
os.environ.setdefault("FIRM_NAME", "Test Bookkeeping")


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx AsyncClient."""
    client = AsyncMock()
    client.request = AsyncMock()
    client.post = AsyncMock()
    client.get = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def json_response():
    """Build a mock httpx response carrying a JSON payload."""

    def make(payload, status_code=200, headers=None):
        response = MagicMock()
        response.status_code = status_code
        response.json.return_value = payload
        response.content = b"content" if payload is not None else b""
        response.headers = headers or {}
        response.raise_for_status = MagicMock()
        return response

    return make


@pytest.fixture
def mock_login_response():
    """Mock successful login response."""
    return {
        "token": "token-123",
        "user": {"id": 1, "username": "test@example.com", "firmName": "Test Bookkeeping"},
    }


@pytest.fixture
def bookkeeping_settings():
    """Bookkeeping settings with a July 31 year end and two tax codes."""
    return {
        "fiscalYearEndMonth": 7,
        "fiscalYearEndDay": 31,
        "taxSettings": [
            {"id": 11, "name": "HST", "rate": 13, "accountId": 2200, "isDefault": True},
            {"id": 12, "name": "GST", "rate": "0.05", "accountId": 2210},
            {"id": 13, "name": "PST", "rate": 7, "accountId": 2220, "isActive": False},
        ],
    }


@pytest.fixture
def accounts():
    """A small chart of accounts."""
    return [
        {"id": 1000, "name": "Chequing", "type": "asset"},
        {"id": 4010, "name": "Consulting Revenue", "type": "income"},
        {"id": 5020, "name": "Office Supplies", "type": "expense"},
        {"id": 5030, "name": "Software Subscriptions", "type": "expense"},
    ]


@pytest.fixture
def transaction():
    """An uncategorized bank withdrawal."""
    return {
        "id": 881,
        "clientId": 12,
        "date": "2024-03-15T00:00:00.000Z",
        "description": "STAPLES #221 TORONTO",
        "debitAmount": "113.00",
        "creditAmount": None,
        "amount": "-113.00",
        "accountId": None,
        "category": None,
        "memo": None,
        "status": "pending",
    }


@pytest.fixture
def rules():
    """Categorization rules as returned by the backend."""
    return [
        {
            "id": 1,
            "rule_name": "Adobe",
            "pattern": "ADOBE",
            "match_type": "contains",
            "account_id": 5030,
            "tax_code": "HST",
        },
        {
            "id": 2,
            "rule_name": "Staples",
            "pattern": "staples",
            "match_type": "starts_with",
            "account_id": 5020,
            "memo": "Office supplies",
        },
    ]


@pytest.fixture
def invoices():
    """Open and paid invoices for two customers."""
    return [
        {
            "id": 1,
            "invoiceNumber": "INV-1001",
            "customerId": 7,
            "customerName": "Acme Corp",
            "date": "2024-06-20",
            "dueDate": "2024-07-20",
            "totalAmount": "1130.00",
            "paidAmount": "0",
            "balanceDue": "1130.00",
        },
        {
            "id": 2,
            "invoiceNumber": "INV-1002",
            "customerId": 7,
            "customerName": "Acme Corp",
            "date": "2024-03-01",
            "totalAmount": "500.00",
            "paidAmount": "200.00",
        },
        {
            "id": 3,
            "invoiceNumber": "INV-1003",
            "customerId": 9,
            "customerName": "Globex",
            "date": "2024-05-10",
            "totalAmount": "250.00",
            "paidAmount": "250.00",
        },
        {
            "id": 4,
            "invoiceNumber": "INV-1004",
            "customerId": 9,
            "customerName": "Globex",
            "date": "2024-07-15",
            "totalAmount": "90.00",
            "balanceDue": "90.00",
        },
    ]


@pytest.fixture
def balance_sheet():
    """Balance sheet payload with grouped asset and liability sections."""
    return {
        "clientName": "Northwind Traders",
        "assets": {
            "currentAssets": {
                "accounts": [
                    {"name": "Chequing", "balance": "15000.00"},
                    {"name": "Accounts Receivable", "balance": 4200},
                ],
                "total": "19200.00",
            },
            "fixedAssets": {
                "accounts": [{"name": "Equipment", "balance": "8000.00"}],
                "total": "8000.00",
            },
            "total": "27200.00",
        },
        "liabilities": {
            "currentLiabilities": {
                "accounts": [{"name": "Accounts Payable", "balance": "3200.00"}],
                "total": "3200.00",
            },
            "total": "3200.00",
        },
        "equity": {
            "accounts": [{"name": "Retained Earnings", "balance": "24000.00"}],
            "total": "24000.00",
        },
    }


@pytest.fixture
def profit_loss():
    """Profit and loss payload."""
    return {
        "clientName": "Northwind Traders",
        "income": {
            "accounts": [{"name": "Consulting Revenue", "balance": "50000"}],
            "total": 50000,
        },
        "expenses": {
            "accounts": [
                {"name": "Office Supplies", "balance": "1200.50"},
                {"name": "Rent", "balance": "18000"},
            ],
            "total": "19200.50",
        },
        "netIncome": "30799.50",
    }


@pytest.fixture
def mock_api():
    """An API client double with every endpoint stubbed."""
    api = MagicMock()
    for name in (
        "get_bookkeeping_settings",
        "list_accounts",
        "list_rules",
        "get_split_data",
        "save_split",
        "save_classification",
        "record_bill_payment",
        "record_invoice_payment",
        "get_balance_sheet",
        "get_profit_loss",
        "get_cash_flow",
        "get_trial_balance",
        "get_general_ledger",
        "close_books",
        "get_ar_aging",
        "get_ap_aging",
        "list_invoices",
        "list_bills",
        "list_bank_feeds",
        "sync_bank_feed",
        "list_bank_transactions",
        "categorize_bank_transaction",
        "auto_reconcile",
        "reconcile_bank_transaction",
        "ignore_bank_transaction",
        "create_transaction",
        "list_transactions",
    ):
        setattr(api, name, AsyncMock(return_value={}))
    api.list_rules.return_value = []
    api.list_invoices.return_value = []
    api.list_bills.return_value = []
    api.list_bank_feeds.return_value = []
    api.list_bank_transactions.return_value = []
    api.get_ar_aging.return_value = []
    api.get_ap_aging.return_value = []
    return api
