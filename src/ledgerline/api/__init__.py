"""Backend API access for Ledgerline."""

from ledgerline.api.client import (
    AuthenticationError,
    LedgerAPIClient,
    LedgerAPIError,
    NotFoundError,
    RateLimitError,
)

__all__ = [
    "LedgerAPIClient",
    "LedgerAPIError",
    "AuthenticationError",
    "NotFoundError",
    "RateLimitError",
]
