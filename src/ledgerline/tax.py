"""Sales tax options and tax-inclusive amount breakdowns."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import structlog

from ledgerline.money import ZERO, round_cents, to_decimal

logger = structlog.get_logger(__name__)

EXEMPT_ID = "exempt"


def normalize_rate(value: Any) -> Decimal:
    """Rate as a fraction. Values above 1 are percentages (13 -> 0.13)."""
    rate = to_decimal(value) or ZERO
    if rate > 1:
        rate = rate / 100
    return rate


@dataclass(frozen=True)
class TaxOption:
    """A selectable tax code."""

    id: str
    name: str
    rate: Decimal
    account_id: Any = None

    @property
    def is_exempt(self) -> bool:
        return self.id == EXEMPT_ID or self.rate <= 0

    @property
    def display_text(self) -> str:
        if self.id == EXEMPT_ID:
            return "Tax Exempt"
        return f"{self.name} {self.rate * 100:.1f}%"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "TaxOption":
        return cls(
            id=str(data.get("id")),
            name=str(data.get("name") or ""),
            rate=normalize_rate(data.get("rate")),
            account_id=data.get("accountId"),
        )


EXEMPT = TaxOption(id=EXEMPT_ID, name="Exempt", rate=ZERO, account_id=0)


@dataclass(frozen=True)
class TaxBreakdown:
    """A tax-inclusive amount split into its net and tax parts."""

    net_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    tax_rate: Decimal
    tax_name: str
    tax_account_id: Any = None

    def to_api(self) -> dict[str, Any]:
        return {
            "netAmount": str(self.net_amount),
            "hstAmount": str(self.tax_amount),
            "totalAmount": str(self.total_amount),
            "hstAccountId": self.tax_account_id,
            "hstAccountName": self.tax_name,
            "taxRate": str(self.tax_rate),
            "taxName": self.tax_name,
        }


def split_inclusive(amount: Decimal, option: TaxOption | None) -> TaxBreakdown | None:
    """Back tax out of a tax-inclusive amount.

    The net part is rounded to cents and the tax part is the remainder, so
    the two always add back to ``amount``. Returns None when there is no
    tax to separate.
    """
    if option is None or option.is_exempt or amount <= 0:
        return None
    net = round_cents(amount / (1 + option.rate))
    return TaxBreakdown(
        net_amount=net,
        tax_amount=amount - net,
        total_amount=amount,
        tax_rate=option.rate,
        tax_name=option.name,
        tax_account_id=option.account_id,
    )


class TaxTable:
    """Active tax codes for a client, plus the exempt code."""

    def __init__(self, options: list[TaxOption], default: TaxOption | None = None):
        self.options = options
        self.default = default

    @classmethod
    def from_settings(cls, settings: dict[str, Any] | None) -> "TaxTable":
        """Build from the ``taxSettings`` list in bookkeeping settings.

        Inactive entries are dropped. The default is the entry flagged
        ``isDefault``, else the first option. With no tax settings at all
        the table is empty and has no default.
        """
        raw = (settings or {}).get("taxSettings")
        if not isinstance(raw, list) or not raw:
            logger.debug("tax_settings_not_configured")
            return cls([], None)

        active = [entry for entry in raw if entry.get("isActive") is not False]
        options = [TaxOption.from_api(entry) for entry in active]
        options.append(EXEMPT)

        default = next(
            (TaxOption.from_api(entry) for entry in active if entry.get("isDefault") is True),
            options[0],
        )
        return cls(options, default)

    def __len__(self) -> int:
        return len(self.options)

    def get(self, tax_id: Any) -> TaxOption | None:
        if tax_id is None:
            return None
        key = str(tax_id)
        if key == EXEMPT_ID:
            return EXEMPT
        return next((option for option in self.options if option.id == key), None)

    @property
    def default_id(self) -> str:
        return self.default.id if self.default else EXEMPT_ID

    def resolve_code(self, code_name: str | None) -> str:
        """Map a free-form tax code name (``"HST"``) to a tax option id."""
        if not code_name or not self.options:
            return self.default_id

        wanted = code_name.strip().upper()
        option = next((o for o in self.options if o.name.upper() == wanted), None)
        if option is None:
            option = next(
                (
                    o
                    for o in self.options
                    if wanted in o.name.upper() or wanted in o.display_text.upper()
                ),
                None,
            )
        if option is None and wanted in ("HST", "GST"):
            option = next(
                (o for o in self.options if "HST" in o.name.upper() or "GST" in o.name.upper()),
                None,
            )

        if option is None:
            logger.info("tax_code_unmapped", code=code_name, fallback=self.default_id)
            return self.default_id
        return option.id

    def initial_code(self, transaction: dict[str, Any]) -> str:
        """Tax code a transaction opens with before the user picks one."""
        if transaction.get("taxCode"):
            return str(transaction["taxCode"])
        tax_name = transaction.get("taxName")
        if tax_name and self.options:
            match = next((o for o in self.options if o.name == tax_name), None)
            if match is not None:
                return match.id
        if transaction.get("taxSettingId"):
            return str(transaction["taxSettingId"])
        return self.default_id

    def breakdown(self, amount: Decimal, tax_id: Any) -> TaxBreakdown | None:
        return split_inclusive(amount, self.get(tax_id))
