"""Reporting periods: fiscal years, named presets and free-text dates.

A client's fiscal year ends on a configurable month/day (December 31 when
unset). Fiscal year ``N`` is the twelve months ending on that month/day in
calendar year ``N``; it starts the day after fiscal year ``N - 1`` ends.
"""

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

INVALID_DATE_MESSAGE = "Invalid date format. Try: 2023-12-31, 12/31/2023, or Dec 31, 2023"

DATE_PRESETS = (
    "current-month",
    "last-month",
    "current-quarter",
    "last-quarter",
    "q1-current",
    "q2-current",
    "q3-current",
    "q4-current",
    "current-year",
    "last-year",
    "year-to-date",
    "current-fiscal-year",
    "last-fiscal-year",
    "fiscal-year-to-date",
    "custom",
)


class DateParseError(ValueError):
    """Free-text date could not be understood."""

    def __init__(self, text: str):
        super().__init__(INVALID_DATE_MESSAGE)
        self.text = text


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar dates."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Range start {self.start} is after end {self.end}")

    @property
    def days(self) -> int:
        """Number of calendar days covered, both ends included."""
        return (self.end - self.start).days + 1

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end

    def label(self) -> str:
        return f"{format_display_date(self.start)} - {format_display_date(self.end)}"


def format_display_date(value: date) -> str:
    """Format as ``Dec 31, 2023``."""
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def last_day_of_month(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def shift_years(value: date, years: int) -> date:
    """Move a date by whole years, mapping Feb 29 to Feb 28 when needed."""
    year = value.year + years
    day = min(value.day, calendar.monthrange(year, value.month)[1])
    return date(year, value.month, day)


def quarter_range(year: int, quarter: int) -> DateRange:
    if quarter not in (1, 2, 3, 4):
        raise ValueError(f"Quarter must be 1-4, got {quarter}")
    start_month = (quarter - 1) * 3 + 1
    return DateRange(date(year, start_month, 1), last_day_of_month(year, start_month + 2))


def quarter_of(value: date) -> int:
    return (value.month - 1) // 3 + 1


@dataclass(frozen=True)
class FiscalYearEnd:
    """Month and day on which a client's fiscal year closes."""

    month: int = 12
    day: int = 31

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Fiscal year end month must be 1-12, got {self.month}")
        if not 1 <= self.day <= 31:
            raise ValueError(f"Fiscal year end day must be 1-31, got {self.day}")

    def on(self, year: int) -> date:
        """The fiscal year end falling in ``year``.

        Days past the end of the month clamp to its last day, so a
        February 29 year end lands on February 28 outside leap years.
        """
        return date(year, self.month, min(self.day, calendar.monthrange(year, self.month)[1]))

    @classmethod
    def from_settings(
        cls,
        settings: dict[str, Any] | None,
        default: "FiscalYearEnd | None" = None,
    ) -> "FiscalYearEnd":
        """Read ``fiscalYearEndMonth``/``fiscalYearEndDay`` from bookkeeping settings."""
        fallback = default or cls()
        settings = settings or {}
        month = _positive_int(settings.get("fiscalYearEndMonth")) or fallback.month
        day = _positive_int(settings.get("fiscalYearEndDay")) or fallback.day
        try:
            return cls(month=month, day=day)
        except ValueError:
            logger.warning("invalid_fiscal_year_end", month=month, day=day)
            return fallback


def _positive_int(value: Any) -> int | None:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def fiscal_year_range(
    fye: FiscalYearEnd,
    today: date,
    year_offset: int = 0,
    fiscal_year: int | None = None,
) -> DateRange:
    """Date range of a fiscal year.

    Args:
        fye: Fiscal year end month/day.
        today: Reference date deciding which fiscal year is current.
        year_offset: Years relative to the current fiscal year (-1 = prior).
        fiscal_year: Explicit fiscal year, named by the calendar year it
            ends in. Overrides ``today`` and ``year_offset``.
    """
    if fiscal_year is not None:
        end_year = fiscal_year
    else:
        end_year = today.year
        if today > fye.on(today.year):
            end_year += 1
        end_year += year_offset

    end = fye.on(end_year)
    start = fye.on(end_year - 1) + timedelta(days=1)
    return DateRange(start, end)


def last_closed_fiscal_year_end(fye: FiscalYearEnd, today: date) -> date:
    """Most recent fiscal year end that has fully passed."""
    end = fye.on(today.year)
    if today <= end:
        end = fye.on(today.year - 1)
    return end


def _named_fiscal_year(preset: str) -> int | None:
    if not preset.startswith("fiscal-"):
        return None
    suffix = preset.removeprefix("fiscal-")
    return int(suffix) if suffix.isdigit() else None


def date_range_for_preset(
    preset: str,
    today: date,
    fye: FiscalYearEnd | None = None,
    custom: DateRange | None = None,
) -> DateRange:
    """Resolve a named reporting preset to concrete dates.

    ``fiscal-2005`` style presets select that fiscal year. ``custom`` (or
    any unknown preset) returns ``custom`` and fails if none was given.
    """
    fye = fye or FiscalYearEnd()

    year = _named_fiscal_year(preset)
    if year is not None:
        return fiscal_year_range(fye, today, fiscal_year=year)

    if preset == "current-month":
        return DateRange(today.replace(day=1), last_day_of_month(today.year, today.month))
    if preset == "last-month":
        first = today.replace(day=1) - timedelta(days=1)
        return DateRange(first.replace(day=1), first)
    if preset == "current-quarter":
        return quarter_range(today.year, quarter_of(today))
    if preset == "last-quarter":
        quarter = quarter_of(today) - 1
        if quarter == 0:
            return quarter_range(today.year - 1, 4)
        return quarter_range(today.year, quarter)
    if preset in ("q1-current", "q2-current", "q3-current", "q4-current"):
        return quarter_range(today.year, int(preset[1]))
    if preset == "current-year":
        return DateRange(date(today.year, 1, 1), date(today.year, 12, 31))
    if preset == "last-year":
        return DateRange(date(today.year - 1, 1, 1), date(today.year - 1, 12, 31))
    if preset == "year-to-date":
        return DateRange(date(today.year, 1, 1), today)
    if preset == "current-fiscal-year":
        return fiscal_year_range(fye, today)
    if preset == "last-fiscal-year":
        return fiscal_year_range(fye, today, year_offset=-1)
    if preset == "fiscal-year-to-date":
        return DateRange(fiscal_year_range(fye, today).start, today)

    if custom is None:
        raise ValueError(f"Preset {preset!r} needs an explicit date range")
    return custom


def prior_period_range(
    template: str,
    preset: str,
    current: DateRange,
    today: date,
    fye: FiscalYearEnd | None = None,
) -> DateRange:
    """Comparison period for a report.

    Balance sheets are point-in-time, so the prior period is the same date
    one year earlier. Fiscal-year presets step back one fiscal year. Any
    other range compares against the equal-length window just before it.
    """
    fye = fye or FiscalYearEnd()

    if template == "balance-sheet":
        prior = shift_years(current.end, -1)
        return DateRange(prior, prior)

    year = _named_fiscal_year(preset)
    if year is not None:
        return fiscal_year_range(fye, today, fiscal_year=year - 1)
    if preset == "current-fiscal-year":
        return fiscal_year_range(fye, today, year_offset=-1)
    if preset == "last-fiscal-year":
        return fiscal_year_range(fye, today, year_offset=-2)

    length = timedelta(days=current.days)
    return DateRange(current.start - length, current.end - length)


_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_FALLBACK_FORMATS = (
    "%Y-%m-%d",
    "%m-%d-%Y",
    "%d-%m-%Y",
    "%b %d, %Y",
    "%d %b %Y",
    "%B %d, %Y",
    "%d %B %Y",
)


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date_text(text: str) -> date | None:
    """Parse a user-typed date, returning None for blank or unparseable input.

    Slash dates are read month-first unless the first number cannot be a
    month (``31/12/2023``); when both numbers could be a month, month-first
    wins.
    """
    cleaned = text.strip()
    if not cleaned:
        return None

    if _ISO_DATE.match(cleaned):
        try:
            return date.fromisoformat(cleaned)
        except ValueError:
            return None

    match = _SLASH_DATE.match(cleaned)
    if match:
        first, second, year = (int(part) for part in match.groups())
        if first > 12:
            return _safe_date(year, second, first)
        if second > 12:
            return _safe_date(year, first, second)
        return _safe_date(year, first, second) or _safe_date(year, second, first)

    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    return None


def parse_date_or_raise(text: str) -> date:
    """Like :func:`parse_date_text` but raises :class:`DateParseError`."""
    parsed = parse_date_text(text)
    if parsed is None:
        raise DateParseError(text)
    return parsed
