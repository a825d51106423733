"""Tests for fiscal years, date presets and date parsing."""

from datetime import date

import pytest

from ledgerline.money import format_currency, to_decimal
from ledgerline.periods import (
    INVALID_DATE_MESSAGE,
    DateParseError,
    DateRange,
    FiscalYearEnd,
    date_range_for_preset,
    fiscal_year_range,
    format_display_date,
    last_closed_fiscal_year_end,
    parse_date_or_raise,
    parse_date_text,
    prior_period_range,
)

JULY = FiscalYearEnd(7, 31)


class TestFiscalYearEnd:
    """Tests for FiscalYearEnd."""

    def test_defaults_to_december(self):
        assert FiscalYearEnd().on(2024) == date(2024, 12, 31)

    def test_day_clamps_to_month_end(self):
        assert FiscalYearEnd(2, 29).on(2023) == date(2023, 2, 28)
        assert FiscalYearEnd(2, 29).on(2024) == date(2024, 2, 29)
        assert FiscalYearEnd(6, 31).on(2024) == date(2024, 6, 30)

    def test_invalid_month_rejected(self):
        with pytest.raises(ValueError):
            FiscalYearEnd(13, 1)

    def test_from_settings(self):
        fye = FiscalYearEnd.from_settings({"fiscalYearEndMonth": "3", "fiscalYearEndDay": 31})

        assert fye == FiscalYearEnd(3, 31)

    def test_from_settings_falls_back(self):
        default = FiscalYearEnd(6, 30)

        assert FiscalYearEnd.from_settings(None, default) == default
        assert FiscalYearEnd.from_settings({"fiscalYearEndMonth": 0}, default) == default
        assert FiscalYearEnd.from_settings({"fiscalYearEndMonth": 14}, default) == default


class TestFiscalYearRange:
    """Tests for fiscal year ranges."""

    def test_current_fiscal_year_before_year_end(self):
        result = fiscal_year_range(JULY, date(2024, 3, 10))

        assert result == DateRange(date(2023, 8, 1), date(2024, 7, 31))

    def test_current_fiscal_year_after_year_end(self):
        result = fiscal_year_range(JULY, date(2024, 9, 1))

        assert result == DateRange(date(2024, 8, 1), date(2025, 7, 31))

    def test_year_end_day_belongs_to_closing_year(self):
        result = fiscal_year_range(JULY, date(2024, 7, 31))

        assert result.end == date(2024, 7, 31)

    def test_prior_fiscal_year(self):
        result = fiscal_year_range(JULY, date(2024, 3, 10), year_offset=-1)

        assert result == DateRange(date(2022, 8, 1), date(2023, 7, 31))

    def test_named_fiscal_year(self):
        result = fiscal_year_range(JULY, date(2030, 1, 1), fiscal_year=2005)

        assert result == DateRange(date(2004, 8, 1), date(2005, 7, 31))

    def test_calendar_fiscal_year(self):
        result = fiscal_year_range(FiscalYearEnd(), date(2024, 5, 5))

        assert result == DateRange(date(2024, 1, 1), date(2024, 12, 31))
        assert result.days == 366

    def test_last_closed_fiscal_year_end(self):
        assert last_closed_fiscal_year_end(JULY, date(2024, 7, 31)) == date(2023, 7, 31)
        assert last_closed_fiscal_year_end(JULY, date(2024, 8, 1)) == date(2024, 7, 31)
        assert last_closed_fiscal_year_end(FiscalYearEnd(), date(2025, 1, 2)) == date(
            2024, 12, 31
        )


class TestPresets:
    """Tests for named date presets."""

    TODAY = date(2024, 5, 17)

    @pytest.mark.parametrize(
        ("preset", "start", "end"),
        [
            ("current-month", date(2024, 5, 1), date(2024, 5, 31)),
            ("last-month", date(2024, 4, 1), date(2024, 4, 30)),
            ("current-quarter", date(2024, 4, 1), date(2024, 6, 30)),
            ("last-quarter", date(2024, 1, 1), date(2024, 3, 31)),
            ("q3-current", date(2024, 7, 1), date(2024, 9, 30)),
            ("current-year", date(2024, 1, 1), date(2024, 12, 31)),
            ("last-year", date(2023, 1, 1), date(2023, 12, 31)),
            ("year-to-date", date(2024, 1, 1), date(2024, 5, 17)),
            ("current-fiscal-year", date(2023, 8, 1), date(2024, 7, 31)),
            ("last-fiscal-year", date(2022, 8, 1), date(2023, 7, 31)),
            ("fiscal-year-to-date", date(2023, 8, 1), date(2024, 5, 17)),
            ("fiscal-2010", date(2009, 8, 1), date(2010, 7, 31)),
        ],
    )
    def test_preset(self, preset, start, end):
        assert date_range_for_preset(preset, self.TODAY, JULY) == DateRange(start, end)

    def test_last_quarter_in_january(self):
        result = date_range_for_preset("last-quarter", date(2024, 1, 15))

        assert result == DateRange(date(2023, 10, 1), date(2023, 12, 31))

    def test_last_month_in_january(self):
        result = date_range_for_preset("last-month", date(2024, 1, 15))

        assert result == DateRange(date(2023, 12, 1), date(2023, 12, 31))

    def test_custom_requires_range(self):
        with pytest.raises(ValueError):
            date_range_for_preset("custom", self.TODAY)

    def test_custom_returns_range(self):
        custom = DateRange(date(2024, 2, 1), date(2024, 2, 10))

        assert date_range_for_preset("custom", self.TODAY, custom=custom) is custom

    def test_range_rejects_reversed_dates(self):
        with pytest.raises(ValueError):
            DateRange(date(2024, 2, 2), date(2024, 2, 1))


class TestPriorPeriod:
    """Tests for prior-period comparison ranges."""

    TODAY = date(2024, 5, 17)

    def test_balance_sheet_same_date_last_year(self):
        current = DateRange(date(2024, 2, 29), date(2024, 2, 29))

        prior = prior_period_range("balance-sheet", "custom", current, self.TODAY)

        assert prior == DateRange(date(2023, 2, 28), date(2023, 2, 28))

    def test_current_fiscal_year_steps_back_one_year(self):
        current = date_range_for_preset("current-fiscal-year", self.TODAY, JULY)

        prior = prior_period_range("profit-loss", "current-fiscal-year", current, self.TODAY, JULY)

        assert prior == DateRange(date(2022, 8, 1), date(2023, 7, 31))

    def test_last_fiscal_year_steps_back_two_years(self):
        current = date_range_for_preset("last-fiscal-year", self.TODAY, JULY)

        prior = prior_period_range("profit-loss", "last-fiscal-year", current, self.TODAY, JULY)

        assert prior == DateRange(date(2021, 8, 1), date(2022, 7, 31))

    def test_named_fiscal_year(self):
        current = date_range_for_preset("fiscal-2010", self.TODAY, JULY)

        prior = prior_period_range("trial-balance", "fiscal-2010", current, self.TODAY, JULY)

        assert prior.end == date(2009, 7, 31)

    def test_other_ranges_use_preceding_window(self):
        current = DateRange(date(2024, 4, 1), date(2024, 4, 30))

        prior = prior_period_range("profit-loss", "custom", current, self.TODAY)

        assert prior == DateRange(date(2024, 3, 2), date(2024, 3, 31))
        assert prior.days == current.days


class TestDateParsing:
    """Tests for free-text date parsing."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("2023-12-31", date(2023, 12, 31)),
            ("12/31/2023", date(2023, 12, 31)),
            ("31/12/2023", date(2023, 12, 31)),
            ("03/04/2023", date(2023, 3, 4)),
            ("Dec 31, 2023", date(2023, 12, 31)),
            ("31 December 2023", date(2023, 12, 31)),
            ("  2024-02-29 ", date(2024, 2, 29)),
        ],
    )
    def test_parses(self, text, expected):
        assert parse_date_text(text) == expected

    @pytest.mark.parametrize("text", ["", "   ", "2023-02-30", "13/13/2023", "yesterday"])
    def test_rejects(self, text):
        assert parse_date_text(text) is None

    def test_parse_or_raise(self):
        with pytest.raises(DateParseError) as exc_info:
            parse_date_or_raise("next tuesday")

        assert str(exc_info.value) == INVALID_DATE_MESSAGE
        assert exc_info.value.text == "next tuesday"

    def test_display_format(self):
        assert format_display_date(date(2023, 1, 5)) == "Jan 5, 2023"
        assert DateRange(date(2023, 1, 1), date(2023, 3, 31)).label() == (
            "Jan 1, 2023 - Mar 31, 2023"
        )


class TestMoney:
    """Tests for amount parsing and formatting."""

    def test_to_decimal_accepts_strings_and_numbers(self):
        assert to_decimal("1,234.50") == to_decimal(1234.5)
        assert to_decimal("$99") == to_decimal(99)

    def test_to_decimal_default(self):
        assert to_decimal(None) == 0
        assert to_decimal("abc", default=None) is None
        assert to_decimal("NaN", default=None) is None

    def test_format_currency(self):
        assert format_currency("1234.5") == "$1,234.50"
        assert format_currency(-20) == "-$20.00"
        assert format_currency(None) == "$0.00"
