"""
Tests for date and amount parsing at the ledger boundary
"""

import pytest
from decimal import Decimal
from datetime import date, datetime

from ledger_core.amounts import parse_amount, parse_rate, quantize_money, to_decimal
from ledger_core.dates import (
    format_date, iter_month_days, month_bounds, parse_date, parse_year_month
)
from ledger_core.errors import InvalidInputError


class TestDates:
    """Test YYYYMMDD and YYYYMM handling"""

    def test_parse_and_format(self):
        assert parse_date("20230601") == date(2023, 6, 1)
        assert format_date(date(2023, 6, 1)) == "20230601"

    def test_passes_through_dates(self):
        assert parse_date(date(2023, 6, 1)) == date(2023, 6, 1)
        assert parse_date(datetime(2023, 6, 1, 15, 30)) == date(2023, 6, 1)

    @pytest.mark.parametrize("value", ["20230631", "20231301", "2023061", "2023-6-1", None, 20230601])
    def test_invalid_dates(self, value):
        with pytest.raises(InvalidInputError):
            parse_date(value)

    def test_parse_year_month(self):
        assert parse_year_month("202306") == (2023, 6)
        assert parse_year_month((2023, 6)) == (2023, 6)

    @pytest.mark.parametrize("value", ["202313", "2023-06", "20236", (2023, 0), "abc"])
    def test_invalid_year_month(self, value):
        with pytest.raises(InvalidInputError):
            parse_year_month(value)

    def test_month_bounds(self):
        assert month_bounds(2023, 6) == (date(2023, 6, 1), date(2023, 6, 30))
        assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_iter_month_days(self):
        days = list(iter_month_days(2023, 12))
        assert len(days) == 31
        assert days[0] == date(2023, 12, 1)
        assert days[-1] == date(2023, 12, 31)


class TestAmounts:
    """Test amount and rate validation"""

    def test_parse_amount_quantizes(self):
        assert parse_amount("100") == Decimal('100.00')
        assert parse_amount("100.5") == Decimal('100.50')
        assert parse_amount(Decimal('0.01')) == Decimal('0.01')

    def test_float_goes_through_str(self):
        assert parse_amount(0.1) == Decimal('0.10')

    @pytest.mark.parametrize("value", ["0", "0.00", "-1", "1.001", "Infinity", "", True])
    def test_invalid_amounts(self, value):
        with pytest.raises(InvalidInputError):
            parse_amount(value)

    def test_parse_rate_bounds(self):
        assert parse_rate("100") == Decimal('100')
        with pytest.raises(InvalidInputError):
            parse_rate("100", inclusive_upper=False)
        with pytest.raises(InvalidInputError):
            parse_rate("0")

    def test_quantize_money_half_up(self):
        assert quantize_money(Decimal('0.125')) == Decimal('0.13')
        assert quantize_money(Decimal('0.124')) == Decimal('0.12')

    def test_to_decimal_rejects_garbage(self):
        with pytest.raises(InvalidInputError, match="rate"):
            to_decimal("x", "rate")
