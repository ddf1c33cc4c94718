"""
Interest Accrual Engine

Computes one month of interest for an account from its transactions and an
effective-dated rate schedule. The month is rebuilt as a daily end-of-day
balance timeline, split into periods of constant balance and rate, and the
period contributions are annualized over a fixed 365-day year.
"""

from decimal import Decimal
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from .amounts import ZERO, quantize_money
from .dates import YearMonthLike, iter_month_days, month_bounds, parse_year_month
from .models import AccrualPeriod, InterestEntry, StatementLine, Transaction

DAYS_IN_YEAR = 365


def _recorded(lines: Iterable[StatementLine]) -> List[Transaction]:
    """Drop interest entries and order by date (stable within a date)"""
    return sorted(
        (line for line in lines if not isinstance(line, InterestEntry)),
        key=lambda txn: txn.date
    )


def _rate_on(schedule, day: date) -> Tuple[Decimal, str]:
    """Applicable (rate, rule id) for a day, rate 0 when nothing applies"""
    lookup = getattr(schedule, "effective_rule", None)
    if lookup is not None:
        rule = lookup(day)
        return (rule.rate, rule.rule_id) if rule else (ZERO, "")
    rate = schedule.effective_rate(day)
    return (Decimal(str(rate)) if rate is not None else ZERO), ""


class InterestAccrualEngine:
    """
    Stateless monthly interest calculator

    The rate schedule is any object with `effective_rule(day)` returning an
    InterestRule or None, or with just `effective_rate(day)` returning a
    rate or None. A day without an applicable rule accrues at rate 0.
    """

    def __init__(self, day_count: int = DAYS_IN_YEAR, precision: int = 2):
        self.day_count = day_count
        self.precision = precision

    def eod_balances(
        self,
        transactions: Iterable[StatementLine],
        year_month: YearMonthLike
    ) -> List[Tuple[date, Decimal]]:
        """
        End-of-day balance for every day of the month

        The carried balance starts at zero on day one of the month; balances
        from transactions before the month are not inherited.
        """
        year, month = parse_year_month(year_month)
        balance_by_date: Dict[date, Decimal] = {}
        for txn in _recorded(transactions):
            balance_by_date[txn.date] = txn.balance

        timeline = []
        carry = ZERO
        for day in iter_month_days(year, month):
            carry = balance_by_date.get(day, carry)
            timeline.append((day, carry))
        return timeline

    def accrual_periods(
        self,
        transactions: Iterable[StatementLine],
        schedule,
        year_month: YearMonthLike
    ) -> List[AccrualPeriod]:
        """Maximal runs of days with identical balance and rate"""
        periods: List[AccrualPeriod] = []
        current: Optional[AccrualPeriod] = None

        for day, balance in self.eod_balances(transactions, year_month):
            rate, rule_id = _rate_on(schedule, day)

            if current and current.rate == rate and current.balance == balance:
                current.end_date = day
                current.num_days += 1
                continue

            current = AccrualPeriod(
                start_date=day,
                end_date=day,
                num_days=1,
                balance=balance,
                rate=rate,
                rule_id=rule_id,
            )
            periods.append(current)

        return periods

    def compute_monthly_interest(
        self,
        transactions: Iterable[StatementLine],
        schedule,
        year_month: YearMonthLike
    ) -> Decimal:
        """
        Interest accrued over one calendar month

        Args:
            transactions: One account's transactions dated within the month
            schedule: RateSchedule, RateSnapshot or any effective_rate provider
            year_month: "YYYYMM" or (year, month)

        Returns:
            Interest rounded half-up to two decimal places
        """
        periods = self.accrual_periods(transactions, schedule, year_month)
        total = sum((period.weighted_interest for period in periods), ZERO)
        return quantize_money(total / Decimal(self.day_count), self.precision)

    def interest_entry(
        self,
        account: str,
        transactions: List[StatementLine],
        interest: Decimal,
        year_month: YearMonthLike
    ) -> InterestEntry:
        """
        Display line for the month's interest, dated on the last day

        Its balance is the last transaction balance of the month plus the
        interest.
        """
        year, month = parse_year_month(year_month)
        recorded = _recorded(transactions)
        last_balance = recorded[-1].balance if recorded else ZERO
        return InterestEntry(
            date=month_bounds(year, month)[1],
            account=account,
            amount=interest,
            balance=last_balance + interest,
        )


def compute_monthly_interest(transactions, schedule, year_month) -> Decimal:
    """Module-level shortcut using the default 365-day basis"""
    return InterestAccrualEngine().compute_monthly_interest(transactions, schedule, year_month)
