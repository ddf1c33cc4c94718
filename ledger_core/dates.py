"""
Calendar helpers for the textual date formats used at the ledger boundary.

Days travel as 8-digit YYYYMMDD strings, months as 6-digit YYYYMM strings.
Internally everything is a datetime.date.
"""

from datetime import date, datetime, timedelta
from typing import Iterator, Tuple, Union
import calendar
import re

from .errors import InvalidInputError

DATE_FORMAT = "%Y%m%d"

_DATE_RE = re.compile(r"^\d{8}$")
_YEAR_MONTH_RE = re.compile(r"^\d{6}$")

DateLike = Union[str, date]
YearMonthLike = Union[str, Tuple[int, int]]


def parse_date(value: DateLike) -> date:
    """
    Parse a YYYYMMDD string (or pass through a date) into a date.

    Raises:
        InvalidInputError: If the value is not a real calendar day
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _DATE_RE.match(value.strip()):
        raise InvalidInputError(f"Invalid date format {value!r}. Use YYYYMMDD")
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT).date()
    except ValueError:
        raise InvalidInputError(f"Invalid calendar date {value!r}")


def format_date(value: date) -> str:
    """Render a date as YYYYMMDD"""
    return value.strftime(DATE_FORMAT)


def parse_year_month(value: YearMonthLike) -> Tuple[int, int]:
    """
    Parse a YYYYMM string or a (year, month) pair.

    Raises:
        InvalidInputError: If the month is outside 1-12 or the format is wrong
    """
    if isinstance(value, str):
        text = value.strip()
        if not _YEAR_MONTH_RE.match(text):
            raise InvalidInputError(f"Invalid month format {value!r}. Use YYYYMM")
        year, month = int(text[:4]), int(text[4:])
    else:
        try:
            year, month = (int(part) for part in value)
        except (TypeError, ValueError):
            raise InvalidInputError(f"Invalid year/month {value!r}")

    if not 1 <= month <= 12 or year < 1:
        raise InvalidInputError(f"Invalid year/month {value!r}")
    return year, month


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last calendar day of a month"""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def iter_month_days(year: int, month: int) -> Iterator[date]:
    """Every calendar day of the month, in order"""
    day, end = month_bounds(year, month)
    while day <= end:
        yield day
        day += timedelta(days=1)
