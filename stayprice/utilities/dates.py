"""
dates.py

Calendar arithmetic on ISO dates ('YYYY-MM-DD' strings) in the range
0001-01-01 .. 9999-12-31. Differences are computed by stepping through
calendar months, and the day of week by a closed-form congruence, so no
epoch or platform calendar is involved.

Every other module goes through these functions for date math.
"""
import datetime

from stayprice.errors import DateError
from stayprice.utilities.grammar_handling import parse_literal

MIN_YEAR = 1
MAX_YEAR = 9999

_MAX_MONTH_DAYS = (0, 31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)

# month contributions of the weekday congruence, index = month
_DOW_MONTH_TABLE = (0, 0, 3, 3, 6, 1, 4, 6, 2, 5, 0, 3, 5)


def days_in_month(year: int, month: int) -> int:
    if month != 2:
        return _MAX_MONTH_DAYS[month]
    if year % 400 == 0:
        return 29
    if year % 100 == 0:
        return 28
    if year % 4 == 0:
        return 29
    return 28


def _split(date: str):
    """
    Return (year, month, day) for a valid date, or None.
    """
    parts = parse_literal(date, "date")
    if parts is None:
        return None
    year, month, day = parts
    if year < MIN_YEAR or year > MAX_YEAR or month < 1 or month > 12:
        return None
    if day < 1 or day > days_in_month(year, month):
        return None
    return parts


def _require(date: str, caller: str):
    parts = _split(date)
    if parts is None:
        raise DateError(f"[{caller}] invalid date ({date})")
    return parts


def _format(year: int, month: int, day: int) -> str:
    return f"{year:04d}-{month:02d}-{day:02d}"


def is_valid_date(date) -> bool:
    """
    True if and only if 'date' is a string holding a valid ISO calendar date.
    """
    return _split(date) is not None


def days_between(start: str, end: str) -> int:
    """
    Signed number of days from 'start' to 'end' (negative if end < start).
    """
    sy, sm, sd = _require(start, "days_between")
    ey, em, ed = _require(end, "days_between")

    if (ey, em) == (sy, sm):
        return ed - sd
    step = 1 if (ey, em) > (sy, sm) else -1

    year, month = sy, sm
    if step == 1:
        diff = days_in_month(year, month) - sd
    else:
        diff = -sd
    while True:
        month += step
        if month == 0:
            year -= 1
            month = 12
        elif month == 13:
            year += 1
            month = 1
        if (year, month) == (ey, em):
            break
        diff += step * days_in_month(year, month)

    if step == 1:
        diff += ed
    else:
        diff -= days_in_month(year, month) - ed
    return diff


def add_days(date: str, n: int) -> str:
    """
    Add n >= 0 days to 'date'.
    """
    year, month, day = _require(date, "add_days")
    if isinstance(n, bool) or not isinstance(n, int) or n < 0:
        raise DateError(f"[add_days] invalid number of days to add ({n})")
    count = n
    while n > 0:
        # skip whole months where possible
        room = days_in_month(year, month) - day
        if n <= room:
            day += n
            break
        n -= room + 1
        if month < 12:
            month += 1
        elif year < MAX_YEAR:
            year += 1
            month = 1
        else:
            raise DateError(f"[add_days] date out of range ({date} + {count} days)")
        day = 1
    return _format(year, month, day)


def day_of_week(date: str) -> int:
    """
    Day of week, 0 = Sunday .. 6 = Saturday.
    """
    year, month, day = _require(date, "day_of_week")
    century, yy = divmod(year, 100)

    n_day = day % 7
    n_month = _DOW_MONTH_TABLE[month]
    n_year = (yy + yy // 4) % 7
    n_century = (3 - century % 4) * 2
    n_leap = -1 if month <= 2 and days_in_month(year, 2) == 29 else 0

    return (n_day + n_month + n_century + n_year + n_leap) % 7


def weekday_index(date: str) -> int:
    """
    Day of week with Monday = 0 .. Sunday = 6.
    """
    return (day_of_week(date) - 1) % 7


def date_between(start: str, end: str, check: str) -> bool:
    """
    True if start <= check <= end.
    """
    _require(start, "date_between")
    _require(end, "date_between")
    _require(check, "date_between")
    return days_between(start, check) >= 0 and days_between(check, end) >= 0


def intervals_overlap(a_start: str, a_end: str, b_start: str, b_end: str) -> bool:
    """
    True if the inclusive intervals [a_start, a_end] and [b_start, b_end] share at least one date.
    """
    if days_between(a_start, a_end) < 0:
        raise DateError(f"[intervals_overlap] inverted interval ({a_start} .. {a_end})")
    if days_between(b_start, b_end) < 0:
        raise DateError(f"[intervals_overlap] inverted interval ({b_start} .. {b_end})")
    return date_between(a_start, a_end, b_start) or date_between(b_start, b_end, a_start)


def iter_dates(start: str, end: str, include_end: bool = False):
    """
    Yield each date from 'start' up to 'end' (excluded unless include_end).
    """
    stop = days_between(start, end) + (1 if include_end else 0)
    current = start
    for i in range(stop):
        if i:
            current = add_days(current, 1)
        yield current


def today() -> str:
    return datetime.date.today().isoformat()
