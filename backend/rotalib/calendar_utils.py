"""Calendar helpers: month lengths, grid sheet names, month sequences and date buckets."""
import calendar
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

from .constants import MONTH_NAMES, WEEKDAY_ABBREVS
from .errors import ValidationError


def check_month(month: int, year: int) -> None:
    if not isinstance(month, int) or not (1 <= month <= 12):
        raise ValidationError(f"Invalid month: {month!r}. Must be between 1 and 12.")
    if not isinstance(year, int) or not (1900 <= year <= 9999):
        raise ValidationError(f"Invalid year: {year!r}.")


def days_in_month(month: int, year: int) -> int:
    """Number of days in month/year, leap years included."""
    check_month(month, year)
    return calendar.monthrange(year, month)[1]


def weekday_abbrev(year: int, month: int, day: int) -> str:
    return WEEKDAY_ABBREVS[date(year, month, day).weekday()]


def day_header(year: int, month: int, day: int) -> str:
    """Header text of a day column: '<day>\\n<weekday-abbrev>'."""
    return f"{day}\n{weekday_abbrev(year, month, day)}"


def is_weekend(year: int, month: int, day: int) -> bool:
    return date(year, month, day).weekday() >= 5


def sheet_name(month: int, year: int) -> str:
    """Grid sheet name, e.g. 'January 2025'."""
    check_month(month, year)
    return f"{MONTH_NAMES[month - 1]} {year}"


def parse_sheet_name(name: str) -> Optional[Tuple[int, int]]:
    """Return (month, year) for a 'Month YYYY' sheet name, or None."""
    parts = (name or '').split(' ')
    if len(parts) != 2 or parts[0] not in MONTH_NAMES:
        return None
    try:
        year = int(parts[1])
    except ValueError:
        return None
    return MONTH_NAMES.index(parts[0]) + 1, year


def add_months(month: int, year: int, count: int) -> Tuple[int, int]:
    """Shift (month, year) by count months, rolling the year as needed."""
    index = (year * 12 + (month - 1)) + count
    return index % 12 + 1, index // 12


def consecutive_months(month: int, year: int, count: int) -> List[Tuple[int, int]]:
    """count consecutive (month, year) pairs starting at month/year."""
    check_month(month, year)
    return [add_months(month, year, i) for i in range(max(0, count))]


def months_until_march(month: int, year: int) -> List[Tuple[int, int]]:
    """Every month from month/year up to and including the next March.

    If the start month is already March or later, the target is March of
    the following year.
    """
    check_month(month, year)
    target_year = year + 1 if month >= 3 else year
    result = []
    cur_month, cur_year = month, year
    while (cur_year, cur_month) <= (target_year, 3):
        result.append((cur_month, cur_year))
        cur_month, cur_year = add_months(cur_month, cur_year, 1)
    return result


def parse_date(value) -> date:
    """Accept a date, a datetime, or an ISO 'YYYY-MM-DD' string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip()[:10], '%Y-%m-%d').date()
        except ValueError:
            pass
    raise ValidationError(f"Invalid date: {value!r}. Expected YYYY-MM-DD.")


def inclusive_days(start: date, end: date) -> int:
    return (end - start).days + 1


def months_spanned(start: date, end: date) -> List[Tuple[int, int]]:
    """(month, year) pairs touched by the inclusive range start..end."""
    result = []
    cur_month, cur_year = start.month, start.year
    while (cur_year, cur_month) <= (end.year, end.month):
        result.append((cur_month, cur_year))
        cur_month, cur_year = add_months(cur_month, cur_year, 1)
    return result


def bucket_days(start: date, end: date) -> List[Tuple[int, int, List[int]]]:
    """Partition the inclusive range start..end into (year, month, [days]) buckets, in order."""
    buckets: List[Tuple[int, int, List[int]]] = []
    current = start
    while current <= end:
        if not buckets or buckets[-1][0] != current.year or buckets[-1][1] != current.month:
            buckets.append((current.year, current.month, []))
        buckets[-1][2].append(current.day)
        current += timedelta(days=1)
    return buckets
