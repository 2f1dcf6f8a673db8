"""Pattern parsing and cyclic expansion over a day range."""
from dataclasses import dataclass
from typing import Iterable, List, Union

from .constants import MAX_DAYS_RANGE, MAX_PATTERN_LENGTH
from .errors import ValidationError


@dataclass(frozen=True)
class Expansion:
    values: List[str]
    next_offset: int
    start_day: int
    end_day: int

    @property
    def width(self) -> int:
        return len(self.values)


def parse_pattern(pattern: Union[str, Iterable[str]], valid_codes: Iterable[str]) -> List[str]:
    """Split a comma-separated pattern (or take a list) and check every code.

    Codes are trimmed and empty tokens dropped; matching against the visible
    catalog is case-sensitive.
    """
    if isinstance(pattern, str):
        tokens = pattern.split(',')
    elif pattern is None:
        tokens = []
    else:
        tokens = list(pattern)
    codes = [str(t).strip() for t in tokens if t is not None and str(t).strip()]
    if not codes:
        raise ValidationError("Pattern is empty. Enter shift codes separated by commas.")
    if len(codes) > MAX_PATTERN_LENGTH:
        raise ValidationError(f"Pattern is too long ({len(codes)} codes, maximum {MAX_PATTERN_LENGTH}).")
    valid = list(valid_codes)
    invalid = [c for c in codes if c not in valid]
    if invalid:
        raise ValidationError(
            f"Invalid shift codes: {', '.join(dict.fromkeys(invalid))}. Valid codes: {', '.join(valid)}"
        )
    return codes


def expand_pattern(codes: List[str], start_day: int, end_day: int, offset: int,
                   days_in_month: int) -> Expansion:
    """Codes for days start_day..end_day, starting at codes[offset] and cycling.

    next_offset is where a continuation into the following range must start.
    """
    if not codes:
        raise ValidationError("Pattern is empty.")
    if start_day > end_day:
        raise ValidationError(f"Start day {start_day} is after end day {end_day}.")
    if start_day < 1 or end_day > days_in_month:
        raise ValidationError(f"Days must be between 1 and {days_in_month}.")
    width = end_day - start_day + 1
    if width > MAX_DAYS_RANGE:
        raise ValidationError(f"Range of {width} days exceeds the maximum of {MAX_DAYS_RANGE}.")
    n = len(codes)
    values = [codes[(offset + i) % n] for i in range(width)]
    return Expansion(values=values, next_offset=(offset + width) % n, start_day=start_day, end_day=end_day)
