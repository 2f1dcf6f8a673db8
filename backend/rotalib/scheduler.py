"""
Rolling scheduler: applies a shift pattern across consecutive month grids,
continuing the pattern from one month into the next.

Each month is processed on its own. A month that cannot be written is
recorded as failed and the remaining months still run; nothing is rolled
back.
"""
import enum
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from .calendar_utils import (
    consecutive_months,
    days_in_month,
    months_spanned,
    months_until_march,
    parse_date,
    sheet_name,
)
from .catalog import ShiftCatalog
from .constants import DEFAULT_ROLLING_MONTHS, ROLLING_FIXED, ROLLING_MODES, ROLLING_UNTIL_MARCH
from .errors import RotaError, ValidationError, WriteError
from .grid import MonthGrid
from .patterns import Expansion, expand_pattern, parse_pattern
from .sheets import MonthSheetManager

_log = logging.getLogger(__name__)


class MonthStatus(str, enum.Enum):
    PENDING = 'pending'
    SKIPPED_BEFORE_START = 'skipped-before-start'
    SKIPPED = 'skipped'
    APPLIED_BATCH = 'applied-batch'
    APPLIED_CELL_FALLBACK = 'applied-cell-fallback'
    FAILED = 'failed'


APPLIED = (MonthStatus.APPLIED_BATCH, MonthStatus.APPLIED_CELL_FALLBACK)
SKIPPED = (MonthStatus.SKIPPED_BEFORE_START, MonthStatus.SKIPPED)


class MultiMonthRangeError(ValidationError):
    """A single-range request spans more than one month."""

    def __init__(self, message: str, months: List[str]):
        super().__init__(message)
        self.months = months


@dataclass
class MonthOutcome:
    month: int
    year: int
    status: MonthStatus = MonthStatus.PENDING
    start_day: Optional[int] = None
    end_day: Optional[int] = None
    reason: Optional[str] = None
    created: bool = False

    @property
    def sheet(self) -> str:
        return sheet_name(self.month, self.year)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sheet': self.sheet,
            'status': self.status.value,
            'startDay': self.start_day,
            'endDay': self.end_day,
            'reason': self.reason,
            'created': self.created,
        }


@dataclass
class RollingSummary:
    months: List[MonthOutcome] = field(default_factory=list)
    next_offset: int = 0

    @property
    def succeeded(self) -> int:
        return sum(1 for m in self.months if m.status in APPLIED)

    @property
    def failed(self) -> int:
        return sum(1 for m in self.months if m.status == MonthStatus.FAILED)

    @property
    def skipped(self) -> int:
        return sum(1 for m in self.months if m.status in SKIPPED)

    @property
    def created_sheets(self) -> List[str]:
        return [m.sheet for m in self.months if m.created]

    def message(self) -> str:
        parts = [f"Applied pattern to {self.succeeded} month(s)."]
        if self.failed:
            parts.append(f"Failed for {self.failed} month(s).")
        if self.created_sheets:
            parts.append(f"Created sheets: {', '.join(self.created_sheets)}.")
        if self.skipped:
            parts.append(f"Skipped {self.skipped} month(s).")
        return ' '.join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'succeeded': self.succeeded,
            'failed': self.failed,
            'skipped': self.skipped,
            'createdSheets': self.created_sheets,
            'nextOffset': self.next_offset,
            'months': [m.to_dict() for m in self.months],
        }


@dataclass(frozen=True)
class NewStarterClip:
    """First working date of a new starter; nothing is scheduled before it."""
    start: date

    @classmethod
    def from_value(cls, value: Any) -> Optional['NewStarterClip']:
        """Accept a date, an ISO string, or {'year', 'month', 'day'}."""
        if value is None or value == '' or value == {}:
            return None
        if isinstance(value, NewStarterClip):
            return value
        if isinstance(value, dict):
            try:
                return cls(date(int(value['year']), int(value['month']), int(value['day'])))
            except (KeyError, TypeError, ValueError) as exc:
                raise ValidationError(f"Invalid new starter date: {value!r}") from exc
        return cls(parse_date(value))

    def is_after(self, month: int, year: int) -> bool:
        return (self.start.year, self.start.month) > (year, month)

    def is_within(self, month: int, year: int) -> bool:
        return (self.start.year, self.start.month) == (year, month)


def target_months(month: int, year: int, mode: str = ROLLING_FIXED,
                  horizon: int = DEFAULT_ROLLING_MONTHS) -> List[Tuple[int, int]]:
    """Months to process, starting with month/year itself."""
    if mode not in ROLLING_MODES:
        raise ValidationError(f"Unknown rolling mode {mode!r}. Use one of: {', '.join(ROLLING_MODES)}")
    if mode == ROLLING_UNTIL_MARCH:
        return months_until_march(month, year)
    if isinstance(horizon, bool) or not isinstance(horizon, int) or not (1 <= horizon <= 24):
        raise ValidationError("Horizon must be between 1 and 24 months.")
    return consecutive_months(month, year, horizon)


def _write_with_fallback(grid: MonthGrid, row: int, expansion: Expansion) -> MonthStatus:
    """One batched write; on host rejection, retry one cell at a time."""
    try:
        grid.write_days(row, expansion.start_day, expansion.values)
        return MonthStatus.APPLIED_BATCH
    except WriteError as exc:
        _log.warning("%s; retrying cell by cell", exc)
    for i, value in enumerate(expansion.values):
        grid.write_day(row, expansion.start_day + i, value)
    return MonthStatus.APPLIED_CELL_FALLBACK


class RollingScheduler:
    def __init__(self, sheets: MonthSheetManager, catalog: ShiftCatalog):
        self.sheets = sheets
        self.catalog = catalog

    def apply_rolling(self, staff_name: str, pattern, start_day: int, end_day: int,
                      month: int, year: int, mode: str = ROLLING_FIXED,
                      horizon: int = DEFAULT_ROLLING_MONTHS, clip: Any = None) -> RollingSummary:
        """Apply pattern to staff_name over days start_day..end_day of every target month."""
        staff_name = (staff_name or '').strip()
        if not staff_name:
            raise ValidationError("Staff name is required.")
        codes = parse_pattern(pattern, self.catalog.visible_codes())
        for label, day in (('Start day', start_day), ('End day', end_day)):
            if isinstance(day, bool) or not isinstance(day, int) or not (1 <= day <= 31):
                raise ValidationError(f"{label} must be between 1 and 31.")
        if start_day > end_day:
            raise ValidationError(f"Start day {start_day} is after end day {end_day}.")
        clip = NewStarterClip.from_value(clip)
        months = target_months(month, year, mode, horizon)
        _log.info("Rolling %s for %s over %d months from %s",
                  ','.join(codes), staff_name, len(months), sheet_name(month, year))

        summary = RollingSummary()
        offset = 0
        for m, y in months:
            outcome = MonthOutcome(month=m, year=y)
            summary.months.append(outcome)

            if clip is not None and clip.is_after(m, y):
                outcome.status = MonthStatus.SKIPPED_BEFORE_START
                outcome.reason = f"Before start date {clip.start.isoformat()}"
                continue
            first = max(start_day, clip.start.day) if clip is not None and clip.is_within(m, y) else start_day
            last = min(end_day, days_in_month(m, y))
            outcome.start_day, outcome.end_day = first, last

            try:
                grid, outcome.created = self.sheets.get_or_create_grid(m, y)
                row, _ = self.sheets.ensure_staff_row(grid, staff_name)
            except RotaError as exc:
                outcome.status = MonthStatus.FAILED
                outcome.reason = str(exc)
                _log.error("Rolling pattern: %s failed: %s", outcome.sheet, exc)
                if first <= last:
                    offset = (offset + last - first + 1) % len(codes)
                continue

            if first > last:
                outcome.status = MonthStatus.SKIPPED
                outcome.reason = f"Invalid day range {first}-{last}"
                _log.info("Rolling pattern: %s skipped (%s)", outcome.sheet, outcome.reason)
                continue

            expansion = expand_pattern(codes, first, last, offset, grid.days_in_month)
            offset = expansion.next_offset
            try:
                outcome.status = _write_with_fallback(grid, row, expansion)
            except RotaError as exc:
                outcome.status = MonthStatus.FAILED
                outcome.reason = str(exc)
                _log.error("Rolling pattern: %s failed: %s", outcome.sheet, exc)
                continue
            _log.info("Rolling pattern: %s %s (days %d-%d)", outcome.sheet, outcome.status.value, first, last)

        summary.next_offset = offset
        return summary

    def apply_range(self, staff_name: str, pattern, start_date, end_date) -> Dict[str, Any]:
        """Apply pattern over a date range inside one month, starting at the first code."""
        staff_name = (staff_name or '').strip()
        if not staff_name:
            raise ValidationError("Staff name is required.")
        start, end = parse_date(start_date), parse_date(end_date)
        if start > end:
            raise ValidationError("Start date must be on or before end date.")
        spanned = months_spanned(start, end)
        if len(spanned) > 1:
            names = [sheet_name(m, y) for m, y in spanned]
            raise MultiMonthRangeError(
                f"The range spans {len(names)} months. Apply the pattern one month at a time: {', '.join(names)}.",
                names,
            )
        codes = parse_pattern(pattern, self.catalog.visible_codes())
        grid, created = self.sheets.get_or_create_grid(start.month, start.year)
        row, _ = self.sheets.ensure_staff_row(grid, staff_name)
        expansion = expand_pattern(codes, start.day, end.day, 0, grid.days_in_month)
        status = _write_with_fallback(grid, row, expansion)
        self.sheets.activate(grid)
        _log.info("Pattern applied to %s in %s days %d-%d (%s)",
                  staff_name, grid.name, start.day, end.day, status.value)
        return {
            'sheet': grid.name,
            'created': created,
            'row': row,
            'status': status.value,
            'values': expansion.values,
            'nextOffset': expansion.next_offset,
        }
