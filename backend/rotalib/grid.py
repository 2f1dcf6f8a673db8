"""
Grid host abstraction and the calendar month grid built on it.

GridTable / GridWorkbook describe the host's tabular API (rows and columns
are 1-based, like a spreadsheet). MonthGrid binds one table to a
(month, year) and enforces the schema: staff name column, one column per
day, then the four aggregate columns, which day writes must never reach.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from .calendar_utils import days_in_month, parse_sheet_name, sheet_name
from .constants import (
    FIRST_DAY_COLUMN,
    FIRST_STAFF_ROW,
    HEADER_ROW,
    MAX_STAFF_MEMBERS,
    STAFF_COLUMN,
    STAFF_HEADER,
    SUMMARY_HEADERS,
)
from .errors import DataError, ValidationError, WriteError

_log = logging.getLogger(__name__)


class GridTable(ABC):
    """One sheet of the host."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def get_value(self, row: int, col: int) -> Any:
        ...

    @abstractmethod
    def get_values(self, row: int, col: int, num_rows: int, num_cols: int) -> List[List[Any]]:
        ...

    @abstractmethod
    def set_value(self, row: int, col: int, value: Any) -> None:
        ...

    @abstractmethod
    def set_values(self, row: int, col: int, values: List[List[Any]]) -> None:
        """Batched write of a rectangular block starting at (row, col)."""

    @abstractmethod
    def set_formulas(self, row: int, col: int, formulas: List[List[Optional[str]]]) -> None:
        """Bind a rectangular block of formulas ('=...'); None clears the cell."""

    @abstractmethod
    def last_row(self) -> int:
        """Index of the last row holding any value (0 for an empty table)."""

    @abstractmethod
    def clear_row(self, row: int, num_cols: int) -> None:
        ...

    @abstractmethod
    def set_column_width(self, col: int, width: int) -> None:
        ...

    @abstractmethod
    def freeze(self, rows: int, cols: int) -> None:
        ...

    @abstractmethod
    def set_list_validation(self, row: int, col: int, num_rows: int, num_cols: int,
                            allowed: List[str]) -> None:
        """Restrict a block to the allowed values, replacing any earlier rule on it."""

    @abstractmethod
    def set_color_rules(self, row: int, col: int, num_rows: int, num_cols: int,
                        colors: Dict[str, str]) -> None:
        """Background colors by exact cell value, replacing earlier rules."""

    @abstractmethod
    def style_header(self, num_cols: int, shaded_cols: List[int]) -> None:
        ...


class GridWorkbook(ABC):
    """The host document holding every sheet."""

    @abstractmethod
    def get_sheet(self, name: str) -> Optional[GridTable]:
        ...

    @abstractmethod
    def insert_sheet(self, name: str) -> GridTable:
        ...

    @abstractmethod
    def sheet_names(self) -> List[str]:
        ...

    @abstractmethod
    def active_sheet(self) -> Optional[GridTable]:
        ...

    @abstractmethod
    def set_active(self, name: str) -> None:
        ...

    @abstractmethod
    def flush(self) -> None:
        """Single sync point: persist all pending changes."""


def is_rota_table(table: Optional[GridTable]) -> bool:
    """A table is a rota grid when its A1 header is exactly 'Staff Name'."""
    if table is None:
        return False
    return table.get_value(HEADER_ROW, STAFF_COLUMN) == STAFF_HEADER


def _name_of(cell_value: Any) -> str:
    return str(cell_value if cell_value is not None else '').strip()


def table_staff_rows(table: GridTable) -> List[Tuple[int, str]]:
    """(row, name) for every non-empty staff cell of a table, in row order."""
    last = table.last_row()
    if last < FIRST_STAFF_ROW:
        return []
    values = table.get_values(FIRST_STAFF_ROW, STAFF_COLUMN, last - FIRST_STAFF_ROW + 1, 1)
    return [
        (FIRST_STAFF_ROW + offset, _name_of(row_values[0]))
        for offset, row_values in enumerate(values)
        if _name_of(row_values[0])
    ]


class MonthGrid:
    """A rota grid for one (month, year)."""

    def __init__(self, table: GridTable, month: int, year: int):
        self.table = table
        self.month = month
        self.year = year
        self.days_in_month = days_in_month(month, year)

    @classmethod
    def from_table(cls, table: Optional[GridTable]) -> Optional['MonthGrid']:
        """Wrap a table as a MonthGrid if it is a rota grid with a 'Month YYYY' name."""
        if not is_rota_table(table):
            return None
        parsed = parse_sheet_name(table.name)
        if parsed is None:
            return None
        return cls(table, parsed[0], parsed[1])

    # ── Schema ─────────────────────────────────────────────────
    @property
    def name(self) -> str:
        return sheet_name(self.month, self.year)

    @property
    def first_summary_column(self) -> int:
        return self.days_in_month + 2

    @property
    def last_column(self) -> int:
        return self.days_in_month + 1 + len(SUMMARY_HEADERS)

    def day_column(self, day: int) -> int:
        return day + 1

    def check_day_range(self, start_day: int, width: int) -> None:
        """Reject any write that would leave the day columns."""
        if width < 1:
            raise ValidationError(f"Empty day range starting at day {start_day}.")
        if start_day < 1 or start_day + width - 1 > self.days_in_month:
            raise ValidationError(
                f"Day range {start_day}-{start_day + width - 1} would overwrite the summary columns "
                f"of {self.name} (days 1-{self.days_in_month})."
            )

    # ── Staff rows ─────────────────────────────────────────────
    def staff_rows(self) -> List[Tuple[int, str]]:
        return table_staff_rows(self.table)

    def find_row(self, staff_name: str) -> Optional[int]:
        """Row of staff_name (trimmed, case-sensitive), or None."""
        wanted = (staff_name or '').strip()
        for row, name in self.staff_rows():
            if name == wanted:
                return row
        return None

    def free_row(self) -> int:
        """First row with an empty name cell, else the row after the last used one."""
        last = self.table.last_row()
        if last >= FIRST_STAFF_ROW:
            names = self.table.get_values(FIRST_STAFF_ROW, STAFF_COLUMN, last - FIRST_STAFF_ROW + 1, 1)
            for offset, row_values in enumerate(names):
                if not _name_of(row_values[0]):
                    return FIRST_STAFF_ROW + offset
        row = max(last, HEADER_ROW) + 1
        if row - HEADER_ROW > MAX_STAFF_MEMBERS:
            raise DataError(f"{self.name} already holds the maximum of {MAX_STAFF_MEMBERS} staff rows.")
        return row

    def write_name(self, row: int, staff_name: str) -> None:
        try:
            self.table.set_value(row, STAFF_COLUMN, staff_name.strip())
        except Exception as exc:
            raise WriteError(f"Could not write staff name to {self.name} row {row}: {exc}") from exc

    # ── Day cells ──────────────────────────────────────────────
    def read_days(self, row: int) -> List[Any]:
        return self.table.get_values(row, FIRST_DAY_COLUMN, 1, self.days_in_month)[0]

    def write_days(self, row: int, start_day: int, values: List[str]) -> None:
        """One batched write of consecutive day cells."""
        self.check_day_range(start_day, len(values))
        try:
            self.table.set_values(row, self.day_column(start_day), [list(values)])
        except Exception as exc:
            raise WriteError(f"Batch write to {self.name} row {row} failed: {exc}") from exc

    def write_day(self, row: int, day: int, value: str) -> None:
        """Write a single day cell."""
        self.check_day_range(day, 1)
        try:
            self.table.set_value(row, self.day_column(day), value)
        except Exception as exc:
            raise WriteError(f"Write to {self.name} row {row} day {day} failed: {exc}") from exc

    def clear_row(self, row: int) -> None:
        try:
            self.table.clear_row(row, self.last_column)
        except Exception as exc:
            raise WriteError(f"Could not clear {self.name} row {row}: {exc}") from exc
