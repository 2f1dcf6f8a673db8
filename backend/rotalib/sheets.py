"""
Month sheet manager: finds or creates month grids and keeps their
validation lists, shift colors and aggregate formulas in step with the
shift catalog and leave entitlements.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .aggregates import build_row_formulas, evaluate_row
from .calendar_utils import check_month, consecutive_months, day_header, is_weekend, sheet_name
from .catalog import ShiftCatalog
from .constants import (
    DAY_COLUMN_WIDTH,
    FIRST_DAY_COLUMN,
    FIRST_STAFF_ROW,
    HEADER_ROW,
    STAFF_COLUMN,
    STAFF_COLUMN_WIDTH,
    STAFF_HEADER,
    SUMMARY_COLUMN_WIDTH,
    SUMMARY_HEADERS,
    VALIDATION_ROWS,
)
from .errors import DataError, RotaError, ValidationError, WriteError
from .grid import GridWorkbook, MonthGrid, is_rota_table
from .leave import LeaveAllocations

_log = logging.getLogger(__name__)


def _month_pair(item: Any) -> Tuple[int, int]:
    """Accept {'month': m, 'year': y} or (m, y)."""
    if isinstance(item, dict):
        month, year = item.get('month'), item.get('year')
    else:
        try:
            month, year = item
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid month selection: {item!r}")
    try:
        month, year = int(month), int(year)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid month selection: {item!r}")
    check_month(month, year)
    return month, year


class MonthSheetManager:
    def __init__(self, workbook: GridWorkbook, catalog: ShiftCatalog, leave: LeaveAllocations):
        self.workbook = workbook
        self.catalog = catalog
        self.leave = leave

    # ── Lookup ─────────────────────────────────────────────────
    def find_grid(self, month: int, year: int) -> Optional[MonthGrid]:
        """Existing grid for (month, year), or None. Never creates one."""
        table = self.workbook.get_sheet(sheet_name(month, year))
        if table is None or not is_rota_table(table):
            return None
        return MonthGrid(table, month, year)

    def grids(self) -> List[MonthGrid]:
        result = []
        for name in self.workbook.sheet_names():
            grid = MonthGrid.from_table(self.workbook.get_sheet(name))
            if grid is not None:
                result.append(grid)
        return result

    def active_grid(self) -> Optional[MonthGrid]:
        return MonthGrid.from_table(self.workbook.active_sheet())

    # ── Creation ───────────────────────────────────────────────
    def get_or_create_grid(self, month: int, year: int,
                           staff_names: Optional[Sequence[str]] = None) -> Tuple[MonthGrid, bool]:
        """Return (grid, created). An existing grid is returned unchanged."""
        name = sheet_name(month, year)
        table = self.workbook.get_sheet(name)
        if table is not None:
            if not is_rota_table(table):
                raise DataError(f"Sheet '{name}' exists but is not a rota grid.")
            return MonthGrid(table, month, year), False

        try:
            table = self.workbook.insert_sheet(name)
        except Exception as exc:
            raise WriteError(f"Could not insert sheet {name}: {exc}") from exc
        grid = MonthGrid(table, month, year)
        names = [n.strip() for n in (staff_names or []) if isinstance(n, str) and n.strip()]
        try:
            self._lay_out(grid, names)
        except RotaError:
            raise
        except Exception as exc:
            raise WriteError(f"Could not lay out {name}: {exc}") from exc

        self._install_rules(grid)
        self.write_aggregates(grid)
        _log.info("Created grid %s (%d days, %d staff)", name, grid.days_in_month, len(names))
        return grid, True

    def _lay_out(self, grid: MonthGrid, names: List[str]) -> None:
        """Header row, column widths, frozen panes and initial staff names of a new grid."""
        table, month, year = grid.table, grid.month, grid.year
        dim = grid.days_in_month

        header = [STAFF_HEADER]
        header += [day_header(year, month, day) for day in range(1, dim + 1)]
        header += list(SUMMARY_HEADERS)
        table.set_values(HEADER_ROW, STAFF_COLUMN, [header])

        table.set_column_width(STAFF_COLUMN, STAFF_COLUMN_WIDTH)
        for day in range(1, dim + 1):
            table.set_column_width(grid.day_column(day), DAY_COLUMN_WIDTH)
        for col in range(grid.first_summary_column, grid.last_column + 1):
            table.set_column_width(col, SUMMARY_COLUMN_WIDTH)
        table.freeze(HEADER_ROW, STAFF_COLUMN)
        weekend_cols = [grid.day_column(d) for d in range(1, dim + 1) if is_weekend(year, month, d)]
        table.style_header(grid.last_column, weekend_cols)

        if names:
            table.set_values(FIRST_STAFF_ROW, STAFF_COLUMN, [[n] for n in dict.fromkeys(names)])

    def _install_rules(self, grid: MonthGrid) -> None:
        """Validation list and colors on the day columns only."""
        catalog = self.catalog.resolve()
        num_rows = max(VALIDATION_ROWS, grid.table.last_row() - HEADER_ROW)
        try:
            grid.table.set_list_validation(
                FIRST_STAFF_ROW, FIRST_DAY_COLUMN, num_rows, grid.days_in_month, list(catalog.keys())
            )
            grid.table.set_color_rules(
                FIRST_STAFF_ROW, FIRST_DAY_COLUMN, num_rows, grid.days_in_month,
                {code: t.color for code, t in catalog.items()},
            )
        except Exception as exc:
            raise WriteError(f"Could not install shift rules on {grid.name}: {exc}") from exc

    def activate(self, grid: MonthGrid) -> None:
        """Make grid the workbook's active sheet."""
        self.workbook.set_active(grid.name)

    def create_monthly_grids(self, selected_months: Iterable[Any],
                             staff_names: Sequence[str]) -> Dict[str, List[str]]:
        """Create each selected month that does not exist yet, populated with staff_names."""
        created, existing, failed = [], [], []
        for item in selected_months:
            try:
                month, year = _month_pair(item)
                grid, was_created = self.get_or_create_grid(month, year, staff_names)
            except RotaError as exc:
                _log.error("Could not create grid for %r: %s", item, exc)
                failed.append(str(item))
                continue
            (created if was_created else existing).append(grid.name)
        return {'created': created, 'existing': existing, 'failed': failed}

    def create_missing_grids(self, start_month: int, start_year: int, count: int) -> Dict[str, List[str]]:
        """Empty grids for count consecutive months starting at start_month/start_year."""
        created, existing = [], []
        for month, year in consecutive_months(start_month, start_year, count):
            grid, was_created = self.get_or_create_grid(month, year)
            (created if was_created else existing).append(grid.name)
        return {'created': created, 'existing': existing}

    # ── Staff rows ─────────────────────────────────────────────
    def ensure_staff_row(self, grid: MonthGrid, staff_name: str) -> Tuple[int, bool]:
        """Row of staff_name, adding it (with aggregate formulas) if missing."""
        name = (staff_name or '').strip()
        if not name:
            raise ValidationError("Staff name is required.")
        row = grid.find_row(name)
        if row is not None:
            return row, False
        row = grid.free_row()
        grid.write_name(row, name)
        self.write_aggregates(grid, [(row, name)])
        if row - HEADER_ROW > VALIDATION_ROWS:
            self._install_rules(grid)
        _log.info("Added %s to %s at row %d", name, grid.name, row)
        return row, True

    def remove_staff_rows(self, grid: MonthGrid, entries: Iterable[Dict[str, Any]]) -> Tuple[List[str], List[str]]:
        """Clear the rows of the given {name, row} entries after checking the name still matches."""
        removed, errors = [], []
        for entry in entries:
            name = str(entry.get('name') or '').strip()
            row = entry.get('row')
            if not isinstance(row, int) or row < FIRST_STAFF_ROW:
                errors.append(f"Invalid row for {name!r}: {row!r}")
                continue
            found = grid.table.get_value(row, STAFF_COLUMN)
            if str(found if found is not None else '').strip() != name:
                errors.append(f'Name mismatch for row {row}: expected "{name}" but found "{found}"')
                continue
            try:
                grid.clear_row(row)
            except WriteError as exc:
                errors.append(str(exc))
                continue
            removed.append(name)
            _log.info("Removed %s from %s row %d", name, grid.name, row)
        return removed, errors

    # ── Aggregates ─────────────────────────────────────────────
    def write_aggregates(self, grid: MonthGrid,
                         rows: Optional[List[Tuple[int, str]]] = None) -> None:
        """Bind the four aggregate formulas for the given rows (default: every staff row)."""
        hours = self.catalog.hours_by_code()
        dim = grid.days_in_month

        def formulas(row: int, name: str) -> List[str]:
            return build_row_formulas(row, dim, hours, self.leave.entitlement(name, grid.year))

        if rows is not None:
            for row, name in rows:
                self._set_formulas(grid, row, [formulas(row, name)])
            return

        staff = grid.staff_rows()
        if not staff:
            return
        by_row = dict(staff)
        first, last = staff[0][0], staff[-1][0]
        block = [
            formulas(row, by_row[row]) if row in by_row else [None] * len(SUMMARY_HEADERS)
            for row in range(first, last + 1)
        ]
        self._set_formulas(grid, first, block)

    @staticmethod
    def _set_formulas(grid: MonthGrid, row: int, block: List[List[Optional[str]]]) -> None:
        try:
            grid.table.set_formulas(row, grid.first_summary_column, block)
        except Exception as exc:
            raise WriteError(f"Could not write aggregates to {grid.name} row {row}: {exc}") from exc

    def resync_all(self) -> int:
        """Rebuild validation, colors and aggregates on every grid.

        A grid the host refuses to update is logged and left as it was.
        Returns the number of grids resynced.
        """
        synced = 0
        for grid in self.grids():
            try:
                self._install_rules(grid)
                self.write_aggregates(grid)
            except WriteError as exc:
                _log.error("Resync of %s failed: %s", grid.name, exc)
                continue
            synced += 1
        _log.info("Resynced %d grids with the shift catalog", synced)
        return synced

    def refresh_staff_aggregates(self, staff_name: str) -> int:
        """Rebuild one staff member's aggregates wherever they appear."""
        count = 0
        for grid in self.grids():
            row = grid.find_row(staff_name)
            if row is not None:
                self.write_aggregates(grid, [(row, staff_name.strip())])
                count += 1
        return count

    # ── Read-out ───────────────────────────────────────────────
    def snapshot(self, grid: MonthGrid) -> Dict[str, Any]:
        """Headers, day codes and computed aggregate values of a grid."""
        hours = self.catalog.hours_by_code()
        header = grid.table.get_values(HEADER_ROW, STAFF_COLUMN, 1, grid.last_column)[0]
        rows = []
        for row, name in grid.staff_rows():
            days = ['' if v is None else v for v in grid.read_days(row)]
            rows.append({
                'row': row,
                'name': name,
                'days': days,
                'aggregates': evaluate_row(days, hours, self.leave.entitlement(name, grid.year)),
            })
        return {
            'sheet': grid.name,
            'month': grid.month,
            'year': grid.year,
            'daysInMonth': grid.days_in_month,
            'headers': header,
            'rows': rows,
        }
