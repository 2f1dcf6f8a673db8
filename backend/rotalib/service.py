"""
RotaService: the function-call boundary used by the HTTP layer.

Every public method takes plain arguments and returns a result dict
{'success': bool, 'message'?: str, ...}. ValidationError and DataError
become declined results; nothing in the RotaError family escapes. The
workbook is flushed once per mutating operation.
"""
import functools
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from .absences import AbsenceIntegrator
from .calendar_utils import sheet_name
from .catalog import ShiftCatalog
from .constants import DEFAULT_ENTITLEMENT, DEFAULT_MISSING_MONTHS, DEFAULT_ROLLING_MONTHS, ROLLING_FIXED
from .errors import DataError, RotaError, ValidationError, fail, ok
from .grid import GridWorkbook
from .leave import LeaveAllocations
from .scheduler import MultiMonthRangeError, RollingScheduler
from .sheets import MonthSheetManager
from .staff import SOURCE_SETTINGS, SOURCE_SHEET, StaffDirectory
from .store import PropertyStore

_log = logging.getLogger(__name__)


def boundary(mutates: bool = False):
    """Turn RotaError into a declined result; flush the workbook after mutations."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(self: 'RotaService', *args, **kwargs) -> Dict[str, Any]:
            try:
                result = func(self, *args, **kwargs)
            except MultiMonthRangeError as exc:
                result = fail(str(exc), needsManualProcessing=True, months=exc.months)
            except RotaError as exc:
                _log.info("%s declined: %s", func.__name__, exc)
                result = fail(str(exc))
            if mutates:
                self.workbook.flush()
            return result
        return wrapper
    return decorator


class RotaService:
    def __init__(self, store: PropertyStore, workbook: GridWorkbook):
        self.store = store
        self.workbook = workbook
        self.catalog = ShiftCatalog(store)
        self.leave = LeaveAllocations(store)
        self.sheets = MonthSheetManager(workbook, self.catalog, self.leave)
        self.directory = StaffDirectory(store, workbook)
        self.scheduler = RollingScheduler(self.sheets, self.catalog)
        self.absences = AbsenceIntegrator(store, self.sheets)
        self.catalog.subscribe(self.sheets.resync_all)

    # ── Staff ──────────────────────────────────────────────────
    @boundary()
    def resolve_available_staff(self, month: Optional[int] = None, year: Optional[int] = None) -> Dict[str, Any]:
        """Staff list entries plus names found on the month/year grid (default: the active grid)."""
        table = None
        if month is not None and year is not None:
            table = self._require_grid(month, year).table
        staff = self.directory.resolve_available_staff(table)
        return ok(
            staff=[e.to_dict() for e in staff],
            settingsCount=sum(1 for e in staff if e.source == SOURCE_SETTINGS),
            sheetCount=sum(1 for e in staff if e.source == SOURCE_SHEET),
        )

    @boundary()
    def get_staff_list(self) -> Dict[str, Any]:
        return ok(staff=self.directory.get_staff_list())

    @boundary()
    def add_staff_member(self, data: Dict[str, Any]) -> Dict[str, Any]:
        member = self.directory.add_staff_member(data)
        return ok('Staff member added successfully', staff=member)

    @boundary()
    def update_staff_member(self, staff_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        member = self.directory.update_staff_member(staff_id, data)
        return ok('Staff member updated successfully', staff=member)

    @boundary()
    def delete_staff_member(self, staff_id: str) -> Dict[str, Any]:
        member = self.directory.delete_staff_member(staff_id)
        return ok('Staff member deleted successfully', staff=member)

    @boundary(mutates=True)
    def remove_staff_rows(self, month: int, year: int, entries: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
        grid = self._require_grid(month, year)
        removed, errors = self.sheets.remove_staff_rows(grid, entries)
        if removed:
            message = f"Successfully removed {len(removed)} staff member(s) from {grid.name}"
            if errors:
                message += f", but encountered {len(errors)} error(s)"
            return ok(message, removed=removed, errors=errors)
        if errors:
            return fail(f"Failed to remove staff members: {errors[0]}", removed=[], errors=errors)
        return fail('No staff members were removed', removed=[], errors=[])

    # ── Shift catalog ──────────────────────────────────────────
    @boundary()
    def resolve_catalog(self) -> Dict[str, Any]:
        visible = self.catalog.resolve()
        return ok(
            shifts={code: t.to_dict() for code, t in visible.items()},
            all=[t.to_dict() for t in self.catalog.all_types()],
        )

    @boundary(mutates=True)
    def save_custom_shift(self, code: str, label: str, hours, color: str) -> Dict[str, Any]:
        shift = self.catalog.save_custom_shift(code, label, hours, color)
        return ok(f"Shift {shift.code} saved.", shift=shift.to_dict())

    @boundary(mutates=True)
    def delete_shift(self, code: str) -> Dict[str, Any]:
        return ok(self.catalog.delete_shift(code))

    @boundary(mutates=True)
    def restore_shift(self, code: str) -> Dict[str, Any]:
        return ok(self.catalog.restore_shift(code))

    # ── Patterns ───────────────────────────────────────────────
    @boundary(mutates=True)
    def apply_pattern(self, staff_name: str, pattern, start_date, end_date) -> Dict[str, Any]:
        result = self.scheduler.apply_range(staff_name, pattern, start_date, end_date)
        return ok(f"Pattern applied to {staff_name.strip()} in {result['sheet']}.", **result)

    @boundary(mutates=True)
    def apply_rolling_pattern(self, staff_name: str, pattern, start_day: int, end_day: int,
                              rolling_mode: str = ROLLING_FIXED, horizon: int = DEFAULT_ROLLING_MONTHS,
                              new_starter: Any = None, month: Optional[int] = None,
                              year: Optional[int] = None) -> Dict[str, Any]:
        """Apply a pattern from month/year (default: the active grid) over the rolling horizon."""
        if month is None or year is None:
            grid = self.sheets.active_grid()
            if grid is None:
                raise DataError('Could not determine month/year. Open a rota grid named "Month YYYY".')
            month, year = grid.month, grid.year
        summary = self.scheduler.apply_rolling(
            staff_name, pattern, start_day, end_day, month, year,
            mode=rolling_mode, horizon=horizon, clip=new_starter,
        )
        start_grid = self.sheets.find_grid(month, year)
        if start_grid is not None:
            self.sheets.activate(start_grid)
        return ok(summary.message(), **summary.to_dict())

    # ── Absences ───────────────────────────────────────────────
    @boundary(mutates=True)
    def log_absence(self, staff_name: str, absence_type: str, start_date, end_date,
                    reason: str = '') -> Dict[str, Any]:
        result = self.absences.log_absence(staff_name, absence_type, start_date, end_date, reason)
        applied = result.pop('message')
        return ok(f"Absence logged successfully. {applied}.", **result)

    @boundary()
    def list_absences(self) -> Dict[str, Any]:
        return ok(absences=self.absences.list_absences())

    @boundary()
    def absence_stats(self) -> Dict[str, Any]:
        return ok(stats=self.absences.absence_stats())

    # ── Grids ──────────────────────────────────────────────────
    @boundary(mutates=True)
    def create_monthly_grids(self, selected_months: List[Any]) -> Dict[str, Any]:
        if not selected_months:
            return fail('No months selected for creation.')
        names = self.directory.available_names()
        result = self.sheets.create_monthly_grids(selected_months, names)
        parts = []
        if result['created']:
            parts.append(f"Created {len(result['created'])} sheet(s): {', '.join(result['created'])}")
        if result['existing']:
            parts.append(f"Already existed: {', '.join(result['existing'])}")
        if result['failed']:
            parts.append(f"Failed to create: {', '.join(result['failed'])}")
        return ok(
            '. '.join(parts) or 'No sheets were created or found.',
            createdSheets=result['created'],
            existingSheets=result['existing'],
            failedSheets=result['failed'],
            created=len(result['created']),
            existing=len(result['existing']),
            failed=len(result['failed']),
            totalStaffPopulated=len(names),
        )

    @boundary(mutates=True)
    def create_missing_grids(self, start_month: Optional[int] = None, start_year: Optional[int] = None,
                             count: int = DEFAULT_MISSING_MONTHS) -> Dict[str, Any]:
        today = date.today()
        start_month = start_month or today.month
        start_year = start_year or today.year
        if isinstance(count, bool) or not isinstance(count, int) or not (1 <= count <= 24):
            raise ValidationError("Count must be between 1 and 24.")
        result = self.sheets.create_missing_grids(start_month, start_year, count)
        parts = []
        if result['created']:
            parts.append(f"Created sheets: {', '.join(result['created'])}")
        if result['existing']:
            parts.append(f"Already existed: {', '.join(result['existing'])}")
        return ok(
            '. '.join(parts),
            createdSheets=result['created'],
            existingSheets=result['existing'],
            created=len(result['created']),
            existing=len(result['existing']),
        )

    @boundary()
    def read_grid(self, month: int, year: int) -> Dict[str, Any]:
        return ok(grid=self.sheets.snapshot(self._require_grid(month, year)))

    @boundary()
    def validate_cell_edit(self, month: int, year: int, row: int, day: int, value: Any) -> Dict[str, Any]:
        """Report whether a manually entered day value is a visible shift code."""
        grid = self._require_grid(month, year)
        if row < 2:
            raise ValidationError("Row 1 is the header row.")
        grid.check_day_range(day, 1)
        code = str(value if value is not None else '').strip().upper()
        if not code:
            return ok('Empty cell.', valid=True, code='')
        if self.catalog.is_visible(code):
            return ok(f"{code} is a valid shift code.", valid=True, code=code)
        return ok(
            f'"{value}" is not a valid shift type. Valid options: {", ".join(self.catalog.visible_codes())}',
            valid=False, code=code,
        )

    @boundary(mutates=True)
    def open_grid(self, month: int, year: int) -> Dict[str, Any]:
        grid = self._require_grid(month, year)
        self.sheets.activate(grid)
        return ok(f"{grid.name} is now the active grid.", sheet=grid.name)

    def _require_grid(self, month: int, year: int):
        grid = self.sheets.find_grid(month, year)
        if grid is None:
            raise DataError(f"Grid '{sheet_name(month, year)}' not found.")
        return grid

    # ── Annual leave ───────────────────────────────────────────
    @boundary()
    def get_annual_leave_allocation(self, staff_name: str) -> Dict[str, Any]:
        return ok(staffName=staff_name, days=self.leave.get_allocation(staff_name))

    @boundary()
    def get_all_allocations(self) -> Dict[str, Any]:
        return ok(allocations=self.leave.get_all_allocations())

    @boundary(mutates=True)
    def set_annual_leave_allocation(self, staff_name: str, days) -> Dict[str, Any]:
        days = self.leave.set_allocation(staff_name, days)
        grids = self.sheets.refresh_staff_aggregates(staff_name)
        return ok(
            f"Annual leave allocation for {staff_name.strip()} set to {days} days.",
            staffName=staff_name.strip(), days=days, gridsUpdated=grids,
        )

    @boundary(mutates=True)
    def set_all_allocations(self, default=DEFAULT_ENTITLEMENT) -> Dict[str, Any]:
        names = self.directory.available_names()
        updated = self.leave.set_all_allocations(names, default)
        for name in names:
            self.sheets.refresh_staff_aggregates(name)
        return ok(
            f"Set annual leave allocations for {updated} staff members",
            updatedCount=updated, totalStaff=len(names),
        )

    @boundary(mutates=True)
    def set_entitlement(self, staff_name: str, year: int, days) -> Dict[str, Any]:
        days = self.leave.set_entitlement(staff_name, year, days)
        grids = self.sheets.refresh_staff_aggregates(staff_name)
        return ok(staffName=staff_name, year=year, days=days, gridsUpdated=grids)
