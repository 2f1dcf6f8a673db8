"""
Absence log and integration of absences into existing month grids.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List

from .calendar_utils import bucket_days, inclusive_days, parse_date, sheet_name
from .constants import (
    ABSENCE_ANNUAL_LEAVE,
    ABSENCE_CODES,
    ABSENCE_SICK,
    ABSENCE_TRAINING,
    FALLBACK_ABSENCE_CODE,
    MAX_DAYS_RANGE,
)
from .errors import RotaError, ValidationError
from .sheets import MonthSheetManager
from .store import PropertyStore

_log = logging.getLogger(__name__)

_STAT_BUCKETS = {
    ABSENCE_ANNUAL_LEAVE: 'annualLeave',
    ABSENCE_SICK: 'sick',
    ABSENCE_TRAINING: 'training',
}


def shift_code_for(absence_type: str) -> str:
    return ABSENCE_CODES.get(absence_type, FALLBACK_ABSENCE_CODE)


@dataclass
class AbsenceRecord:
    staff_name: str
    absence_type: str
    start_date: date
    end_date: date
    reason: str = ''

    @property
    def days(self) -> int:
        return inclusive_days(self.start_date, self.end_date)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'staffName': self.staff_name,
            'absenceType': self.absence_type,
            'startDate': self.start_date.isoformat(),
            'endDate': self.end_date.isoformat(),
            'days': self.days,
            'reason': self.reason,
        }


class AbsenceIntegrator:
    def __init__(self, store: PropertyStore, sheets: MonthSheetManager):
        self.store = store
        self.sheets = sheets

    def _record(self, staff_name, absence_type, start_date, end_date, reason='') -> AbsenceRecord:
        staff_name = (staff_name or '').strip()
        if not staff_name:
            raise ValidationError("Staff name is required.")
        absence_type = (absence_type or '').strip()
        if not absence_type:
            raise ValidationError("Absence type is required.")
        start, end = parse_date(start_date), parse_date(end_date)
        if start > end:
            raise ValidationError("Start date must be on or before end date.")
        if inclusive_days(start, end) > MAX_DAYS_RANGE:
            raise ValidationError(f"An absence may cover at most {MAX_DAYS_RANGE} days.")
        return AbsenceRecord(staff_name, absence_type, start, end, reason or '')

    def apply_absence(self, staff_name, absence_type, start_date, end_date) -> Dict[str, Any]:
        """Write the absence code into every existing grid the range touches.

        Months without a grid are skipped. A failure in one month is counted
        and the other months are still written.
        """
        record = self._record(staff_name, absence_type, start_date, end_date)
        code = shift_code_for(record.absence_type)
        applied, errors = 0, 0
        skipped: List[str] = []
        for year, month, days in bucket_days(record.start_date, record.end_date):
            grid = self.sheets.find_grid(month, year)
            if grid is None:
                _log.info("No grid for %s, absence days there not applied", sheet_name(month, year))
                skipped.append(sheet_name(month, year))
                continue
            in_grid = [d for d in days if d <= grid.days_in_month]
            if not in_grid:
                continue
            try:
                row, _ = self.sheets.ensure_staff_row(grid, record.staff_name)
                grid.write_days(row, in_grid[0], [code] * len(in_grid))
            except RotaError as exc:
                _log.error("Absence for %s in %s not applied: %s", record.staff_name, grid.name, exc)
                errors += 1
                continue
            applied += len(in_grid)

        message = f"Applied {applied} absence entries for {record.staff_name}"
        if errors:
            message += f" ({errors} errors)"
        _log.info(message)
        return {'applied': applied, 'errors': errors, 'skippedSheets': skipped, 'code': code, 'message': message}

    def log_absence(self, staff_name, absence_type, start_date, end_date, reason='') -> Dict[str, Any]:
        """Append the absence to the log, then apply it to the grids."""
        record = self._record(staff_name, absence_type, start_date, end_date, reason)
        self.store.append_absence(record.to_dict())
        result = self.apply_absence(record.staff_name, record.absence_type, record.start_date, record.end_date)
        result['record'] = record.to_dict()
        return result

    def list_absences(self) -> List[Dict[str, Any]]:
        return self.store.get_absence_log()

    def absence_stats(self) -> List[Dict[str, Any]]:
        """Logged days per staff member, by category."""
        stats: Dict[str, Dict[str, Any]] = {}
        for entry in self.store.get_absence_log():
            if not isinstance(entry, dict):
                continue
            name = entry.get('staffName')
            days = entry.get('days')
            if not name or isinstance(days, bool) or not isinstance(days, (int, float)):
                continue
            row = stats.setdefault(name, {
                'name': name, 'annualLeave': 0, 'sick': 0, 'training': 0, 'other': 0, 'total': 0,
            })
            row[_STAT_BUCKETS.get(entry.get('absenceType'), 'other')] += days
            row['total'] += days
        return list(stats.values())
