"""
Aggregate column formulas (Total Hours, Annual Leave, Sick Days, Training Days).

build_row_formulas produces the Excel formulas bound to a staff row;
evaluate_row computes the same values in Python, since openpyxl stores
formulas without calculating them.
"""
from typing import Any, Dict, List, Mapping

from openpyxl.utils import get_column_letter

from .constants import FIRST_DAY_COLUMN


def _num(value: float) -> str:
    """Render 28.0 as '28' and 12.5 as '12.5'."""
    return str(int(value)) if float(value).is_integer() else str(value)


def day_range_ref(row: int, days_in_month: int) -> str:
    """A1 reference of a row's day cells, e.g. 'B2:AF2' for a 31-day month."""
    first = get_column_letter(FIRST_DAY_COLUMN)
    last = get_column_letter(FIRST_DAY_COLUMN + days_in_month - 1)
    return f"{first}{row}:{last}{row}"


def total_hours_formula(row: int, days_in_month: int, hours_by_code: Mapping[str, float]) -> str:
    """Sum of paid hours over the row. Zero-hour codes are left out."""
    rng = day_range_ref(row, days_in_month)
    terms = [f'({rng}="{code}")*{_num(hours)}' for code, hours in hours_by_code.items() if hours > 0]
    if not terms:
        return '=0'
    return f"=SUMPRODUCT({'+'.join(terms)})"


def annual_leave_formula(row: int, days_in_month: int, entitlement: float) -> str:
    return f'={_num(entitlement)}-COUNTIF({day_range_ref(row, days_in_month)},"AL")'


def count_formula(row: int, days_in_month: int, code: str) -> str:
    return f'=COUNTIF({day_range_ref(row, days_in_month)},"{code}")'


def build_row_formulas(row: int, days_in_month: int, hours_by_code: Mapping[str, float],
                       entitlement: float) -> List[str]:
    """The four aggregate formulas of one row, in column order."""
    return [
        total_hours_formula(row, days_in_month, hours_by_code),
        annual_leave_formula(row, days_in_month, entitlement),
        count_formula(row, days_in_month, 'SICK'),
        count_formula(row, days_in_month, 'TRAINING'),
    ]


def evaluate_row(day_values: List[Any], hours_by_code: Mapping[str, float],
                 entitlement: float) -> Dict[str, float]:
    codes = [v for v in day_values if isinstance(v, str)]
    total = sum(hours_by_code.get(code, 0) for code in codes)
    return {
        'totalHours': total,
        'annualLeave': entitlement - codes.count('AL'),
        'sickDays': codes.count('SICK'),
        'trainingDays': codes.count('TRAINING'),
    }
