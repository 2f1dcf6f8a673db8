"""Shared constants for the rota library: built-in shifts, grid schema, limits, storage keys."""

# ── Built-in shift types ────────────────────────────────────────
# Built-ins can be hidden but never deleted.
BUILTIN_SHIFTS = {
    'EARLY': {'label': 'Early', 'hours': 8, 'color': '#FF0000'},
    'LATE': {'label': 'Late', 'hours': 8, 'color': '#0000FF'},
    'NIGHT': {'label': 'Night', 'hours': 10, 'color': '#800080'},
    'DAY': {'label': 'Day', 'hours': 8, 'color': '#FFFF00'},
    'OFF': {'label': 'Off', 'hours': 0, 'color': '#000000'},
    'AL': {'label': 'Annual Leave', 'hours': 0, 'color': '#008000'},
    'SICK': {'label': 'Sick', 'hours': 0, 'color': '#FFA500'},
    'TRAINING': {'label': 'Training', 'hours': 8, 'color': '#00FFFF'},
}

# ── Grid schema ─────────────────────────────────────────────────
STAFF_HEADER = 'Staff Name'
SUMMARY_HEADERS = ('Total Hours', 'Annual Leave', 'Sick Days', 'Training Days')
HEADER_ROW = 1
FIRST_STAFF_ROW = 2
STAFF_COLUMN = 1
FIRST_DAY_COLUMN = 2

MONTH_NAMES = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December',
]
WEEKDAY_ABBREVS = ['Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun']

# Column widths in pixels (converted by the host adapter)
STAFF_COLUMN_WIDTH = 150
DAY_COLUMN_WIDTH = 40
SUMMARY_COLUMN_WIDTH = 100

# Rows pre-armed with day-column validation on a fresh grid
VALIDATION_ROWS = 50

# ── Limits ──────────────────────────────────────────────────────
MAX_STAFF_MEMBERS = 100
MAX_PATTERN_LENGTH = 50
MAX_DAYS_RANGE = 366
MAX_SHIFT_CODE_LENGTH = 16
DEFAULT_ENTITLEMENT = 28
DEFAULT_ROLLING_MONTHS = 3
DEFAULT_MISSING_MONTHS = 3

# ── Rolling modes ───────────────────────────────────────────────
ROLLING_FIXED = 'fixed'
ROLLING_UNTIL_MARCH = 'march_31'
ROLLING_MODES = (ROLLING_FIXED, ROLLING_UNTIL_MARCH)

# ── Absences ────────────────────────────────────────────────────
ABSENCE_ANNUAL_LEAVE = 'Annual Leave'
ABSENCE_SICK = 'Sick Leave'
ABSENCE_TRAINING = 'Training'
ABSENCE_CODES = {
    ABSENCE_ANNUAL_LEAVE: 'AL',
    ABSENCE_SICK: 'SICK',
    ABSENCE_TRAINING: 'TRAINING',
}
FALLBACK_ABSENCE_CODE = 'OFF'

# ── Persisted key-value layout ──────────────────────────────────
KEY_STAFF_LIST = 'staffList'
KEY_CUSTOM_SHIFTS = 'CUSTOM_SHIFTS'
KEY_HIDDEN_SHIFTS = 'HIDDEN_SHIFTS'
KEY_ALLOCATIONS = 'annualLeaveAllocations'
KEY_ABSENCE_LOG = 'absenceLog'
ENTITLEMENT_KEY_PREFIX = 'al_entitlement_'


def entitlement_key(staff_name: str, year: int) -> str:
    return f"{ENTITLEMENT_KEY_PREFIX}{staff_name}_{year}"
