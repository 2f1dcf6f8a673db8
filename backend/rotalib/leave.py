"""Annual leave allocations and per-year entitlements."""
import logging
from typing import Dict, Iterable, Optional

from .constants import DEFAULT_ENTITLEMENT, MAX_DAYS_RANGE
from .errors import ValidationError
from .store import PropertyStore

_log = logging.getLogger(__name__)


def _check_days(days) -> float:
    if isinstance(days, bool) or not isinstance(days, (int, float)):
        raise ValidationError(f"Leave days must be a number, got {days!r}.")
    if days < 0 or days > MAX_DAYS_RANGE:
        raise ValidationError(f"Leave days must be between 0 and {MAX_DAYS_RANGE}.")
    return days


class LeaveAllocations:
    def __init__(self, store: PropertyStore):
        self.store = store

    def get_allocation(self, staff_name: str) -> float:
        allocations = self.store.get_allocations()
        if staff_name in allocations:
            return allocations[staff_name]
        return DEFAULT_ENTITLEMENT

    def get_all_allocations(self) -> Dict[str, float]:
        return self.store.get_allocations()

    def set_allocation(self, staff_name: str, days) -> float:
        staff_name = (staff_name or '').strip()
        if not staff_name:
            raise ValidationError("Staff name is required.")
        days = _check_days(days)
        allocations = self.store.get_allocations()
        allocations[staff_name] = days
        self.store.save_allocations(allocations)
        _log.info("Annual leave allocation for %s set to %s days", staff_name, days)
        return days

    def set_all_allocations(self, staff_names: Iterable[str], default=DEFAULT_ENTITLEMENT) -> int:
        """Give every staff member without an allocation the default. Returns how many were set."""
        default = _check_days(default)
        allocations = self.store.get_allocations()
        updated = 0
        for name in staff_names:
            if name not in allocations:
                allocations[name] = default
                updated += 1
        self.store.save_allocations(allocations)
        _log.info("Default allocation of %s days applied to %d staff members", default, updated)
        return updated

    def entitlement(self, staff_name: str, year: int) -> float:
        """Per-year override, else the allocation, else the default."""
        override: Optional[float] = self.store.get_entitlement_override(staff_name, year)
        if override is not None:
            return override
        return self.get_allocation(staff_name)

    def set_entitlement(self, staff_name: str, year: int, days) -> float:
        days = _check_days(days)
        self.store.set_entitlement_override(staff_name, year, days)
        return days
