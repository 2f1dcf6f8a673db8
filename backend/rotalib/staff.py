"""
Staff directory: the persisted staff list plus names found on the active grid.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .constants import MAX_STAFF_MEMBERS
from .errors import DataError, StorageError, ValidationError
from .grid import GridTable, GridWorkbook, is_rota_table, table_staff_rows
from .store import PropertyStore

_log = logging.getLogger(__name__)

SOURCE_SETTINGS = 'settings'
SOURCE_SHEET = 'sheet'


@dataclass
class StaffEntry:
    name: str
    role: str = ''
    source: str = SOURCE_SETTINGS
    row: Optional[int] = None
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {'name': self.name, 'role': self.role, 'source': self.source}
        if self.row is not None:
            d['row'] = self.row
        if self.id is not None:
            d['id'] = self.id
        return d


def _sheet_staff(table: GridTable) -> List[StaffEntry]:
    return [StaffEntry(name=name, source=SOURCE_SHEET, row=row) for row, name in table_staff_rows(table)]


class StaffDirectory:
    def __init__(self, store: PropertyStore, workbook: GridWorkbook):
        self.store = store
        self.workbook = workbook

    # ── Resolution ─────────────────────────────────────────────
    def resolve_available_staff(self, table: Optional[GridTable] = None) -> List[StaffEntry]:
        """Persisted staff first (stored order), then names only found on the grid (row order).

        Names are de-duplicated case-insensitively. Each source that fails
        contributes nothing instead of failing the whole lookup.
        """
        from_settings: List[StaffEntry] = []
        try:
            for item in self.store.get_staff_list(strict=True):
                if not isinstance(item, dict) or not str(item.get('name') or '').strip():
                    continue
                from_settings.append(StaffEntry(
                    name=str(item['name']).strip(),
                    role=item.get('role') or '',
                    source=SOURCE_SETTINGS,
                    id=item.get('id'),
                ))
        except StorageError as exc:
            _log.warning("Staff list unreadable, ignoring it: %s", exc)
            from_settings = []

        from_sheet: List[StaffEntry] = []
        try:
            if table is None:
                table = self.workbook.active_sheet()
            if is_rota_table(table):
                seen = {e.name.lower() for e in from_settings}
                for entry in _sheet_staff(table):
                    if entry.name.lower() not in seen:
                        seen.add(entry.name.lower())
                        from_sheet.append(entry)
        except Exception as exc:
            _log.warning("Could not read staff from the active grid: %s", exc)
            from_sheet = []

        _log.debug("Resolved staff: %d from settings, %d from sheet", len(from_settings), len(from_sheet))
        return from_settings + from_sheet

    def available_names(self) -> List[str]:
        return [e.name for e in self.resolve_available_staff()]

    # ── Persisted list ─────────────────────────────────────────
    def get_staff_list(self) -> List[Dict[str, Any]]:
        return self.store.get_staff_list()

    def add_staff_member(self, data: Dict[str, Any]) -> Dict[str, Any]:
        name = str(data.get('name') or '').strip()
        if not name:
            raise ValidationError("Staff name is required.")
        staff = self.store.get_staff_list()
        if len(staff) >= MAX_STAFF_MEMBERS:
            raise ValidationError(f"Staff list is limited to {MAX_STAFF_MEMBERS} members.")
        if any(str(s.get('name', '')).strip().lower() == name.lower() for s in staff):
            raise ValidationError(f"Staff member '{name}' already exists.")
        member = dict(data)
        member['name'] = name
        member['role'] = data.get('role') or ''
        member['id'] = str(uuid.uuid4())
        staff.append(member)
        self.store.save_staff_list(staff)
        _log.info("Staff member added: %s", name)
        return member

    def update_staff_member(self, staff_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        staff = self.store.get_staff_list()
        for index, member in enumerate(staff):
            if member.get('id') == staff_id:
                updated = dict(member)
                updated.update({k: v for k, v in data.items() if v is not None})
                updated['id'] = staff_id
                updated['name'] = str(updated.get('name') or '').strip()
                if not updated['name']:
                    raise ValidationError("Staff name is required.")
                staff[index] = updated
                self.store.save_staff_list(staff)
                _log.info("Staff member updated: %s", updated['name'])
                return updated
        raise DataError("Staff member not found")

    def delete_staff_member(self, staff_id: str) -> Dict[str, Any]:
        staff = self.store.get_staff_list()
        for index, member in enumerate(staff):
            if member.get('id') == staff_id:
                removed = staff.pop(index)
                self.store.save_staff_list(staff)
                _log.info("Staff member deleted: %s", removed.get('name'))
                return removed
        raise DataError("Staff member not found")
