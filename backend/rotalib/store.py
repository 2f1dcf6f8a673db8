"""
Key-value property storage.

KeyValueStore is the raw string store (in-memory or a JSON file on disk).
PropertyStore layers typed, per-namespace accessors on top of it; the rest
of the library only touches persisted state through a PropertyStore.
"""
import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .constants import (
    KEY_ABSENCE_LOG,
    KEY_ALLOCATIONS,
    KEY_CUSTOM_SHIFTS,
    KEY_HIDDEN_SHIFTS,
    KEY_STAFF_LIST,
    entitlement_key,
)
from .errors import StorageError

_log = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract string key-value store, scoped to one user."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def keys(self) -> List[str]:
        ...


class MemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data.keys())


class JsonFileStore(KeyValueStore):
    """Properties persisted as one JSON object {key: string} in a file.

    Writes go to a .tmp sibling which then replaces the target, so a crash
    mid-write never leaves a truncated file behind.
    """

    def __init__(self, path: str):
        self.path = path
        self._data: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = f.read().strip()
            if not raw:
                return {}
            data = json.loads(raw)
        except (OSError, ValueError) as exc:
            _log.warning("Property file %s unreadable, starting empty: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            _log.warning("Property file %s does not hold an object, starting empty", self.path)
            return {}
        return {str(k): v if isinstance(v, str) else json.dumps(v) for k, v in data.items()}

    def _save(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp = self.path + '.tmp'
        with open(tmp, 'w', encoding='utf-8') as f:
            json.dump(self._data, f, ensure_ascii=False, indent=2)
        os.replace(tmp, self.path)

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._save()

    def delete(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._save()

    def keys(self) -> List[str]:
        return list(self._data.keys())


class PropertyStore:
    """Typed accessors for each persisted namespace."""

    def __init__(self, backend: KeyValueStore):
        self.backend = backend

    # ── Raw JSON helpers ───────────────────────────────────────
    def read_json(self, key: str, default: Any, expected: type) -> Any:
        """Parse a JSON property. Raises StorageError if present but unparsable."""
        raw = self.backend.get(key)
        if raw is None or raw == '':
            return default
        try:
            value = json.loads(raw)
        except ValueError as exc:
            raise StorageError(f"Property '{key}' is not valid JSON: {exc}") from exc
        if not isinstance(value, expected):
            raise StorageError(f"Property '{key}' has type {type(value).__name__}, expected {expected.__name__}")
        return value

    def read_json_or_default(self, key: str, default: Any, expected: type) -> Any:
        """Like read_json, but logs a StorageError and returns default instead."""
        try:
            return self.read_json(key, default, expected)
        except StorageError as exc:
            _log.warning("Falling back to default for '%s': %s", key, exc)
            return default

    def write_json(self, key: str, value: Any) -> None:
        self.backend.set(key, json.dumps(value, ensure_ascii=False))

    # ── Staff list ─────────────────────────────────────────────
    def get_staff_list(self, strict: bool = False) -> List[Dict[str, Any]]:
        if strict:
            return self.read_json(KEY_STAFF_LIST, [], list)
        return self.read_json_or_default(KEY_STAFF_LIST, [], list)

    def save_staff_list(self, staff: List[Dict[str, Any]]) -> None:
        self.write_json(KEY_STAFF_LIST, staff)

    # ── Shift catalog ──────────────────────────────────────────
    def get_custom_shifts(self, strict: bool = False) -> Dict[str, Dict[str, Any]]:
        if strict:
            return self.read_json(KEY_CUSTOM_SHIFTS, {}, dict)
        return self.read_json_or_default(KEY_CUSTOM_SHIFTS, {}, dict)

    def save_custom_shifts(self, shifts: Dict[str, Dict[str, Any]]) -> None:
        self.write_json(KEY_CUSTOM_SHIFTS, shifts)

    def get_hidden_shifts(self, strict: bool = False) -> List[str]:
        if strict:
            return self.read_json(KEY_HIDDEN_SHIFTS, [], list)
        return self.read_json_or_default(KEY_HIDDEN_SHIFTS, [], list)

    def save_hidden_shifts(self, codes: List[str]) -> None:
        self.write_json(KEY_HIDDEN_SHIFTS, codes)

    # ── Annual leave ───────────────────────────────────────────
    def get_allocations(self) -> Dict[str, float]:
        return self.read_json_or_default(KEY_ALLOCATIONS, {}, dict)

    def save_allocations(self, allocations: Dict[str, float]) -> None:
        self.write_json(KEY_ALLOCATIONS, allocations)

    def get_entitlement_override(self, staff_name: str, year: int) -> Optional[float]:
        raw = self.backend.get(entitlement_key(staff_name, year))
        if raw is None:
            return None
        try:
            return float(raw)
        except ValueError:
            _log.warning("Ignoring unparsable entitlement override for %s/%s: %r", staff_name, year, raw)
            return None

    def set_entitlement_override(self, staff_name: str, year: int, days: float) -> None:
        self.backend.set(entitlement_key(staff_name, year), str(days))

    # ── Absence log ────────────────────────────────────────────
    def get_absence_log(self) -> List[Dict[str, Any]]:
        return self.read_json_or_default(KEY_ABSENCE_LOG, [], list)

    def append_absence(self, record: Dict[str, Any]) -> None:
        log = self.get_absence_log()
        log.append(record)
        self.write_json(KEY_ABSENCE_LOG, log)
