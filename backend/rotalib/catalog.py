"""
Shift catalog: built-in shift types merged with user-defined custom types
and the persisted hidden list.

Catalog mutations (add/delete custom, hide/restore built-in) notify
subscribers so already-materialised grids can be resynced.
"""
import logging
import re
from dataclasses import asdict, dataclass
from typing import Callable, Dict, List

from .color_utils import normalize_hex
from .constants import BUILTIN_SHIFTS, MAX_SHIFT_CODE_LENGTH
from .errors import DataError, StorageError, ValidationError
from .store import PropertyStore

_log = logging.getLogger(__name__)

_CODE_RE = re.compile(r'^[A-Z0-9_]+$')


@dataclass(frozen=True)
class ShiftType:
    code: str
    label: str
    hours: float
    color: str
    is_custom: bool = False
    hidden: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def _builtin_types() -> Dict[str, ShiftType]:
    return {
        code: ShiftType(code=code, label=info['label'], hours=info['hours'], color=info['color'])
        for code, info in BUILTIN_SHIFTS.items()
    }


def _is_valid_custom(info) -> bool:
    return (
        isinstance(info, dict)
        and bool(info.get('label'))
        and isinstance(info.get('hours'), (int, float))
        and not isinstance(info.get('hours'), bool)
        and bool(info.get('color'))
    )


class ShiftCatalog:
    def __init__(self, store: PropertyStore):
        self.store = store
        self._listeners: List[Callable[[], None]] = []

    # ── Events ─────────────────────────────────────────────────
    def subscribe(self, listener: Callable[[], None]) -> None:
        """Register a callback fired after every catalog mutation."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in self._listeners:
            listener()

    # ── Reads ──────────────────────────────────────────────────
    def resolve(self) -> Dict[str, ShiftType]:
        """Visible catalog: built-ins not hidden, plus every custom type.

        A custom type whose code matches a built-in replaces it. If the
        persisted custom/hidden data cannot be parsed, the built-in set is
        returned unmodified.
        """
        try:
            custom = self.store.get_custom_shifts(strict=True)
            hidden = set(self.store.get_hidden_shifts(strict=True))
        except StorageError as exc:
            _log.warning("Shift catalog falling back to built-ins: %s", exc)
            return _builtin_types()

        merged = _builtin_types()
        for code, info in custom.items():
            if not _is_valid_custom(info):
                _log.warning("Ignoring malformed custom shift %r", code)
                continue
            merged[code] = ShiftType(
                code=code,
                label=info['label'],
                hours=info['hours'],
                color=info['color'],
                is_custom=True,
            )
        return {code: t for code, t in merged.items() if t.is_custom or code not in hidden}

    def all_types(self) -> List[ShiftType]:
        """Every known type including hidden built-ins (hidden flag set), for settings screens."""
        hidden = set(self.store.get_hidden_shifts())
        visible = self.resolve()
        result = []
        for code, t in _builtin_types().items():
            if code in visible:
                result.append(visible[code])
            else:
                result.append(ShiftType(t.code, t.label, t.hours, t.color, False, code in hidden))
        for code, t in visible.items():
            if t.is_custom and code not in BUILTIN_SHIFTS:
                result.append(t)
        return result

    def visible_codes(self) -> List[str]:
        return list(self.resolve().keys())

    def is_visible(self, code: str) -> bool:
        return code in self.resolve()

    def hours_by_code(self) -> Dict[str, float]:
        """Paid hours per visible code, as the aggregate formulas weight them."""
        return {code: t.hours for code, t in self.resolve().items()}

    # ── Mutations ──────────────────────────────────────────────
    def save_custom_shift(self, code: str, label: str, hours, color: str) -> ShiftType:
        code = (code or '').strip().upper()
        if not code or len(code) > MAX_SHIFT_CODE_LENGTH or not _CODE_RE.match(code):
            raise ValidationError(
                f"Invalid shift code {code!r}. Use up to {MAX_SHIFT_CODE_LENGTH} letters, digits or underscores."
            )
        label = (label or '').strip()
        if not label:
            raise ValidationError("Shift label is required.")
        if isinstance(hours, bool) or not isinstance(hours, (int, float)) or hours < 0:
            raise ValidationError("Shift hours must be a non-negative number.")
        hex_color = normalize_hex(color)
        if hex_color is None:
            raise ValidationError(f"Invalid color {color!r}. Expected #RRGGBB.")

        custom = self.store.get_custom_shifts()
        custom[code] = {'label': label, 'hours': hours, 'color': hex_color, 'custom': True}
        self.store.save_custom_shifts(custom)
        _log.info("Custom shift saved: %s (%s, %sh)", code, label, hours)
        self._notify()
        return ShiftType(code=code, label=label, hours=hours, color=hex_color, is_custom=True)

    def delete_shift(self, code: str) -> str:
        """Delete a custom type or hide a built-in. Returns a short outcome message."""
        code = (code or '').strip().upper()
        custom = self.store.get_custom_shifts()
        if code in custom:
            del custom[code]
            self.store.save_custom_shifts(custom)
            _log.info("Custom shift deleted: %s", code)
            self._notify()
            return 'Custom shift deleted successfully.'
        if code not in BUILTIN_SHIFTS:
            raise DataError(f"Shift {code!r} not found.")
        hidden = self.store.get_hidden_shifts()
        if code in hidden:
            return 'Shift was already hidden.'
        hidden.append(code)
        self.store.save_hidden_shifts(hidden)
        _log.info("Built-in shift hidden: %s", code)
        self._notify()
        return 'Predefined shift hidden successfully.'

    def restore_shift(self, code: str) -> str:
        """Un-hide a built-in type."""
        code = (code or '').strip().upper()
        if code not in BUILTIN_SHIFTS:
            raise DataError(f"Built-in shift {code!r} not found.")
        hidden = self.store.get_hidden_shifts()
        if code not in hidden:
            return 'Shift is already visible.'
        hidden.remove(code)
        self.store.save_hidden_shifts(hidden)
        _log.info("Built-in shift restored: %s", code)
        self._notify()
        return 'Predefined shift restored successfully.'
