"""Color helpers for shift display colors (stored as #RRGGBB strings)."""
import re
from typing import Optional

_HEX_RE = re.compile(r'^#?([0-9A-Fa-f]{6})$')


def normalize_hex(color) -> Optional[str]:
    """Return color as uppercase '#RRGGBB', or None if it is not a 6-digit hex color."""
    if not isinstance(color, str):
        return None
    m = _HEX_RE.match(color.strip())
    if not m:
        return None
    return '#' + m.group(1).upper()


def hex_to_rgb(color: str) -> tuple:
    """Convert '#RRGGBB' to an (R, G, B) tuple. Invalid input yields white."""
    norm = normalize_hex(color) or '#FFFFFF'
    return (int(norm[1:3], 16), int(norm[3:5], 16), int(norm[5:7], 16))


def is_light_color(color: str) -> bool:
    """Returns True if the color is light (use dark text on it)."""
    r, g, b = hex_to_rgb(color)
    luminance = (0.299 * r + 0.587 * g + 0.114 * b) / 255
    return luminance > 0.5


def to_argb(color: str) -> str:
    """Convert '#RRGGBB' to the opaque 'FFRRGGBB' form used by xlsx styles."""
    norm = normalize_hex(color) or '#FFFFFF'
    return 'FF' + norm[1:]
