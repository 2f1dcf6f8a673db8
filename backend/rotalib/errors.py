"""Exception taxonomy and result helpers for the rota library.

Library code raises these; the service boundary turns ValidationError and
DataError into declined results, StorageError is degraded to defaults at the
read site, and WriteError triggers the cell-by-cell fallback.
"""
from typing import Any, Dict, Optional


class RotaError(Exception):
    """Base exception class for the rota library."""
    pass


class ValidationError(RotaError):
    """Raised for malformed input: bad pattern, unknown shift code, bad day range."""
    pass


class DataError(RotaError):
    """Raised when a grid or staff row cannot be found or allocated."""
    pass


class StorageError(RotaError):
    """Raised when persisted data cannot be parsed."""
    pass


class WriteError(RotaError):
    """Raised when the grid host rejects a write."""
    pass


def ok(message: Optional[str] = None, **payload: Any) -> Dict[str, Any]:
    """Build a successful boundary result."""
    result: Dict[str, Any] = {'success': True}
    if message is not None:
        result['message'] = message
    result.update(payload)
    return result


def fail(message: str, **payload: Any) -> Dict[str, Any]:
    """Build a declined boundary result."""
    result: Dict[str, Any] = {'success': False, 'message': message}
    result.update(payload)
    return result
