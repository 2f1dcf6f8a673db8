"""
Shared dependencies for the Rota API: logging, rate limiter, service wiring.
"""
import os
import logging
import logging.handlers
import traceback
from typing import Optional

from fastapi import HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from rotalib.service import RotaService
from rotalib.store import JsonFileStore, PropertyStore
from rotalib.xlsx_backend import XlsxWorkbook

# ── Structured JSON Logging setup ───────────────────────────────
import json as _json
from datetime import datetime as _dt, timezone as _tz


class _JsonFormatter(logging.Formatter):
    """Emit log records as single-line JSON objects."""
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": _dt.fromtimestamp(record.created, tz=_tz.utc).strftime('%Y-%m-%dT%H:%M:%S.') + f"{int(record.msecs):03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return _json.dumps(entry, ensure_ascii=False)


ROTA_LOG_FILE = os.environ.get('ROTA_LOG_FILE', '/tmp/rota-api.log')
_handler = logging.handlers.RotatingFileHandler(
    ROTA_LOG_FILE, maxBytes=10 * 1024 * 1024, backupCount=3
)
_handler.setFormatter(_JsonFormatter())
_stderr_handler = logging.StreamHandler()
_stderr_handler.setFormatter(_JsonFormatter())

# Log level configurable via ENV
_log_level_str = os.environ.get('ROTA_LOG_LEVEL', 'INFO').upper()
_log_level = getattr(logging, _log_level_str, logging.INFO)

_logger = logging.getLogger('rota')
# Library modules log under 'rotalib.*'; route them to the same handlers
for _name in ('rota', 'rotalib'):
    _lg = logging.getLogger(_name)
    _lg.setLevel(_log_level)
    _lg.addHandler(_handler)
    _lg.addHandler(_stderr_handler)

# ── Rate Limiter ─────────────────────────────────────────────────
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[os.environ.get('ROTA_RATE_LIMIT', '200/minute')],
)

# ── Paths ────────────────────────────────────────────────────────
_DATA_DIR = os.path.normpath(os.path.join(os.path.dirname(__file__), '..', '..', 'data'))
WORKBOOK_PATH = os.path.normpath(os.environ.get('ROTA_WORKBOOK_PATH', os.path.join(_DATA_DIR, 'rota.xlsx')))
STORE_PATH = os.path.normpath(os.environ.get('ROTA_STORE_PATH', os.path.join(_DATA_DIR, 'properties.json')))

_service: Optional[RotaService] = None


def get_service() -> RotaService:
    """Return the process-wide RotaService, opening the workbook and store on first use."""
    global _service
    if _service is None:
        _service = RotaService(PropertyStore(JsonFileStore(STORE_PATH)), XlsxWorkbook(WORKBOOK_PATH))
        _logger.info("Rota service ready (workbook=%s, store=%s)", WORKBOOK_PATH, STORE_PATH)
    return _service


def _sanitize_500(e: Exception, context: str = '') -> HTTPException:
    """Log full exception, return sanitized 500."""
    _logger.error(
        "500 error context=%s type=%s msg=%s trace=%s",
        context, type(e).__name__, str(e),
        traceback.format_exc().splitlines()[-1],
    )
    return HTTPException(
        status_code=500,
        detail="Internal server error. Please try again.",
    )
