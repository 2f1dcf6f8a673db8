"""
Shared test fixtures for the rota backend tests.
"""
import os
import sys
import pytest

# ── Python path setup ──────────────────────────────────────────────────────────
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

os.environ.setdefault('ROTA_LOG_FILE', os.path.join(
    os.environ.get('TMPDIR', '/tmp'), 'rota-api-test.log'))

from rotalib.catalog import ShiftCatalog  # noqa: E402
from rotalib.leave import LeaveAllocations  # noqa: E402
from rotalib.service import RotaService  # noqa: E402
from rotalib.sheets import MonthSheetManager  # noqa: E402
from rotalib.store import MemoryStore, PropertyStore  # noqa: E402
from rotalib.xlsx_backend import XlsxWorkbook  # noqa: E402


@pytest.fixture
def store():
    """Fresh in-memory property store."""
    return PropertyStore(MemoryStore())


@pytest.fixture
def workbook():
    """In-memory workbook with no sheets (flush is a no-op)."""
    return XlsxWorkbook()


@pytest.fixture
def catalog(store):
    return ShiftCatalog(store)


@pytest.fixture
def leave(store):
    return LeaveAllocations(store)


@pytest.fixture
def sheets(workbook, catalog, leave):
    manager = MonthSheetManager(workbook, catalog, leave)
    catalog.subscribe(manager.resync_all)
    return manager


@pytest.fixture
def service(store, workbook):
    """RotaService wired to the in-memory store and workbook."""
    return RotaService(store, workbook)


@pytest.fixture
def app(service):
    """The FastAPI app with get_service overridden to the fixture service."""
    from api.main import app as _app
    from api.dependencies import get_service, limiter
    prev = dict(_app.dependency_overrides)
    _app.dependency_overrides[get_service] = lambda: service
    limiter.reset()
    yield _app
    _app.dependency_overrides.clear()
    _app.dependency_overrides.update(prev)


@pytest.fixture
def client(app):
    """Function-scoped TestClient against the fixture service."""
    from starlette.testclient import TestClient
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c
