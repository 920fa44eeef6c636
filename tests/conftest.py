"""Shared test fixtures."""

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest

import pocket_stock.config as config_mod
from pocket_stock.auth import AuthSession
from pocket_stock.config import Config
from pocket_stock.database.connection import DatabaseConnection
from pocket_stock.database.schema import initialize_database
from pocket_stock.database.store import RecordStore
from pocket_stock.sync.backend import DUPLICATE_KEY_CODE, RemoteError
from pocket_stock.sync.connectivity import ConnectivityMonitor
from pocket_stock.sync.sync_manager import SyncManager

USER_ID = "user-1"


class FakeBackend:
    """In-memory stand-in for RemoteBackend.

    Rows live in ``tables[remote_table][id]``. Every call is appended to
    ``calls``; ``fail()`` queues errors for the next calls of a method
    (optionally for one table only, as ``"insert:expenses"``).
    """

    def __init__(self, user_id=USER_ID):
        self.user_id = user_id
        self.tables: dict[str, dict[str, dict]] = {}
        self.calls: list[tuple] = []
        self.on_call = None
        self._failures: dict[str, list[RemoteError]] = {}

    def fail(self, method, times=1, error=None):
        error = error or RemoteError(f"{method} failed", status_code=500)
        self._failures.setdefault(method, []).extend([error] * times)

    def _call(self, method, table=None, *args):
        self.calls.append((method, table, *args))
        if self.on_call is not None:
            self.on_call(method, table)
        for key in (f"{method}:{table}", method):
            pending = self._failures.get(key)
            if pending:
                raise pending.pop(0)

    def seed(self, table, row):
        self.tables.setdefault(table, {})[row["id"]] = dict(row)

    def get_current_user_id(self):
        self._call("user")
        return self.user_id

    def select_by_user(self, table, user_id):
        self._call("select", table)
        return [dict(r) for r in self.tables.get(table, {}).values()
                if r.get("user_id") == user_id]

    def insert(self, table, row):
        self._call("insert", table, row["id"])
        rows = self.tables.setdefault(table, {})
        if row["id"] in rows:
            raise RemoteError("duplicate key value", status_code=409,
                              code=DUPLICATE_KEY_CODE)
        rows[row["id"]] = dict(row)

    def update(self, table, record_id, row):
        self._call("update", table, record_id)
        rows = self.tables.setdefault(table, {})
        if record_id in rows:
            rows[record_id].update(row)

    def delete(self, table, record_id):
        self._call("delete", table, record_id)
        self.tables.get(table, {}).pop(record_id, None)

    def close(self):
        pass

    def pushes(self):
        """Calls made by the push phase, in order."""
        return [c for c in self.calls if c[0] in ("insert", "update", "delete")]


@pytest.fixture(autouse=True)
def _app(qapp):
    return qapp


@pytest.fixture(autouse=True)
def isolate_config(tmp_path, monkeypatch):
    """Redirect settings I/O to a temp file and pin the defaults tests rely on."""
    monkeypatch.setattr(config_mod, "_SETTINGS_FILE",
                        tmp_path / "settings.json")
    pinned = {
        "SUPABASE_URL": "",
        "SUPABASE_ANON_KEY": "anon-key",
        "REQUEST_TIMEOUT": 5.0,
        "SYNC_INTERVAL_MINUTES": 5,
        "SYNC_MAX_RETRIES": 5,
        "CONNECTIVITY_PROBE_SECONDS": 30,
        "LAST_SYNC_TIME": "",
        "MIGRATION_COMPLETE": False,
        "INVOICE_NUMBER_PREFIX": "INV",
        "RECEIPT_NUMBER_PREFIX": "RCT",
        "LOW_STOCK_DEFAULT": 0,
        "LEGACY_DATA_PATH": tmp_path / "legacy_data.json",
    }
    for attr, value in pinned.items():
        monkeypatch.setattr(Config, attr, value)


@pytest.fixture
def db_path(tmp_path):
    """Provide a temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture
def db(db_path):
    """Provide an initialized database connection."""
    conn = DatabaseConnection(db_path)
    initialize_database(conn)
    return conn


@pytest.fixture
def store(db):
    return RecordStore(db)


@pytest.fixture
def session():
    """A signed-in user."""
    return AuthSession(USER_ID, "access-token")


@pytest.fixture
def guest_session():
    return AuthSession()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def connectivity():
    """Online monitor with probing disabled."""
    return ConnectivityMonitor(probe_url="", online=True)


@pytest.fixture
def sync_manager(store, backend, connectivity):
    manager = SyncManager(store, backend, connectivity)
    yield manager
    manager.stop()
