"""Tests for SyncManager — pull, push, retries, triggers and status."""

import logging

import pytest

from pocket_stock.config import Config
from pocket_stock.database.crud import add_record, delete_record, update_record
from pocket_stock.database.models import Collection
from pocket_stock.sync.backend import RemoteError
from pocket_stock.sync.connectivity import ConnectivityMonitor
from pocket_stock.sync.sync_manager import SyncManager, SyncOutcome

USER = "user-1"


def _add_item(store, name="Bolt", quantity=3):
    return add_record(store, Collection.INVENTORY, {
        "user_id": USER, "name": name, "quantity": quantity, "price": 2.0,
    })


def _add_expense(store, amount=10.0):
    return add_record(store, Collection.EXPENSES, {
        "user_id": USER, "amount": amount, "category": "Fuel",
        "date": "2024-01-01",
    })


class _Recorder:
    """Collects everything a slot receives."""

    def __init__(self):
        self.received = []

    def record(self, *args):
        self.received.append(args[0] if len(args) == 1 else args)


@pytest.fixture
def offline_manager(store, backend):
    connectivity = ConnectivityMonitor(probe_url="", online=False)
    manager = SyncManager(store, backend, connectivity)
    manager.start()
    yield manager
    manager.stop()


# ── Sync pass ──────────────────────────────────────────────────


class TestSyncPass:
    def test_completes_and_records_time(self, sync_manager, backend):
        assert sync_manager.sync_data() is SyncOutcome.COMPLETED
        assert Config.get_last_sync() is not None
        assert sync_manager.get_status().last_sync_time == Config.get_last_sync()
        assert sync_manager.is_syncing is False

    def test_pull_precedes_push(self, sync_manager, backend, store):
        _add_item(store)
        sync_manager.sync_data()
        kinds = [c[0] for c in backend.calls]
        assert kinds[0] == "user"
        assert kinds.index("insert") > max(
            i for i, k in enumerate(kinds) if k == "select")

    def test_skipped_without_user(self, sync_manager, backend, store):
        backend.user_id = None
        _add_item(store)
        assert sync_manager.sync_data() is SyncOutcome.SKIPPED
        assert [c[0] for c in backend.calls] == ["user"]
        assert store.queue_count() == 1
        assert Config.get_last_sync() is None

    def test_user_lookup_failure_fails_pass(self, sync_manager, backend,
                                            caplog):
        backend.fail("user", error=RemoteError("boom", status_code=503))
        notes = _Recorder()
        sync_manager.notification.connect(notes.record)
        with caplog.at_level(logging.ERROR):
            assert sync_manager.sync_data() is SyncOutcome.FAILED
        assert notes.received == [("error", "Sync failed - will retry later")]
        assert sync_manager.is_syncing is False
        assert "Sync pass failed" in caplog.text

    def test_unexpected_error_never_escapes(self, sync_manager, backend):
        def explode(method, table):
            raise RuntimeError("bug")

        backend.on_call = explode
        assert sync_manager.sync_data() is SyncOutcome.FAILED
        assert sync_manager.is_syncing is False


# ── Pull ───────────────────────────────────────────────────────


class TestPull:
    def test_remote_row_overwrites_unsynced_local(self, sync_manager,
                                                  backend, store):
        record_id = _add_item(store, "Local", quantity=1)
        remote = {
            "id": record_id, "user_id": USER, "name": "Remote",
            "category": "Parts", "quantity": 9, "price": 3.0,
            "low_stock_threshold": 2, "notes": None,
            "created_at": "2024-01-01T00:00:00+00:00",
            "updated_at": "2024-01-02T00:00:00+00:00",
        }
        backend.seed("inventory_items", remote)

        sync_manager.pull_from_server(USER)

        item = store.get(Collection.INVENTORY, record_id)
        for key, value in remote.items():
            assert getattr(item, key) == value
        assert item.synced is True
        assert item.deleted is False

    def test_pull_clears_local_soft_delete(self, sync_manager, backend, store):
        record_id = _add_item(store)
        delete_record(store, Collection.INVENTORY, record_id)
        backend.seed("inventory_items", {"id": record_id, "user_id": USER,
                                         "name": "Bolt"})
        sync_manager.pull_from_server(USER)
        assert store.get(Collection.INVENTORY, record_id).deleted is False

    def test_uses_remote_table_names(self, sync_manager, backend):
        sync_manager.pull_from_server(USER)
        tables = [c[1] for c in backend.calls if c[0] == "select"]
        assert tables == [c.remote_table for c in Collection]
        assert "inventory_items" in tables

    def test_ignores_unknown_columns(self, sync_manager, backend, store):
        backend.seed("suppliers", {"id": "s1", "user_id": USER,
                                   "name": "Acme", "rating": 5})
        sync_manager.pull_from_server(USER)
        assert store.get(Collection.SUPPLIERS, "s1").name == "Acme"

    def test_only_current_users_rows(self, sync_manager, backend, store):
        backend.seed("suppliers", {"id": "s1", "user_id": "someone-else",
                                   "name": "Acme"})
        sync_manager.pull_from_server(USER)
        assert store.get(Collection.SUPPLIERS, "s1") is None

    def test_items_coerced_to_list(self, sync_manager, backend, store):
        backend.seed("invoices", {"id": "inv1", "user_id": USER,
                                  "invoice_number": "INV-001",
                                  "items": "garbage"})
        backend.seed("receipts", {"id": "r1", "user_id": USER,
                                  "items": [{"description": "x"}]})
        sync_manager.pull_from_server(USER)
        assert store.get(Collection.INVOICES, "inv1").items == []
        assert store.get(Collection.RECEIPTS, "r1").items == [
            {"description": "x"}]

    def test_failed_collection_is_skipped(self, sync_manager, backend, store,
                                          caplog):
        backend.fail("select:expenses")
        backend.seed("suppliers", {"id": "s1", "user_id": USER,
                                   "name": "Acme"})
        _add_item(store)
        with caplog.at_level(logging.WARNING):
            assert sync_manager.sync_data() is SyncOutcome.COMPLETED
        assert store.get(Collection.SUPPLIERS, "s1") is not None
        assert store.queue_count() == 0
        assert "Pull of expenses failed" in caplog.text


# ── Push ───────────────────────────────────────────────────────


class TestPush:
    def test_create_inserts_and_marks_synced(self, sync_manager, backend,
                                             store):
        record_id = _add_item(store)
        sync_manager.push_to_server(USER)
        row = backend.tables["inventory_items"][record_id]
        assert row["name"] == "Bolt"
        assert row["user_id"] == USER
        assert "synced" not in row and "deleted" not in row
        assert store.get(Collection.INVENTORY, record_id).synced is True
        assert store.queue_count() == 0

    def test_user_id_stamped_from_backend_user(self, sync_manager, backend,
                                               store):
        record_id = add_record(store, Collection.SUPPLIERS,
                               {"user_id": "guest", "name": "Acme"})
        sync_manager.push_to_server(USER)
        assert backend.tables["suppliers"][record_id]["user_id"] == USER

    def test_update_and_delete(self, sync_manager, backend, store):
        record_id = _add_item(store)
        sync_manager.push_to_server(USER)
        update_record(store, Collection.INVENTORY, record_id, {"quantity": 1})
        sync_manager.push_to_server(USER)
        assert backend.tables["inventory_items"][record_id]["quantity"] == 1
        assert store.get(Collection.INVENTORY, record_id).synced is True

        delete_record(store, Collection.INVENTORY, record_id)
        sync_manager.push_to_server(USER)
        assert record_id not in backend.tables["inventory_items"]
        assert store.get(Collection.INVENTORY, record_id) is None
        assert store.queue_count() == 0

    def test_cross_collection_order(self, sync_manager, backend, store):
        a = _add_item(store, "A")
        b = _add_expense(store)
        update_record(store, Collection.INVENTORY, a, {"quantity": 1})
        delete_record(store, Collection.EXPENSES, b)
        c = _add_item(store, "C")
        delete_record(store, Collection.INVENTORY, a)

        assert sync_manager.sync_data() is SyncOutcome.COMPLETED

        assert backend.pushes() == [
            ("insert", "inventory_items", a),
            ("insert", "expenses", b),
            ("update", "inventory_items", a),
            ("delete", "expenses", b),
            ("insert", "inventory_items", c),
            ("delete", "inventory_items", a),
        ]
        assert store.get(Collection.INVENTORY, a) is None
        assert store.get(Collection.EXPENSES, b) is None
        assert store.get(Collection.INVENTORY, c).synced is True

    def test_failure_holds_back_same_record_only(self, sync_manager,
                                                 backend, store):
        backend.fail("insert:suppliers")
        supplier_id = add_record(store, Collection.SUPPLIERS, {
            "user_id": USER, "name": "Acme",
        })
        delete_record(store, Collection.SUPPLIERS, supplier_id)
        expense_id = _add_expense(store)

        sync_manager.push_to_server(USER)

        assert expense_id in backend.tables["expenses"]
        assert ("delete", "suppliers", supplier_id) not in backend.pushes()
        create, delete = store.queue_entries()
        assert create.record_id == delete.record_id == supplier_id
        assert create.retry_count == 1
        assert delete.retry_count == 0
        assert store.get(Collection.SUPPLIERS, supplier_id).deleted is True

    def test_deleted_record_stays_deleted_after_failed_create(
            self, sync_manager, backend, store):
        backend.fail("insert:suppliers")
        supplier_id = add_record(store, Collection.SUPPLIERS, {
            "user_id": USER, "name": "Acme",
        })
        delete_record(store, Collection.SUPPLIERS, supplier_id)

        for _ in range(3):
            assert sync_manager.sync_data() is SyncOutcome.COMPLETED

        assert supplier_id not in backend.tables.get("suppliers", {})
        assert store.get(Collection.SUPPLIERS, supplier_id) is None
        assert store.queue_count() == 0
        assert [c for c in backend.pushes() if c[1] == "suppliers"] == [
            ("insert", "suppliers", supplier_id),
            ("insert", "suppliers", supplier_id),
            ("delete", "suppliers", supplier_id),
        ]

    def test_delete_of_missing_local_row(self, sync_manager, backend, store):
        record_id = _add_item(store)
        delete_record(store, Collection.INVENTORY, record_id)
        store.delete(Collection.INVENTORY, record_id)
        sync_manager.push_to_server(USER)
        assert store.queue_count() == 0


class TestRetries:
    def test_four_failures_then_success(self, sync_manager, backend, store):
        record_id = _add_item(store)
        backend.fail("insert", times=4)
        for attempt in range(1, 5):
            sync_manager.push_to_server(USER)
            [entry] = store.queue_entries()
            assert entry.retry_count == attempt
            assert store.get(Collection.INVENTORY, record_id).synced is False

        sync_manager.push_to_server(USER)

        assert list(backend.tables["inventory_items"]) == [record_id]
        assert store.queue_count() == 0
        assert store.get(Collection.INVENTORY, record_id).synced is True
        assert len([c for c in backend.calls if c[0] == "insert"]) == 5

    def test_fifth_failure_drops_entry(self, sync_manager, backend, store,
                                       caplog):
        record_id = _add_item(store)
        backend.fail("insert", times=5)
        with caplog.at_level(logging.ERROR):
            for _ in range(5):
                sync_manager.push_to_server(USER)
        assert store.queue_count() == 0
        assert store.get(Collection.INVENTORY, record_id).synced is False
        assert "Dropped create of inventory" in caplog.text

        calls_before = len(backend.calls)
        sync_manager.push_to_server(USER)
        assert len(backend.calls) == calls_before
        assert store.get(Collection.INVENTORY, record_id).synced is False

    def test_ceiling_from_config(self, store, backend, connectivity,
                                 monkeypatch):
        monkeypatch.setattr(Config, "SYNC_MAX_RETRIES", 2)
        manager = SyncManager(store, backend, connectivity)
        _add_item(store)
        backend.fail("insert", times=2)
        manager.push_to_server(USER)
        assert store.queue_count() == 1
        manager.push_to_server(USER)
        assert store.queue_count() == 0

    def test_explicit_zero_ceiling_is_kept(self, store, backend,
                                           connectivity):
        manager = SyncManager(store, backend, connectivity, max_retries=0)
        assert manager.max_retries == 0
        _add_item(store)
        backend.fail("insert")
        manager.push_to_server(USER)
        assert store.queue_count() == 0


class TestDuplicateKeyFallback:
    def test_existing_remote_row_is_updated(self, sync_manager, backend,
                                            store):
        record_id = _add_item(store, "Local")
        backend.seed("inventory_items", {"id": record_id, "user_id": USER,
                                         "name": "Stale"})
        sync_manager.push_to_server(USER)
        assert backend.pushes() == [
            ("insert", "inventory_items", record_id),
            ("update", "inventory_items", record_id),
        ]
        assert backend.tables["inventory_items"][record_id]["name"] == "Local"
        assert store.queue_count() == 0
        assert store.get(Collection.INVENTORY, record_id).synced is True

    def test_failed_fallback_counts_as_retry(self, sync_manager, backend,
                                             store):
        record_id = _add_item(store)
        backend.seed("inventory_items", {"id": record_id, "user_id": USER})
        backend.fail("update")
        sync_manager.push_to_server(USER)
        [entry] = store.queue_entries()
        assert entry.retry_count == 1

    def test_only_for_creates(self, sync_manager, backend, store):
        record_id = _add_item(store)
        sync_manager.push_to_server(USER)
        update_record(store, Collection.INVENTORY, record_id, {"quantity": 1})
        backend.fail("update", error=RemoteError(
            "conflict", status_code=409, code="23505"))
        sync_manager.push_to_server(USER)
        assert store.queue_entries()[0].retry_count == 1


# ── Triggers ───────────────────────────────────────────────────


class TestTriggers:
    def test_manual_sync_offline_does_nothing(self, offline_manager,
                                              backend, qtbot):
        statuses = _Recorder()
        offline_manager.status_changed.connect(statuses.record)
        with qtbot.waitSignal(offline_manager.notification) as blocker:
            offline_manager.force_sync_now()
        assert blocker.args == ["error", "Cannot sync - you are offline"]
        assert backend.calls == []
        assert statuses.received
        assert all(s.is_syncing is False for s in statuses.received)
        assert statuses.received[-1].is_online is False

    def test_manual_sync_reports_success(self, sync_manager, qtbot):
        with qtbot.waitSignal(sync_manager.notification) as blocker:
            sync_manager.force_sync_now()
        assert blocker.args == ["success", "Data synced successfully"]

    def test_manual_sync_without_user(self, sync_manager, backend):
        backend.user_id = None
        notes = _Recorder()
        sync_manager.notification.connect(notes.record)
        sync_manager.force_sync_now()
        assert notes.received == [("info", "Sign in to sync your data")]

    def test_no_overlapping_passes(self, sync_manager, backend):
        nested = []

        def reenter(method, table):
            if method == "user":
                nested.append(sync_manager.sync_data())
                sync_manager.force_sync_now()

        backend.on_call = reenter
        assert sync_manager.sync_data() is SyncOutcome.COMPLETED
        assert nested == [SyncOutcome.NOT_RUN]
        assert [c[0] for c in backend.calls].count("user") == 1

    def test_reconnect_triggers_sync(self, offline_manager, backend, qtbot):
        notes = _Recorder()
        offline_manager.notification.connect(notes.record)
        offline_manager.connectivity.set_online(True)
        assert offline_manager.is_online is True
        assert ("user", None) in backend.calls
        assert notes.received[0] == ("success", "Back online - syncing data...")

    def test_going_offline(self, sync_manager, connectivity, backend):
        sync_manager.start()
        notes = _Recorder()
        sync_manager.notification.connect(notes.record)
        connectivity.set_online(False)
        assert sync_manager.is_online is False
        assert notes.received == [
            ("info", "Working offline - changes will sync when online")]
        assert sync_manager.sync_data() is SyncOutcome.NOT_RUN
        assert backend.calls == []

    def test_timer_interval_and_tick(self, sync_manager, backend):
        sync_manager.start()
        assert sync_manager._timer.interval() == 5 * 60 * 1000
        sync_manager._on_timer()
        assert ("user", None) in backend.calls

    def test_start_can_sync_immediately(self, sync_manager, backend):
        sync_manager.start(sync_now=True)
        assert ("user", None) in backend.calls

    def test_stop_detaches(self, sync_manager, connectivity):
        sync_manager.start()
        sync_manager.stop()
        assert sync_manager.is_running is False
        connectivity.set_online(False)
        assert sync_manager.is_online is True


# ── Observability ──────────────────────────────────────────────


class TestSubscribe:
    def test_immediate_snapshot(self, sync_manager, store):
        _add_item(store)
        received = _Recorder()
        sync_manager.subscribe(received.record)
        [status] = received.received
        assert status.is_online is True
        assert status.is_syncing is False
        assert status.last_sync_time is None
        assert status.pending_changes == 1

    def test_pending_count_follows_queue(self, sync_manager, store):
        received = _Recorder()
        sync_manager.subscribe(received.record)
        _add_item(store)
        assert received.received[-1].pending_changes == 1

    def test_sees_sync_start_and_stop(self, sync_manager, store):
        _add_item(store)
        received = _Recorder()
        sync_manager.subscribe(received.record)
        sync_manager.sync_data()
        flags = [s.is_syncing for s in received.received]
        assert flags[0] is False
        assert True in flags
        assert flags[-1] is False
        assert received.received[-1].pending_changes == 0
        assert received.received[-1].last_sync_time is not None

    def test_unsubscribe(self, sync_manager, store):
        received = _Recorder()
        unsubscribe = sync_manager.subscribe(received.record)
        unsubscribe()
        unsubscribe()
        _add_item(store)
        assert len(received.received) == 1
