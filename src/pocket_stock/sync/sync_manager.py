"""SyncManager — pull-then-push reconciliation with the remote backend.

A sync pass runs two phases on the Qt event loop:
1. Pull: every collection's rows for the signed-in user are fetched and
   written over the local copies (``synced=True``, ``deleted=False``).
2. Push: the change queue is replayed oldest first, one entry at a time.
   Successful entries are removed; failed ones get their retry counter
   bumped and are dropped once it reaches ``Config.SYNC_MAX_RETRIES``.
   Once an entry fails, later entries for the same record are left
   queued, untouched, until the next pass.

Passes are triggered by the periodic timer, by coming back online, or by
``force_sync_now()``. ``is_syncing`` keeps passes from overlapping.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from PySide6.QtCore import QObject, QTimer, Signal

from pocket_stock.config import Config
from pocket_stock.database.models import Collection, Operation, SyncQueueEntry
from pocket_stock.database.store import (
    QUEUE_TABLE,
    RecordStore,
    current_timestamp,
)
from pocket_stock.sync.backend import RemoteBackend, RemoteError
from pocket_stock.sync.connectivity import ConnectivityMonitor

logger = logging.getLogger(__name__)

# Bookkeeping flags that only exist locally
_LOCAL_ONLY_FIELDS = ("synced", "deleted")


class SyncOutcome(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"  # nobody signed in
    FAILED = "failed"
    NOT_RUN = "not_run"  # offline or a pass was already running


@dataclass(frozen=True)
class SyncStatus:
    """Snapshot handed to status subscribers."""

    is_online: bool
    is_syncing: bool
    last_sync_time: Optional[str]
    pending_changes: int


class SyncManager(QObject):
    """Connectivity-aware coordinator for sync passes."""

    status_changed = Signal(object)  # SyncStatus
    notification = Signal(str, str)  # level, message

    def __init__(self, store: RecordStore, backend: RemoteBackend,
                 connectivity: ConnectivityMonitor,
                 max_retries: Optional[int] = None, parent=None):
        super().__init__(parent)
        self.store = store
        self.backend = backend
        self.connectivity = connectivity
        self.max_retries = (max_retries if max_retries is not None
                            else Config.SYNC_MAX_RETRIES)
        self._is_online = connectivity.is_online()
        self._is_syncing = False
        self._last_sync_time = Config.get_last_sync()
        self._timer: Optional[QTimer] = None
        self.store.collection_changed.connect(self._on_collection_changed)

    # ── State ───────────────────────────────────────────────────

    @property
    def is_online(self) -> bool:
        return self._is_online

    @property
    def is_syncing(self) -> bool:
        return self._is_syncing

    @property
    def is_running(self) -> bool:
        return self._timer is not None

    def get_status(self) -> SyncStatus:
        return SyncStatus(
            is_online=self._is_online,
            is_syncing=self._is_syncing,
            last_sync_time=self._last_sync_time,
            pending_changes=self.store.queue_count(),
        )

    def subscribe(self, callback: Callable[[SyncStatus], None]
                  ) -> Callable[[], None]:
        """Call *callback* with the current status now and on every change.

        Returns a function that unsubscribes; calling it twice is harmless.
        """
        self.status_changed.connect(callback)
        callback(self.get_status())
        subscribed = True

        def unsubscribe():
            nonlocal subscribed
            if subscribed:
                self.status_changed.disconnect(callback)
                subscribed = False

        return unsubscribe

    def _broadcast(self):
        self.status_changed.emit(self.get_status())

    # ── Lifecycle ───────────────────────────────────────────────

    def _get_interval_ms(self) -> int:
        """Sync interval from Config (minutes -> ms), at least one minute."""
        return max(Config.SYNC_INTERVAL_MINUTES, 1) * 60 * 1000

    def start(self, sync_now: bool = False):
        """Follow connectivity changes and start the periodic timer."""
        if self._timer is not None:
            return
        self._is_online = self.connectivity.is_online()
        self.connectivity.became_online.connect(self._on_became_online)
        self.connectivity.became_offline.connect(self._on_became_offline)
        self._timer = QTimer(self)
        self._timer.timeout.connect(self._on_timer)
        self._timer.start(self._get_interval_ms())
        logger.info("Sync manager started (every %d min, %s)",
                    Config.SYNC_INTERVAL_MINUTES,
                    "online" if self._is_online else "offline")
        self._broadcast()
        if sync_now:
            self.sync_data()

    def stop(self):
        if self._timer is None:
            return
        self._timer.stop()
        self._timer = None
        self.connectivity.became_online.disconnect(self._on_became_online)
        self.connectivity.became_offline.disconnect(self._on_became_offline)
        logger.info("Sync manager stopped")

    # ── Triggers ────────────────────────────────────────────────

    def _on_timer(self):
        if self._is_online and not self._is_syncing:
            self.sync_data()

    def _on_became_online(self):
        self._is_online = True
        self._broadcast()
        self.notification.emit("success", "Back online - syncing data...")
        self.sync_data()

    def _on_became_offline(self):
        self._is_online = False
        self._broadcast()
        self.notification.emit(
            "info", "Working offline - changes will sync when online"
        )

    def _on_collection_changed(self, name: str):
        if name == QUEUE_TABLE:
            self._broadcast()

    def force_sync_now(self):
        """Manual trigger. The outcome arrives as a notification."""
        if not self._is_online:
            self.notification.emit("error", "Cannot sync - you are offline")
            self._broadcast()
            return
        if self._is_syncing:
            return
        outcome = self.sync_data()
        if outcome is SyncOutcome.COMPLETED:
            self.notification.emit("success", "Data synced successfully")
        elif outcome is SyncOutcome.SKIPPED:
            self.notification.emit("info", "Sign in to sync your data")

    # ── Sync pass ───────────────────────────────────────────────

    def sync_data(self) -> SyncOutcome:
        """Run one pull-then-push pass. Never raises."""
        if not self._is_online or self._is_syncing:
            return SyncOutcome.NOT_RUN

        self._is_syncing = True
        self._broadcast()
        try:
            user_id = self.backend.get_current_user_id()
            if not user_id:
                logger.info("No user signed in, skipping sync")
                return SyncOutcome.SKIPPED

            self.pull_from_server(user_id)
            self.push_to_server(user_id)

            now = current_timestamp()
            Config.update_last_sync(now)
            self._last_sync_time = now
            logger.info("Sync completed")
            return SyncOutcome.COMPLETED
        except Exception:
            logger.exception("Sync pass failed")
            self.notification.emit("error", "Sync failed - will retry later")
            return SyncOutcome.FAILED
        finally:
            self._is_syncing = False
            self._broadcast()

    def pull_from_server(self, user_id: str) -> dict[str, int]:
        """Overwrite local records with the user's remote rows.

        A failed collection is logged and skipped. Returns the number of
        rows written per local collection name.
        """
        summary = {}
        for collection in Collection:
            try:
                rows = self.backend.select_by_user(collection.remote_table,
                                                   user_id)
            except RemoteError as e:
                logger.warning("Pull of %s failed: %s",
                               collection.remote_table, e)
                continue

            written = 0
            for row in rows:
                if not row.get("id"):
                    logger.warning("Ignoring %s row without id",
                                   collection.remote_table)
                    continue
                record = {**row, "synced": True, "deleted": False}
                if "items" in collection.columns:
                    items = row.get("items")
                    record["items"] = items if isinstance(items, list) else []
                self.store.put(collection, record)
                written += 1
            summary[collection.value] = written
        logger.debug("Pulled %s", summary)
        return summary

    def push_to_server(self, user_id: str) -> int:
        """Replay the change queue in order. Returns entries sent.

        A failed entry holds back every later entry for the same record
        until the next pass, so a delete never overtakes its create.
        """
        sent = 0
        held: set[tuple[Collection, str]] = set()
        for entry in self.store.queue_entries():
            key = (entry.collection, entry.record_id)
            if key in held:
                logger.debug("Holding %s of %s %s behind a failed change",
                             entry.operation.value, entry.collection.value,
                             entry.record_id)
                continue
            try:
                self._sync_queue_item(entry, user_id)
            except RemoteError as e:
                if (entry.operation is Operation.CREATE
                        and e.is_duplicate_key
                        and self._retry_as_update(entry, user_id)):
                    sent += 1
                    continue
                self._record_failure(entry, e)
                held.add(key)
                continue
            self.store.remove_queue_entry(entry.id)
            sent += 1
        return sent

    def _retry_as_update(self, entry: SyncQueueEntry, user_id: str) -> bool:
        logger.info("%s %s already exists remotely, sending as update",
                    entry.collection.remote_table, entry.record_id)
        try:
            self._sync_queue_item(entry, user_id, Operation.UPDATE)
        except RemoteError as e:
            logger.warning("Update fallback for %s %s failed: %s",
                           entry.collection.remote_table, entry.record_id, e)
            return False
        self.store.remove_queue_entry(entry.id)
        return True

    def _record_failure(self, entry: SyncQueueEntry, error: RemoteError):
        retries = self.store.increment_retry(entry.id)
        if retries >= self.max_retries:
            self.store.remove_queue_entry(entry.id)
            logger.error(
                "Dropped %s of %s %s after %d failed attempts: %s",
                entry.operation.value, entry.collection.value,
                entry.record_id, retries, error,
            )
        else:
            logger.warning(
                "Failed to sync %s %s %s (attempt %d/%d): %s",
                entry.operation.value, entry.collection.value,
                entry.record_id, retries, self.max_retries, error,
            )

    def _sync_queue_item(self, entry: SyncQueueEntry, user_id: str,
                         operation: Optional[Operation] = None):
        """Send one queue entry to the backend and apply the local effect."""
        operation = operation or entry.operation
        collection = entry.collection
        table = collection.remote_table
        data = {k: v for k, v in entry.data.items()
                if k not in _LOCAL_ONLY_FIELDS}
        data["user_id"] = user_id

        if operation is Operation.CREATE:
            self.backend.insert(table, data)
            self.store.mark_synced(collection, entry.record_id)
        elif operation is Operation.UPDATE:
            self.backend.update(table, entry.record_id, data)
            self.store.mark_synced(collection, entry.record_id)
        elif operation is Operation.DELETE:
            self.backend.delete(table, entry.record_id)
            self.store.delete(collection, entry.record_id)
