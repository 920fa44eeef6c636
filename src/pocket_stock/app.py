"""Headless entry point — runs the sync engine on a QCoreApplication."""

import argparse
import logging
import signal
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QCoreApplication, QTimer

from pocket_stock.auth import AuthSession
from pocket_stock.config import Config
from pocket_stock.database.connection import DatabaseConnection
from pocket_stock.database.schema import initialize_database
from pocket_stock.database.store import RecordStore
from pocket_stock.logging_setup import setup_logging
from pocket_stock.migrate import migrate_from_legacy
from pocket_stock.sync.backend import RemoteBackend
from pocket_stock.sync.connectivity import ConnectivityMonitor
from pocket_stock.sync.sync_manager import (
    SyncManager,
    SyncOutcome,
    SyncStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class Core:
    """Long-lived objects shared by the entity modules and the sync engine."""

    db: DatabaseConnection
    store: RecordStore
    session: AuthSession
    backend: RemoteBackend
    connectivity: ConnectivityMonitor
    sync_manager: SyncManager

    def shutdown(self):
        self.sync_manager.stop()
        self.connectivity.stop_probing()
        self.backend.close()


def build_core(db_path: Optional[str | Path] = None,
               session: Optional[AuthSession] = None,
               backend: Optional[RemoteBackend] = None,
               connectivity: Optional[ConnectivityMonitor] = None) -> Core:
    """Open the local database and wire up the sync engine."""
    db = DatabaseConnection(db_path or Config.DATABASE_PATH)
    initialize_database(db)
    store = RecordStore(db)
    session = session or AuthSession()
    backend = backend or RemoteBackend(session)
    connectivity = connectivity or ConnectivityMonitor()
    manager = SyncManager(store, backend, connectivity)
    return Core(db, store, session, backend, connectivity, manager)


def _log_status(status: SyncStatus):
    logger.info(
        "Sync status: %s%s, %d pending, last sync %s",
        "online" if status.is_online else "offline",
        " (syncing)" if status.is_syncing else "",
        status.pending_changes,
        status.last_sync_time or "never",
    )


def _log_notification(level: str, message: str):
    logger.log(logging.ERROR if level == "error" else logging.INFO,
               "%s", message)


def main(argv: Optional[list[str]] = None):
    """Run the background sync engine until interrupted."""
    parser = argparse.ArgumentParser(description="Pocket Stock sync engine")
    parser.add_argument("--user-id", help="Signed-in user id")
    parser.add_argument("--access-token", help="Backend access token")
    parser.add_argument("--once", action="store_true",
                        help="Run a single sync pass and exit")
    args = parser.parse_args(argv)

    setup_logging(Config.LOG_LEVEL, Config.LOG_FILE or None)

    app = QCoreApplication.instance() or QCoreApplication(sys.argv)
    app.setApplicationName("Pocket Stock")

    session = AuthSession(args.user_id, args.access_token)
    core = build_core(session=session)
    if session.is_authenticated:
        migrate_from_legacy(core.store, session.effective_user_id)

    core.sync_manager.subscribe(_log_status)
    core.sync_manager.notification.connect(_log_notification)

    if args.once:
        core.connectivity.probe()
        outcome = core.sync_manager.sync_data()
        core.shutdown()
        logger.info("Sync pass finished: %s", outcome.value)
        sys.exit(1 if outcome is SyncOutcome.FAILED else 0)

    core.connectivity.start_probing()
    core.sync_manager.start(sync_now=True)

    # Ctrl+C quits the event loop; the timer lets Python see the signal
    signal.signal(signal.SIGINT, lambda *_: app.quit())
    heartbeat = QTimer()
    heartbeat.timeout.connect(lambda: None)
    heartbeat.start(500)

    app.exec()
    core.shutdown()
    sys.exit(0)


if __name__ == "__main__":
    main()
