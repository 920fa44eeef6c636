"""Short-lived SQLite connections for the local record store."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

# Seconds a writer waits on a locked database before giving up
DEFAULT_BUSY_TIMEOUT = 5.0


class DatabaseConnection:
    """Opens one SQLite connection per unit of work.

    Every ``get_connection()`` block is a transaction: it commits when the
    block exits normally, so a write is on disk before the caller regains
    control, and rolls back if the block raises.
    """

    def __init__(self, db_path: str | Path,
                 busy_timeout: float = DEFAULT_BUSY_TIMEOUT):
        self.db_path = Path(db_path)
        self.busy_timeout = busy_timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=self.busy_timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA synchronous = FULL")
        return conn

    @contextmanager
    def get_connection(self):
        conn = self._open()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def execute(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        """Run one statement in its own transaction; return all rows."""
        with self.get_connection() as conn:
            return conn.execute(sql, params).fetchall()

    def fetch_one(self, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with self.get_connection() as conn:
            return conn.execute(sql, params).fetchone()
