"""Record store — durable local collections plus the outbound change queue.

All reads and writes go through :class:`DatabaseConnection`, so each call is
its own committed transaction. After every committed write the store emits
``collection_changed`` with the collection name (``"sync_queue"`` for the
change queue); live queries and the sync status façade listen to it.
"""

import json
import logging
import sqlite3
import uuid
from dataclasses import fields
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from PySide6.QtCore import QObject, Signal

from .connection import DatabaseConnection
from .models import (
    BOOL_FIELDS,
    JSON_FIELDS,
    Collection,
    Operation,
    SyncQueueEntry,
    record_to_dict,
)

logger = logging.getLogger(__name__)

QUEUE_TABLE = "sync_queue"


class StoreError(Exception):
    """Base exception for local storage failures."""


class DuplicateKeyError(StoreError):
    """A record with this identifier already exists in the collection."""


class NotFoundError(StoreError):
    """No record with this identifier exists in the collection."""


def generate_id() -> str:
    return str(uuid.uuid4())


def current_timestamp() -> str:
    """ISO-8601 UTC timestamp with microseconds."""
    return datetime.now(timezone.utc).isoformat()


class RecordStore(QObject):
    """Keyed local collections for every entity, backed by SQLite."""

    collection_changed = Signal(str)

    def __init__(self, db: DatabaseConnection, parent=None):
        super().__init__(parent)
        self.db = db

    # ── Encoding ────────────────────────────────────────────────

    @staticmethod
    def _check_columns(collection: Collection, values: dict):
        unknown = set(values) - set(collection.columns)
        if unknown:
            raise ValueError(
                f"Unknown field(s) for {collection.value}: "
                f"{', '.join(sorted(unknown))}"
            )

    @staticmethod
    def _encode(values: dict) -> dict:
        encoded = {}
        for key, value in values.items():
            if key in JSON_FIELDS:
                value = json.dumps(value if value is not None else [])
            elif key in BOOL_FIELDS:
                value = 1 if value else 0
            encoded[key] = value
        return encoded

    @staticmethod
    def _decode(collection: Collection, row) -> Any:
        values = {}
        for key in row.keys():
            value = row[key]
            if key in JSON_FIELDS:
                try:
                    value = json.loads(value) if value else []
                except (json.JSONDecodeError, TypeError):
                    value = []
            elif key in BOOL_FIELDS:
                value = bool(value)
            values[key] = value
        known = {f.name for f in fields(collection.model)}
        return collection.model(**{k: v for k, v in values.items() if k in known})

    def _changed(self, name: str):
        self.collection_changed.emit(name)

    # ── Records ─────────────────────────────────────────────────

    def add(self, collection: Collection, record) -> str:
        """Insert a new record and return its identifier.

        A fresh UUID is assigned when the record has no ``id``.
        Raises DuplicateKeyError if the identifier is already present.
        """
        values = record_to_dict(record)
        self._check_columns(collection, values)
        if not values.get("id"):
            values["id"] = generate_id()
        values["created_at"] = values.get("created_at") or current_timestamp()
        values["updated_at"] = values.get("updated_at") or values["created_at"]

        encoded = self._encode(values)
        columns = list(encoded.keys())
        placeholders = ", ".join("?" for _ in columns)
        with self.db.get_connection() as conn:
            exists = conn.execute(
                f"SELECT 1 FROM {collection.value} WHERE id = ?",  # noqa: S608
                (values["id"],),
            ).fetchone()
            if exists:
                raise DuplicateKeyError(
                    f"{collection.value} already contains id {values['id']}"
                )
            try:
                conn.execute(
                    f"INSERT INTO {collection.value} "  # noqa: S608
                    f"({', '.join(columns)}) VALUES ({placeholders})",
                    tuple(encoded[c] for c in columns),
                )
            except sqlite3.IntegrityError as e:
                raise StoreError(f"Cannot add to {collection.value}: {e}") from e
        self._changed(collection.value)
        return values["id"]

    def get(self, collection: Collection, record_id: str):
        """Return the record with this identifier, or None."""
        row = self.db.fetch_one(
            f"SELECT * FROM {collection.value} WHERE id = ?",  # noqa: S608
            (record_id,),
        )
        return self._decode(collection, row) if row else None

    def update(self, collection: Collection, record_id: str, changes: dict):
        """Merge *changes* into an existing record.

        Raises NotFoundError if the identifier is absent.
        """
        changes = {k: v for k, v in changes.items() if k != "id"}
        self._check_columns(collection, changes)
        encoded = self._encode(changes)
        with self.db.get_connection() as conn:
            if encoded:
                set_clause = ", ".join(f"{c} = ?" for c in encoded)
                cursor = conn.execute(
                    f"UPDATE {collection.value} SET {set_clause} "  # noqa: S608
                    f"WHERE id = ?",
                    (*encoded.values(), record_id),
                )
                found = cursor.rowcount > 0
            else:
                found = conn.execute(
                    f"SELECT 1 FROM {collection.value} WHERE id = ?",  # noqa: S608
                    (record_id,),
                ).fetchone() is not None
        if not found:
            raise NotFoundError(f"{collection.value} has no id {record_id}")
        if encoded:
            self._changed(collection.value)

    def put(self, collection: Collection, record) -> str:
        """Insert or fully replace a record by identifier.

        Fields the collection does not know about are ignored; fields the
        record does not carry take their model defaults.
        """
        values = record_to_dict(record)
        if not values.get("id"):
            raise ValueError(f"Cannot put into {collection.value} without an id")
        known = {k: v for k, v in values.items() if k in collection.columns}
        full = record_to_dict(collection.model(**known))
        now = current_timestamp()
        full["created_at"] = full["created_at"] or now
        full["updated_at"] = full["updated_at"] or full["created_at"]
        if full["user_id"] is None:
            full["user_id"] = ""

        encoded = self._encode(full)
        columns = list(encoded.keys())
        placeholders = ", ".join("?" for _ in columns)
        with self.db.get_connection() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {collection.value} "  # noqa: S608
                f"({', '.join(columns)}) VALUES ({placeholders})",
                tuple(encoded[c] for c in columns),
            )
        self._changed(collection.value)
        return full["id"]

    def delete(self, collection: Collection, record_id: str) -> bool:
        """Physically remove a row. Returns False if it was not there."""
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                f"DELETE FROM {collection.value} WHERE id = ?",  # noqa: S608
                (record_id,),
            )
            removed = cursor.rowcount > 0
        if removed:
            self._changed(collection.value)
        return removed

    def mark_synced(self, collection: Collection, record_id: str) -> bool:
        """Set ``synced`` on a record if it still exists."""
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                f"UPDATE {collection.value} SET synced = 1 "  # noqa: S608
                f"WHERE id = ?",
                (record_id,),
            )
            found = cursor.rowcount > 0
        if found:
            self._changed(collection.value)
        return found

    def count(
        self,
        collection: Collection,
        user_id: Optional[str] = None,
        include_deleted: bool = True,
    ) -> int:
        clauses, params = [], []
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if not include_deleted:
            clauses.append("deleted = 0")
        sql = f"SELECT COUNT(*) AS cnt FROM {collection.value}"  # noqa: S608
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        return self.db.fetch_one(sql, tuple(params))["cnt"]

    def purge_deleted(self, collection: Collection) -> int:
        """Remove soft-deleted rows whose deletion has reached the backend."""
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                f"DELETE FROM {collection.value} "  # noqa: S608
                f"WHERE deleted = 1 AND synced = 1"
            )
            purged = cursor.rowcount
        if purged:
            self._changed(collection.value)
        return purged

    def clear(self, collection: Collection):
        with self.db.get_connection() as conn:
            conn.execute(f"DELETE FROM {collection.value}")  # noqa: S608
        self._changed(collection.value)

    # ── Change queue ────────────────────────────────────────────

    def enqueue(
        self,
        collection: Collection,
        record_id: str,
        operation: Operation,
        data: dict,
        created_at: Optional[str] = None,
    ) -> int:
        """Append a change-queue entry and return its sequence id."""
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO sync_queue "
                "(table_name, record_id, operation, data, created_at, "
                "retry_count) VALUES (?, ?, ?, ?, ?, 0)",
                (Collection(collection).value, record_id,
                 Operation(operation).value,
                 json.dumps(data, default=str),
                 created_at or current_timestamp()),
            )
            entry_id = cursor.lastrowid
        logger.debug("Queued %s %s %s as entry %d", Operation(operation).value,
                     Collection(collection).value, record_id, entry_id)
        self._changed(QUEUE_TABLE)
        return entry_id

    @staticmethod
    def _entry_from_row(row) -> SyncQueueEntry:
        return SyncQueueEntry(
            id=row["id"],
            collection=Collection(row["table_name"]),
            record_id=row["record_id"],
            operation=Operation(row["operation"]),
            data=json.loads(row["data"]) if row["data"] else {},
            created_at=row["created_at"],
            retry_count=row["retry_count"],
        )

    def queue_entries(self) -> list[SyncQueueEntry]:
        """All pending entries in enqueue order, across collections."""
        rows = self.db.execute("SELECT * FROM sync_queue ORDER BY id")
        return [self._entry_from_row(r) for r in rows]

    def get_queue_entry(self, entry_id: int) -> Optional[SyncQueueEntry]:
        row = self.db.fetch_one(
            "SELECT * FROM sync_queue WHERE id = ?", (entry_id,)
        )
        return self._entry_from_row(row) if row else None

    def queue_count(self) -> int:
        return self.db.fetch_one(
            "SELECT COUNT(*) AS cnt FROM sync_queue")["cnt"]

    def increment_retry(self, entry_id: int) -> int:
        """Bump an entry's retry counter and return the new value."""
        with self.db.get_connection() as conn:
            conn.execute(
                "UPDATE sync_queue SET retry_count = retry_count + 1 "
                "WHERE id = ?",
                (entry_id,),
            )
            row = conn.execute(
                "SELECT retry_count FROM sync_queue WHERE id = ?",
                (entry_id,),
            ).fetchone()
        if row is None:
            raise NotFoundError(f"sync_queue has no id {entry_id}")
        return row["retry_count"]

    def remove_queue_entry(self, entry_id: int) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM sync_queue WHERE id = ?", (entry_id,)
            )
            removed = cursor.rowcount > 0
        if removed:
            self._changed(QUEUE_TABLE)
        return removed

    def clear_queue(self):
        with self.db.get_connection() as conn:
            conn.execute("DELETE FROM sync_queue")
        self._changed(QUEUE_TABLE)

    # ── Queries ─────────────────────────────────────────────────

    def list(
        self,
        collection: Collection,
        user_id: Optional[str] = None,
        include_deleted: bool = False,
        where: Optional[Callable[[Any], bool]] = None,
    ) -> list:
        """Return records of a collection, oldest first.

        Filters by equality on ``user_id`` when given and skips soft-deleted
        rows unless *include_deleted*. *where* is an extra predicate applied
        to each decoded record.
        """
        clauses, params = [], []
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if not include_deleted:
            clauses.append("deleted = 0")
        sql = f"SELECT * FROM {collection.value}"  # noqa: S608
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at, rowid"
        records = [self._decode(collection, r)
                   for r in self.db.execute(sql, tuple(params))]
        if where is not None:
            records = [r for r in records if where(r)]
        return records
