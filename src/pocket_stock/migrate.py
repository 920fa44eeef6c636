"""One-time import of legacy data, and a full local wipe.

The legacy export is a JSON object mapping collection names to lists of
records: ``{"inventory": [{...}, ...], "expenses": [...]}``. Records are
re-created through the CRUD helpers, so each one gets a fresh id and a
queued create for the next sync.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from pocket_stock.config import Config
from pocket_stock.database.crud import add_record
from pocket_stock.database.models import BOOKKEEPING_FIELDS, Collection
from pocket_stock.database.store import RecordStore, StoreError

logger = logging.getLogger(__name__)


def _load_legacy(path: Path) -> dict:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"{path} does not contain a JSON object")
    return payload


def _discard_imported(store: RecordStore,
                      created: list[tuple[Collection, str]]):
    """Remove the records (and queued creates) of a failed import."""
    ids = {record_id for _, record_id in created}
    for collection, record_id in created:
        store.delete(collection, record_id)
    for entry in store.queue_entries():
        if entry.record_id in ids:
            store.remove_queue_entry(entry.id)
    if created:
        logger.info("Rolled back %d partially imported records", len(created))


def migrate_from_legacy(store: RecordStore, user_id: str,
                        path: Optional[str | Path] = None
                        ) -> Optional[dict[str, int]]:
    """Import legacy records for *user_id* once.

    Returns the number of records imported per collection, an empty dict
    when the migration already ran, or None when it failed. A failed run
    removes whatever it had imported and leaves the completion marker
    unset, so the next start retries from a clean slate.
    """
    if Config.is_migration_complete():
        logger.info("Legacy migration already completed")
        return {}

    path = Path(path or Config.LEGACY_DATA_PATH)
    summary: dict[str, int] = {}
    created: list[tuple[Collection, str]] = []
    try:
        if path.exists():
            logger.info("Migrating legacy data from %s", path)
            for name, records in _load_legacy(path).items():
                try:
                    collection = Collection(name)
                except ValueError:
                    logger.warning("Skipping unknown legacy collection %r", name)
                    continue
                if not isinstance(records, list):
                    raise ValueError(f"legacy {name} is not a list")
                editable = set(collection.columns) - set(BOOKKEEPING_FIELDS)
                for record in records:
                    if not isinstance(record, dict):
                        raise ValueError(f"legacy {name} entry is not an object")
                    data = {k: v for k, v in record.items() if k in editable}
                    created.append((collection, add_record(
                        store, collection, {**data, "user_id": user_id})))
                summary[collection.value] = len(records)
        else:
            logger.info("No legacy data found at %s", path)
    except (OSError, ValueError, StoreError) as e:
        logger.error("Legacy migration failed: %s", e)
        _discard_imported(store, created)
        return None

    Config.mark_migration_complete()
    logger.info("Legacy migration completed: %s", summary)
    return summary


def clear_all_data(store: RecordStore):
    """Delete every local record and queued change, and forget the migration."""
    for collection in Collection:
        store.clear(collection)
    store.clear_queue()
    Config.reset_migration_flag()
    logger.warning("All local data cleared")
