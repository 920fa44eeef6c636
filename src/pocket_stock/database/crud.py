"""Generic CRUD helpers — every local mutation passes through here.

Each helper stamps the bookkeeping fields and appends exactly one
change-queue entry. The record write and the queue append are separate
commits: a crash between them leaves a local record that is never sent.
Storage errors propagate unchanged.
"""

from .models import Collection, Operation, record_to_dict
from .store import RecordStore, current_timestamp, generate_id


def add_record(store: RecordStore, collection: Collection, data) -> str:
    """Create a record from user-scoped *data* and queue its creation.

    Returns the new record's identifier.
    """
    collection = Collection(collection)
    record_id = generate_id()
    timestamp = current_timestamp()
    record = {
        **record_to_dict(data),
        "id": record_id,
        "created_at": timestamp,
        "updated_at": timestamp,
        "synced": False,
        "deleted": False,
    }
    store.add(collection, record)
    stored = record_to_dict(store.get(collection, record_id))
    store.enqueue(collection, record_id, Operation.CREATE, stored,
                  created_at=timestamp)
    return record_id


def update_record(store: RecordStore, collection: Collection,
                  record_id: str, updates: dict):
    """Merge *updates* into a record and queue the full post-update row."""
    collection = Collection(collection)
    timestamp = current_timestamp()
    store.update(collection, record_id, {
        **updates,
        "updated_at": timestamp,
        "synced": False,
    })
    record = store.get(collection, record_id)
    if record is not None:
        store.enqueue(collection, record_id, Operation.UPDATE,
                      record_to_dict(record), created_at=timestamp)


def delete_record(store: RecordStore, collection: Collection, record_id: str):
    """Soft-delete a record and queue the deletion.

    The row stays in the store, flagged ``deleted``, until the sync drain
    confirms the delete on the backend.
    """
    collection = Collection(collection)
    timestamp = current_timestamp()
    store.update(collection, record_id, {
        "deleted": True,
        "updated_at": timestamp,
        "synced": False,
    })
    store.enqueue(collection, record_id, Operation.DELETE, {"id": record_id},
                  created_at=timestamp)


def get_records(store: RecordStore, collection: Collection,
                user_id: str) -> list:
    """A user's records in a collection, soft-deleted rows excluded."""
    return store.list(Collection(collection), user_id=user_id)
