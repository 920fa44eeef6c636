"""Shared behaviour for the per-entity access classes."""

from typing import Optional

from pocket_stock.auth import AuthSession
from pocket_stock.database.crud import (
    add_record,
    delete_record,
    get_records,
    update_record,
)
from pocket_stock.database.live_query import LiveQuery
from pocket_stock.database.models import BOOKKEEPING_FIELDS, Collection
from pocket_stock.database.store import RecordStore


class EntityAccess:
    """Typed façade over the CRUD helpers for one collection.

    Records are always scoped to the session's user (or ``"guest"``).
    Subclasses set ``collection`` and may list ``required_fields`` that
    must be present on creation and ``readonly_fields`` that callers may
    not pass to ``add``/``update``.
    """

    collection: Collection = None
    required_fields: tuple[str, ...] = ()
    readonly_fields: tuple[str, ...] = ()

    def __init__(self, store: RecordStore, session: AuthSession):
        self.store = store
        self.session = session

    @property
    def user_id(self) -> str:
        return self.session.effective_user_id

    @property
    def editable_fields(self) -> set[str]:
        return (set(self.collection.columns) - set(BOOKKEEPING_FIELDS)
                - set(self.readonly_fields))

    def _check_fields(self, data: dict):
        unknown = set(data) - self.editable_fields
        if unknown:
            raise ValueError(
                f"Cannot set {', '.join(sorted(unknown))} on "
                f"{self.collection.value}"
            )

    def add(self, **data) -> str:
        """Create a record for the current user and return its id."""
        self._check_fields(data)
        missing = [f for f in self.required_fields if f not in data]
        if missing:
            raise ValueError(
                f"Missing required field(s) for {self.collection.value}: "
                f"{', '.join(missing)}"
            )
        return self._add(data)

    def _add(self, data: dict) -> str:
        return add_record(self.store, self.collection,
                          {**data, "user_id": self.user_id})

    def update(self, record_id: str, **updates):
        self._check_fields(updates)
        update_record(self.store, self.collection, record_id, updates)

    def delete(self, record_id: str):
        delete_record(self.store, self.collection, record_id)

    def get(self, record_id: str) -> Optional[object]:
        """Fetch one record by id, including soft-deleted ones."""
        return self.store.get(self.collection, record_id)

    def live(self, parent=None) -> LiveQuery:
        """A live view of ``list()`` that refreshes on every write."""
        return LiveQuery(self.store, self.collection, self.list, parent)

    def list(self) -> list:
        """The current user's records, soft-deleted ones excluded."""
        return get_records(self.store, self.collection, self.user_id)
