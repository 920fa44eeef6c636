"""Live queries — re-run a collection query whenever that collection changes."""

from typing import Callable

from PySide6.QtCore import QObject, Signal

from .models import Collection
from .store import RecordStore


class LiveQuery(QObject):
    """Holds the latest result of *query* and re-runs it on every write.

    Consumers either read ``results`` or connect to ``results_changed``,
    which carries the fresh result list.
    """

    results_changed = Signal(object)

    def __init__(self, store: RecordStore, collection: Collection,
                 query: Callable[[], list], parent=None):
        super().__init__(parent)
        self._store = store
        self._collection = Collection(collection)
        self._query = query
        self._results = query()
        self._active = True
        store.collection_changed.connect(self._on_collection_changed)

    @property
    def results(self) -> list:
        return list(self._results)

    @property
    def collection(self) -> Collection:
        return self._collection

    @property
    def is_active(self) -> bool:
        return self._active

    def refresh(self):
        """Re-run the query and broadcast the new results."""
        self._results = self._query()
        self.results_changed.emit(self.results)

    def close(self):
        """Stop following the collection."""
        if self._active:
            self._store.collection_changed.disconnect(self._on_collection_changed)
            self._active = False

    def _on_collection_changed(self, name: str):
        if name == self._collection.value:
            self.refresh()
