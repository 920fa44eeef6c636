"""Clients."""

from typing import Optional

from pocket_stock.database.models import Client, Collection

from .base import EntityAccess


class ClientAccess(EntityAccess):
    collection = Collection.CLIENTS
    required_fields = ("name",)

    def find_by_name(self, name: str) -> Optional[Client]:
        """First client whose name matches, ignoring case."""
        wanted = name.strip().lower()
        for client in self.list():
            if client.name.strip().lower() == wanted:
                return client
        return None
