"""Inventory items."""

from typing import Optional

from pocket_stock.config import Config
from pocket_stock.database.models import Collection, InventoryItem

from .base import EntityAccess


class InventoryAccess(EntityAccess):
    collection = Collection.INVENTORY
    required_fields = ("name", "quantity", "price")

    def get_low_stock(
        self, default_threshold: Optional[int] = None
    ) -> list[InventoryItem]:
        """Items at or below their low-stock threshold.

        Items without a threshold use *default_threshold*, which defaults
        to ``Config.LOW_STOCK_DEFAULT`` (0 disables the fallback).
        """
        if default_threshold is None:
            default_threshold = Config.LOW_STOCK_DEFAULT
        return [i for i in self.list() if i.is_low_stock(default_threshold)]

    def get_total_quantity(self) -> int:
        return sum(i.quantity for i in self.list())

    def get_total_value(self) -> float:
        return sum(i.total_value for i in self.list())

    def get_by_category(self, category: str) -> list[InventoryItem]:
        return [i for i in self.list() if i.category == category]
