"""Special (customer) orders."""

from pocket_stock.database.models import Collection, SpecialOrder

from .base import EntityAccess


class SpecialOrderAccess(EntityAccess):
    collection = Collection.SPECIAL_ORDERS
    required_fields = ("customer_name", "item_description")

    def get_by_status(self, status: str) -> list[SpecialOrder]:
        return [o for o in self.list() if o.status == status]
