"""Suppliers."""

from pocket_stock.database.models import Collection

from .base import EntityAccess


class SupplierAccess(EntityAccess):
    collection = Collection.SUPPLIERS
    required_fields = ("name",)
