"""Receipts, numbered per user as RCT-001, RCT-002, ..."""

from typing import Optional

from pocket_stock.config import Config
from pocket_stock.database.models import Collection, Receipt

from .base import EntityAccess
from .invoices import format_document_number


class ReceiptAccess(EntityAccess):
    collection = Collection.RECEIPTS
    required_fields = ("client_name", "items", "subtotal", "total")
    readonly_fields = ("receipt_number",)

    def generate_receipt_number(self) -> str:
        count = self.store.count(self.collection, user_id=self.user_id,
                                 include_deleted=True)
        return format_document_number(Config.RECEIPT_NUMBER_PREFIX, count + 1)

    def _add(self, data: dict) -> str:
        return super()._add(
            {**data, "receipt_number": self.generate_receipt_number()}
        )

    def get_receipt(self, receipt_id: str) -> Optional[Receipt]:
        return self.get(receipt_id)

    def get_by_invoice(self, invoice_id: str) -> list[Receipt]:
        return [r for r in self.list() if r.invoice_id == invoice_id]
