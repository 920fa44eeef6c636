"""Invoices, numbered per user as INV-001, INV-002, ..."""

from typing import Optional

from pocket_stock.config import Config
from pocket_stock.database.models import Collection, Invoice

from .base import EntityAccess


def format_document_number(prefix: str, sequence: int) -> str:
    return f"{prefix}-{sequence:03d}"


class InvoiceAccess(EntityAccess):
    collection = Collection.INVOICES
    required_fields = ("client_name", "items", "subtotal", "total")
    readonly_fields = ("invoice_number",)

    def generate_invoice_number(self) -> str:
        """Next number for the current user.

        Count-based: pending deletes still count, but once a delete has
        synced the row is gone and its number can be handed out again.
        Other devices number independently.
        """
        count = self.store.count(self.collection, user_id=self.user_id,
                                 include_deleted=True)
        return format_document_number(Config.INVOICE_NUMBER_PREFIX, count + 1)

    def _add(self, data: dict) -> str:
        return super()._add(
            {**data, "invoice_number": self.generate_invoice_number()}
        )

    def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        return self.get(invoice_id)

    def get_by_status(self, status: str) -> list[Invoice]:
        return [inv for inv in self.list() if inv.status == status]

    def get_totals(self) -> dict[str, float]:
        """Invoiced amounts: everything, paid, and still pending."""
        invoices = self.list()
        return {
            "total": sum(float(i.total) for i in invoices),
            "paid": sum(float(i.total) for i in invoices if i.status == "paid"),
            "pending": sum(float(i.total) for i in invoices
                           if i.status == "pending"),
        }
