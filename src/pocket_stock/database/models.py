"""Data models for the local record store."""

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Optional

GUEST_USER_ID = "guest"

# Columns every entity carries besides its own fields
BOOKKEEPING_FIELDS = ("id", "user_id", "created_at", "updated_at",
                      "synced", "deleted")


class Operation(str, Enum):
    """Kind of mutation recorded in a change-queue entry."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Collection(str, Enum):
    """Local entity collections. The value is the SQLite table name."""

    INVENTORY = "inventory"
    EXPENSES = "expenses"
    SUPPLIERS = "suppliers"
    BUDGETS = "budgets"
    SPECIAL_ORDERS = "special_orders"
    CLIENTS = "clients"
    INVOICES = "invoices"
    RECEIPTS = "receipts"

    @property
    def remote_table(self) -> str:
        """Name of the matching table on the remote backend."""
        return _REMOTE_TABLES.get(self, self.value)

    @property
    def model(self) -> type:
        return MODELS[self]

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(f.name for f in fields(MODELS[self]))


_REMOTE_TABLES = {
    Collection.INVENTORY: "inventory_items",
}


@dataclass
class InventoryItem:
    id: Optional[str] = None
    user_id: str = ""
    name: str = ""
    category: Optional[str] = None
    quantity: int = 0
    price: float = 0.0
    low_stock_threshold: Optional[int] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    synced: bool = False
    deleted: bool = False

    @property
    def total_value(self) -> float:
        return self.quantity * self.price

    def is_low_stock(self, default_threshold: int = 0) -> bool:
        """True when quantity is at or under the item's threshold.

        Items without their own threshold fall back to *default_threshold*;
        a threshold of 0 disables the check.
        """
        threshold = self.low_stock_threshold or default_threshold
        return bool(threshold) and self.quantity <= threshold


@dataclass
class Expense:
    id: Optional[str] = None
    user_id: str = ""
    amount: float = 0.0
    category: str = ""
    description: Optional[str] = None
    date: str = ""  # ISO date, compared as a string
    budget_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    synced: bool = False
    deleted: bool = False


@dataclass
class Supplier:
    id: Optional[str] = None
    user_id: str = ""
    name: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    synced: bool = False
    deleted: bool = False


@dataclass
class Budget:
    id: Optional[str] = None
    user_id: str = ""
    category: str = ""
    amount: float = 0.0
    period: Optional[str] = None  # 'weekly', 'monthly', 'yearly'
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    synced: bool = False
    deleted: bool = False


@dataclass
class SpecialOrder:
    id: Optional[str] = None
    user_id: str = ""
    customer_name: str = ""
    item_description: str = ""
    status: Optional[str] = None
    delivery_date: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    synced: bool = False
    deleted: bool = False


@dataclass
class Client:
    id: Optional[str] = None
    user_id: str = ""
    name: str = ""
    company: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    synced: bool = False
    deleted: bool = False


@dataclass
class Invoice:
    id: Optional[str] = None
    user_id: str = ""
    invoice_number: str = ""
    client_id: Optional[str] = None  # Client.id, not enforced
    client_name: str = ""
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    client_address: Optional[str] = None
    items: list = field(default_factory=list)  # line-item dicts, in order
    subtotal: float = 0.0
    tax_rate: Optional[float] = None
    tax_amount: Optional[float] = None
    discount: Optional[float] = None
    total: float = 0.0
    notes: Optional[str] = None
    due_date: Optional[str] = None
    status: Optional[str] = None  # 'pending', 'paid', 'overdue'
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    synced: bool = False
    deleted: bool = False


@dataclass
class Receipt:
    id: Optional[str] = None
    user_id: str = ""
    receipt_number: str = ""
    invoice_id: Optional[str] = None
    client_name: str = ""
    items: list = field(default_factory=list)
    subtotal: float = 0.0
    tax_amount: Optional[float] = None
    total: float = 0.0
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    synced: bool = False
    deleted: bool = False


MODELS: dict[Collection, type] = {
    Collection.INVENTORY: InventoryItem,
    Collection.EXPENSES: Expense,
    Collection.SUPPLIERS: Supplier,
    Collection.BUDGETS: Budget,
    Collection.SPECIAL_ORDERS: SpecialOrder,
    Collection.CLIENTS: Client,
    Collection.INVOICES: Invoice,
    Collection.RECEIPTS: Receipt,
}

# Columns stored as JSON text
JSON_FIELDS = {"items"}
# Columns stored as 0/1 integers
BOOL_FIELDS = {"synced", "deleted"}


@dataclass
class SyncQueueEntry:
    """One pending mutation awaiting transmission to the backend."""

    id: Optional[int] = None
    collection: Collection = Collection.INVENTORY
    record_id: str = ""
    operation: Operation = Operation.CREATE
    data: dict = field(default_factory=dict)
    created_at: str = ""
    retry_count: int = 0


def record_to_dict(record: Any) -> dict:
    """Return a plain dict for a model instance (dicts pass through)."""
    if isinstance(record, dict):
        return dict(record)
    return asdict(record)
