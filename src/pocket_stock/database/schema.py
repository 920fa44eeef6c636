"""Database schema definition, initialization, and migrations."""

import logging
import sqlite3

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

_V1_TABLES = [
    # Inventory items
    """CREATE TABLE IF NOT EXISTS inventory (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        name TEXT NOT NULL DEFAULT '',
        category TEXT,
        quantity INTEGER NOT NULL DEFAULT 0,
        price REAL NOT NULL DEFAULT 0,
        low_stock_threshold INTEGER,
        notes TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        synced INTEGER NOT NULL DEFAULT 0,
        deleted INTEGER NOT NULL DEFAULT 0
    )""",

    # Expenses
    """CREATE TABLE IF NOT EXISTS expenses (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        amount REAL NOT NULL DEFAULT 0,
        category TEXT NOT NULL DEFAULT '',
        description TEXT,
        date TEXT NOT NULL DEFAULT '',
        budget_id TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        synced INTEGER NOT NULL DEFAULT 0,
        deleted INTEGER NOT NULL DEFAULT 0
    )""",

    # Suppliers
    """CREATE TABLE IF NOT EXISTS suppliers (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        name TEXT NOT NULL DEFAULT '',
        phone TEXT,
        email TEXT,
        address TEXT,
        notes TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        synced INTEGER NOT NULL DEFAULT 0,
        deleted INTEGER NOT NULL DEFAULT 0
    )""",

    # Budgets
    """CREATE TABLE IF NOT EXISTS budgets (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        category TEXT NOT NULL DEFAULT '',
        amount REAL NOT NULL DEFAULT 0,
        period TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        synced INTEGER NOT NULL DEFAULT 0,
        deleted INTEGER NOT NULL DEFAULT 0
    )""",

    # Special orders
    """CREATE TABLE IF NOT EXISTS special_orders (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        customer_name TEXT NOT NULL DEFAULT '',
        item_description TEXT NOT NULL DEFAULT '',
        status TEXT,
        delivery_date TEXT,
        notes TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        synced INTEGER NOT NULL DEFAULT 0,
        deleted INTEGER NOT NULL DEFAULT 0
    )""",

    # Outbound change queue (id order is replay order)
    """CREATE TABLE IF NOT EXISTS sync_queue (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        table_name TEXT NOT NULL,
        record_id TEXT NOT NULL,
        operation TEXT NOT NULL
            CHECK (operation IN ('create', 'update', 'delete')),
        data TEXT NOT NULL DEFAULT '{}',
        created_at TEXT NOT NULL,
        retry_count INTEGER NOT NULL DEFAULT 0
    )""",

    "CREATE INDEX IF NOT EXISTS idx_inventory_user ON inventory(user_id, deleted)",
    "CREATE INDEX IF NOT EXISTS idx_expenses_user ON expenses(user_id, deleted)",
    "CREATE INDEX IF NOT EXISTS idx_expenses_category ON expenses(category)",
    "CREATE INDEX IF NOT EXISTS idx_expenses_date ON expenses(date)",
    "CREATE INDEX IF NOT EXISTS idx_suppliers_user ON suppliers(user_id, deleted)",
    "CREATE INDEX IF NOT EXISTS idx_budgets_user ON budgets(user_id, deleted)",
    "CREATE INDEX IF NOT EXISTS idx_special_orders_user "
    "ON special_orders(user_id, deleted)",
    "CREATE INDEX IF NOT EXISTS idx_sync_queue_record ON sync_queue(record_id)",
]

# ── v2: clients, invoices, receipts ────────────────────────────
_MIGRATION_V2_STATEMENTS = [
    """CREATE TABLE IF NOT EXISTS clients (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        name TEXT NOT NULL DEFAULT '',
        company TEXT,
        phone TEXT,
        email TEXT,
        address TEXT,
        notes TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        synced INTEGER NOT NULL DEFAULT 0,
        deleted INTEGER NOT NULL DEFAULT 0
    )""",

    # items holds the line items as a JSON array
    """CREATE TABLE IF NOT EXISTS invoices (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        invoice_number TEXT NOT NULL DEFAULT '',
        client_id TEXT,
        client_name TEXT NOT NULL DEFAULT '',
        client_email TEXT,
        client_phone TEXT,
        client_address TEXT,
        items TEXT NOT NULL DEFAULT '[]',
        subtotal REAL NOT NULL DEFAULT 0,
        tax_rate REAL,
        tax_amount REAL,
        discount REAL,
        total REAL NOT NULL DEFAULT 0,
        notes TEXT,
        due_date TEXT,
        status TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        synced INTEGER NOT NULL DEFAULT 0,
        deleted INTEGER NOT NULL DEFAULT 0
    )""",

    """CREATE TABLE IF NOT EXISTS receipts (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        receipt_number TEXT NOT NULL DEFAULT '',
        invoice_id TEXT,
        client_name TEXT NOT NULL DEFAULT '',
        items TEXT NOT NULL DEFAULT '[]',
        subtotal REAL NOT NULL DEFAULT 0,
        tax_amount REAL,
        total REAL NOT NULL DEFAULT 0,
        payment_method TEXT,
        notes TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        synced INTEGER NOT NULL DEFAULT 0,
        deleted INTEGER NOT NULL DEFAULT 0
    )""",

    "CREATE INDEX IF NOT EXISTS idx_clients_user ON clients(user_id, deleted)",
    "CREATE INDEX IF NOT EXISTS idx_invoices_user ON invoices(user_id, deleted)",
    "CREATE INDEX IF NOT EXISTS idx_invoices_client ON invoices(client_id)",
    "CREATE INDEX IF NOT EXISTS idx_invoices_status ON invoices(status)",
    "CREATE INDEX IF NOT EXISTS idx_receipts_user ON receipts(user_id, deleted)",
    "CREATE INDEX IF NOT EXISTS idx_receipts_invoice ON receipts(invoice_id)",
]

_SCHEMA_VERSION_TABLE = (
    "CREATE TABLE IF NOT EXISTS schema_version (version INTEGER PRIMARY KEY)"
)


def _get_schema_version(conn) -> int:
    """Get the current schema version, or 0 if no schema exists."""
    try:
        row = conn.execute(
            "SELECT MAX(version) as v FROM schema_version"
        ).fetchone()
        return row["v"] if row and row["v"] else 0
    except sqlite3.OperationalError:
        return 0


def _set_schema_version(conn, version: int):
    conn.execute(
        "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
        (version,),
    )


def _migrate_v1_to_v2(conn):
    """Upgrade schema from v1 to v2."""
    for stmt in _MIGRATION_V2_STATEMENTS:
        conn.execute(stmt)
    _set_schema_version(conn, 2)


def create_v1_schema(conn):
    """Create the original five-collection layout (used by upgrade tests)."""
    conn.execute(_SCHEMA_VERSION_TABLE)
    for stmt in _V1_TABLES:
        conn.execute(stmt)
    _set_schema_version(conn, 1)


def initialize_database(db_connection):
    """Create all tables and indexes.

    On a fresh database, creates the full schema directly.
    On an existing database, applies migrations incrementally.
    """
    with db_connection.get_connection() as conn:
        version = _get_schema_version(conn)

        if version == 0:
            conn.execute(_SCHEMA_VERSION_TABLE)
            for stmt in _V1_TABLES + _MIGRATION_V2_STATEMENTS:
                conn.execute(stmt)
            _set_schema_version(conn, SCHEMA_VERSION)
            logger.info("Created local database schema v%d at %s",
                        SCHEMA_VERSION, db_connection.db_path)
        elif version < SCHEMA_VERSION:
            if version < 2:
                _migrate_v1_to_v2(conn)
            logger.info("Migrated local database from v%d to v%d",
                        version, SCHEMA_VERSION)
