"""Application configuration — loads .env, then overrides from settings.json."""

import json
import os
from pathlib import Path

from dotenv import load_dotenv

# Find the project root (where .env lives)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# Runtime settings file for in-app configuration and sync markers
_SETTINGS_FILE = _PROJECT_ROOT / "data" / "settings.json"


def _load_settings() -> dict:
    """Load saved runtime settings from JSON file."""
    if _SETTINGS_FILE.exists():
        try:
            return json.loads(_SETTINGS_FILE.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            pass
    return {}


def _save_settings(settings: dict):
    """Persist runtime settings to JSON file."""
    _SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    _SETTINGS_FILE.write_text(
        json.dumps(settings, indent=2), encoding="utf-8"
    )


# Load saved settings once at import time
_runtime = _load_settings()


class Config:
    """Central configuration: .env defaults, settings.json overrides."""

    # Paths
    PROJECT_ROOT: Path = _PROJECT_ROOT
    DATABASE_PATH: Path = Path(
        os.getenv("DATABASE_PATH", str(_PROJECT_ROOT / "data" / "pocket_stock.db"))
    )
    BACKUP_PATH: Path = Path(
        os.getenv("DATABASE_BACKUP_PATH", str(_PROJECT_ROOT / "data" / "backups"))
    )
    LEGACY_DATA_PATH: Path = Path(
        os.getenv("LEGACY_DATA_PATH", str(_PROJECT_ROOT / "data" / "legacy_data.json"))
    )

    # Remote backend (Supabase REST)
    SUPABASE_URL: str = _runtime.get(
        "supabase_url",
        os.getenv("SUPABASE_URL", ""),
    )
    SUPABASE_ANON_KEY: str = _runtime.get(
        "supabase_anon_key",
        os.getenv("SUPABASE_ANON_KEY", ""),
    )
    REQUEST_TIMEOUT: float = float(_runtime.get(
        "request_timeout",
        os.getenv("REQUEST_TIMEOUT", "15"),
    ))

    # Sync (settings.json overrides .env)
    SYNC_INTERVAL_MINUTES: int = int(_runtime.get(
        "sync_interval_minutes",
        os.getenv("SYNC_INTERVAL_MINUTES", "5"),
    ))
    SYNC_MAX_RETRIES: int = int(_runtime.get(
        "sync_max_retries",
        os.getenv("SYNC_MAX_RETRIES", "5"),
    ))
    CONNECTIVITY_PROBE_SECONDS: int = int(_runtime.get(
        "connectivity_probe_seconds",
        os.getenv("CONNECTIVITY_PROBE_SECONDS", "30"),
    ))

    # Persisted sync / migration markers
    LAST_SYNC_TIME: str = _runtime.get("last_sync_time", "")
    MIGRATION_COMPLETE: bool = bool(_runtime.get("migration_complete", False))

    # Documents
    INVOICE_NUMBER_PREFIX: str = _runtime.get(
        "invoice_number_prefix",
        os.getenv("INVOICE_NUMBER_PREFIX", "INV"),
    )
    RECEIPT_NUMBER_PREFIX: str = _runtime.get(
        "receipt_number_prefix",
        os.getenv("RECEIPT_NUMBER_PREFIX", "RCT"),
    )

    # Inventory
    LOW_STOCK_DEFAULT: int = int(_runtime.get(
        "low_stock_default",
        os.getenv("LOW_STOCK_DEFAULT", "0"),
    ))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: str = os.getenv("LOG_FILE", "")

    @classmethod
    def update_backend_settings(cls, url: str, anon_key: str,
                                timeout: float):
        """Update remote backend settings at runtime and persist to disk."""
        cls.SUPABASE_URL = url
        cls.SUPABASE_ANON_KEY = anon_key
        cls.REQUEST_TIMEOUT = timeout

        settings = _load_settings()
        settings["supabase_url"] = url
        settings["supabase_anon_key"] = anon_key
        settings["request_timeout"] = timeout
        _save_settings(settings)

    @classmethod
    def update_sync_settings(cls, interval_minutes: int, max_retries: int):
        """Update the periodic sync interval and retry ceiling, and persist."""
        cls.SYNC_INTERVAL_MINUTES = interval_minutes
        cls.SYNC_MAX_RETRIES = max_retries

        settings = _load_settings()
        settings["sync_interval_minutes"] = interval_minutes
        settings["sync_max_retries"] = max_retries
        _save_settings(settings)

    @classmethod
    def update_document_prefixes(cls, invoice: str, receipt: str):
        """Update invoice/receipt number prefixes and persist."""
        cls.INVOICE_NUMBER_PREFIX = invoice
        cls.RECEIPT_NUMBER_PREFIX = receipt

        settings = _load_settings()
        settings["invoice_number_prefix"] = invoice
        settings["receipt_number_prefix"] = receipt
        _save_settings(settings)

    @classmethod
    def update_last_sync(cls, timestamp: str):
        """Record the completion time of the last successful sync pass."""
        cls.LAST_SYNC_TIME = timestamp
        settings = _load_settings()
        settings["last_sync_time"] = timestamp
        _save_settings(settings)

    @classmethod
    def get_last_sync(cls) -> str | None:
        """Return the last sync timestamp as stored on disk, or None."""
        return _load_settings().get("last_sync_time") or None

    @classmethod
    def is_migration_complete(cls) -> bool:
        return bool(_load_settings().get("migration_complete", False))

    @classmethod
    def mark_migration_complete(cls):
        """Persist the one-time legacy migration marker."""
        cls.MIGRATION_COMPLETE = True
        settings = _load_settings()
        settings["migration_complete"] = True
        _save_settings(settings)

    @classmethod
    def reset_migration_flag(cls):
        cls.MIGRATION_COMPLETE = False
        settings = _load_settings()
        settings.pop("migration_complete", None)
        _save_settings(settings)
