"""Database backup script — creates a timestamped SQLite backup."""

import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional

from pocket_stock.config import Config

KEEP_BACKUPS = 10


def backup_database(db_path: Optional[Path] = None,
                    backup_dir: Optional[Path] = None) -> Optional[Path]:
    """Copy the local database into the backup directory.

    Keeps the newest ``KEEP_BACKUPS`` copies. Returns the new backup's path,
    or None when there is no database yet.
    """
    db_path = Path(db_path or Config.DATABASE_PATH)
    backup_dir = Path(backup_dir or Config.BACKUP_PATH)
    backup_dir.mkdir(parents=True, exist_ok=True)

    if not db_path.exists():
        print(f"Database not found at {db_path}")
        return None

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    backup_file = backup_dir / f"pocket_stock_{timestamp}.db"
    shutil.copy2(db_path, backup_file)
    print(f"Backup created: {backup_file}")

    backups = sorted(backup_dir.glob("pocket_stock_*.db"), reverse=True)
    for old in backups[KEEP_BACKUPS:]:
        old.unlink()
        print(f"Removed old backup: {old.name}")
    return backup_file


if __name__ == "__main__":
    backup_database()
