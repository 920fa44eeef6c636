"""Wipe every local record and queued change (unsynced work is lost)."""

import argparse

from pocket_stock.config import Config
from pocket_stock.database.connection import DatabaseConnection
from pocket_stock.database.schema import initialize_database
from pocket_stock.database.store import RecordStore
from pocket_stock.migrate import clear_all_data


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--yes", action="store_true",
                        help="Skip the confirmation prompt")
    args = parser.parse_args(argv)

    db = DatabaseConnection(Config.DATABASE_PATH)
    initialize_database(db)
    store = RecordStore(db)

    pending = store.queue_count()
    if not args.yes:
        answer = input(
            f"Delete all local data in {Config.DATABASE_PATH} "
            f"({pending} unsynced changes)? [y/N] "
        )
        if answer.strip().lower() != "y":
            print("Aborted")
            return

    clear_all_data(store)
    print("All local data cleared")


if __name__ == "__main__":
    main()
