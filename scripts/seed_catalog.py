#!/usr/bin/env python3
"""CLI tool to create tables and seed the default treatment catalog."""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
from doctors_portal.catalog import OptionCatalog
from doctors_portal.config import DEFAULT_CATALOG
from doctors_portal.database import Storage

load_dotenv()


def main():
    """Seed the catalog in DATABASE_URL (existing names are left alone)."""
    db_url = os.getenv("DATABASE_URL", "sqlite:///doctors_portal.db")
    storage = Storage(db_url)
    storage.init_database()

    added = OptionCatalog(storage).seed(DEFAULT_CATALOG)

    print(f"\nCatalog seeded in {db_url}")
    print(f"  Options added: {added}")
    print(f"  Options already present: {len(DEFAULT_CATALOG) - added}\n")
    storage.dispose()


if __name__ == "__main__":
    main()
