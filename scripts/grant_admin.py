#!/usr/bin/env python3
"""CLI tool to bootstrap an admin user.

Promotion over HTTP needs an existing admin, so the first one is created
here, directly in storage.
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
from doctors_portal.database import Storage
from doctors_portal.users import UserDirectory

load_dotenv()


def main():
    """Grant the admin role to an email (creating the user if needed)."""
    if len(sys.argv) < 2:
        print("Usage: python scripts/grant_admin.py <email> [name]")
        print("\nExample:")
        print("  python scripts/grant_admin.py admin@clinic.example 'Front Desk'")
        sys.exit(1)

    email = sys.argv[1]
    name = sys.argv[2] if len(sys.argv) > 2 else None

    db_url = os.getenv("DATABASE_URL", "sqlite:///doctors_portal.db")
    storage = Storage(db_url)
    storage.init_database()

    user = UserDirectory(storage).grant_admin(email, name)

    print(f"\nAdmin role granted: {user.email} (id {user.id})\n")
    storage.dispose()


if __name__ == "__main__":
    main()
