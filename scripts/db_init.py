#!/usr/bin/env python3
"""
Create the guestbook tables for the BIP47 Terminal.

SQLite databases are created on first start; run this once against
PostgreSQL (or any non-SQLite DATABASE_URL) before starting the server.
"""
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from bip47_terminal.config import get_config  # noqa: E402
from bip47_terminal.database import Database  # noqa: E402


def main():
    """Create all tables and report database health."""
    print("=" * 60)
    print("BIP47 Terminal Database Initialization")
    print("=" * 60)

    db_url = get_config().get("DATABASE_URL")
    if not db_url:
        print("\n❌ DATABASE_URL is not set")
        return 1

    print(f"\n📊 Database URL: {db_url.split('@')[1] if '@' in db_url else db_url}")

    try:
        database = Database(db_url, create_tables=False)

        print("\n🔨 Creating guestbook tables...")
        database.create_all()
        print("✅ All tables created successfully")

        health = database.check_health()
        database.close()
    except Exception as e:
        print(f"\n❌ Error initializing database: {e}")
        import traceback

        traceback.print_exc()
        return 1

    print(f"\n🏥 Database: {health['status']}")
    if health["status"] != "healthy":
        print("\n⚠️  Database is not healthy. Check configuration.")
        return 1

    print("\n✅ Database initialization complete!")
    print("  Start the server: python wsgi.py")
    return 0


if __name__ == "__main__":
    sys.exit(main())
