#!/usr/bin/env python3
"""
Bayanihan Map - Database Handshake
Connects to the configured database and prints a summary of stored reports.
"""
import os
import sys
from collections import Counter

# Add src to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from src.core.logging import setup_logging
from src.database.connection import DatabaseConnection
from src.ingest.record_store import SqlReportStore


def main():
    setup_logging(level="WARNING")

    print("=" * 60)
    print("Bayanihan Map - Connecting to the report database...")
    print("=" * 60)

    db = DatabaseConnection()

    if not db.check_connection():
        print("ERROR: Connection failed. Check DATABASE_URL in your .env file.")
        sys.exit(1)

    db.create_tables()
    store = SqlReportStore(db)
    reports = store.list_reports()

    print("\nHandshake success! Database is online.")
    print(f"Current reports in database: {len(reports)}")

    if reports:
        by_category = Counter(r.category for r in reports)
        by_mode = Counter(r.location_label for r in reports)

        print("\nBy category:")
        for category, count in sorted(by_category.items()):
            print(f"  - {category:<8} {count}")

        print("\nBy location source:")
        for label, count in sorted(by_mode.items()):
            print(f"  - {label:<10} {count}")

        latest = reports[0]
        print(f"\nLatest: {latest.category} - {latest.description[:50]}")

    db.close()
    print("=" * 60)


if __name__ == "__main__":
    main()
