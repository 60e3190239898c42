#!/usr/bin/env python3
"""
Database initialization script for the PCF backend
Creates the domains, login_events, device_fingerprints and classification_records tables
"""
import os
import sys
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from pcf.database import make_engine, create_tables, drop_tables  # noqa: E402


def main() -> int:
    url = os.getenv("DATABASE_URL")
    if not url:
        print("❌ DATABASE_URL is not set; nothing to initialize (the service will use in-memory tables)")
        return 1

    engine = make_engine(url)
    if "--reset" in sys.argv:
        print("🗑️  Dropping existing PCF tables...")
        drop_tables(engine)

    print("🔨 Creating PCF tables...")
    create_tables(engine)
    print("✅ Tables ready: domains, login_events, device_fingerprints, classification_records")
    engine.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
