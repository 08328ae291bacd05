#!/usr/bin/env python3
"""
Database initialization script

Creates the key/value table used by the postgres storage backend.
"""
import sys

import psycopg2

from ledger_sync.core.errors import PersistenceError
from ledger_sync.storage.kv_store import SCHEMA_FILE, PostgresStore
from ledger_sync.utils.db_connection import db_params_from_env, describe_target


def main():
    print("=" * 80)
    print("🗄️  LEDGER SYNC DATABASE SETUP")
    print("=" * 80)

    print(f"\n🔌 Connecting to {describe_target(db_params_from_env())}...")
    try:
        store = PostgresStore()
        print("   ✅ Connected")
    except psycopg2.Error as e:
        print(f"   ❌ Connection failed: {e}")
        sys.exit(1)

    print("\n📄 Creating schema")
    print(f"   File: {SCHEMA_FILE}")
    try:
        store.initialize_schema()
        print("   ✅ Success")
    except PersistenceError as e:
        print(f"   ❌ Error: {e}")
        sys.exit(1)
    finally:
        store.close()

    print("\n✅ Database ready. Set STORAGE_BACKEND=postgres to use it.")


if __name__ == '__main__':
    main()
