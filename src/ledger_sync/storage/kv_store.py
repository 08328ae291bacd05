"""
Key/value persistence

Rules and bank connections are stored as JSON documents under a handful of
keys. Two backends:
- JsonFileStore: one JSON file, rewritten atomically on every put/delete
- PostgresStore: a single JSONB table (see db/schema.sql)

Both raise PersistenceError when a write does not go through.
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict

import psycopg2
from psycopg2.extras import Json

from ledger_sync.core.errors import PersistenceError
from ledger_sync.utils.db_connection import get_db_connection


SCHEMA_FILE = Path(__file__).parent.parent / "db" / "schema.sql"


class JsonFileStore:
    """
    Key/value store backed by a single JSON file
    """

    def __init__(self, path):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Could not read {self.path}: {e}") from e

    def _write(self, data: Dict[str, Any]):
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=f".{self.path.name}.", suffix='.tmp')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Could not write {self.path}: {e}") from e

    def get(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def put(self, key: str, value: Any):
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str):
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class PostgresStore:
    """
    Key/value store backed by the ledger_sync_store table
    """

    def __init__(self, conn=None):
        """
        Args:
            conn: psycopg2 connection (default: from DB_* environment variables)
        """
        self.conn = conn or get_db_connection()

    def initialize_schema(self):
        """Create the table if it does not exist"""
        with open(SCHEMA_FILE, 'r') as f:
            sql = f.read()

        cursor = self.conn.cursor()
        try:
            cursor.execute(sql)
            self.conn.commit()
        except psycopg2.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Could not create schema: {e}") from e
        finally:
            cursor.close()

    def get(self, key: str, default: Any = None) -> Any:
        cursor = self.conn.cursor()
        try:
            cursor.execute("SELECT value FROM ledger_sync_store WHERE key = %s", (key,))
            row = cursor.fetchone()
            self.conn.commit()
        except psycopg2.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Could not read '{key}': {e}") from e
        finally:
            cursor.close()

        return row[0] if row else default

    def put(self, key: str, value: Any):
        cursor = self.conn.cursor()
        try:
            cursor.execute("""
                INSERT INTO ledger_sync_store (key, value, updated_at)
                VALUES (%s, %s, NOW())
                ON CONFLICT (key) DO UPDATE
                SET value = EXCLUDED.value,
                    updated_at = NOW()
            """, (key, Json(value)))
            self.conn.commit()
        except psycopg2.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Could not save '{key}': {e}") from e
        finally:
            cursor.close()

    def delete(self, key: str):
        cursor = self.conn.cursor()
        try:
            cursor.execute("DELETE FROM ledger_sync_store WHERE key = %s", (key,))
            self.conn.commit()
        except psycopg2.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Could not delete '{key}': {e}") from e
        finally:
            cursor.close()

    def close(self):
        self.conn.close()


def create_store(settings):
    """Build the store selected by settings.storage_backend"""
    if settings.storage_backend == 'postgres':
        return PostgresStore()
    if settings.storage_backend == 'file':
        return JsonFileStore(settings.storage_path)
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
