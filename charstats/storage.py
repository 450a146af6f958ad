"""SQLite-backed key-value persistence for CharStats.

The core only needs two named records (preferences and the stats cache) plus
optional character-card backups, so the schema is a single ``kv`` table.
Anything with ``get``/``set`` works as a backend; see ``KeyValueStore``.
"""

import sqlite3
import time
from pathlib import Path
from typing import Optional, Protocol

PREFS_RECORD = "char_stats_prefs"
STATS_RECORD = "char_stats_data"
CARD_RECORD_PREFIX = "char_card_stats_"


class KeyValueStore(Protocol):
    """Minimal persistence collaborator used by the store and preferences."""

    def get(self, name: str) -> Optional[str]:
        ...

    def set(self, name: str, value: str) -> None:
        ...


class SQLiteKeyValueStore:
    """Persistent key-value records backed by SQLite.

    Values are opaque strings (JSON in practice). ``":memory:"`` gives a
    throwaway database, which is what the tests use.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self) -> None:
        """Create the table if it doesn't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS kv (
                name TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at INTEGER NOT NULL
            );
        """)
        self._conn.commit()

    def get(self, name: str) -> Optional[str]:
        """Return the stored value for *name*, or None if never written."""
        row = self._conn.execute(
            "SELECT value FROM kv WHERE name = ?", (name,)
        ).fetchone()
        return row["value"] if row else None

    def set(self, name: str, value: str) -> None:
        """Insert or replace the value for *name*."""
        self._conn.execute(
            """INSERT INTO kv (name, value, updated_at) VALUES (?, ?, ?)
               ON CONFLICT(name) DO UPDATE SET
                   value = excluded.value,
                   updated_at = excluded.updated_at""",
            (name, value, int(time.time())),
        )
        self._conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
