"""SQLite-backed key-value store with per-key change notification."""

import json
import logging
import sqlite3
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

Subscriber = Callable[[str], None]

# Well-known keys
EXPENSES_KEY = "expenses"
SPLIT_EVENTS_KEY = "splitEvents"
GOALS_KEY = "financialGoals"
INCOMES_KEY = "incomes"
INVESTMENTS_KEY = "investments"
TODO_TASKS_KEY = "todoTasks"
DAILY_BUDGET_KEY = "dailyBudget"
USER_DEBTS_KEY = "userDebts"


class KeyValueStore:
    """Persistent mapping from string key to JSON value.

    Every write or delete bumps a per-key revision. Revisions live in their
    own table and outlive deleted values, so they only ever grow. Subscribers
    of a key are notified after writes made through this instance, and by
    ``poll_changes`` for writes made by other processes sharing the same
    database file.
    """

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)
        self._init_schema()
        self._seen_revisions = self._read_revisions()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_revisions (
                key TEXT PRIMARY KEY,
                revision INTEGER NOT NULL
            )
        """
        )
        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    # ========================================================================
    # Value operations
    # ========================================================================

    def _get_raw(self, key: str) -> str | None:
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
        row = cursor.fetchone()
        return str(row["value"]) if row else None

    def get(self, key: str, default: Any = None) -> Any:
        """Get the JSON value stored under key, or default if missing."""
        raw = self._get_raw(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Error reading store key '{key}': {e}")
            return default

    def set(self, key: str, value: Any) -> bool:
        """
        Store a JSON-serializable value under key.

        Writes that would not change the serialized value are skipped and do
        not notify subscribers.

        Returns:
            True if the stored value changed
        """
        new_value = json.dumps(value)
        if self._get_raw(key) == new_value:
            logger.debug(f"Skipping unchanged write to '{key}'")
            return False

        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO kv_store (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, new_value, datetime.now().isoformat()),
        )
        self._bump_revision(cursor, key)
        self.conn.commit()

        self._seen_revisions[key] = self._read_revision(key)
        self._notify(key)
        return True

    def delete(self, key: str) -> bool:
        """Remove a key. Returns True if it existed."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        if cursor.rowcount == 0:
            self.conn.commit()
            return False
        self._bump_revision(cursor, key)
        self.conn.commit()

        self._seen_revisions[key] = self._read_revision(key)
        self._notify(key)
        return True

    def keys(self) -> list[str]:
        """Get all stored keys."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT key FROM kv_store ORDER BY key")
        return [row["key"] for row in cursor.fetchall()]

    # ========================================================================
    # Change notification
    # ========================================================================

    def subscribe(self, key: str, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for changes to key.

        Args:
            key: The store key to observe
            callback: Called with the key after each change

        Returns:
            A function that removes the subscription
        """
        self._subscribers[key].append(callback)

        def unsubscribe():
            if callback in self._subscribers[key]:
                self._subscribers[key].remove(callback)

        return unsubscribe

    def poll_changes(self) -> list[str]:
        """
        Detect keys changed by other connections and notify their subscribers.

        Returns:
            Keys whose revision differs from the last one seen here
        """
        current = self._read_revisions()
        changed = [
            key
            for key in set(current) | set(self._seen_revisions)
            if current.get(key) != self._seen_revisions.get(key)
        ]
        self._seen_revisions = current

        for key in sorted(changed):
            logger.info(f"External change detected for '{key}'")
            self._notify(key)

        return sorted(changed)

    def _notify(self, key: str):
        for callback in list(self._subscribers.get(key, [])):
            callback(key)

    def _bump_revision(self, cursor: sqlite3.Cursor, key: str):
        cursor.execute(
            """
            INSERT INTO kv_revisions (key, revision) VALUES (?, 1)
            ON CONFLICT(key) DO UPDATE SET revision = kv_revisions.revision + 1
            """,
            (key,),
        )

    def _read_revision(self, key: str) -> int | None:
        cursor = self.conn.cursor()
        cursor.execute("SELECT revision FROM kv_revisions WHERE key = ?", (key,))
        row = cursor.fetchone()
        return int(row["revision"]) if row else None

    def _read_revisions(self) -> dict[str, int]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT key, revision FROM kv_revisions")
        return {row["key"]: int(row["revision"]) for row in cursor.fetchall()}
