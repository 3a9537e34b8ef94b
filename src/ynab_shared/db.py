"""SQLite database operations for ynab-shared."""

import sqlite3
from datetime import datetime
from pathlib import Path

from .models import CategoryBinding, RateLimitRecord


class Database:
    """SQLite database manager."""

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        # Config table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS config (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        # Category bindings table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS category_bindings (
                owner TEXT PRIMARY KEY,
                shared_category_group_id TEXT,
                shared_category_id TEXT NOT NULL,
                balancing_category_id TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    # ========================================================================
    # Config operations
    # ========================================================================

    def get_config(self, key: str) -> str | None:
        """Get a config value by key."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM config WHERE key = ?", (key,))
        row = cursor.fetchone()
        return str(row["value"]) if row else None

    def set_config(self, key: str, value: str):
        """Set a config value."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO config (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, value, datetime.now().isoformat()),
        )
        self.conn.commit()

    def get_rate_limit(self) -> RateLimitRecord | None:
        """Get the persisted hourly call counter."""
        value = self.get_config("rate_limit")
        return RateLimitRecord.model_validate_json(value) if value else None

    def save_rate_limit(self, record: RateLimitRecord):
        """Persist the hourly call counter."""
        self.set_config("rate_limit", record.model_dump_json())

    # ========================================================================
    # Category binding operations
    # ========================================================================

    def get_category_binding(self, owner: str) -> CategoryBinding | None:
        """Get the category binding of an owner."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT shared_category_group_id, shared_category_id,
                   balancing_category_id
            FROM category_bindings
            WHERE owner = ?
            """,
            (owner,),
        )
        row = cursor.fetchone()
        if not row:
            return None

        return CategoryBinding(
            shared_category_group_id=row["shared_category_group_id"],
            shared_category_id=row["shared_category_id"],
            balancing_category_id=row["balancing_category_id"],
        )

    def save_category_binding(self, owner: str, binding: CategoryBinding):
        """Save the category binding of an owner."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO category_bindings (
                owner, shared_category_group_id, shared_category_id,
                balancing_category_id, updated_at
            ) VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(owner) DO UPDATE SET
                shared_category_group_id = excluded.shared_category_group_id,
                shared_category_id = excluded.shared_category_id,
                balancing_category_id = excluded.balancing_category_id,
                updated_at = excluded.updated_at
            """,
            (
                owner,
                binding.shared_category_group_id,
                binding.shared_category_id,
                binding.balancing_category_id,
                datetime.now().isoformat(),
            ),
        )
        self.conn.commit()
