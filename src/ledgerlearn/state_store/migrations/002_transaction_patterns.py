"""
Migration 002: Add transaction_patterns table.

Patterns are keyed by pattern_id (a hash of supplier + description) per company.
"""

import sqlite3

VERSION = 2
NAME = "transaction_patterns"


def upgrade(conn: sqlite3.Connection) -> None:
    """Create transaction_patterns table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS transaction_patterns (
            company_id TEXT NOT NULL,
            pattern_id TEXT NOT NULL,
            pattern_type TEXT NOT NULL DEFAULT 'combined',
            pattern TEXT NOT NULL,
            account TEXT NOT NULL,
            account_name TEXT NOT NULL,
            usage_count INTEGER NOT NULL DEFAULT 1,
            success_rate REAL NOT NULL DEFAULT 1.0,
            last_used TEXT NOT NULL,
            created_at TEXT NOT NULL,
            version INTEGER NOT NULL DEFAULT 1,
            PRIMARY KEY (company_id, pattern_id)
        )
    """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_transaction_patterns_rate "
        "ON transaction_patterns(company_id, success_rate)"
    )


def downgrade(conn: sqlite3.Connection) -> None:
    """Remove transaction_patterns table."""
    conn.execute("DROP TABLE IF EXISTS transaction_patterns")
