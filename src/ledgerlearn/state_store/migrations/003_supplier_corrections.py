"""
Migration 003: Add supplier_corrections audit table.

correction_id is unique so a replayed correction is recorded once.
"""

import sqlite3

VERSION = 3
NAME = "supplier_corrections"


def upgrade(conn: sqlite3.Connection) -> None:
    """Create supplier_corrections table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS supplier_corrections (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            company_id TEXT NOT NULL,
            normalized_name TEXT NOT NULL,
            original_account TEXT,
            corrected_account TEXT NOT NULL,
            corrected_account_name TEXT NOT NULL,
            timestamp TEXT NOT NULL,
            correction_id TEXT UNIQUE
        )
    """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_supplier_corrections_supplier "
        "ON supplier_corrections(company_id, normalized_name)"
    )


def downgrade(conn: sqlite3.Connection) -> None:
    """Remove supplier_corrections table."""
    conn.execute("DROP TABLE IF EXISTS supplier_corrections")
