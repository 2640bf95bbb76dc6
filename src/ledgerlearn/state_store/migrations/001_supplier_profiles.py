"""
Migration 001: Add supplier_profiles and supplier_aliases tables.

One profile per (company_id, normalized_name). The profile body is JSON;
the version column drives optimistic writes. Aliases redirect an alternative
normalized name to the primary profile.
"""

import sqlite3

VERSION = 1
NAME = "supplier_profiles"


def upgrade(conn: sqlite3.Connection) -> None:
    """Create supplier_profiles and supplier_aliases tables."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS supplier_profiles (
            company_id TEXT NOT NULL,
            normalized_name TEXT NOT NULL,
            supplier_name TEXT NOT NULL,
            category TEXT NOT NULL,
            profile_json TEXT NOT NULL,
            total_transactions INTEGER NOT NULL DEFAULT 0,
            last_transaction_at TEXT,
            version INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            PRIMARY KEY (company_id, normalized_name)
        )
    """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS supplier_aliases (
            company_id TEXT NOT NULL,
            alias TEXT NOT NULL,
            normalized_name TEXT NOT NULL,
            created_at TEXT NOT NULL,
            PRIMARY KEY (company_id, alias)
        )
    """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_supplier_profiles_category "
        "ON supplier_profiles(company_id, category)"
    )


def downgrade(conn: sqlite3.Connection) -> None:
    """Remove supplier tables."""
    conn.execute("DROP TABLE IF EXISTS supplier_aliases")
    conn.execute("DROP TABLE IF EXISTS supplier_profiles")
