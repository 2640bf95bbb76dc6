"""
Migration 004: Add jobs table.

One row per detected document group of an upload.
"""

import sqlite3

VERSION = 4
NAME = "jobs"


def upgrade(conn: sqlite3.Connection) -> None:
    """Create jobs table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS jobs (
            id TEXT PRIMARY KEY,
            company_id TEXT NOT NULL,
            original_file_ref TEXT NOT NULL,
            document_index INTEGER NOT NULL,
            status TEXT NOT NULL,
            job_json TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_jobs_original ON jobs(company_id, original_file_ref)"
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status)")


def downgrade(conn: sqlite3.Connection) -> None:
    """Remove jobs table."""
    conn.execute("DROP TABLE IF EXISTS jobs")
