"""
SQLite-based state store implementation.

Tables (created by migrations):
- supplier_profiles / supplier_aliases: learned supplier profiles
- transaction_patterns: learned description patterns
- supplier_corrections: correction audit trail
- jobs: assembled document jobs
- llm_cache: cached account inference responses

Profile and pattern rows carry a version column. Writers read a row, compute
the new state and write it back with `WHERE version = ?`; a write that
matches no row lost a race and the caller re-reads and retries.
"""

import json
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from ..schemas.documents import Job, JobStatus
from ..schemas.learning import CorrectionRecord, TransactionPattern


class ConcurrentUpdateError(Exception):
    """Raised when an optimistic write keeps losing races after all retries."""

    def __init__(self, table: str, key: str, attempts: int):
        self.table = table
        self.key = key
        self.attempts = attempts
        super().__init__(f"Concurrent update on {table} '{key}' failed after {attempts} attempts")


def utc_now() -> str:
    """Current UTC time as an ISO timestamp with a Z suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _pattern_from_row(row: sqlite3.Row) -> TransactionPattern:
    return TransactionPattern(
        pattern_id=row["pattern_id"],
        company_id=row["company_id"],
        pattern_type=row["pattern_type"],
        pattern=row["pattern"],
        account=row["account"],
        account_name=row["account_name"],
        usage_count=row["usage_count"],
        success_rate=row["success_rate"],
        last_used=row["last_used"],
        created_at=row["created_at"],
        version=row["version"],
    )


def _correction_from_row(row: sqlite3.Row) -> CorrectionRecord:
    return CorrectionRecord(
        id=row["id"],
        company_id=row["company_id"],
        normalized_name=row["normalized_name"],
        original_account=row["original_account"],
        corrected_account=row["corrected_account"],
        corrected_account_name=row["corrected_account_name"],
        timestamp=row["timestamp"],
        correction_id=row["correction_id"],
    )


class StateStore:
    """
    SQLite-based state store for ledgerlearn.

    Every public method opens its own short transaction, so one StateStore
    may be shared between threads.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | str, run_migrations: bool = True):
        """
        Initialize state store.

        Args:
            db_path: Path to SQLite database file
            run_migrations: Whether to run pending migrations (default True)
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        if run_migrations:
            self._run_migrations()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize schema version tracking; tables come from migrations."""
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """
            )
            conn.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)", (self.SCHEMA_VERSION,)
            )

    def _run_migrations(self) -> None:
        """Run pending database migrations."""
        from .migrations import MigrationRunner

        conn = self._get_connection()
        try:
            MigrationRunner(conn).run_pending()
        finally:
            conn.close()

    # === Supplier Profile Methods ===

    def get_supplier_profile_row(
        self, company_id: str, normalized_name: str
    ) -> tuple[dict[str, Any], int] | None:
        """Get a profile body and its version by primary key."""
        with self._transaction() as conn:
            row = conn.execute(
                """
                SELECT profile_json, version FROM supplier_profiles
                WHERE company_id = ? AND normalized_name = ?
            """,
                (company_id, normalized_name),
            ).fetchone()
            return (json.loads(row["profile_json"]), row["version"]) if row else None

    def resolve_supplier_alias(self, company_id: str, alias: str) -> str | None:
        """Return the primary normalized name an alias points to."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT normalized_name FROM supplier_aliases WHERE company_id = ? AND alias = ?",
                (company_id, alias),
            ).fetchone()
            return row["normalized_name"] if row else None

    def insert_supplier_profile(self, company_id: str, normalized_name: str, profile: dict) -> bool:
        """
        Insert a new profile at version 1.

        Returns False if a profile with this key already exists.
        """
        now = utc_now()
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO supplier_profiles
                (company_id, normalized_name, supplier_name, category, profile_json,
                 total_transactions, last_transaction_at, version, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?, ?)
            """,
                (
                    company_id,
                    normalized_name,
                    profile["supplier_name"],
                    profile["category"],
                    json.dumps(profile),
                    profile["learning_stats"]["total_transactions"],
                    profile.get("last_transaction_at"),
                    now,
                    now,
                ),
            )
            return cursor.rowcount == 1

    def update_supplier_profile(
        self, company_id: str, normalized_name: str, profile: dict, expected_version: int
    ) -> bool:
        """
        Write a profile if its version is still expected_version.

        Returns False when another writer got there first.
        """
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE supplier_profiles
                SET supplier_name = ?, category = ?, profile_json = ?, total_transactions = ?,
                    last_transaction_at = ?, version = version + 1, updated_at = ?
                WHERE company_id = ? AND normalized_name = ? AND version = ?
            """,
                (
                    profile["supplier_name"],
                    profile["category"],
                    json.dumps(profile),
                    profile["learning_stats"]["total_transactions"],
                    profile.get("last_transaction_at"),
                    utc_now(),
                    company_id,
                    normalized_name,
                    expected_version,
                ),
            )
            return cursor.rowcount == 1

    def list_supplier_profile_rows(
        self,
        company_id: str,
        category: str | None = None,
        min_transactions: int | None = None,
        order_by: str = "transactions",
    ) -> list[tuple[dict[str, Any], int]]:
        """List profile bodies with their versions."""
        order_clauses = {
            "transactions": "total_transactions DESC, rowid ASC",
            "last_used": "last_transaction_at IS NULL, last_transaction_at DESC, rowid ASC",
            "name": "normalized_name ASC",
        }
        if order_by not in order_clauses:
            raise ValueError(f"Unknown sort order: {order_by}")

        query = "SELECT profile_json, version FROM supplier_profiles WHERE company_id = ?"
        params: list[Any] = [company_id]
        if category:
            query += " AND category = ?"
            params.append(category)
        if min_transactions is not None:
            query += " AND total_transactions >= ?"
            params.append(min_transactions)
        query += f" ORDER BY {order_clauses[order_by]}"

        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
            return [(json.loads(row["profile_json"]), row["version"]) for row in rows]

    def add_supplier_alias(self, company_id: str, alias: str, normalized_name: str) -> bool:
        """Point alias at a primary profile. Returns False if the alias already exists."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO supplier_aliases (company_id, alias, normalized_name, created_at)
                VALUES (?, ?, ?, ?)
            """,
                (company_id, alias, normalized_name, utc_now()),
            )
            return cursor.rowcount == 1

    # === Correction Methods ===

    def record_correction(
        self,
        company_id: str,
        normalized_name: str,
        original_account: str | None,
        corrected_account: str,
        corrected_account_name: str,
        correction_id: str | None = None,
        on_recorded: Callable[[dict[str, Any]], dict[str, Any]] | None = None,
    ) -> bool:
        """
        Append a correction audit row.

        When the row is new and on_recorded is given, the supplier profile is
        passed through on_recorded and written back in the same transaction.
        A repeated correction_id is ignored and returns False.
        """
        now = utc_now()
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO supplier_corrections
                (company_id, normalized_name, original_account, corrected_account,
                 corrected_account_name, timestamp, correction_id)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    company_id,
                    normalized_name,
                    original_account,
                    corrected_account,
                    corrected_account_name,
                    now,
                    correction_id,
                ),
            )
            if cursor.rowcount != 1:
                return False

            if on_recorded is not None:
                # The INSERT above holds the write lock, so this read-modify-write is serialized
                row = conn.execute(
                    """
                    SELECT profile_json FROM supplier_profiles
                    WHERE company_id = ? AND normalized_name = ?
                """,
                    (company_id, normalized_name),
                ).fetchone()
                if row:
                    profile = on_recorded(json.loads(row["profile_json"]))
                    conn.execute(
                        """
                        UPDATE supplier_profiles
                        SET profile_json = ?, version = version + 1, updated_at = ?
                        WHERE company_id = ? AND normalized_name = ?
                    """,
                        (json.dumps(profile), now, company_id, normalized_name),
                    )
            return True

    def list_corrections(
        self, company_id: str, normalized_name: str | None = None
    ) -> list[CorrectionRecord]:
        """List correction audit rows, oldest first."""
        query = "SELECT * FROM supplier_corrections WHERE company_id = ?"
        params: list[Any] = [company_id]
        if normalized_name is not None:
            query += " AND normalized_name = ?"
            params.append(normalized_name)
        query += " ORDER BY id ASC"

        with self._transaction() as conn:
            return [_correction_from_row(row) for row in conn.execute(query, params).fetchall()]

    # === Transaction Pattern Methods ===

    def get_pattern(self, company_id: str, pattern_id: str) -> TransactionPattern | None:
        """Get a pattern by id."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM transaction_patterns WHERE company_id = ? AND pattern_id = ?",
                (company_id, pattern_id),
            ).fetchone()
            return _pattern_from_row(row) if row else None

    def insert_pattern(self, pattern: TransactionPattern) -> bool:
        """Insert a new pattern. Returns False if the pattern_id already exists."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO transaction_patterns
                (company_id, pattern_id, pattern_type, pattern, account, account_name,
                 usage_count, success_rate, last_used, created_at, version)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1)
            """,
                (
                    pattern.company_id,
                    pattern.pattern_id,
                    pattern.pattern_type,
                    pattern.pattern,
                    pattern.account,
                    pattern.account_name,
                    pattern.usage_count,
                    pattern.success_rate,
                    pattern.last_used,
                    pattern.created_at,
                ),
            )
            return cursor.rowcount == 1

    def update_pattern(self, pattern: TransactionPattern, expected_version: int) -> bool:
        """Write a pattern if its version is still expected_version."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE transaction_patterns
                SET pattern = ?, account = ?, account_name = ?, usage_count = ?,
                    success_rate = ?, last_used = ?, version = version + 1
                WHERE company_id = ? AND pattern_id = ? AND version = ?
            """,
                (
                    pattern.pattern,
                    pattern.account,
                    pattern.account_name,
                    pattern.usage_count,
                    pattern.success_rate,
                    pattern.last_used,
                    pattern.company_id,
                    pattern.pattern_id,
                    expected_version,
                ),
            )
            return cursor.rowcount == 1

    def list_patterns(
        self,
        company_id: str,
        min_success_rate: float | None = None,
        limit: int | None = None,
    ) -> list[TransactionPattern]:
        """List patterns, most used first."""
        query = "SELECT * FROM transaction_patterns WHERE company_id = ?"
        params: list[Any] = [company_id]
        if min_success_rate is not None:
            query += " AND success_rate >= ?"
            params.append(min_success_rate)
        query += " ORDER BY usage_count DESC, pattern_id ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self._transaction() as conn:
            return [_pattern_from_row(row) for row in conn.execute(query, params).fetchall()]

    # === Job Methods ===

    def save_job(self, job: Job) -> None:
        """Insert or replace a job."""
        now = utc_now()
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO jobs
                (id, company_id, original_file_ref, document_index, status, job_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    status = excluded.status,
                    job_json = excluded.job_json,
                    updated_at = excluded.updated_at
            """,
                (
                    job.id,
                    job.company_id,
                    job.original_file_ref,
                    job.document_index,
                    job.status.value,
                    json.dumps(job.to_dict()),
                    job.created_at or now,
                    now,
                ),
            )

    def get_job(self, job_id: str) -> Job | None:
        """Get a job by id."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT job_json, status FROM jobs WHERE id = ?", (job_id,)
            ).fetchone()
            if not row:
                return None
            data = json.loads(row["job_json"])
            data["status"] = row["status"]
            return Job.from_dict(data)

    def list_jobs(self, company_id: str, original_file_ref: str | None = None) -> list[Job]:
        """List jobs of a company, optionally for one upload, in document order."""
        query = "SELECT job_json, status FROM jobs WHERE company_id = ?"
        params: list[Any] = [company_id]
        if original_file_ref is not None:
            query += " AND original_file_ref = ?"
            params.append(original_file_ref)
        query += " ORDER BY created_at ASC, document_index ASC"

        with self._transaction() as conn:
            jobs = []
            for row in conn.execute(query, params).fetchall():
                data = json.loads(row["job_json"])
                data["status"] = row["status"]
                jobs.append(Job.from_dict(data))
            return jobs

    def update_job_status(self, job_id: str, status: JobStatus) -> bool:
        """Set a job's status. Returns False if the job does not exist."""
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE jobs SET status = ?, updated_at = ? WHERE id = ?",
                (status.value, utc_now(), job_id),
            )
            return cursor.rowcount == 1

    # === LLM Cache Methods ===

    def get_llm_cache(self, cache_key: str) -> dict[str, Any] | None:
        """Get cached LLM response by key."""
        with self._transaction() as conn:
            row = conn.execute(
                """
                SELECT * FROM llm_cache
                WHERE cache_key = ? AND expires_at > ?
            """,
                (cache_key, utc_now()),
            ).fetchone()

            if row:
                conn.execute(
                    "UPDATE llm_cache SET hit_count = hit_count + 1 WHERE cache_key = ?",
                    (cache_key,),
                )
                return dict(row)
            return None

    def set_llm_cache(
        self,
        cache_key: str,
        model: str,
        prompt_version: str,
        chart_version: str,
        response_json: str,
        ttl_days: int = 30,
    ) -> None:
        """Store LLM response in cache."""
        now = datetime.now(timezone.utc)
        expires = now + timedelta(days=ttl_days)

        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO llm_cache
                (cache_key, model, prompt_version, chart_version, response_json, created_at, expires_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(cache_key) DO UPDATE SET
                    response_json = excluded.response_json,
                    created_at = excluded.created_at,
                    expires_at = excluded.expires_at,
                    hit_count = 1
            """,
                (
                    cache_key,
                    model,
                    prompt_version,
                    chart_version,
                    response_json,
                    now.isoformat().replace("+00:00", "Z"),
                    expires.isoformat().replace("+00:00", "Z"),
                ),
            )

    def clear_expired_llm_cache(self) -> int:
        """Clear expired LLM cache entries. Returns count of deleted rows."""
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM llm_cache WHERE expires_at < ?", (utc_now(),))
            return cursor.rowcount

    # Statistics

    def get_stats(self) -> dict[str, Any]:
        """Get row counts for the status command."""
        with self._transaction() as conn:

            def count(query: str) -> int:
                row = conn.execute(query).fetchone()
                return row[0] if row else 0

            return {
                "suppliers": count("SELECT COUNT(*) FROM supplier_profiles"),
                "aliases": count("SELECT COUNT(*) FROM supplier_aliases"),
                "patterns": count("SELECT COUNT(*) FROM transaction_patterns"),
                "corrections": count("SELECT COUNT(*) FROM supplier_corrections"),
                "jobs": count("SELECT COUNT(*) FROM jobs"),
                "jobs_processing": count("SELECT COUNT(*) FROM jobs WHERE status = 'processing'"),
                "llm_cache_entries": count("SELECT COUNT(*) FROM llm_cache"),
            }
