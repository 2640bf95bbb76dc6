"""
Versioned schema migrations for the learning store.

Each module "{version:03d}_{name}.py" in this package defines VERSION, NAME,
upgrade(conn) and optionally downgrade(conn). Applied versions are recorded
in the `migrations` table.

Several CLI processes may open the same fresh database at once. Pending
migrations are therefore applied under one write lock (BEGIN IMMEDIATE) and
the applied set is re-read once the lock is held, so every migration runs
exactly once and a failure leaves no partial schema behind.
"""

import importlib
import logging
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from ..sqlite_store import utc_now

logger = logging.getLogger(__name__)

MIGRATION_GLOB = "[0-9][0-9][0-9]_*.py"


@dataclass(frozen=True)
class Migration:
    """One schema step."""

    version: int
    name: str
    upgrade: Callable[[sqlite3.Connection], None]
    downgrade: Callable[[sqlite3.Connection], None] | None = None


def get_all_migrations() -> list[Migration]:
    """Migrations shipped with the package, by version.

    A module that cannot be imported is a packaging error and propagates.
    """
    migrations = []
    for path in sorted(Path(__file__).parent.glob(MIGRATION_GLOB)):
        module = importlib.import_module(f"{__package__}.{path.stem}")
        migrations.append(
            Migration(
                version=module.VERSION,
                name=module.NAME,
                upgrade=module.upgrade,
                downgrade=getattr(module, "downgrade", None),
            )
        )

    versions = [m.version for m in migrations]
    if len(versions) != len(set(versions)):
        raise RuntimeError(f"Duplicate migration versions: {sorted(versions)}")
    return sorted(migrations, key=lambda m: m.version)


class MigrationRunner:
    """Brings one connection's database to a schema version."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS migrations (
                version INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                applied_at TEXT NOT NULL
            )
        """
        )
        self.conn.commit()

    def get_applied_versions(self) -> set[int]:
        return {row[0] for row in self.conn.execute("SELECT version FROM migrations")}

    def get_current_version(self) -> int:
        """Highest applied version; 0 for a fresh database."""
        row = self.conn.execute("SELECT MAX(version) FROM migrations").fetchone()
        return row[0] or 0

    def get_pending(self) -> list[Migration]:
        applied = self.get_applied_versions()
        return [m for m in get_all_migrations() if m.version not in applied]

    def run_pending(self) -> list[int]:
        """Apply every pending migration in one locked transaction.

        Returns:
            Versions applied by this call (empty if another process won)
        """
        if not self.get_pending():
            logger.debug("Schema is up to date")
            return []

        with self._write_lock():
            # Another process may have migrated while we waited for the lock
            pending = self.get_pending()
            for migration in pending:
                self._upgrade(migration)

        applied = [m.version for m in pending]
        if applied:
            logger.info(f"Applied migrations {applied}")
        return applied

    def migrate_to(self, target_version: int) -> None:
        """Upgrade or downgrade to target_version in one locked transaction.

        Raises:
            NotImplementedError: If a migration to undo has no downgrade
        """
        by_version = {m.version: m for m in get_all_migrations()}

        with self._write_lock():
            current = self.get_current_version()
            if target_version > current:
                steps = [by_version[v] for v in sorted(by_version) if current < v <= target_version]
                for migration in steps:
                    self._upgrade(migration)
            else:
                steps = [
                    by_version[v]
                    for v in sorted(by_version, reverse=True)
                    if target_version < v <= current
                ]
                for migration in steps:
                    self._downgrade(migration)

    def _upgrade(self, migration: Migration) -> None:
        logger.info(f"Applying migration {migration.version}: {migration.name}")
        migration.upgrade(self.conn)
        self.conn.execute(
            "INSERT INTO migrations (version, name, applied_at) VALUES (?, ?, ?)",
            (migration.version, migration.name, utc_now()),
        )

    def _downgrade(self, migration: Migration) -> None:
        if migration.downgrade is None:
            raise NotImplementedError(
                f"Migration {migration.version} ({migration.name}) cannot be rolled back"
            )
        logger.info(f"Rolling back migration {migration.version}: {migration.name}")
        migration.downgrade(self.conn)
        self.conn.execute("DELETE FROM migrations WHERE version = ?", (migration.version,))

    @contextmanager
    def _write_lock(self) -> Iterator[sqlite3.Connection]:
        """BEGIN IMMEDIATE ... COMMIT; rolled back on any error."""
        self.conn.execute("BEGIN IMMEDIATE")
        try:
            yield self.conn
            self.conn.commit()
        except Exception as e:
            self.conn.rollback()
            logger.error(f"Migration failed, schema unchanged: {e}")
            raise
