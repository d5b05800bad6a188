"""
Handle store migrations for asyncpg.

Forward-only SQL files in migrations/ named NNN_description.sql are applied
in order, each in its own transaction. A checksum is recorded per file so an
edit to an already-applied migration is reported instead of silently ignored.
"""

import hashlib
import logging
import re
from pathlib import Path
from typing import Dict, List, NamedTuple

import asyncpg

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

MIGRATION_PATTERN = re.compile(r"^(\d{3})_.+\.sql$")

MIGRATION_TABLE = "handle_store_migrations"


class Migration(NamedTuple):
    version: str
    filename: str
    path: Path
    checksum: str


def _checksum(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


async def ensure_migration_table(conn: asyncpg.Connection) -> None:
    """Create the migration tracking table if it doesn't exist."""
    await conn.execute(f"""
        CREATE TABLE IF NOT EXISTS {MIGRATION_TABLE} (
            version VARCHAR(16) PRIMARY KEY,
            filename VARCHAR(255) NOT NULL,
            checksum CHAR(64) NOT NULL,
            applied_at TIMESTAMP NOT NULL DEFAULT NOW()
        )
        """)


def discover_migrations() -> List[Migration]:
    """
    Find migration files, sorted by version.

    Raises:
        FileNotFoundError: If the migrations directory doesn't exist.
    """
    if not MIGRATIONS_DIR.is_dir():
        raise FileNotFoundError(f"Migrations directory not found: {MIGRATIONS_DIR}")

    migrations = []
    for entry in sorted(MIGRATIONS_DIR.iterdir()):
        match = MIGRATION_PATTERN.match(entry.name)
        if match and entry.is_file():
            migrations.append(
                Migration(match.group(1), entry.name, entry, _checksum(entry))
            )
    return migrations


async def get_applied_checksums(conn: asyncpg.Connection) -> Dict[str, str]:
    """Map of applied version -> recorded checksum."""
    rows = await conn.fetch(f"SELECT version, checksum FROM {MIGRATION_TABLE}")
    return {row["version"]: row["checksum"] for row in rows}


async def apply_migration(pool: asyncpg.Pool, migration: Migration) -> None:
    """Apply a single migration and record it, atomically."""
    sql = migration.path.read_text(encoding="utf-8")

    async with pool.acquire() as conn:
        async with conn.transaction():
            await conn.execute(sql)
            await conn.execute(
                f"INSERT INTO {MIGRATION_TABLE} (version, filename, checksum) "
                "VALUES ($1, $2, $3)",
                migration.version,
                migration.filename,
                migration.checksum,
            )

    logger.info(f"Applied migration {migration.filename}")


async def run_migrations(pool: asyncpg.Pool) -> int:
    """
    Apply all pending migrations in order.

    Returns:
        Number of migrations applied.

    Raises:
        FileNotFoundError: If the migrations directory is missing.
        asyncpg.PostgresError: If a migration fails (it is rolled back;
            previously applied migrations remain).
    """
    async with pool.acquire() as conn:
        await ensure_migration_table(conn)
        applied = await get_applied_checksums(conn)

    pending = []
    for migration in discover_migrations():
        recorded = applied.get(migration.version)
        if recorded is None:
            pending.append(migration)
        elif recorded != migration.checksum:
            logger.warning(
                f"Migration {migration.filename} changed after it was applied"
            )

    if not pending:
        logger.info("Handle store schema is up to date")
        return 0

    logger.info(f"Applying {len(pending)} pending migration(s)")
    for migration in pending:
        await apply_migration(pool, migration)
    return len(pending)
