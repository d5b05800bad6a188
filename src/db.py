"""
Database Manager - PostgreSQL handle store.

Stores one resource record per address in the resource_handles table.
"""

import json
import logging
from typing import Any, List, Optional

import asyncpg

from migrate import run_migrations
from state import HandleStore, ResourceRecord

logger = logging.getLogger(__name__)


class DatabaseManager(HandleStore):
    """Manages PostgreSQL persistence of reconciled handles."""

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        min_pool_size: int = 1,
        max_pool_size: int = 5,
    ):
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self):
        """Establish connection pool to PostgreSQL and apply migrations."""
        self.pool = await asyncpg.create_pool(
            host=self.host,
            port=self.port,
            database=self.database,
            user=self.user,
            password=self.password,
            min_size=self.min_pool_size,
            max_size=self.max_pool_size,
            command_timeout=60,  # Query timeout
        )
        logger.info(
            f"Connected to PostgreSQL (pool: {self.min_pool_size}-{self.max_pool_size})"
        )
        await run_migrations(self.pool)

    async def close(self):
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            logger.info("Closed PostgreSQL connection")

    def _ensure_connected(self) -> None:
        """Ensure the database connection pool is established."""
        if self.pool is None:
            raise RuntimeError(
                "Database not connected. Call connect() before performing operations."
            )

    @staticmethod
    def _parse_record_row(row: Any) -> ResourceRecord:
        attributes = row["attributes"]
        if isinstance(attributes, str):
            attributes = json.loads(attributes)
        return ResourceRecord(
            address=row["address"],
            kind=row["kind"],
            identifier=row["identifier"],
            attributes=attributes or {},
        )

    async def get(self, address: str) -> Optional[ResourceRecord]:
        self._ensure_connected()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT address, kind, identifier, attributes
                FROM resource_handles
                WHERE address = $1
                """,
                address,
            )
        return self._parse_record_row(row) if row else None

    async def put(self, record: ResourceRecord) -> None:
        self._ensure_connected()
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO resource_handles (address, kind, identifier, attributes)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (address) DO UPDATE
                SET kind = EXCLUDED.kind,
                    identifier = EXCLUDED.identifier,
                    attributes = EXCLUDED.attributes,
                    updated_at = NOW()
                """,
                record.address,
                record.kind,
                record.identifier,
                json.dumps(record.attributes),
            )
        logger.debug(f"Stored handle for {record.address}: {record.identifier}")

    async def remove(self, address: str) -> bool:
        self._ensure_connected()
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM resource_handles WHERE address = $1", address
            )
        # asyncpg returns the command tag, e.g. "DELETE 1"
        return result.split()[-1] != "0"

    async def list(self) -> List[ResourceRecord]:
        self._ensure_connected()
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT address, kind, identifier, attributes
                FROM resource_handles
                ORDER BY address
                """
            )
        return [self._parse_record_row(row) for row in rows]
