"""
SIO Database Clients

Builds the triage store selected by ``SIO_STORAGE_BACKEND``:
- postgres: asyncpg pool plus schema bootstrap
- memory: process-local store for development and tests
"""
from dataclasses import dataclass

import asyncpg
import structlog

from sio.db.base import TriageStore
from sio.db.memory import InMemoryTriageStore
from sio.db.postgres_repo import PostgresTriageStore
from sio.db.schema import bootstrap_schema

logger = structlog.get_logger(__name__)

# Global clients instance
_clients: "DatabaseClients | None" = None


@dataclass
class DatabaseClients:
    """Container for the active store."""

    store: TriageStore
    backend: str


async def init_postgres(settings) -> asyncpg.Pool:
    """Initialize PostgreSQL connection pool."""
    pg = settings.postgres
    pool = await asyncpg.create_pool(
        host=pg.host,
        port=pg.port,
        user=pg.user,
        password=pg.password.get_secret_value(),
        database=pg.database,
        min_size=pg.min_pool_size,
        max_size=pg.max_pool_size,
        command_timeout=pg.command_timeout,
        timeout=pg.connect_timeout,
        server_settings={"search_path": f'"{pg.schema_name}", public'},
    )

    async with pool.acquire() as conn:
        version = await conn.fetchval("SELECT version()")
        logger.info("PostgreSQL connected", version=version[:50])

    await bootstrap_schema(pool, pg.schema_name)
    return pool


async def init_db_clients(settings) -> DatabaseClients:
    """
    Initialize the configured store.

    Called during application startup. Connection failures propagate; there
    is no fallback from PostgreSQL to the in-memory store.
    """
    global _clients

    backend = settings.app.storage_backend
    logger.info("Initializing storage", backend=backend)

    if backend == "memory":
        _clients = DatabaseClients(
            store=InMemoryTriageStore(lock_timeout=settings.app.memory_lock_timeout),
            backend=backend,
        )
    else:
        try:
            pool = await init_postgres(settings)
        except Exception as e:
            logger.error("PostgreSQL connection failed", error=str(e))
            raise
        _clients = DatabaseClients(
            store=PostgresTriageStore(pool, acquire_timeout=settings.postgres.acquire_timeout),
            backend=backend,
        )

    logger.info("Storage initialized", backend=backend)
    return _clients


async def close_db_clients():
    """Close the store."""
    global _clients

    if _clients is None:
        return

    logger.info("Closing storage...")
    await _clients.store.close()
    logger.info("Storage closed")

    _clients = None
