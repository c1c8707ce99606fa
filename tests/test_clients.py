"""
Tests for storage backend selection.
"""

import pytest

from sio.config import Settings
from sio.db import clients as db_clients
from sio.db.clients import close_db_clients, init_db_clients
from sio.db.memory import InMemoryTriageStore


@pytest.mark.asyncio
async def test_memory_backend_uses_its_own_lock_timeout(monkeypatch):
    monkeypatch.setenv("SIO_STORAGE_BACKEND", "memory")
    monkeypatch.setenv("SIO_MEMORY_LOCK_TIMEOUT", "0.25")
    monkeypatch.setenv("POSTGRES_COMMAND_TIMEOUT", "30")

    clients = await init_db_clients(Settings())
    try:
        assert clients.backend == "memory"
        assert isinstance(clients.store, InMemoryTriageStore)
        assert clients.store.lock_timeout == 0.25
    finally:
        await close_db_clients()


@pytest.mark.asyncio
async def test_postgres_failure_is_not_replaced_by_memory(monkeypatch):
    async def refuse(settings):
        raise ConnectionRefusedError("connection refused")

    monkeypatch.setenv("SIO_STORAGE_BACKEND", "postgres")
    monkeypatch.setattr(db_clients, "init_postgres", refuse)

    with pytest.raises(ConnectionRefusedError):
        await init_db_clients(Settings())

    assert db_clients._clients is None
