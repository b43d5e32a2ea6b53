"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from regmirror.records import init_record_storage
from regmirror.registry.models import BackendType, RegistryEndpoint

if typ.TYPE_CHECKING:
    from pathlib import Path


async def _setup_sqlite(tmp_path: Path) -> AsyncEngine:
    """Create a SQLite engine with the record table in place."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'regmirror_test.db'}"
    )
    try:
        await init_record_storage(engine)
    except Exception:
        await engine.dispose()
        raise
    return engine


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite."""
    engine = await _setup_sqlite(tmp_path)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture
def harbor_endpoint() -> RegistryEndpoint:
    """Return a Harbor source endpoint."""
    return RegistryEndpoint(
        url_base="https://harbor.example.com",
        username="robot$mirror",
        password="harbor-secret",
        backend=BackendType.HARBOR,
    )


@pytest.fixture
def acr_endpoint() -> RegistryEndpoint:
    """Return an ACR destination endpoint."""
    return RegistryEndpoint(
        url_base="https://mirror.azurecr.io",
        username="mirror",
        password="acr-secret",
        backend=BackendType.ACR,
    )
