"""
Pytest configuration and fixtures for asset cache tests.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import AsyncGenerator, Generator
from unittest.mock import patch

import pytest

from assetcache.config import Settings, clear_settings_cache
from assetcache.logging import ROOT_LOGGER
from assetcache.store import AsyncKeyedStore, MemoryKeyedStore, SQLiteKeyedStore

STORE_KINDS = ["sqlite", "memory"]


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide ASSETCACHE_* environment variables pointing into temp_dir."""
    env_vars = {
        "ASSETCACHE_CACHE_DIR": str(temp_dir / "cache"),
        "ASSETCACHE_STORE_NAME": "TestStore",
        "ASSETCACHE_CACHE_CAPACITY": "25",
        "ASSETCACHE_PAGE_SIZE": "2",
        "ASSETCACHE_CHUNK_SIZE": "10",
        "ASSETCACHE_LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str]) -> Generator[Settings, None, None]:
    """Provide a Settings instance built from mock_env_vars."""
    from assetcache.config import get_settings

    settings = get_settings()
    settings.ensure_directories()
    yield settings
    clear_settings_cache()


def make_store(kind: str, temp_dir: Path, **kwargs) -> AsyncKeyedStore:
    """Build an uninitialized store of the given kind."""
    if kind == "sqlite":
        return SQLiteKeyedStore(temp_dir / "store.db", **kwargs)
    return MemoryKeyedStore(**kwargs)


@pytest.fixture(params=STORE_KINDS)
def store_kind(request: pytest.FixtureRequest) -> str:
    """Run a test once per store implementation."""
    return request.param


@pytest.fixture
async def fresh_store(store_kind: str, temp_dir: Path) -> AsyncGenerator[AsyncKeyedStore, None]:
    """Provide a store that has not been initialized yet."""
    store = make_store(store_kind, temp_dir)
    yield store
    await store.close()


@pytest.fixture
async def store(fresh_store: AsyncKeyedStore) -> AsyncKeyedStore:
    """Provide a store initialized with the assets and tickets namespaces."""
    await fresh_store.init(["assets", "tickets"])
    return fresh_store


@pytest.fixture
async def sqlite_store(temp_dir: Path) -> AsyncGenerator[SQLiteKeyedStore, None]:
    """Provide an initialized SQLite store."""
    store = SQLiteKeyedStore(temp_dir / "store.db")
    await store.init(["assets", "tickets"])
    yield store
    await store.close()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def restore_root_logger() -> Generator[None, None, None]:
    """Remove handlers installed by setup_logging after the test."""
    root = logging.getLogger(ROOT_LOGGER)
    yield
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)
    root.propagate = True
    root.setLevel(logging.NOTSET)
