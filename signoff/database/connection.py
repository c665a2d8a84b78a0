from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg_pool import ConnectionPool

from signoff.config.settings import Settings

_pool: ConnectionPool | None = None
_legacy_pool: ConnectionPool | None = None


def build_conninfo(settings: Settings, *, legacy: bool = False) -> str:
    """Build a libpq conninfo string; legacy values fall back to the primary ones."""
    host = settings.db_host
    port = settings.db_port
    dbname = settings.db_database
    user = settings.db_username
    password = settings.db_password
    if legacy:
        host = settings.legacy_db_host or host
        port = settings.legacy_db_port or port
        dbname = settings.legacy_db_database or dbname
        user = settings.legacy_db_username or user
        password = settings.legacy_db_password or password
    return f"host={host} port={port} dbname={dbname} user={user} password={password}"


def init_pool(settings: Settings) -> None:
    """Initialize the authoritative and legacy connection pools from settings."""
    global _pool, _legacy_pool  # noqa: PLW0603
    _pool = ConnectionPool(build_conninfo(settings), min_size=1, max_size=10)
    if settings.legacy_mirror_enabled or settings.legacy_lookup_enabled:
        _legacy_pool = ConnectionPool(
            build_conninfo(settings, legacy=True), min_size=1, max_size=4
        )


def close_pool() -> None:
    """Close both pools."""
    global _pool, _legacy_pool  # noqa: PLW0603
    if _pool is not None:
        _pool.close()
        _pool = None
    if _legacy_pool is not None:
        _legacy_pool.close()
        _legacy_pool = None


@contextmanager
def get_connection() -> Generator[psycopg.Connection[Any], None, None]:
    """Yield an authoritative-store connection. Caller manages commit/rollback."""
    if _pool is None:
        raise RuntimeError("Connection pool not initialized. Call init_pool() first.")
    with _pool.connection() as conn:
        yield conn


@contextmanager
def get_legacy_connection() -> Generator[psycopg.Connection[Any], None, None]:
    """Yield a legacy export store connection."""
    if _legacy_pool is None:
        raise RuntimeError("Legacy pool not initialized (legacy mirror and legacy lookup are both off?)")
    with _legacy_pool.connection() as conn:
        yield conn
