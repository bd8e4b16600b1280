"""
Shared fixtures for integration tests.

Tests here run against a real PostgreSQL database configured through
DATABASE_URL; they are skipped when the database cannot be reached.
"""

from collections.abc import Generator

import psycopg
import pytest
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import run_migrations
from src.config.settings import get_settings

TABLES = (
    "users",
    "organizations",
    "credentials",
    "validation_requests",
    "validated_targets",
    "registration_sessions",
)


@pytest.fixture(scope="session")
def database_url() -> str:
    url = get_settings().database_url
    try:
        with psycopg.connect(url, connect_timeout=2):
            pass
    except psycopg.OperationalError as e:
        pytest.skip(f"PostgreSQL not reachable: {e}")
    return url


@pytest.fixture(scope="session")
def pool(database_url: str) -> Generator[ConnectionPool, None, None]:
    """Create connection pool for integration tests."""
    pool = ConnectionPool(conninfo=database_url, min_size=1, max_size=10, open=True)
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture(autouse=True)
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Empty every registration table before each test."""
    with pool.connection() as conn:
        conn.execute(f"TRUNCATE {', '.join(TABLES)}")
        conn.commit()
    yield
