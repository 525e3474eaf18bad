"""
Shared pytest fixtures and configuration for persistent-enum tests.

This module provides:
- Registry and settings cleanup fixtures for test isolation
- A file-backed SQLite engine per test with every test table created
- A maintenance-context fixture for dummy fallback tests
- An optional PostgreSQL engine (``PERSISTENT_ENUM_TEST_POSTGRES_URL``)
"""

import os
import sys
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog
from sqlalchemy import text
from sqlalchemy.engine import Engine

# Ensure persistent_enum and the shared test models are importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

# Registers the test tables on EnumBase.metadata
import enum_models  # noqa: E402,F401
from persistent_enum import EnumBase, create_enum_engine, maintenance_context  # noqa: E402
from persistent_enum.registry import clear_registry  # noqa: E402
from persistent_enum.settings import clear_settings_cache  # noqa: E402

POSTGRES_URL = os.environ.get("PERSISTENT_ENUM_TEST_POSTGRES_URL")


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip PostgreSQL tests unless a server is configured."""
    skip_postgres = pytest.mark.skip(reason="PERSISTENT_ENUM_TEST_POSTGRES_URL not set")
    for item in items:
        if "postgresql" in item.keywords and not POSTGRES_URL:
            item.add_marker(skip_postgres)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_registry_fixture() -> Generator[None, None, None]:
    """Clear the enumeration registry before and after each test."""
    clear_registry()
    yield
    clear_registry()


@pytest.fixture(autouse=True)
def clean_settings_fixture(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Drop cached settings and any maintenance override from the environment."""
    monkeypatch.delenv("PERSISTENT_ENUM_MAINTENANCE_MODE", raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def structlog_to_stderr() -> Generator[None, None, None]:
    """Keep log lines out of stdout; ``capture_logs()`` still works."""
    structlog.configure(
        processors=[structlog.processors.add_log_level, structlog.dev.ConsoleRenderer(colors=False)],
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'enums.db'}"


@pytest.fixture
def engine(db_url: str) -> Generator[Engine, None, None]:
    """File-backed SQLite engine with every test table created."""
    eng = create_enum_engine(db_url)
    EnumBase.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def insert_rows(engine: Engine):
    """Insert raw rows into a table, bypassing reconciliation."""

    def insert(table: str, *rows: dict) -> None:
        with engine.begin() as conn:
            for row in rows:
                columns = ", ".join(row)
                params = ", ".join(f":{key}" for key in row)
                conn.execute(text(f"INSERT INTO {table} ({columns}) VALUES ({params})"), row)

    return insert


@pytest.fixture
def maintenance() -> Generator[None, None, None]:
    """Run the test inside a maintenance context (dummy fallback allowed)."""
    with maintenance_context():
        yield


@pytest.fixture
def pg_engine() -> Generator[Engine, None, None]:
    """PostgreSQL engine; tests using it must be marked ``postgresql``."""
    eng = create_enum_engine(POSTGRES_URL)
    yield eng
    eng.dispose()
