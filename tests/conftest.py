"""
Pytest configuration and shared fixtures.

Testing Standards:
- Async tests run under pytest-asyncio (auto mode enabled in pyproject.toml)
- Every test runs in its own temporary working directory, so no .env or
  application.yaml from the checkout leaks into settings
- Databases are SQLite files (aiosqlite) under tmp_path
"""

from pathlib import Path
from typing import Callable

import pytest

from src.auditing.application import AuditingHandler
from src.auditing.infrastructure import AuditingRegistration, ContextAuditorProvider
from src.bootstrap import has_active_context
from src.config import Settings, load_settings
from src.infrastructure.database import Database

# Register test tables on Base.metadata before any create_all
from tests.helpers import models  # noqa: F401
from tests.helpers.clock import ManualClock

SETTINGS_ENV_VARS = (
    "DATABASE_URL",
    "ENVIRONMENT",
    "PORT",
    "HOST",
    "LOG_LEVEL",
    "AUDITING_ENABLED",
    "SYSTEM_ACTOR",
    "CORS_ORIGINS",
    "CONFIG_FILE",
)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Run each test in an empty directory with no settings in the environment."""
    monkeypatch.chdir(tmp_path)
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    assert not has_active_context(), "test leaked an application context"


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
def make_settings(database_url: str) -> Callable[..., Settings]:
    """Factory for valid settings bound to an ephemeral local port."""

    def factory(**overrides) -> Settings:
        values = {
            "database_url": database_url,
            "host": "127.0.0.1",
            "port": 0,
            "db_create_tables": True,
            "shutdown_timeout": 2.0,
        }
        values.update(overrides)
        return load_settings(**values)

    return factory


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
async def audited_database(settings: Settings, clock: ManualClock):
    """Database whose sessions are audited with a manual clock."""
    handler = AuditingHandler(clock, ContextAuditorProvider())
    registration = AuditingRegistration(handler)
    registration.enable()

    database = Database(settings, session_class=registration.session_class)
    database.connect()
    await database.create_tables()

    yield database, registration

    await database.dispose()
    registration.disable()
