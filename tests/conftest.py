"""Pytest configuration and fixtures."""

from collections.abc import Generator
from typing import Any

import pytest
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from settings_store import create_container
from settings_store.config import Settings, _derive_fernet_key
from settings_store.services.cache_backend import InMemoryCacheBackend
from settings_store.services.container import ServiceContainer
from settings_store.services.payload_codec import PayloadCodec
from settings_store.services.setting_service import SettingService


def _build_test_settings(**overrides: Any) -> Settings:
    """Construct base Settings object for tests.

    Uses a private in-memory SQLite database per container; StaticPool keeps
    the single connection (and therefore the database) alive.
    """
    values: dict[str, Any] = {
        "app_env": "testing",
        "secret_key": "test-secret-key",
        # Database settings
        "database_url": "sqlite://",
        "sqlalchemy_engine_options": {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        },
        "table_name": "settings",
        # Cache settings
        "cache_enabled": True,
        "cache_store": "memory",
        "cache_ttl": 60,
        "cache_prefix": "setting_",
        # Encryption
        "fernet_key": _derive_fernet_key("test-secret-key"),
        "fernet_previous_keys": [],
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings with in-memory database and cache."""
    return _build_test_settings()


@pytest.fixture
def make_container() -> Generator[Any, None, None]:
    """Factory fixture for containers with custom settings.

    Usage:
        container = make_container(cache_enabled=False)
    """
    created: list[ServiceContainer] = []

    def _make(**overrides: Any) -> ServiceContainer:
        container = create_container(_build_test_settings(**overrides), create_tables=True)
        created.append(container)
        return container

    yield _make

    for container in created:
        container.db_session.reset()
        container.engine().dispose()


@pytest.fixture
def container(test_settings: Settings) -> Generator[ServiceContainer, None, None]:
    """Service container backed by a fresh in-memory database."""
    container = create_container(test_settings, create_tables=True)

    yield container

    container.db_session.reset()
    container.engine().dispose()


@pytest.fixture
def session(container: ServiceContainer) -> Generator[Session, None, None]:
    """Database session shared with the services of the container."""
    session = container.db_session()

    exc = None
    try:
        yield session
    except Exception as e:
        exc = e

    if exc:
        session.rollback()
    else:
        session.commit()
    session.close()


@pytest.fixture
def setting_service(container: ServiceContainer) -> SettingService:
    """Create SettingService instance via the container."""
    return container.setting_service()


@pytest.fixture
def cache_backend(container: ServiceContainer) -> InMemoryCacheBackend:
    """The in-memory cache backend shared by the container's services."""
    return container.cache_backend()


@pytest.fixture
def payload_codec(container: ServiceContainer) -> PayloadCodec:
    """Payload codec configured with the test Fernet key."""
    return container.payload_codec()


@pytest.fixture
def make_setting(setting_service: SettingService) -> Any:
    """Factory fixture for creating setting records in tests.

    Usage:
        record = make_setting("retry_count", 3, type="integer")
    """

    def _make(key: str, value: Any, **kwargs: Any) -> Any:
        return setting_service.set(key, value, **kwargs)

    return _make
