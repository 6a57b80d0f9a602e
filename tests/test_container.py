"""Tests for container construction and database helpers."""

import pytest
from sqlalchemy import create_engine, inspect

from settings_store import create_container
from settings_store.config import ConfigurationError
from settings_store.database import (
    check_db_connection,
    create_schema,
    create_session_maker,
    session_scope,
)
from settings_store.models.setting import Setting, setting_model_for
from settings_store.services.cache_backend import InMemoryCacheBackend
from settings_store.services.cipher import FernetCipher
from settings_store.services.container import ServiceContainer
from settings_store.services.setting_service import SettingService
from tests.conftest import _build_test_settings


class TestCreateContainer:
    """Tests for create_container()."""

    def test_wires_service(self, container: ServiceContainer):
        service = container.setting_service()

        assert isinstance(service, SettingService)
        assert isinstance(container.cache_backend(), InMemoryCacheBackend)
        assert isinstance(container.cipher(), FernetCipher)
        assert container.payload_codec().cipher is container.cipher()

    def test_cache_backend_is_shared(self, container: ServiceContainer):
        first = container.setting_service()
        second = container.setting_service()

        assert first is not second
        assert first.cache is second.cache

    def test_cache_options_follow_settings(self, make_container):
        container = make_container(cache_enabled=False, cache_ttl=15, cache_prefix="cfg:")

        options = container.cache_options()

        assert options.enabled is False
        assert options.ttl == 15
        assert options.prefix == "cfg:"

    def test_creates_configured_table(self, make_container):
        container = make_container(table_name="app_settings")

        tables = inspect(container.engine()).get_table_names()

        assert "app_settings" in tables
        assert container.setting_model() is setting_model_for("app_settings")

    def test_disabled_redis_cache_builds_service(self, make_container):
        container = make_container(cache_enabled=False, cache_store="redis", redis_url=None)
        service = container.setting_service()

        service.set("theme", "dark")

        assert service.get("theme") == "dark"

    def test_invalid_settings_rejected(self):
        with pytest.raises(ConfigurationError):
            create_container(_build_test_settings(cache_store="memcached"))


class TestSettingModelFor:
    """Tests for per-table model creation."""

    def test_default_table_uses_setting(self):
        assert setting_model_for("settings") is Setting

    def test_model_is_created_once(self):
        assert setting_model_for("other_settings") is setting_model_for("other_settings")


class TestDatabaseHelpers:
    """Tests for engine and session helpers."""

    def test_create_schema_is_idempotent(self):
        engine = create_engine("sqlite://")

        create_schema(engine)
        create_schema(engine)

        assert inspect(engine).get_table_names() == ["settings"]
        engine.dispose()

    def test_check_db_connection(self):
        engine = create_engine("sqlite://")

        assert check_db_connection(engine) is True
        engine.dispose()

    def test_check_db_connection_failure(self):
        engine = create_engine("sqlite:////nonexistent-directory/settings.db")

        assert check_db_connection(engine) is False

    def test_session_scope_commits(self, container: ServiceContainer):
        session_maker = create_session_maker(container.engine())

        with session_scope(session_maker) as session:
            session.add(Setting(key="theme", value="dark"))

        with session_scope(session_maker) as session:
            assert session.query(Setting).filter_by(key="theme").one().value == "dark"

    def test_session_scope_rolls_back(self, container: ServiceContainer):
        session_maker = create_session_maker(container.engine())

        with pytest.raises(RuntimeError):
            with session_scope(session_maker) as session:
                session.add(Setting(key="theme", value="dark"))
                session.flush()
                raise RuntimeError("boom")

        with session_scope(session_maker) as session:
            assert session.query(Setting).filter_by(key="theme").one_or_none() is None
