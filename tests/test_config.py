"""Tests for the configuration module."""

import base64
import os
from unittest.mock import patch

import pytest

from settings_store.config import ConfigurationError, Environment, Settings, _derive_fernet_key


class TestDerivesFernetKey:
    """Tests for Fernet key derivation."""

    def test_derives_consistent_key(self):
        """Same input produces same output."""
        assert _derive_fernet_key("test-secret") == _derive_fernet_key("test-secret")

    def test_different_inputs_produce_different_keys(self):
        """Different inputs produce different keys."""
        assert _derive_fernet_key("secret-1") != _derive_fernet_key("secret-2")

    def test_produces_valid_base64(self):
        """Key is valid URL-safe base64 of 32 bytes."""
        decoded = base64.urlsafe_b64decode(_derive_fernet_key("test-secret"))
        assert len(decoded) == 32


class TestEnvironment:
    """Tests for Environment class."""

    def test_loads_from_environment(self):
        """Environment loads values from environment variables."""
        with patch.dict(os.environ, {
            "APP_ENV": "production",
            "SETTINGS_CACHE_ENABLED": "false",
            "SETTINGS_CACHE_STORE": "redis",
            "SETTINGS_CACHE_TTL": "120",
            "SETTINGS_CACHE_PREFIX": "cfg:",
            "SETTINGS_TABLE_NAME": "app_settings",
            "REDIS_URL": "redis://cache:6379/1",
        }, clear=False):
            env = Environment(_env_file=None)  # type: ignore[call-arg]

            assert env.APP_ENV == "production"
            assert env.SETTINGS_CACHE_ENABLED is False
            assert env.SETTINGS_CACHE_STORE == "redis"
            assert env.SETTINGS_CACHE_TTL == 120
            assert env.SETTINGS_CACHE_PREFIX == "cfg:"
            assert env.SETTINGS_TABLE_NAME == "app_settings"
            assert env.REDIS_URL == "redis://cache:6379/1"

    def test_uses_defaults(self):
        """Environment uses default values when not set."""
        keys = [
            "APP_ENV",
            "SETTINGS_CACHE_ENABLED",
            "SETTINGS_CACHE_STORE",
            "SETTINGS_CACHE_TTL",
            "SETTINGS_CACHE_PREFIX",
            "SETTINGS_TABLE_NAME",
            "FERNET_PREVIOUS_KEYS",
        ]
        with patch.dict(os.environ, {}, clear=False):
            for key in keys:
                os.environ.pop(key, None)
            env = Environment(_env_file=None)  # type: ignore[call-arg]

            assert env.APP_ENV == "development"
            assert env.SETTINGS_CACHE_ENABLED is True
            assert env.SETTINGS_CACHE_STORE == "memory"
            assert env.SETTINGS_CACHE_TTL == 3600
            assert env.SETTINGS_CACHE_PREFIX == "setting_"
            assert env.SETTINGS_TABLE_NAME == "settings"
            assert env.FERNET_PREVIOUS_KEYS == []

    def test_previous_keys_are_comma_separated(self):
        with patch.dict(os.environ, {"FERNET_PREVIOUS_KEYS": "key-one, key-two,"}, clear=False):
            env = Environment(_env_file=None)  # type: ignore[call-arg]

            assert env.FERNET_PREVIOUS_KEYS == ["key-one", "key-two"]


class TestSettingsLoad:
    """Tests for Settings.load() method."""

    def test_load_maps_environment(self):
        env = Environment(  # type: ignore[call-arg]
            _env_file=None,
            SECRET_KEY="load-secret",
            SETTINGS_CACHE_STORE=" Redis ",
            SETTINGS_CACHE_TTL=30,
            REDIS_URL="redis://cache:6379/0",
        )

        settings = Settings.load(env)

        assert settings.secret_key == "load-secret"
        assert settings.cache_store == "redis"
        assert settings.cache_ttl == 30
        assert settings.redis_url == "redis://cache:6379/0"

    def test_fernet_key_derived_from_secret_key(self):
        env = Environment(_env_file=None, SECRET_KEY="load-secret")  # type: ignore[call-arg]

        settings = Settings.load(env)

        assert settings.fernet_key == _derive_fernet_key("load-secret")

    def test_explicit_fernet_key_wins(self):
        env = Environment(  # type: ignore[call-arg]
            _env_file=None, SECRET_KEY="load-secret", FERNET_KEY="explicit-key"
        )

        assert Settings.load(env).fernet_key == "explicit-key"


class TestValidateProductionConfig:
    """Tests for configuration validation."""

    def test_default_settings_are_valid_outside_production(self):
        Settings().validate_production_config()

    def test_default_secret_rejected_in_production(self):
        settings = Settings(app_env="production")

        with pytest.raises(ConfigurationError) as exc_info:
            settings.validate_production_config()

        assert "SECRET_KEY" in str(exc_info.value)

    def test_redis_store_requires_url(self):
        settings = Settings(cache_store="redis", redis_url=None)

        with pytest.raises(ConfigurationError) as exc_info:
            settings.validate_production_config()

        assert "REDIS_URL" in str(exc_info.value)

    def test_redis_url_not_required_when_cache_disabled(self):
        Settings(cache_enabled=False, cache_store="redis").validate_production_config()

    def test_unknown_cache_store_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(cache_store="memcached").validate_production_config()

        assert "memcached" in str(exc_info.value)

    def test_non_positive_ttl_rejected(self):
        with pytest.raises(ConfigurationError):
            Settings(cache_ttl=0).validate_production_config()

    def test_errors_are_combined(self):
        settings = Settings(app_env="production", cache_store="memcached")

        with pytest.raises(ConfigurationError) as exc_info:
            settings.validate_production_config()

        message = str(exc_info.value)
        assert "SECRET_KEY" in message
        assert "SETTINGS_CACHE_STORE" in message

    def test_environment_flags(self):
        assert Settings(app_env="production").is_production is True
        assert Settings(app_env="testing").is_testing is True
        assert Settings().is_production is False
