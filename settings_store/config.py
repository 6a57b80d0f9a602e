"""Configuration management using Pydantic settings.

Environment variables are loaded by ``Environment`` (raw, uppercase names) and
turned into the lowercase ``Settings`` model by ``Settings.load()``. Tests
construct ``Settings`` directly.
"""

import base64
import hashlib
from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Project root directory (parent of settings_store/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Default secret key that must be changed in production
_DEFAULT_SECRET_KEY = "dev-secret-key-change-in-production"

CACHE_STORES = ("memory", "redis")


class ConfigurationError(Exception):
    """Raised when application configuration is invalid."""

    pass


def _derive_fernet_key(secret_key: str) -> str:
    """Derive a Fernet-compatible key from SECRET_KEY."""
    key_bytes = hashlib.sha256(secret_key.encode()).digest()
    return base64.urlsafe_b64encode(key_bytes).decode()


class Environment(BaseSettings):
    """Raw environment variable loading."""

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = Field(default="development")
    SECRET_KEY: str = Field(default=_DEFAULT_SECRET_KEY)

    # Database settings
    DATABASE_URL: str = Field(
        default=f"sqlite:///{_PROJECT_ROOT / 'settings.db'}",
        description="SQLAlchemy connection string",
    )
    SETTINGS_TABLE_NAME: str = Field(default="settings")

    # Cache settings
    SETTINGS_CACHE_ENABLED: bool = Field(default=True)
    SETTINGS_CACHE_STORE: str = Field(
        default="memory",
        description="Cache backend: memory or redis",
    )
    SETTINGS_CACHE_TTL: int = Field(default=3600)
    SETTINGS_CACHE_PREFIX: str = Field(default="setting_")

    # Redis settings (only used when SETTINGS_CACHE_STORE=redis)
    REDIS_URL: str | None = Field(default=None)
    REDIS_SOCKET_TIMEOUT: float = Field(default=5.0)

    # Encryption settings. FERNET_KEY is derived from SECRET_KEY if not set.
    FERNET_KEY: str | None = Field(default=None)
    FERNET_PREVIOUS_KEYS: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Comma-separated retired Fernet keys, used for decryption only",
    )

    @field_validator("FERNET_PREVIOUS_KEYS", mode="before")
    @classmethod
    def split_previous_keys(cls, value: Any) -> Any:
        """Accept a comma-separated string for the previous keys list."""
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value


class Settings(BaseModel):
    """Settings store configuration."""

    model_config = ConfigDict(from_attributes=True)

    app_env: str = "development"
    secret_key: str = _DEFAULT_SECRET_KEY

    database_url: str = "sqlite://"
    table_name: str = "settings"
    sqlalchemy_engine_options: dict[str, Any] = Field(default_factory=dict)

    cache_enabled: bool = True
    cache_store: str = "memory"
    cache_ttl: int = 3600
    cache_prefix: str = "setting_"

    redis_url: str | None = None
    redis_socket_timeout: float = 5.0

    fernet_key: str = ""
    fernet_previous_keys: list[str] = Field(default_factory=list)

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    @property
    def is_testing(self) -> bool:
        """Check if the application is running in testing mode."""
        return self.app_env == "testing"

    @classmethod
    def load(cls, env: Environment | None = None) -> "Settings":
        """Load settings from environment variables."""
        if env is None:
            env = Environment()

        fernet_key = env.FERNET_KEY or _derive_fernet_key(env.SECRET_KEY)

        return cls(
            app_env=env.APP_ENV,
            secret_key=env.SECRET_KEY,
            database_url=env.DATABASE_URL,
            table_name=env.SETTINGS_TABLE_NAME,
            cache_enabled=env.SETTINGS_CACHE_ENABLED,
            cache_store=env.SETTINGS_CACHE_STORE.strip().lower(),
            cache_ttl=env.SETTINGS_CACHE_TTL,
            cache_prefix=env.SETTINGS_CACHE_PREFIX,
            redis_url=env.REDIS_URL,
            redis_socket_timeout=env.REDIS_SOCKET_TIMEOUT,
            fernet_key=fernet_key,
            fernet_previous_keys=env.FERNET_PREVIOUS_KEYS,
        )

    def validate_production_config(self) -> None:
        """Validate that the configuration is usable.

        Raises:
            ConfigurationError: If required settings are missing or insecure
        """
        errors: list[str] = []

        # SECRET_KEY must be changed from default in production
        if self.is_production and self.secret_key == _DEFAULT_SECRET_KEY:
            errors.append(
                "SECRET_KEY must be set to a secure value in production "
                "(current value is the insecure default)"
            )

        if self.cache_store not in CACHE_STORES:
            errors.append(
                f"SETTINGS_CACHE_STORE must be one of {', '.join(CACHE_STORES)} "
                f"(got '{self.cache_store}')"
            )

        if self.cache_enabled and self.cache_store == "redis" and not self.redis_url:
            errors.append("REDIS_URL must be set when SETTINGS_CACHE_STORE is redis")

        if self.cache_ttl <= 0:
            errors.append("SETTINGS_CACHE_TTL must be a positive number of seconds")

        if errors:
            raise ConfigurationError(
                "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            )
