"""Dependency injection container for services."""

from dependency_injector import containers, providers
from sqlalchemy import Engine
from sqlalchemy.orm import sessionmaker

from settings_store.config import Settings
from settings_store.models.setting import setting_model_for
from settings_store.services.cache_backend import build_cache_backend
from settings_store.services.cipher import build_cipher
from settings_store.services.payload_codec import PayloadCodec
from settings_store.services.setting_service import CacheOptions, SettingService
from settings_store.services.storage import SqlAlchemySettingStorage


class ServiceContainer(containers.DeclarativeContainer):
    """Container for service dependency injection."""

    # Configuration providers
    config = providers.Dependency(instance_of=Settings)
    engine = providers.Dependency(instance_of=Engine)
    session_maker = providers.Dependency(instance_of=sessionmaker)
    db_session = providers.ContextLocalSingleton(
        session_maker.provided.call()
    )

    # Cache backend - Singleton so the in-memory store is shared
    cache_backend = providers.Singleton(build_cache_backend, settings=config)

    cache_options = providers.Singleton(
        CacheOptions,
        enabled=config.provided.cache_enabled,
        ttl=config.provided.cache_ttl,
        prefix=config.provided.cache_prefix,
    )

    # Cipher and codec are stateless after construction
    cipher = providers.Singleton(build_cipher, settings=config)
    payload_codec = providers.Singleton(PayloadCodec, cipher=cipher)

    # Mapped model for the configured table
    setting_model = providers.Callable(
        setting_model_for, table_name=config.provided.table_name
    )

    # SettingStorage - Factory creates new instance per context with database session
    setting_storage = providers.Factory(
        SqlAlchemySettingStorage,
        db=db_session,
        model=setting_model,
    )

    # SettingService - Factory creates new instance per context
    setting_service = providers.Factory(
        SettingService,
        storage=setting_storage,
        cache=cache_backend,
        codec=payload_codec,
        cache_options=cache_options,
    )
