"""Settings store: typed, cached key-value settings backed by a relational table."""

from settings_store.config import Settings
from settings_store.database import create_db_engine, create_schema, create_session_maker
from settings_store.models.setting import Setting, SettingType
from settings_store.services.container import ServiceContainer
from settings_store.services.setting_service import SettingService


def create_container(settings: Settings | None = None, create_tables: bool = False) -> ServiceContainer:
    """Create and configure the service container.

    Args:
        settings: Configuration; loaded from the environment when omitted
        create_tables: Create the settings table if it does not exist

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    if settings is None:
        settings = Settings.load()

    settings.validate_production_config()

    engine = create_db_engine(settings)
    if create_tables:
        create_schema(engine, settings.table_name)

    container = ServiceContainer()
    container.config.override(settings)
    container.engine.override(engine)
    container.session_maker.override(create_session_maker(engine))

    return container


__all__ = [
    "ServiceContainer",
    "Setting",
    "SettingService",
    "SettingType",
    "Settings",
    "create_container",
]
