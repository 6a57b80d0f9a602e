"""SQLAlchemy models for the settings store."""

from settings_store.models.setting import (
    DEFAULT_GROUP,
    Setting,
    SettingColumns,
    SettingType,
    setting_model_for,
)

__all__ = ["DEFAULT_GROUP", "Setting", "SettingColumns", "SettingType", "setting_model_for"]
