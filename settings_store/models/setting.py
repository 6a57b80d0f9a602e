"""Setting model for typed, persistent key-value storage."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from settings_store.database import Base

DEFAULT_TABLE_NAME = "settings"
DEFAULT_GROUP = "general"


class SettingType(StrEnum):
    """How the stored columns of a setting are interpreted.

    ARRAY payloads live in structured_value; every other type uses value.
    """

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    ARRAY = "array"
    ENCRYPTED = "encrypted"


class SettingColumns:
    """Column definitions shared by every mapped settings table."""

    # Surrogate primary key (auto-increment)
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Logical namespace, assigned when the setting is created
    group: Mapped[str] = mapped_column(
        String(100), nullable=False, default=DEFAULT_GROUP, index=True
    )

    # Setting key (unique across the table)
    key: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )

    # Scalar and encrypted payloads
    value: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Array / structured payloads
    structured_value: Mapped[Any | None] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )

    type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SettingType.STRING.value
    )

    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Advisory flag, enforced by SettingService
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        """Return string representation of the setting."""
        return f"<Setting(id={self.id}, group='{self.group}', key='{self.key}', type='{self.type}')>"


class Setting(SettingColumns, Base):
    """SQLAlchemy model for settings stored in the default table."""

    __tablename__ = DEFAULT_TABLE_NAME


_models: dict[str, type[SettingColumns]] = {DEFAULT_TABLE_NAME: Setting}


def setting_model_for(table_name: str) -> type[SettingColumns]:
    """Return the mapped settings class backed by the given table.

    Classes for non-default tables are created once and reused, so repeated
    lookups do not register duplicate mappers.
    """
    model = _models.get(table_name)
    if model is None:
        class_name = "Setting_" + "".join(c if c.isalnum() else "_" for c in table_name)
        model = type(class_name, (SettingColumns, Base), {"__tablename__": table_name})
        _models[table_name] = model
    return model
