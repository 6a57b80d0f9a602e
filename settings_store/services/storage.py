"""Relational storage for settings records."""

import functools
import logging
from collections.abc import Callable
from typing import Any, Protocol, TypeVar

from sqlalchemy import event, select
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.orm import Session, SessionTransaction

from settings_store.exceptions import StorageUnavailableException
from settings_store.models.setting import Setting, SettingColumns

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

# Session.info key holding callbacks to run when the root transaction ends
_AFTER_TRANSACTION_KEY = "settings_store.after_transaction"


class SettingStorage(Protocol):
    """Storage operations required by the setting service."""

    def find_by_key(self, key: str) -> SettingColumns | None: ...

    def new_record(self, key: str, group: str) -> SettingColumns: ...

    def upsert(self, record: SettingColumns) -> SettingColumns: ...

    def delete_by_key(self, key: str) -> int: ...

    def exists(self, key: str) -> bool: ...

    def list_by_group(self, group: str) -> list[SettingColumns]: ...

    def after_transaction(self, callback: Callable[[], None]) -> None: ...


def _run_after_transaction(session: Session, transaction: SessionTransaction) -> None:
    """Run the callbacks registered for a root transaction that committed or rolled back."""
    if transaction.parent is not None:
        return
    for callback in session.info.pop(_AFTER_TRANSACTION_KEY, []):
        callback()


def _storage_operation(operation: str) -> Callable[[Callable[..., _T]], Callable[..., _T]]:
    """Translate connectivity failures into StorageUnavailableException.

    The session is rolled back so it can be reused after the failure.
    """

    def decorator(func: Callable[..., _T]) -> Callable[..., _T]:
        @functools.wraps(func)
        def wrapper(self: "SqlAlchemySettingStorage", *args: Any, **kwargs: Any) -> _T:
            try:
                return func(self, *args, **kwargs)
            except (OperationalError, InterfaceError, DisconnectionError) as e:
                logger.error("Storage failure during %s: %s", operation, e)
                self.db.rollback()
                raise StorageUnavailableException(operation, str(e)) from e

        return wrapper

    return decorator


class SqlAlchemySettingStorage:
    """Setting storage backed by a SQLAlchemy session.

    Changes are flushed, not committed; the owner of the session decides
    when to commit.
    """

    def __init__(self, db: Session, model: type[SettingColumns] = Setting) -> None:
        """Initialize storage.

        Args:
            db: SQLAlchemy database session
            model: Mapped settings class for the configured table
        """
        self.db = db
        self.model = model

    def new_record(self, key: str, group: str) -> SettingColumns:
        """Build an unsaved record for a new key."""
        return self.model(key=key, group=group, is_locked=False)  # type: ignore[call-arg]

    @_storage_operation("read setting")
    def find_by_key(self, key: str) -> SettingColumns | None:
        stmt = select(self.model).where(self.model.key == key)
        return self.db.scalars(stmt).one_or_none()

    @_storage_operation("save setting")
    def upsert(self, record: SettingColumns) -> SettingColumns:
        if record not in self.db:
            self.db.add(record)
        self.db.flush()
        # Pick up server-generated timestamps
        self.db.refresh(record)
        return record

    @_storage_operation("delete setting")
    def delete_by_key(self, key: str) -> int:
        record = self.find_by_key(key)
        if record is None:
            return 0
        self.db.delete(record)
        self.db.flush()
        return 1

    @_storage_operation("check setting")
    def exists(self, key: str) -> bool:
        stmt = select(self.model.id).where(self.model.key == key)
        return self.db.scalars(stmt).first() is not None

    @_storage_operation("list settings")
    def list_by_group(self, group: str) -> list[SettingColumns]:
        stmt = select(self.model).where(self.model.group == group).order_by(self.model.key)
        return list(self.db.scalars(stmt).all())

    def after_transaction(self, callback: Callable[[], None]) -> None:
        """Run callback once the current transaction commits or rolls back."""
        self.db.info.setdefault(_AFTER_TRANSACTION_KEY, []).append(callback)
        if not event.contains(self.db, "after_transaction_end", _run_after_transaction):
            event.listen(self.db, "after_transaction_end", _run_after_transaction)
