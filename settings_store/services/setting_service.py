"""Setting service with cache-aside reads and typed payloads."""

import functools
import json
import logging
from dataclasses import dataclass
from typing import Any

from settings_store.exceptions import LockedSettingException, RecordNotFoundException
from settings_store.models.setting import DEFAULT_GROUP, SettingColumns, SettingType
from settings_store.services.cache_backend import CacheBackend, CacheError
from settings_store.services.payload_codec import (
    PayloadCodec,
    resolve_type,
    to_bool,
    to_float,
    to_int,
)
from settings_store.services.storage import SettingStorage
from settings_store.utils.metrics import record_cache_lookup, record_operation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheOptions:
    """Cache behaviour of the setting service."""

    enabled: bool = True
    ttl: int = 3600
    prefix: str = ""


class SettingService:
    """Service for reading and writing typed settings.

    Reads check the cache first and fall back to storage on a miss, caching
    the decoded value. Writes go to storage and then evict the cache entry, once
    immediately and once more when the session transaction commits or rolls
    back, so the next read repopulates it from durable data. The cache is an optimisation only: when
    it fails, reads go to storage and the failure is logged.

    Concurrent writers are not serialised; the last write to storage wins and
    a concurrent read may cache an older value until its TTL expires.
    """

    def __init__(
        self,
        storage: SettingStorage,
        cache: CacheBackend,
        codec: PayloadCodec,
        cache_options: CacheOptions,
    ) -> None:
        """Initialize setting service.

        Args:
            storage: Storage gateway for setting records
            cache: Cache backend for decoded values
            codec: Payload codec for typed values
            cache_options: Whether and how to cache reads
        """
        self.storage = storage
        self.cache = cache
        self.codec = codec
        self.cache_options = cache_options

    def cache_key(self, key: str) -> str:
        """Return the cache key for a setting key."""
        return f"{self.cache_options.prefix}{key}"

    def get(self, key: str, default: Any = None) -> Any:
        """Get a setting value.

        Args:
            key: Setting key
            default: Value returned when the setting does not exist

        Returns:
            Decoded setting value or default

        Raises:
            StorageUnavailableException: If storage cannot be reached
        """
        if not self.cache_options.enabled:
            record_cache_lookup("bypass")
            return self._get_from_storage(key, default, cache_key=None)

        cache_key = self.cache_key(key)
        try:
            cached = self.cache.get(cache_key)
        except CacheError as e:
            logger.warning("Cache read failed for %s, reading from storage: %s", key, e)
            record_cache_lookup("error")
            return self._get_from_storage(key, default, cache_key=None)

        if cached is not None:
            try:
                value = json.loads(cached)
            except (TypeError, ValueError) as e:
                logger.warning("Discarding unreadable cache entry for %s: %s", key, e)
                record_cache_lookup("error")
                self.clear_cache(key)
                return self._get_from_storage(key, default, cache_key=cache_key)
            record_cache_lookup("hit")
            return value

        record_cache_lookup("miss")
        return self._get_from_storage(key, default, cache_key=cache_key)

    def _get_from_storage(self, key: str, default: Any, cache_key: str | None) -> Any:
        record = self.storage.find_by_key(key)
        if record is None:
            return default

        value = self.codec.decode_record(record)

        if cache_key is not None:
            try:
                self.cache.set(cache_key, json.dumps(value), self.cache_options.ttl)
            except CacheError as e:
                logger.warning("Cache write failed for %s: %s", key, e)

        return value

    def get_str(self, key: str, default: str | None = None) -> str | None:
        """Get a setting as a string."""
        value = self.get(key)
        if value is None:
            return default
        return value if isinstance(value, str) else str(value)

    def get_int(self, key: str, default: int = 0) -> int:
        """Get a setting as an int, using permissive numeric parsing."""
        value = self.get(key)
        return default if value is None else to_int(value)

    def get_float(self, key: str, default: float = 0.0) -> float:
        """Get a setting as a float, using permissive numeric parsing."""
        value = self.get(key)
        return default if value is None else to_float(value)

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Get a setting as a bool, using permissive truthiness parsing."""
        value = self.get(key)
        return default if value is None else to_bool(value)

    def get_record(self, key: str) -> SettingColumns | None:
        """Get the stored record for a key, bypassing the cache."""
        return self.storage.find_by_key(key)

    def exists(self, key: str) -> bool:
        """Check whether a setting exists in storage."""
        return self.storage.exists(key)

    def get_group(self, group: str) -> dict[str, Any]:
        """Get decoded values of all settings in a group, keyed by setting key.

        Values are read from storage; the cache is neither read nor populated.
        """
        return {
            record.key: self.codec.decode_record(record)
            for record in self.storage.list_by_group(group)
        }

    def set(
        self,
        key: str,
        value: Any,
        type: SettingType | str = SettingType.STRING,
        group: str = DEFAULT_GROUP,
        description: str | None = None,
    ) -> SettingColumns:
        """Create or update a setting.

        The group is only applied when the setting is created. Both payload
        columns and the type are rewritten together.

        Args:
            key: Setting key
            value: Value to store
            type: How the value is encoded
            group: Group of a newly created setting
            description: Optional description; kept unchanged when None

        Returns:
            The persisted setting record

        Raises:
            LockedSettingException: If the setting is locked
            ValidationException: If the value does not fit the type
            StorageUnavailableException: If storage cannot be reached
        """
        setting_type = resolve_type(type)
        record = self.storage.find_by_key(key)

        if record is not None and record.is_locked:
            record_operation("set", "locked")
            raise LockedSettingException(key, "update")

        # Encode before touching the record so a rejected value leaves it unchanged
        payload = self.codec.encode(value, setting_type)

        if record is None:
            record = self.storage.new_record(key, group)
            logger.debug("Creating setting %s in group %s", key, group)
        else:
            logger.debug("Updating setting %s", key)

        record.value = payload.value
        record.structured_value = payload.structured_value
        record.type = setting_type.value
        if description is not None:
            record.description = description

        record = self.storage.upsert(record)
        self._invalidate(key)
        record_operation("set", "success")
        return record

    def delete(self, key: str) -> bool:
        """Delete a setting.

        Returns:
            True if the setting was deleted, False if it didn't exist

        Raises:
            LockedSettingException: If the setting is locked
            StorageUnavailableException: If storage cannot be reached
        """
        record = self.storage.find_by_key(key)
        if record is not None and record.is_locked:
            record_operation("delete", "locked")
            raise LockedSettingException(key, "delete")

        deleted = self.storage.delete_by_key(key) > 0
        if deleted:
            self._invalidate(key)
            logger.debug("Deleted setting %s", key)
        record_operation("delete", "success" if deleted else "not_found")
        return deleted

    def set_locked(self, key: str, locked: bool) -> SettingColumns:
        """Lock or unlock a setting.

        Raises:
            RecordNotFoundException: If the setting does not exist
        """
        record = self.storage.find_by_key(key)
        if record is None:
            raise RecordNotFoundException("Setting", key)

        record.is_locked = locked
        record = self.storage.upsert(record)
        logger.debug("%s setting %s", "Locked" if locked else "Unlocked", key)
        return record

    def lock(self, key: str) -> SettingColumns:
        """Lock a setting against updates and deletion."""
        return self.set_locked(key, True)

    def unlock(self, key: str) -> SettingColumns:
        """Allow updates and deletion of a setting again."""
        return self.set_locked(key, False)

    def _invalidate(self, key: str) -> None:
        """Evict a written key now and again when its transaction ends.

        Until the commit or rollback, readers can still cache the previous
        row (other sessions) or the uncommitted one (this session).
        """
        if not self.cache_options.enabled:
            return
        self.clear_cache(key)
        self.storage.after_transaction(functools.partial(self.clear_cache, key))

    def clear_cache(self, key: str) -> None:
        """Evict the cached value of a setting.

        The entry is evicted whether or not the setting exists in storage.
        Cache failures are logged; a stale entry then expires with its TTL.
        """
        if not self.cache_options.enabled:
            return

        try:
            self.cache.delete(self.cache_key(key))
        except CacheError as e:
            logger.warning("Failed to evict cache entry for %s: %s", key, e)
