"""Translation between typed setting values and their storage columns.

A setting is stored in two columns: ``value`` (text) for scalar and
encrypted payloads, and ``structured_value`` (JSON) for array payloads.
Exactly one of them is populated, chosen by the setting type.

Numeric and boolean decoding is permissive and never raises: malformed
numbers decode to zero and anything that is not a recognised truthy string
decodes to ``False``. Encrypted values that cannot be decrypted decode to
the raw ciphertext, with a warning logged.
"""

import logging
import math
import re
from collections.abc import Callable
from typing import Any, NamedTuple

from settings_store.exceptions import (
    DecryptionException,
    InvalidOperationException,
    ValidationException,
)
from settings_store.models.setting import SettingColumns, SettingType
from settings_store.services.cipher import SettingCipher

logger = logging.getLogger(__name__)

TRUE_VALUES = frozenset({"1", "true", "yes", "on"})

# Longest numeric prefix of a string, e.g. "12abc" -> "12", " -3.5e2x" -> "-3.5e2"
_NUMERIC_PREFIX = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_INTEGER_LITERAL = re.compile(r"[+-]?\d+")

# Legacy type names accepted on read and write
_TYPE_ALIASES = {
    "json": SettingType.ARRAY,
    "int": SettingType.INTEGER,
    "bool": SettingType.BOOLEAN,
}


class EncodedPayload(NamedTuple):
    """Storage representation of a setting value."""

    value: str | None
    structured_value: Any | None


def to_int(raw: Any) -> int:
    """Convert a raw value to int, falling back to 0."""
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw) if math.isfinite(raw) else 0
    if not isinstance(raw, str):
        return 0

    match = _NUMERIC_PREFIX.match(raw.strip())
    if match is None:
        return 0
    literal = match.group(0)
    if _INTEGER_LITERAL.fullmatch(literal):
        return int(literal)
    try:
        number = float(literal)
    except ValueError:
        return 0
    return int(number) if math.isfinite(number) else 0


def to_float(raw: Any) -> float:
    """Convert a raw value to float, falling back to 0.0."""
    if isinstance(raw, (bool, int, float)):
        return float(raw)
    if not isinstance(raw, str):
        return 0.0

    match = _NUMERIC_PREFIX.match(raw.strip())
    if match is None:
        return 0.0
    try:
        return float(match.group(0))
    except ValueError:
        return 0.0


def to_bool(raw: Any) -> bool:
    """Convert a raw value to bool.

    Strings are true only when they read "1", "true", "yes" or "on"
    (case-insensitive); other values use Python truthiness.
    """
    if isinstance(raw, str):
        return raw.strip().lower() in TRUE_VALUES
    return bool(raw)


def resolve_type(setting_type: SettingType | str) -> SettingType:
    """Resolve a type tag to a SettingType.

    Raises:
        ValidationException: If the tag does not name a known type
    """
    if isinstance(setting_type, SettingType):
        return setting_type
    name = str(setting_type).strip().lower()
    if name in _TYPE_ALIASES:
        return _TYPE_ALIASES[name]
    try:
        return SettingType(name)
    except ValueError:
        raise ValidationException(f"Unknown setting type '{setting_type}'") from None


class PayloadCodec:
    """Encodes and decodes setting payloads, one handler pair per type."""

    def __init__(self, cipher: SettingCipher | None = None) -> None:
        """Initialize codec.

        Args:
            cipher: Cipher for encrypted settings; without one, encrypted
                values cannot be written and are read back as stored
        """
        self.cipher = cipher
        self._handlers: dict[
            SettingType,
            tuple[Callable[[Any], EncodedPayload], Callable[[EncodedPayload], Any]],
        ] = {
            SettingType.STRING: (self._encode_string, self._decode_string),
            SettingType.INTEGER: (self._encode_integer, self._decode_integer),
            SettingType.FLOAT: (self._encode_float, self._decode_float),
            SettingType.BOOLEAN: (self._encode_boolean, self._decode_boolean),
            SettingType.ARRAY: (self._encode_array, self._decode_array),
            SettingType.ENCRYPTED: (self._encode_encrypted, self._decode_encrypted),
        }

    def encode(self, value: Any, setting_type: SettingType | str = SettingType.STRING) -> EncodedPayload:
        """Encode a value into its storage columns.

        Raises:
            ValidationException: If the type is unknown or the value does
                not fit it
            InvalidOperationException: If an encrypted value is written
                without a cipher
        """
        encoder, _ = self._handlers[resolve_type(setting_type)]
        return encoder(value)

    def decode(
        self,
        value: str | None,
        structured_value: Any | None,
        setting_type: SettingType | str = SettingType.STRING,
    ) -> Any:
        """Decode storage columns into a typed value. Never raises."""
        payload = EncodedPayload(value, structured_value)
        try:
            resolved = resolve_type(setting_type)
        except ValidationException:
            logger.warning("Unknown setting type '%s', returning stored value", setting_type)
            return structured_value if structured_value is not None else value

        _, decoder = self._handlers[resolved]
        return decoder(payload)

    def decode_record(self, record: SettingColumns) -> Any:
        """Decode the payload of a stored setting."""
        return self.decode(record.value, record.structured_value, record.type)

    def _encode_string(self, value: Any) -> EncodedPayload:
        if value is None:
            return EncodedPayload("", None)
        return EncodedPayload(value if isinstance(value, str) else str(value), None)

    def _decode_string(self, payload: EncodedPayload) -> Any:
        return payload.value

    def _encode_integer(self, value: Any) -> EncodedPayload:
        return EncodedPayload(str(to_int(value)), None)

    def _decode_integer(self, payload: EncodedPayload) -> int:
        return to_int(payload.value)

    def _encode_float(self, value: Any) -> EncodedPayload:
        number = to_float(value)
        if not math.isfinite(number):
            raise ValidationException(f"Float settings must be finite (got {number!r})")
        return EncodedPayload(repr(number), None)

    def _decode_float(self, payload: EncodedPayload) -> float:
        return to_float(payload.value)

    def _encode_boolean(self, value: Any) -> EncodedPayload:
        return EncodedPayload("1" if to_bool(value) else "0", None)

    def _decode_boolean(self, payload: EncodedPayload) -> bool:
        return to_bool(payload.value)

    def _encode_array(self, value: Any) -> EncodedPayload:
        if isinstance(value, tuple):
            value = list(value)
        if not isinstance(value, (list, dict)):
            raise ValidationException(
                f"Array settings require a list or dict value, got {type(value).__name__}"
            )
        return EncodedPayload(None, value)

    def _decode_array(self, payload: EncodedPayload) -> Any:
        if payload.structured_value is None:
            return []
        return payload.structured_value

    def _encode_encrypted(self, value: Any) -> EncodedPayload:
        if self.cipher is None:
            raise InvalidOperationException(
                "store encrypted setting", "no encryption key is configured"
            )
        plaintext = "" if value is None else str(value)
        return EncodedPayload(self.cipher.encrypt(plaintext), None)

    def _decode_encrypted(self, payload: EncodedPayload) -> Any:
        if payload.value is None:
            return None
        if self.cipher is None:
            logger.warning("No encryption key configured, returning encrypted value as stored")
            return payload.value
        try:
            return self.cipher.decrypt(payload.value)
        except DecryptionException as e:
            logger.warning("Failed to decrypt setting value, returning raw value: %s", e)
            return payload.value
