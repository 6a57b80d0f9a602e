"""String encryption for encrypted settings."""

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

from settings_store.exceptions import DecryptionException

if TYPE_CHECKING:
    from settings_store.config import Settings

logger = logging.getLogger(__name__)


@runtime_checkable
class SettingCipher(Protocol):
    """Encrypt/decrypt contract used by the payload codec."""

    def encrypt(self, plaintext: str) -> str: ...

    def decrypt(self, ciphertext: str) -> str: ...


class FernetCipher:
    """Fernet cipher with support for retired keys.

    New values are always encrypted with the current key. Decryption tries
    the current key first and then each previous key, so values written
    before a key rotation stay readable until they are rewritten.
    """

    def __init__(self, key: str, previous_keys: list[str] | None = None) -> None:
        """Initialize cipher.

        Args:
            key: Current Fernet key (32-byte URL-safe base64)
            previous_keys: Retired keys accepted for decryption only
        """
        fernets = [Fernet(key.encode())]
        fernets.extend(Fernet(k.encode()) for k in previous_keys or [])
        self._fernet = MultiFernet(fernets)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string with the current key."""
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a string produced by any configured key.

        Raises:
            DecryptionException: If no configured key accepts the token
        """
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken as e:
            raise DecryptionException("the token is invalid for every configured key") from e
        except UnicodeDecodeError as e:
            raise DecryptionException("the decrypted bytes are not valid UTF-8") from e


def build_cipher(settings: "Settings") -> FernetCipher | None:
    """Create the cipher for encrypted settings, or None without a key."""
    if not settings.fernet_key:
        logger.warning("No Fernet key configured, encrypted settings cannot be written")
        return None
    return FernetCipher(settings.fernet_key, settings.fernet_previous_keys)
