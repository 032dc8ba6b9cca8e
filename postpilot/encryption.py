"""
Encryption of stored API keys.

Keys are written to the configuration file as Fernet tokens and decrypted
only when a provider client is built for a request.
"""

import logging
import os
from typing import Optional, Union

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

ENV_KEY = "POSTPILOT_ENCRYPTION_KEY"


class ApiKeyCipher:
    """
    Fernet wrapper for API keys.

    Without a key the cipher is a pass-through, so plaintext configuration
    keeps working. Values that are not valid tokens are returned unchanged
    by decrypt() for the same reason.
    """

    def __init__(self, key: Optional[Union[str, bytes]] = None):
        self._fernet = None
        if key:
            if isinstance(key, str):
                key = key.encode("utf-8")
            try:
                self._fernet = Fernet(key)
            except (ValueError, TypeError) as e:
                raise ValueError(f"Invalid Fernet encryption key: {e}") from e

    @classmethod
    def from_env(cls) -> 'ApiKeyCipher':
        """Create a cipher from the POSTPILOT_ENCRYPTION_KEY environment variable."""
        return cls(os.environ.get(ENV_KEY) or None)

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode("utf-8")

    @property
    def enabled(self) -> bool:
        return self._fernet is not None

    def encrypt(self, value: Optional[str]) -> Optional[str]:
        if not value:
            return value
        if self._fernet is None:
            return value
        return self._fernet.encrypt(value.encode("utf-8")).decode("utf-8")

    def decrypt(self, value: Optional[str]) -> Optional[str]:
        if not value:
            return value
        if self._fernet is None:
            return value
        try:
            return self._fernet.decrypt(value.encode("utf-8")).decode("utf-8")
        except InvalidToken:
            # Stored before encryption was enabled
            logger.debug("API key is not a valid token, using it as plaintext")
            return value

    def is_encrypted(self, value: Optional[str]) -> bool:
        if not value or self._fernet is None:
            return False
        try:
            self._fernet.decrypt(value.encode("utf-8"))
        except InvalidToken:
            return False
        return True
