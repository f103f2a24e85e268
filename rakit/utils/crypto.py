"""Encryption of stored controller API keys.

Keys are sealed with Fernet. The Fernet key is derived from the
``IP_DASH_SECRET`` environment secret, so rotating that secret invalidates
every stored key.
"""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from rakit.exceptions import ConfigError
from rakit.utils.logger import get_logger

logger = get_logger(__name__)


class SecretBox:
    """Encrypt/decrypt short secrets with a key derived from a passphrase."""

    def __init__(self, secret: str | None) -> None:
        self._fernet: Fernet | None = None
        if secret:
            digest = hashlib.sha256(secret.encode("utf-8")).digest()
            self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    @property
    def configured(self) -> bool:
        return self._fernet is not None

    def _require(self) -> Fernet:
        if self._fernet is None:
            raise ConfigError("IP_DASH_SECRET is not configured")
        return self._fernet

    def encrypt(self, value: str | None) -> str | None:
        if not value:
            return None
        return self._require().encrypt(value.encode("utf-8")).decode("ascii")

    def decrypt(self, payload: str | None) -> str:
        if not payload:
            return ""
        try:
            return self._require().decrypt(payload.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            logger.warning(
                "Stored secret could not be decrypted",
                event="rakit.crypto.decrypt_failed",
            )
            raise ConfigError(
                "Stored API key cannot be decrypted with the configured IP_DASH_SECRET"
            ) from exc
