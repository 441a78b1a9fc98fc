"""AES-256-GCM codec protecting the secret embedded in configuration tokens."""

from __future__ import annotations

import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .config import ENCRYPTION_KEY_BYTES, Settings
from .errors import AuthenticationError, FormatError

logger = logging.getLogger(__name__)

IV_BYTES = 16
TAG_BYTES = 16


class SessionCipher:
    """Encrypt and decrypt single strings as ``iv:tag:ciphertext`` hex blobs.

    The blob layout matches Node's ``aes-256-gcm`` output so tokens issued by
    either implementation stay interchangeable for a given key.
    """

    def __init__(self, key: bytes) -> None:
        if len(key) != ENCRYPTION_KEY_BYTES:
            raise ValueError(f"Encryption key must be {ENCRYPTION_KEY_BYTES} bytes")
        self._aead = AESGCM(key)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionCipher":
        """Build a cipher from ``ENCRYPTION_KEY`` or a process-lifetime random key."""

        if settings.encryption_key is not None:
            return cls(settings.encryption_key)
        logger.warning(
            "ENCRYPTION_KEY is not set; using a random key. Tokens issued by this "
            "process will stop working after a restart."
        )
        return cls(os.urandom(ENCRYPTION_KEY_BYTES))

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(IV_BYTES)
        sealed = self._aead.encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return ":".join((iv.hex(), tag.hex(), ciphertext.hex()))

    def decrypt(self, blob: str) -> str:
        parts = blob.split(":")
        if len(parts) != 3:
            raise FormatError("Encrypted blob must have exactly three fields")
        try:
            iv, tag, ciphertext = (bytes.fromhex(part) for part in parts)
        except ValueError as exc:
            raise FormatError("Encrypted blob fields must be hexadecimal") from exc
        if len(iv) != IV_BYTES or len(tag) != TAG_BYTES:
            raise FormatError("Encrypted blob has an invalid IV or tag length")
        try:
            plaintext = self._aead.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as exc:
            raise AuthenticationError("Encrypted blob failed authentication") from exc
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:  # pragma: no cover - authenticated garbage
            raise AuthenticationError("Decrypted secret is not valid UTF-8") from exc
