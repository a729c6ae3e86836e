"""
Credential Vault - AES-256-GCM encryption for stored registry secrets
"""

import base64
import binascii
import hashlib
import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from registry_errors import EncryptionError, KeyAlreadyInitialized, VaultLocked

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12


def derive_key(passphrase: str) -> bytes:
    """Hash an operator passphrase to a 32-byte vault key"""
    return hashlib.sha256(passphrase.encode("utf-8")).digest()


class CredentialVault:
    """Encrypts and decrypts secret strings with a key that can be set exactly once"""

    def __init__(self, key: Optional[bytes] = None):
        self._cipher: Optional[AESGCM] = None
        if key is not None:
            self.set_key(key)

    @property
    def is_unlocked(self) -> bool:
        return self._cipher is not None

    def set_key(self, key: bytes) -> None:
        """Install the vault key. A second call fails; a restart is needed to change keys."""
        if self._cipher is not None:
            raise KeyAlreadyInitialized()
        if len(key) != KEY_SIZE:
            raise EncryptionError(f"key must be {KEY_SIZE} bytes, got {len(key)}")
        self._cipher = AESGCM(key)
        logger.debug("Vault key initialized")

    def _require_cipher(self) -> AESGCM:
        if self._cipher is None:
            raise VaultLocked()
        return self._cipher

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string; the nonce is prepended and the result base64 encoded"""
        cipher = self._require_cipher()
        # Empty values skip the cipher so no fixed nonce/tag pattern is stored
        if not plaintext:
            return ""

        nonce = os.urandom(NONCE_SIZE)
        ciphertext = cipher.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + ciphertext).decode("ascii")

    def decrypt(self, data: str) -> str:
        """Decrypt a value produced by encrypt()"""
        cipher = self._require_cipher()
        if not data:
            return ""

        try:
            decoded = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise EncryptionError(f"invalid base64 payload: {e}") from e

        if len(decoded) < NONCE_SIZE:
            raise EncryptionError("Invalid encrypted data")

        nonce, ciphertext = decoded[:NONCE_SIZE], decoded[NONCE_SIZE:]
        try:
            plaintext = cipher.decrypt(nonce, ciphertext, None)
        except InvalidTag as e:
            raise EncryptionError("authentication failed (wrong key or corrupt data)") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncryptionError(f"decrypted value is not UTF-8: {e}") from e
