"""
At-rest encryption for custodial wallet secrets.

Secrets are sealed with AES-256-GCM and stored as ``iv:tag:ciphertext`` (all
hex). The plaintext is the UTF-8 bytes of the Base58 seed.
"""

import logging
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger(__name__)

IV_LENGTH = 16
TAG_LENGTH = 16
SELF_TEST_KEY = "5KQwrPbwdL6PhXujxW37FSSQZ1JiwsST4cqQzDeyXtP79zkvFD3"


class EncryptionError(Exception):
    """Raised when a secret cannot be sealed."""
    pass


class DecryptionError(Exception):
    """Raised when stored key material cannot be opened. Never returns partial data."""
    pass


class SecretCipher:
    """Seal and open wallet secrets with a single 32-byte key."""

    def __init__(self, key_hex: str):
        if not key_hex or len(key_hex) != 64:
            raise EncryptionError("ENCRYPTION_KEY must be a 32-byte hex string (64 characters)")
        try:
            key = bytes.fromhex(key_hex)
        except ValueError as e:
            raise EncryptionError(f"ENCRYPTION_KEY is not valid hex: {e}") from e
        self._aead = AESGCM(key)

    def encrypt(self, secret: str) -> str:
        try:
            iv = secrets.token_bytes(IV_LENGTH)
            sealed = self._aead.encrypt(iv, secret.encode("utf-8"), None)
        except Exception as e:
            logger.error(f"Encryption failed: {type(e).__name__}")
            raise EncryptionError("Failed to encrypt private key") from e

        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, encrypted: str) -> str:
        parts = (encrypted or "").split(":")
        if len(parts) != 3:
            raise DecryptionError("Invalid encrypted data format")

        try:
            iv, tag, ciphertext = (bytes.fromhex(part) for part in parts)
        except ValueError as e:
            raise DecryptionError("Encrypted data is not valid hex") from e
        if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH:
            raise DecryptionError("Invalid encrypted data format")

        try:
            plaintext = self._aead.decrypt(iv, ciphertext + tag, None)
            return plaintext.decode("utf-8")
        except (InvalidTag, UnicodeDecodeError) as e:
            raise DecryptionError("Failed to decrypt private key") from e

    def self_test(self) -> bool:
        """Round-trip a known key; used at startup to catch a wrong ENCRYPTION_KEY early."""
        try:
            ok = self.decrypt(self.encrypt(SELF_TEST_KEY)) == SELF_TEST_KEY
        except (EncryptionError, DecryptionError) as e:
            logger.error(f"Encryption self-test failed: {e}")
            return False
        if not ok:
            logger.error("Encryption self-test failed: keys do not match")
        return ok
