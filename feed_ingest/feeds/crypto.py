"""
AES-128-CBC helpers for account tokens stored in profiles.

Key and IV are hex encoded and come from the ENCRYPTION_KEY and
ENCRYPTION_IV settings. Ciphertexts are hex encoded, PKCS#7 padded.
"""

import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from feed_ingest.config.settings import ConfigError, Settings

_BLOCK_SIZE_BITS = 128


class TokenCipher:
    """Encrypt and decrypt account tokens with a fixed key and IV."""

    def __init__(self, key_hex: str, iv_hex: str):
        self._key = bytes.fromhex(key_hex)
        self._iv = bytes.fromhex(iv_hex)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenCipher":
        if not settings.encryption_configured:
            raise ConfigError("ENCRYPTION_KEY and ENCRYPTION_IV must be set")
        return cls(settings.encryption_key, settings.encryption_iv)

    def _cipher(self) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.CBC(self._iv))

    def encrypt(self, plain_text: str) -> str:
        padder = padding.PKCS7(_BLOCK_SIZE_BITS).padder()
        padded = padder.update(plain_text.encode("utf-8")) + padder.finalize()
        encryptor = self._cipher().encryptor()
        return (encryptor.update(padded) + encryptor.finalize()).hex()

    def decrypt(self, encrypted_hex: str) -> str:
        """
        Raises:
            ValueError: If the ciphertext is not valid hex or the padding is wrong.
        """
        decryptor = self._cipher().decryptor()
        padded = decryptor.update(bytes.fromhex(encrypted_hex)) + decryptor.finalize()
        unpadder = padding.PKCS7(_BLOCK_SIZE_BITS).unpadder()
        return (unpadder.update(padded) + unpadder.finalize()).decode("utf-8")


def generate_key() -> tuple[str, str]:
    """New random (key, iv) pair, hex encoded, for ENCRYPTION_KEY / ENCRYPTION_IV."""
    return os.urandom(16).hex(), os.urandom(16).hex()
