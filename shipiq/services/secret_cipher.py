"""AES-256-CBC encryption for secrets stored in MongoDB.

Ciphertext and IV are hex encoded, matching the documents already on disk.
CBC carries no authentication tag, so a changed key usually shows up as a
padding error but can occasionally decrypt to garbage; both paths raise
``DecryptionError`` where they can be detected.
"""

import binascii
import os
from typing import NamedTuple, Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from shipiq.config import Settings
from shipiq.exceptions import ConfigurationError, DecryptionError

IV_LENGTH = 16
KEY_LENGTH = 32


class CipherText(NamedTuple):
    encrypted_value: str
    iv: str


def _decode_key(key_hex: Optional[str]) -> bytes:
    if not key_hex:
        raise ConfigurationError("ENCRYPTION_KEY is not configured")
    try:
        key = bytes.fromhex(key_hex.strip())
    except ValueError as exc:
        raise ConfigurationError("ENCRYPTION_KEY must be hex encoded") from exc
    if len(key) != KEY_LENGTH:
        raise ConfigurationError(
            f"ENCRYPTION_KEY must be {KEY_LENGTH} bytes ({KEY_LENGTH * 2} hex characters). "
            f"Current length: {len(key)}"
        )
    return key


class SecretCipher:
    def __init__(self, key_hex: Optional[str]) -> None:
        self._key = _decode_key(key_hex)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SecretCipher":
        return cls(settings.secrets.encryption_key)

    def encrypt(self, plaintext: str) -> CipherText:
        if not isinstance(plaintext, str):
            raise TypeError("Value to encrypt must be a string")

        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        encrypted = encryptor.update(padded) + encryptor.finalize()
        return CipherText(encrypted_value=encrypted.hex(), iv=iv.hex())

    def decrypt(self, encrypted_value: str, iv_hex: str) -> str:
        try:
            iv = bytes.fromhex(iv_hex)
            encrypted = bytes.fromhex(encrypted_value)
        except (TypeError, ValueError, binascii.Error) as exc:
            raise DecryptionError("Ciphertext or IV is not valid hex") from exc

        if len(iv) != IV_LENGTH:
            raise DecryptionError(f"IV must be {IV_LENGTH} bytes, got {len(iv)}")
        if not encrypted or len(encrypted) % IV_LENGTH:
            raise DecryptionError("Ciphertext length is not a multiple of the block size")

        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(encrypted) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            data = unpadder.update(padded) + unpadder.finalize()
            return data.decode("utf-8")
        except (ValueError, UnicodeDecodeError) as exc:
            raise DecryptionError(
                "Secret could not be decrypted; the key may have changed"
            ) from exc
