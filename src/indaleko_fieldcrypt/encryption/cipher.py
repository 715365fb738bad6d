"""
Deterministic cipher for protected field values.

This module provides the symmetric cipher used for every protected field.
Ciphertext is deterministic: the same secret and plaintext always produce
the same hex string, which keeps stored values comparable for equality.
"""

import hashlib
import logging

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..errors import CipherError, ConfigError


logger = logging.getLogger(__name__)

# AES-256 key and CTR initial counter block sizes in bytes
KEY_SIZE = 32
IV_SIZE = 16


def derive_key_and_iv(secret: str) -> tuple[bytes, bytes]:
    """
    Derive an AES key and IV from a secret.

    This is OpenSSL's EVP_BytesToKey with MD5, a single iteration and no
    salt, so ciphertext stays compatible with stores written by other
    clients using the same scheme.

    Args:
        secret: The configured secret

    Returns:
        Tuple of (key, iv)
    """
    password = secret.encode("utf-8")
    material = b""
    block = b""
    while len(material) < KEY_SIZE + IV_SIZE:
        block = hashlib.md5(block + password).digest()
        material += block
    return material[:KEY_SIZE], material[KEY_SIZE:KEY_SIZE + IV_SIZE]


class CipherEngine:
    """
    AES-256-CTR cipher keyed by a caller-supplied secret.

    The key is derived once, at construction. Every call restarts the
    counter at the derived IV, so encryption is a pure function of the
    plaintext.
    """

    def __init__(self, secret: str) -> None:
        """
        Initialize the cipher engine.

        Args:
            secret: The secret to derive the key from

        Raises:
            ConfigError: If the secret is empty
        """
        if not isinstance(secret, str) or not secret.strip():
            raise ConfigError("Encryption secret must be a non-empty string")

        self._key, self._iv = derive_key_and_iv(secret)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(algorithm='AES-256-CTR')"

    def _cipher(self) -> Cipher:
        return Cipher(
            algorithms.AES(self._key),
            modes.CTR(self._iv),
            backend=default_backend(),
        )

    def encrypt(self, plaintext: bytes) -> str:
        """
        Encrypt bytes.

        Args:
            plaintext: The bytes to encrypt

        Returns:
            Lowercase hex ciphertext, twice as long as the plaintext
        """
        encryptor = self._cipher().encryptor()
        ciphertext = encryptor.update(plaintext) + encryptor.finalize()
        return ciphertext.hex()

    def decrypt(self, ciphertext_hex: str) -> bytes:
        """
        Decrypt hex ciphertext.

        CTR mode carries no authentication tag. All plaintext handled here
        is UTF-8 text, so output that does not decode as UTF-8 is reported
        as a wrong secret or tampered ciphertext.

        This check is weak for short values. Random bytes happen to be valid
        UTF-8 about half the time per byte, so a wrong secret goes unnoticed
        for about half of one-byte values and roughly one five-byte value
        in twenty. Longer values are caught almost always.

        Args:
            ciphertext_hex: Hex ciphertext produced by encrypt

        Returns:
            The plaintext bytes

        Raises:
            CipherError: If the input is not hex, or decryption yields garbage
        """
        if not isinstance(ciphertext_hex, str):
            raise CipherError(
                f"Ciphertext must be a hex string, got {type(ciphertext_hex).__name__}"
            )

        try:
            ciphertext = bytes.fromhex(ciphertext_hex)
        except ValueError as e:
            raise CipherError(f"Malformed ciphertext: {e}") from e

        decryptor = self._cipher().decryptor()
        plaintext = decryptor.update(ciphertext) + decryptor.finalize()

        try:
            plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.debug("Decrypted payload of %d bytes is not UTF-8 text", len(plaintext))
            raise CipherError("Decryption failed: wrong secret or corrupted ciphertext") from e

        return plaintext
