"""Server-Tier Field Cipher - AES-256-CBC envelopes for data at rest

Self-Explanatory: Encrypts one string field into "iv_hex:ciphertext_hex" and back.
Why: Every PII field is wrapped in this layer before it reaches the database.
How: Fresh 16-byte IV per call; payload is HMAC-SHA256(mac_key, plaintext) || plaintext,
     PKCS7-padded, AES-256-CBC. Decrypt checks padding then the tag (constant time),
     so a flipped byte or a wrong key raises DecryptionError instead of returning garbage.
"""

import os
from typing import Tuple

import structlog
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.hmac import HMAC

from studentvault.errors import DecryptionError, KeyConfigurationError
from studentvault.utils.metrics import record_decryption_failure, record_encryption

logger = structlog.get_logger()

TIER = "server"
KEY_SIZE = 32  # AES-256
IV_SIZE = 16
TAG_SIZE = 32  # HMAC-SHA256
SEPARATOR = ":"


class ServerFieldCipher:
    """AES-256-CBC field cipher with a random IV per call"""

    def __init__(self, key: bytes, mac_key: bytes):
        if len(key) != KEY_SIZE:
            raise KeyConfigurationError("SERVER_FIELD_KEY", f"expected {KEY_SIZE} bytes, got {len(key)}")
        if len(mac_key) != KEY_SIZE:
            raise KeyConfigurationError("SERVER_FIELD_KEY", "derived MAC key has wrong length")
        self._key = key
        self._mac_key = mac_key

    def _tag(self, data: bytes) -> HMAC:
        h = HMAC(self._mac_key, hashes.SHA256())
        h.update(data)
        return h

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a field value

        Args:
            plaintext: Any string (for PII fields this is already client ciphertext)

        Returns:
            Envelope "iv_hex:ciphertext_hex"
        """
        data = plaintext.encode("utf-8")
        framed = self._tag(data).finalize() + data

        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(framed) + padder.finalize()

        iv = os.urandom(IV_SIZE)
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()

        record_encryption(TIER, "encrypt")
        return f"{iv.hex()}{SEPARATOR}{ciphertext.hex()}"

    def decrypt(self, envelope: str) -> str:
        """Decrypt an envelope produced by encrypt()

        Args:
            envelope: "iv_hex:ciphertext_hex"

        Returns:
            Original plaintext

        Raises:
            DecryptionError if malformed, wrong key, tampered, or not UTF-8
        """
        iv, ciphertext = self._split(envelope)

        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()

        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            framed = unpadder.update(padded) + unpadder.finalize()
        except ValueError:
            self._reject("bad padding")

        if len(framed) < TAG_SIZE:
            self._reject("payload shorter than integrity tag")
        tag, data = framed[:TAG_SIZE], framed[TAG_SIZE:]
        try:
            self._tag(data).verify(tag)
        except InvalidSignature:
            self._reject("integrity check failed")

        try:
            plaintext = data.decode("utf-8")
        except UnicodeDecodeError:
            self._reject("plaintext is not UTF-8")

        record_encryption(TIER, "decrypt")
        return plaintext

    def _split(self, envelope: str) -> Tuple[bytes, bytes]:
        if not isinstance(envelope, str):
            self._reject("envelope is not a string")
        parts = envelope.split(SEPARATOR)
        if len(parts) != 2:
            self._reject("expected exactly one separator")
        try:
            iv = bytes.fromhex(parts[0])
            ciphertext = bytes.fromhex(parts[1])
        except ValueError:
            self._reject("envelope is not hex encoded")
        if len(iv) != IV_SIZE:
            self._reject("IV has wrong length")
        if not ciphertext or len(ciphertext) % IV_SIZE:
            self._reject("ciphertext is not a whole number of blocks")
        return iv, ciphertext

    def _reject(self, reason: str):
        record_decryption_failure(TIER)
        logger.warning("Server envelope rejected", reason=reason)
        raise DecryptionError(TIER)
