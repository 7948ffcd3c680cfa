"""Client-Tier Field Cipher - browser-compatible passphrase envelopes

Self-Explanatory: The layer the front end applies before anything leaves the browser.
Why: PII is double encrypted; this is the inner layer. The server only strips its own layer.
How: Same wire format as CryptoJS.AES.encrypt(text, passphrase) / OpenSSL "enc -aes-256-cbc":
     base64("Salted__" + 8-byte salt + ciphertext), key+IV from EVP_BytesToKey(MD5, 1 round).

No Integrity Check (KNOWN WEAKNESS):
- The envelope is unauthenticated CBC. decrypt() raises DecryptionError on bad base64, a
  missing header, bad padding or non-UTF-8 output, but a wrong passphrase can still pass
  the padding check by chance and return garbage text. The server tier carries the tag.
- is_client_envelope() checks structure only (no key needed); the API uses it to refuse
  plaintext where client ciphertext is expected.

Password Encryption (KNOWN WEAKNESS):
- encrypt_password() uses a FIXED IV under the hex-decoded client key.
- Same password -> same ciphertext every time, so equal ciphertexts leak equal passwords,
  and passwords sharing a 16-byte prefix share the first ciphertext block.
- Kept as-is: stored bcrypt digests are computed over this exact ciphertext, changing the IV
  would lock every existing account out.
- The base64 ciphertext is what bcrypt hashes, and bcrypt reads at most 72 bytes, so
  passwords are limited to MAX_PASSWORD_BYTES (ciphertext of at most 72 characters).
"""

import base64
import binascii
import hashlib
import os
from typing import Tuple

import structlog
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from studentvault.errors import DecryptionError, KeyConfigurationError
from studentvault.utils.metrics import record_decryption_failure, record_encryption

logger = structlog.get_logger()

TIER = "client"
SALT_HEADER = b"Salted__"
SALT_SIZE = 8
KEY_SIZE = 32
IV_SIZE = 16
PASSWORD_IV = bytes.fromhex("1234567890abcdef1234567890abcdef")
MAX_PASSWORD_CIPHERTEXT = 72  # bcrypt input limit
MAX_PASSWORD_BYTES = 47  # 48 padded bytes -> 64 base64 chars; one more byte needs 88


def is_client_envelope(value: str) -> bool:
    """True if value has the shape of encrypt() output (base64, Salted__, salt, whole blocks)"""
    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, TypeError, ValueError):
        return False
    header_len = len(SALT_HEADER) + SALT_SIZE
    ciphertext = raw[header_len:]
    return raw.startswith(SALT_HEADER) and bool(ciphertext) and len(ciphertext) % IV_SIZE == 0


def evp_bytes_to_key(passphrase: bytes, salt: bytes, key_len: int = KEY_SIZE,
                     iv_len: int = IV_SIZE) -> Tuple[bytes, bytes]:
    """OpenSSL EVP_BytesToKey with MD5 and a single iteration

    Not a strong KDF; it is what the browser library uses for passphrase keys.
    """
    derived = b""
    block = b""
    while len(derived) < key_len + iv_len:
        block = hashlib.md5(block + passphrase + salt).digest()
        derived += block
    return derived[:key_len], derived[key_len:key_len + iv_len]


def _cbc_encrypt(key: bytes, iv: bytes, data: bytes) -> bytes:
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(data) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


class ClientFieldCipher:
    """Passphrase-keyed envelope cipher + fixed-IV password cipher"""

    def __init__(self, passphrase: str, password_key: bytes):
        if not passphrase:
            raise KeyConfigurationError("CLIENT_FIELD_KEY", "passphrase is empty")
        if len(password_key) != KEY_SIZE:
            raise KeyConfigurationError("CLIENT_FIELD_KEY", f"password key must be {KEY_SIZE} bytes")
        self._passphrase = passphrase.encode("utf-8")
        self._password_key = password_key

    @classmethod
    def from_hex_key(cls, hex_key: str) -> "ClientFieldCipher":
        """Build from the 64-hex-char client key (passphrase text + decoded AES key)"""
        try:
            password_key = bytes.fromhex(hex_key)
        except (TypeError, ValueError):
            raise KeyConfigurationError("CLIENT_FIELD_KEY", "must be hex encoded")
        return cls(hex_key, password_key)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a field into a self-describing envelope (salt embedded)"""
        salt = os.urandom(SALT_SIZE)
        key, iv = evp_bytes_to_key(self._passphrase, salt)
        ciphertext = _cbc_encrypt(key, iv, plaintext.encode("utf-8"))
        record_encryption(TIER, "encrypt")
        return base64.b64encode(SALT_HEADER + salt + ciphertext).decode("ascii")

    def decrypt(self, envelope: str) -> str:
        """Decrypt an envelope from encrypt()

        Raises:
            DecryptionError on bad base64, missing salt header, bad padding or non-UTF-8 output
        """
        try:
            raw = base64.b64decode(envelope, validate=True)
        except (binascii.Error, TypeError, ValueError):
            self._reject("envelope is not base64")

        header_len = len(SALT_HEADER) + SALT_SIZE
        if not raw.startswith(SALT_HEADER) or len(raw) < header_len + IV_SIZE:
            self._reject("missing salt header")
        salt, ciphertext = raw[len(SALT_HEADER):header_len], raw[header_len:]
        if len(ciphertext) % IV_SIZE:
            self._reject("ciphertext is not a whole number of blocks")

        key, iv = evp_bytes_to_key(self._passphrase, salt)
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            data = unpadder.update(padded) + unpadder.finalize()
            plaintext = data.decode("utf-8")
        except ValueError:  # includes UnicodeDecodeError
            self._reject("bad padding or malformed UTF-8")

        record_encryption(TIER, "decrypt")
        return plaintext

    def encrypt_password(self, password: str) -> str:
        """Deterministic password encryption (fixed IV, see module docstring)

        Returns:
            base64 of the raw AES-256-CBC ciphertext (no salt, no IV)

        Raises:
            ValueError if the password is longer than MAX_PASSWORD_BYTES encoded
        """
        data = password.encode("utf-8")
        if len(data) > MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        ciphertext = _cbc_encrypt(self._password_key, PASSWORD_IV, data)
        record_encryption("password", "encrypt")
        return base64.b64encode(ciphertext).decode("ascii")

    def _reject(self, reason: str):
        record_decryption_failure(TIER)
        logger.warning("Client envelope rejected", reason=reason)
        raise DecryptionError(TIER)
