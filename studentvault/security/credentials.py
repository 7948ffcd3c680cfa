"""Password Credentials - bcrypt hash / verify

The server never sees a raw password: it receives the client tier's fixed-IV ciphertext
(see client_cipher.encrypt_password) and hashes that string. Verification only works if
the client repeats the same deterministic encryption step.

bcrypt only reads the first 72 bytes of its input. Longer secrets are refused, never cut,
otherwise two passwords sharing a long prefix would verify as each other.
"""

import os
from functools import lru_cache

import bcrypt
import structlog

from studentvault.errors import CredentialMismatch, PasswordTooLongError
from studentvault.utils.metrics import track_hash_time

logger = structlog.get_logger()

DEFAULT_ROUNDS = 10
BCRYPT_MAX_BYTES = 72


def _secret_bytes(secret: str) -> bytes:
    data = secret.encode("utf-8")
    if len(data) > BCRYPT_MAX_BYTES:
        raise PasswordTooLongError(BCRYPT_MAX_BYTES)
    return data


@track_hash_time("hash")
def hash_password(secret: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash with a fresh random salt (two calls never return the same digest)

    Raises:
        PasswordTooLongError if the secret is over 72 bytes
    """
    hashed = bcrypt.hashpw(_secret_bytes(secret), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


@track_hash_time("verify")
def verify_password(secret: str, digest: str) -> bool:
    """Verify a candidate against a stored digest (constant-time compare inside bcrypt)

    Over-long candidates can never have been hashed, so they are a mismatch.
    """
    try:
        candidate = _secret_bytes(secret)
    except PasswordTooLongError:
        return False
    try:
        return bcrypt.checkpw(candidate, digest.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        logger.warning("Stored password digest is malformed")
        return False


def check_password(secret: str, digest: str) -> None:
    """Like verify_password but raises CredentialMismatch on failure"""
    if not verify_password(secret, digest):
        raise CredentialMismatch()


@lru_cache(maxsize=None)
def dummy_digest(rounds: int = DEFAULT_ROUNDS) -> str:
    """Digest of a random per-process secret, checked when the email is unknown

    Login then costs one bcrypt verify whether or not the account exists.
    """
    return bcrypt.hashpw(os.urandom(32).hex().encode("ascii"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")
