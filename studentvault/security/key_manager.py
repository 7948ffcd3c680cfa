"""Key Management - process-wide, immutable key context

Self-Explanatory: Decodes configured key material once and hands it to the ciphers/token issuer.
Why: Ciphers used to read module-level constants; now every component gets an explicit KeyContext.
How: Settings -> KeyContext.from_settings() at startup; no rotation, nothing mutates afterwards.

Key Layout:
- Server field key (32 bytes): AES-256-CBC for the server tier
- Server MAC key (32 bytes): HKDF-SHA256 of the server key, integrity tag inside the server envelope
- Client passphrase (64 hex chars, optional server-side): passphrase for the client tier envelope
- Client password key (32 bytes): hex-decoded client passphrase, fixed-IV password cipher
- Access / refresh secrets: HMAC keys for the two token kinds (must differ)
"""

import hashlib
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Optional

import structlog
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from studentvault.config import Settings

logger = structlog.get_logger()

MAC_KEY_INFO = b"studentvault/server-field-mac/v1"


def derive_mac_key(server_key: bytes) -> bytes:
    """Derive the server envelope MAC key from the server field key"""
    return HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=MAC_KEY_INFO,
    ).derive(server_key)


def fingerprint(material: bytes) -> str:
    """Short non-reversible id for a key (safe to log)"""
    return hashlib.sha256(material).hexdigest()[:8]


@dataclass(frozen=True)
class KeyContext:
    """Decoded key material + token/hash policy. Built once, shared read-only."""

    server_key: bytes = field(repr=False)
    server_mac_key: bytes = field(repr=False)
    access_secret: str = field(repr=False)
    refresh_secret: str = field(repr=False)
    client_passphrase: Optional[str] = field(default=None, repr=False)
    client_password_key: Optional[bytes] = field(default=None, repr=False)
    jwt_algorithm: str = "HS256"
    access_token_ttl: timedelta = timedelta(days=1)
    refresh_token_ttl: timedelta = timedelta(days=7)
    bcrypt_rounds: int = 10

    @classmethod
    def from_settings(cls, settings: Settings) -> "KeyContext":
        """Decode validated Settings into raw key material

        Args:
            settings: Validated Settings (hex lengths already checked)

        Returns:
            KeyContext ready for the cipher, credential and token components
        """
        server_key = bytes.fromhex(settings.server_field_key)
        context = cls(
            server_key=server_key,
            server_mac_key=derive_mac_key(server_key),
            access_secret=settings.jwt_secret,
            refresh_secret=settings.jwt_refresh_secret,
            jwt_algorithm=settings.jwt_algorithm,
            access_token_ttl=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_token_ttl=timedelta(days=settings.refresh_token_expire_days),
            bcrypt_rounds=settings.bcrypt_rounds,
            client_passphrase=settings.client_field_key,
            client_password_key=(
                bytes.fromhex(settings.client_field_key) if settings.client_field_key else None
            ),
        )
        logger.info("Key context initialized", **context.describe())
        return context

    def describe(self) -> Dict:
        """Non-secret metadata for logs / health checks"""
        return {
            "server_cipher": "AES-256-CBC+HMAC-SHA256",
            "client_cipher": "AES-256-CBC (OpenSSL passphrase envelope)",
            "password_hash": f"bcrypt(rounds={self.bcrypt_rounds})",
            "token_algorithm": self.jwt_algorithm,
            "server_key_fingerprint": fingerprint(self.server_key),
            "client_key_fingerprint": (
                fingerprint(self.client_password_key) if self.client_password_key else None
            ),
            "access_token_ttl_seconds": int(self.access_token_ttl.total_seconds()),
            "refresh_token_ttl_seconds": int(self.refresh_token_ttl.total_seconds()),
        }
