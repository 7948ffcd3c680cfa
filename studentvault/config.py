"""Settings - everything configurable via environment / .env

Self-Explanatory: One immutable Settings object, loaded once at startup.
Why: Keys used to live as literals in source; now they come from the environment only.
How: starlette Config reads os.environ first, then .env. Missing/short keys fail fast.
Config: SERVER_FIELD_KEY, JWT_SECRET, JWT_REFRESH_SECRET (required).
        CLIENT_FIELD_KEY is only needed by the client tier (studentvault.client).
"""

import string
from dataclasses import dataclass
from typing import List, Optional

from starlette.config import Config

from studentvault.errors import KeyConfigurationError

FIELD_KEY_HEX_LENGTH = 64  # 256-bit keys, hex encoded
MIN_JWT_SECRET_LENGTH = 32


def parse_cors_origins(v: str) -> List[str]:
    """Parse CORS origins from comma-separated string"""
    return [origin.strip() for origin in v.split(",") if origin.strip()]


@dataclass(frozen=True)
class Settings:
    """Application settings (frozen - never mutated after startup)"""

    server_field_key: str
    jwt_secret: str
    jwt_refresh_secret: str
    client_field_key: Optional[str] = None
    database_url: str = "sqlite:///./studentvault.db"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24  # 1 day
    refresh_token_expire_days: int = 7
    bcrypt_rounds: int = 10
    cors_origins: tuple = ("*",)
    log_level: str = "INFO"

    def __post_init__(self):
        _require_hex_key("SERVER_FIELD_KEY", self.server_field_key)
        if self.client_field_key is not None:
            _require_hex_key("CLIENT_FIELD_KEY", self.client_field_key)
        _require_secret("JWT_SECRET", self.jwt_secret)
        _require_secret("JWT_REFRESH_SECRET", self.jwt_refresh_secret)
        if self.jwt_secret == self.jwt_refresh_secret:
            raise KeyConfigurationError("JWT_REFRESH_SECRET", "must differ from JWT_SECRET")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise KeyConfigurationError("BCRYPT_ROUNDS", "must be between 4 and 31")
        if self.access_token_expire_minutes <= 0 or self.refresh_token_expire_days <= 0:
            raise KeyConfigurationError("TOKEN_EXPIRY", "token lifetimes must be positive")


def _require_hex_key(name: str, value: str) -> None:
    if not value:
        raise KeyConfigurationError(name, "not set")
    if len(value) != FIELD_KEY_HEX_LENGTH:
        raise KeyConfigurationError(name, f"expected {FIELD_KEY_HEX_LENGTH} hex characters, got {len(value)}")
    if any(c not in string.hexdigits for c in value):
        raise KeyConfigurationError(name, "must be hex encoded")


def _require_secret(name: str, value: str) -> None:
    if not value:
        raise KeyConfigurationError(name, "not set")
    if len(value) < MIN_JWT_SECRET_LENGTH:
        raise KeyConfigurationError(name, f"must be at least {MIN_JWT_SECRET_LENGTH} characters")


def load_settings(config: Optional[Config] = None) -> Settings:
    """Build Settings from the environment (and .env if present)

    Args:
        config: starlette Config to read from (tests pass their own)

    Returns:
        Validated, frozen Settings

    Raises:
        KeyConfigurationError if any key material is missing or malformed
    """
    config = config or Config(".env")
    return Settings(
        server_field_key=config("SERVER_FIELD_KEY", default=""),
        client_field_key=config("CLIENT_FIELD_KEY", default=None),
        jwt_secret=config("JWT_SECRET", default=""),
        jwt_refresh_secret=config("JWT_REFRESH_SECRET", default=""),
        database_url=config("DATABASE_URL", default="sqlite:///./studentvault.db"),
        jwt_algorithm=config("JWT_ALGORITHM", default="HS256"),
        access_token_expire_minutes=config("ACCESS_TOKEN_EXPIRE_MINUTES", cast=int, default=60 * 24),
        refresh_token_expire_days=config("REFRESH_TOKEN_EXPIRE_DAYS", cast=int, default=7),
        bcrypt_rounds=config("BCRYPT_ROUNDS", cast=int, default=10),
        cors_origins=tuple(parse_cors_origins(config("CORS_ORIGINS", default="*"))),
        log_level=config("LOG_LEVEL", default="INFO"),
    )
