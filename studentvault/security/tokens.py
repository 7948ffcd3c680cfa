"""Session Tokens - signed access + refresh JWTs

Self-Explanatory: Issue and decode the two bearer tokens handed out at login.
Why: Stateless sessions; possession of a valid access token is the authorization.
How: python-jose HS256. Access tokens (~1 day) and refresh tokens (~7 days) are signed with
     DIFFERENT secrets and carry a "type" claim, so neither can stand in for the other.
No revocation list: a token stops working only when it expires.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from jose import ExpiredSignatureError, JWTError, jwt

from studentvault.errors import InvalidTokenError, TokenExpiredError
from studentvault.security.key_manager import KeyContext
from studentvault.utils.metrics import record_token_issued

logger = structlog.get_logger()

ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True)
class Identity:
    """Who a token speaks for"""
    subject: str
    email: Optional[str] = None


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class TokenIssuer:
    """Signs and verifies tokens with the secrets from a KeyContext"""

    def __init__(self, keys: KeyContext):
        self.keys = keys

    def _secret(self, kind: str) -> str:
        return self.keys.access_secret if kind == ACCESS else self.keys.refresh_secret

    def _issue(self, claims: Dict[str, Any], kind: str, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        ttl = self.keys.access_token_ttl if kind == ACCESS else self.keys.refresh_token_ttl
        to_encode = dict(claims)
        to_encode.update({"type": kind, "iat": now, "exp": now + ttl})
        token = jwt.encode(to_encode, self._secret(kind), algorithm=self.keys.jwt_algorithm)
        record_token_issued(kind)
        return token

    def issue_access_token(self, identity: Identity, now: Optional[datetime] = None) -> str:
        """Access token: claims id + email"""
        return self._issue({"id": identity.subject, "email": identity.email}, ACCESS, now)

    def issue_refresh_token(self, identity: Identity, now: Optional[datetime] = None) -> str:
        """Refresh token: claim id only"""
        return self._issue({"id": identity.subject}, REFRESH, now)

    def issue_pair(self, identity: Identity) -> TokenPair:
        now = datetime.now(timezone.utc)
        return TokenPair(
            access_token=self.issue_access_token(identity, now),
            refresh_token=self.issue_refresh_token(identity, now),
        )

    def _decode(self, token: str, kind: str) -> Identity:
        try:
            payload = jwt.decode(token, self._secret(kind), algorithms=[self.keys.jwt_algorithm])
        except ExpiredSignatureError:
            logger.info("Token expired", kind=kind)
            raise TokenExpiredError()
        except JWTError as e:
            logger.warning("Token rejected", kind=kind, error=str(e))
            raise InvalidTokenError()

        if payload.get("type") != kind:
            logger.warning("Token type mismatch", expected=kind, got=payload.get("type"))
            raise InvalidTokenError("Invalid token type")
        subject = payload.get("id")
        if not subject:
            raise InvalidTokenError("Token has no subject")
        return Identity(subject=str(subject), email=payload.get("email"))

    def decode_access_token(self, token: str) -> Identity:
        """Verify signature + expiry with the access secret

        Raises:
            TokenExpiredError if expired, InvalidTokenError otherwise
        """
        return self._decode(token, ACCESS)

    def decode_refresh_token(self, token: str) -> Identity:
        return self._decode(token, REFRESH)
