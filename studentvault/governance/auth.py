"""Governance Auth - bearer-token access guard for protected endpoints

Self-Explanatory: Functions for pulling the caller's identity out of the Authorization header.
Why: Every student-record endpoint except register/login/refresh is protected.
How: Depends injection; JWT verified with the access secret from the app's KeyContext.
States: Unauthenticated -> Authenticated, once per request; nothing kept between requests.
"""

from typing import Optional

from fastapi import Header, Request
import structlog

from studentvault.errors import AuthError, InvalidTokenError, MissingTokenError
from studentvault.security.tokens import Identity, TokenIssuer
from studentvault.utils.metrics import record_auth_attempt

logger = structlog.get_logger()


def authorize(authorization: Optional[str], issuer: TokenIssuer) -> Identity:
    """Validate an Authorization header value

    Args:
        authorization: 'Bearer <jwt>'
        issuer: TokenIssuer holding the access secret

    Returns:
        Identity from the token claims

    Raises:
        MissingTokenError, InvalidTokenError, TokenExpiredError (all AuthError)
    """
    if not authorization:
        raise MissingTokenError()

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise InvalidTokenError("Invalid authorization scheme")

    return issuer.decode_access_token(parts[1])


def get_current_user(request: Request, authorization: str = Header(None)) -> Identity:
    """Get identity from auth header; attaches it to request.state.identity

    Raises:
        AuthError - rendered as 401 + WWW-Authenticate by the app handler; the route body never runs
    """
    issuer: TokenIssuer = request.app.state.token_issuer
    try:
        identity = authorize(authorization, issuer)
    except AuthError as e:
        record_auth_attempt("token_rejected")
        logger.error("Auth error", code=e.code, path=request.url.path)
        raise

    request.state.identity = identity
    record_auth_attempt("token_accepted")
    logger.info("User authenticated", user_id=identity.subject)
    return identity
