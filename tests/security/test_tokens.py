"""Unit Tests for access/refresh token issue + decode"""
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from studentvault.errors import InvalidTokenError, TokenExpiredError
from studentvault.security.tokens import Identity

ASHA = Identity(subject="2f6d0a57-1111-4c1e-9a57-6c9c1a2b3c4d", email="asha@example.edu")


def test_access_token_round_trip(issuer):
    token = issuer.issue_access_token(ASHA)
    assert issuer.decode_access_token(token) == ASHA


def test_access_claims_and_lifetime(issuer, keys):
    now = datetime.now(timezone.utc)
    claims = jwt.get_unverified_claims(issuer.issue_access_token(ASHA, now=now))
    assert claims["id"] == ASHA.subject
    assert claims["email"] == ASHA.email
    assert claims["type"] == "access"
    assert claims["exp"] - claims["iat"] == int(keys.access_token_ttl.total_seconds())
    assert claims["exp"] - claims["iat"] == 24 * 3600


def test_refresh_claims_and_lifetime(issuer):
    claims = jwt.get_unverified_claims(issuer.issue_refresh_token(ASHA))
    assert claims["id"] == ASHA.subject
    assert "email" not in claims
    assert claims["type"] == "refresh"
    assert claims["exp"] - claims["iat"] == 7 * 24 * 3600


def test_refresh_decodes_to_subject_only(issuer):
    identity = issuer.decode_refresh_token(issuer.issue_refresh_token(ASHA))
    assert identity == Identity(subject=ASHA.subject)


def test_expired_access_token(issuer):
    past = datetime.now(timezone.utc) - timedelta(days=2)
    token = issuer.issue_access_token(ASHA, now=past)
    with pytest.raises(TokenExpiredError) as exc:
        issuer.decode_access_token(token)
    assert exc.value.code == "TOKEN_EXPIRED"


def test_wrong_secret_rejected(issuer, keys):
    forged = jwt.encode(
        {"id": ASHA.subject, "type": "access", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        "some-other-secret-that-is-long-enough",
        algorithm=keys.jwt_algorithm,
    )
    with pytest.raises(InvalidTokenError):
        issuer.decode_access_token(forged)


def test_refresh_token_is_not_an_access_token(issuer):
    # different secret AND different type claim
    with pytest.raises(InvalidTokenError):
        issuer.decode_access_token(issuer.issue_refresh_token(ASHA))
    with pytest.raises(InvalidTokenError):
        issuer.decode_refresh_token(issuer.issue_access_token(ASHA))


def test_type_claim_is_enforced(issuer, keys):
    token = jwt.encode(
        {"id": ASHA.subject, "type": "refresh", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        keys.access_secret,
        algorithm=keys.jwt_algorithm,
    )
    with pytest.raises(InvalidTokenError) as exc:
        issuer.decode_access_token(token)
    assert exc.value.message == "Invalid token type"


def test_missing_subject_rejected(issuer, keys):
    token = jwt.encode(
        {"type": "access", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        keys.access_secret,
        algorithm=keys.jwt_algorithm,
    )
    with pytest.raises(InvalidTokenError):
        issuer.decode_access_token(token)


def test_garbage_token_rejected(issuer):
    with pytest.raises(InvalidTokenError):
        issuer.decode_access_token("not.a.jwt")


def test_issue_pair(issuer):
    pair = issuer.issue_pair(ASHA)
    assert issuer.decode_access_token(pair.access_token).subject == ASHA.subject
    assert issuer.decode_refresh_token(pair.refresh_token).subject == ASHA.subject
