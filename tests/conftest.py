"""Shared fixtures - test keys, in-memory database, app + clients

Env vars are set before anything imports studentvault.main (it builds an app at import time).
"""
import os

SERVER_KEY = "00112233445566778899aabbccddeeff" * 2
CLIENT_KEY = "0f1e2d3c4b5a69788796a5b4c3d2e1f0" * 2
ACCESS_SECRET = "test-access-secret-0123456789abcdef"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"

os.environ.setdefault("SERVER_FIELD_KEY", SERVER_KEY)
os.environ.setdefault("JWT_SECRET", ACCESS_SECRET)
os.environ.setdefault("JWT_REFRESH_SECRET", REFRESH_SECRET)
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from studentvault.config import Settings
from studentvault.main import create_app
from studentvault.security.client_cipher import ClientFieldCipher
from studentvault.security.field_pipeline import build_pipeline
from studentvault.security.key_manager import KeyContext
from studentvault.security.server_cipher import ServerFieldCipher
from studentvault.security.tokens import TokenIssuer


@pytest.fixture
def settings():
    return Settings(
        server_field_key=SERVER_KEY,
        client_field_key=CLIENT_KEY,
        jwt_secret=ACCESS_SECRET,
        jwt_refresh_secret=REFRESH_SECRET,
        database_url="sqlite://",
        bcrypt_rounds=4,  # fast hashes for tests
    )


@pytest.fixture
def keys(settings):
    return KeyContext.from_settings(settings)


@pytest.fixture
def server_cipher(keys):
    return ServerFieldCipher(keys.server_key, keys.server_mac_key)


@pytest.fixture
def client_cipher():
    return ClientFieldCipher.from_hex_key(CLIENT_KEY)


@pytest.fixture
def pipeline(keys):
    return build_pipeline(keys)


@pytest.fixture
def issuer(keys):
    return TokenIssuer(keys)


@pytest.fixture
def app(settings):
    # Server never gets the client key
    server_settings = Settings(
        server_field_key=settings.server_field_key,
        jwt_secret=settings.jwt_secret,
        jwt_refresh_secret=settings.jwt_refresh_secret,
        database_url="sqlite://",
        bcrypt_rounds=4,
    )
    return create_app(server_settings)


@pytest.fixture
def api(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def registration(client_cipher):
    """Registration body exactly as the browser would send it"""
    def _build(email="asha@example.edu", password="Sup3rSecret!", **overrides):
        plain = {
            "fullName": "Asha Verma",
            "phoneNumber": "+91-98765-43210",
            "dateOfBirth": "2003-04-12",
            "gender": "female",
            "address": "12 MG Road, Pune",
            "courseEnrolled": "B.Sc Computer Science",
        }
        plain.update(overrides)
        body = {k: client_cipher.encrypt(v) for k, v in plain.items()}
        body["email"] = email
        body["password"] = client_cipher.encrypt_password(password)
        return body
    return _build


@pytest.fixture
def client_key():
    return CLIENT_KEY
