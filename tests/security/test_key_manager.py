"""Unit Tests for settings validation + key context (fail fast on bad key material)"""
import dataclasses

import pytest
from starlette.config import Config

from studentvault.config import Settings, load_settings
from studentvault.errors import KeyConfigurationError
from studentvault.main import create_app
from studentvault.security.key_manager import KeyContext, derive_mac_key

GOOD = {
    "SERVER_FIELD_KEY": "11" * 32,
    "JWT_SECRET": "a" * 32,
    "JWT_REFRESH_SECRET": "b" * 32,
}


def _load(**overrides):
    env = dict(GOOD)
    env.update(overrides)
    env = {k: v for k, v in env.items() if v is not None}
    return load_settings(Config(environ=env))


def test_load_settings_defaults():
    settings = _load()
    assert settings.client_field_key is None
    assert settings.access_token_expire_minutes == 1440
    assert settings.refresh_token_expire_days == 7
    assert settings.bcrypt_rounds == 10
    assert settings.jwt_algorithm == "HS256"


@pytest.mark.parametrize("overrides, setting", [
    ({"SERVER_FIELD_KEY": None}, "SERVER_FIELD_KEY"),
    ({"SERVER_FIELD_KEY": "11" * 16}, "SERVER_FIELD_KEY"),
    ({"SERVER_FIELD_KEY": "zz" * 32}, "SERVER_FIELD_KEY"),
    ({"CLIENT_FIELD_KEY": "short"}, "CLIENT_FIELD_KEY"),
    ({"JWT_SECRET": None}, "JWT_SECRET"),
    ({"JWT_SECRET": "too-short"}, "JWT_SECRET"),
    ({"JWT_REFRESH_SECRET": "a" * 32}, "JWT_REFRESH_SECRET"),
    ({"BCRYPT_ROUNDS": "2"}, "BCRYPT_ROUNDS"),
])
def test_bad_configuration_fails_fast(overrides, setting):
    with pytest.raises(KeyConfigurationError) as exc:
        _load(**overrides)
    assert exc.value.details["setting"] == setting


def test_create_app_refuses_missing_keys(monkeypatch):
    monkeypatch.delenv("SERVER_FIELD_KEY", raising=False)
    with pytest.raises(KeyConfigurationError):
        create_app()


def test_key_context_decodes_material(settings):
    keys = KeyContext.from_settings(settings)
    assert keys.server_key == bytes.fromhex(settings.server_field_key)
    assert keys.server_mac_key == derive_mac_key(keys.server_key)
    assert keys.server_mac_key != keys.server_key
    assert keys.client_password_key == bytes.fromhex(settings.client_field_key)
    assert keys.access_secret != keys.refresh_secret


def test_key_context_is_immutable(keys):
    with pytest.raises(dataclasses.FrozenInstanceError):
        keys.server_key = b"\x00" * 32


def test_describe_and_repr_leak_no_key_material(keys, settings):
    described = str(keys.describe())
    for secret in (settings.server_field_key, settings.client_field_key,
                   settings.jwt_secret, settings.jwt_refresh_secret):
        assert secret not in described
        assert secret not in repr(keys)
    assert len(keys.describe()["server_key_fingerprint"]) == 8


def test_settings_are_frozen():
    settings = _load()
    with pytest.raises(dataclasses.FrozenInstanceError):
        settings.jwt_secret = "x" * 40
