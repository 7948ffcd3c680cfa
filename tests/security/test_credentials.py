"""Unit Tests for bcrypt credentials"""
import pytest

from studentvault.errors import CredentialMismatch, PasswordTooLongError
from studentvault.security.credentials import (
    BCRYPT_MAX_BYTES,
    check_password,
    dummy_digest,
    hash_password,
    verify_password,
)


@pytest.fixture
def secret(client_cipher):
    # What the server actually receives: the client's fixed-IV password ciphertext
    return client_cipher.encrypt_password("Sup3rSecret!")


def test_hash_never_contains_secret(secret):
    digest = hash_password(secret, rounds=4)
    assert secret not in digest
    assert "Sup3rSecret!" not in digest
    assert digest.startswith("$2")


def test_hash_is_salted(secret):
    assert hash_password(secret, rounds=4) != hash_password(secret, rounds=4)


def test_verify_correct_secret(secret):
    assert verify_password(secret, hash_password(secret, rounds=4)) is True


def test_verify_other_secret(secret, client_cipher):
    other = client_cipher.encrypt_password("wrong")
    assert verify_password(secret, hash_password(other, rounds=4)) is False


def test_rounds_are_encoded_in_digest(secret):
    assert hash_password(secret, rounds=5).startswith("$2b$05$")


def test_malformed_digest_is_a_mismatch(secret):
    assert verify_password(secret, "not-a-bcrypt-digest") is False


def test_check_password_raises(secret):
    digest = hash_password(secret, rounds=4)
    check_password(secret, digest)
    with pytest.raises(CredentialMismatch) as exc:
        check_password("something else", digest)
    assert exc.value.status_code == 401


def test_hash_time_is_tracked(mocker, secret):
    observe = mocker.patch("studentvault.utils.metrics.password_hash_duration_seconds")
    hash_password(secret, rounds=4)
    observe.labels.assert_called_with(operation="hash")


# ============================================================================
# bcrypt's 72-byte input limit
# ============================================================================

def test_overlong_secret_is_refused_not_truncated():
    shared = "p" * BCRYPT_MAX_BYTES
    with pytest.raises(PasswordTooLongError) as exc:
        hash_password(shared + "-correct", rounds=4)
    assert exc.value.status_code == 422


def test_overlong_candidate_never_verifies():
    digest = hash_password("p" * BCRYPT_MAX_BYTES, rounds=4)
    assert verify_password("p" * BCRYPT_MAX_BYTES + "-attacker", digest) is False


def test_secrets_differing_only_at_the_limit(client_cipher):
    right = client_cipher.encrypt_password("q" * 40 + "-right!")
    wrong = client_cipher.encrypt_password("q" * 40 + "-wrong!")
    assert len(right) <= BCRYPT_MAX_BYTES
    assert verify_password(wrong, hash_password(right, rounds=4)) is False


def test_dummy_digest_matches_nothing_obvious():
    digest = dummy_digest(4)
    assert digest == dummy_digest(4)
    assert digest.startswith("$2b$04$")
    assert verify_password("", digest) is False
    assert verify_password("Sup3rSecret!", digest) is False
