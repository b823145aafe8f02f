import pytest

from shopbot.core.crypto import (
    decrypt_credential,
    encrypt_credential,
    generate_encryption_key,
    is_encrypted,
    load_encryption_key,
)
from shopbot.core.errors import ConfigurationError


def test_encrypt_then_decrypt_returns_plaintext():
    token = encrypt_credential("EAAG-secret-token")

    assert token != "EAAG-secret-token"
    assert is_encrypted(token)
    assert decrypt_credential(token) == "EAAG-secret-token"


def test_same_plaintext_encrypts_differently_each_time():
    assert encrypt_credential("same") != encrypt_credential("same")


def test_tampered_ciphertext_is_rejected():
    token = encrypt_credential("rzp_live_secret")
    header, key, iv, ciphertext, tag = token.split(".")
    flipped = ("A" if ciphertext[0] != "A" else "B") + ciphertext[1:]

    with pytest.raises(ConfigurationError):
        decrypt_credential(".".join([header, key, iv, flipped, tag]))


def test_wrong_key_cannot_decrypt():
    token = encrypt_credential("rzp_live_secret")

    with pytest.raises(ConfigurationError):
        decrypt_credential(token, key_hex=generate_encryption_key())


def test_generated_key_is_usable():
    key_hex = generate_encryption_key()

    assert len(load_encryption_key(key_hex)) == 32
    assert decrypt_credential(encrypt_credential("abc", key_hex=key_hex), key_hex=key_hex) == "abc"


@pytest.mark.parametrize("key_hex", ["", "abc123", "zz" * 32])
def test_invalid_key_is_a_configuration_error(key_hex):
    with pytest.raises(ConfigurationError):
        load_encryption_key(key_hex)


def test_plain_values_are_not_reported_as_encrypted():
    assert not is_encrypted(None)
    assert not is_encrypted("EAAG-plain-token")
    assert not is_encrypted("a.b.c")
