import base64

import pytest

from courier.crypto_utils import (
    AuthenticationError,
    DecryptionError,
    KeyFormatError,
    canonical_string,
    decrypt_symmetric,
    encrypt_symmetric,
    generate_symmetric_key,
)
from courier.crypto_utils.symmetric import IV_LENGTH, TAG_LENGTH

from conftest import FixedRandom


@pytest.fixture
def key() -> str:
    return generate_symmetric_key()


@pytest.mark.parametrize("value", [
    {"name": "test"},
    {"payload": {"type": "text", "text": "hi"}, "signature": "c2ln", "publicSignKey": "cGs="},
    ["a", {"b": None}],
    "plain",
    42,
])
def test_round_trip(key, value):
    assert decrypt_symmetric(key, encrypt_symmetric(key, value)) == value


def test_blob_layout_is_iv_ciphertext_tag(key):
    value = {"text": "layout"}
    raw = base64.b64decode(encrypt_symmetric(key, value))
    assert len(raw) == IV_LENGTH + len(canonical_string(value).encode("utf-8")) + TAG_LENGTH


def test_fresh_iv_per_call(key):
    a = base64.b64decode(encrypt_symmetric(key, "same"))
    b = base64.b64decode(encrypt_symmetric(key, "same"))
    assert a[:IV_LENGTH] != b[:IV_LENGTH]
    assert a != b


def test_iv_comes_from_injected_random_source(key):
    raw = base64.b64decode(encrypt_symmetric(key, "x", rng=FixedRandom()))
    assert raw[:IV_LENGTH] == bytes(range(IV_LENGTH))


def test_every_flipped_byte_fails_authentication(key):
    raw = base64.b64decode(encrypt_symmetric(key, {"text": "tamper me"}))
    for i in range(len(raw)):
        tampered = bytearray(raw)
        tampered[i] ^= 0x80
        blob = base64.b64encode(bytes(tampered)).decode()
        with pytest.raises(AuthenticationError):
            decrypt_symmetric(key, blob)


def test_wrong_key_fails_authentication(key):
    blob = encrypt_symmetric(key, "secret")
    with pytest.raises(AuthenticationError):
        decrypt_symmetric(generate_symmetric_key(), blob)


def test_truncated_blob_is_a_decryption_error(key):
    raw = base64.b64decode(encrypt_symmetric(key, "v"))
    short = base64.b64encode(raw[: IV_LENGTH + TAG_LENGTH - 1]).decode()
    with pytest.raises(DecryptionError):
        decrypt_symmetric(key, short)


def test_non_base64_blob_is_a_decryption_error(key):
    with pytest.raises(DecryptionError):
        decrypt_symmetric(key, "*** not base64 ***")


def test_authentication_error_is_not_a_decryption_error():
    assert not issubclass(AuthenticationError, DecryptionError)
    assert not issubclass(DecryptionError, AuthenticationError)


def test_bad_key_length_rejected():
    short_key = base64.b64encode(b"\x00" * 16).decode()
    with pytest.raises(KeyFormatError):
        encrypt_symmetric(short_key, "v")
