import base64

import pytest

from courier.crypto_utils import (
    DecryptionError,
    PlaintextTooLargeError,
    decrypt_asymmetric,
    encrypt_asymmetric,
    generate_symmetric_key,
    sign,
    verify,
)
from courier.crypto_utils.asymmetric import max_plaintext_bytes
from courier.crypto_utils.keys import ENCRYPT_MODULUS_BITS


@pytest.mark.parametrize("value", [
    "short string",
    {"name": "test"},
    [1, 2, 3],
    None,
    True,
    "ünïcödé ✓",
])
def test_round_trip(alice, value):
    ct = encrypt_asymmetric(alice.public_encrypt_key, value)
    assert decrypt_asymmetric(alice.private_encrypt_key, ct) == value


def test_conversation_key_fits_oaep_bound(alice):
    key = generate_symmetric_key()
    ct = encrypt_asymmetric(alice.public_encrypt_key, key)
    assert decrypt_asymmetric(alice.private_encrypt_key, ct) == key


def test_ciphertext_is_randomized(alice):
    a = encrypt_asymmetric(alice.public_encrypt_key, "same")
    b = encrypt_asymmetric(alice.public_encrypt_key, "same")
    assert a != b


def test_plaintext_bound():
    assert max_plaintext_bytes(ENCRYPT_MODULUS_BITS) == 3072 // 8 - 2 * 32 - 2


def test_oversized_plaintext_rejected(alice):
    too_big = "x" * max_plaintext_bytes(ENCRYPT_MODULUS_BITS)  # + 2 quote chars
    with pytest.raises(PlaintextTooLargeError):
        encrypt_asymmetric(alice.public_encrypt_key, too_big)


def test_wrong_private_key_fails(alice, bob):
    ct = encrypt_asymmetric(alice.public_encrypt_key, "for alice")
    with pytest.raises(DecryptionError):
        decrypt_asymmetric(bob.private_encrypt_key, ct)


@pytest.mark.parametrize("bad", ["%%%", "", base64.b64encode(b"\x00" * 16).decode()])
def test_malformed_ciphertext_fails(alice, bad):
    with pytest.raises(DecryptionError):
        decrypt_asymmetric(alice.private_encrypt_key, bad)


def test_flipped_ciphertext_fails(alice):
    raw = bytearray(base64.b64decode(encrypt_asymmetric(alice.public_encrypt_key, "v")))
    raw[len(raw) // 2] ^= 0x01
    with pytest.raises(DecryptionError):
        decrypt_asymmetric(alice.private_encrypt_key, base64.b64encode(bytes(raw)).decode())


# -----------------------------------------------------------------------------
# Signatures
# -----------------------------------------------------------------------------

def test_sign_and_verify(alice):
    message = "hello world"
    sig = sign(alice.private_sign_key, message)
    assert verify(sig, alice.public_sign_key, message) is True
    assert verify(sig, alice.public_sign_key, "wrong message") is False


def test_signature_is_deterministic(alice):
    # PKCS#1 v1.5 signatures do not use randomness
    assert sign(alice.private_sign_key, "m") == sign(alice.private_sign_key, "m")


def test_verify_under_other_key_is_false(alice, bob):
    sig = sign(alice.private_sign_key, "m")
    assert verify(sig, bob.public_sign_key, "m") is False


@pytest.mark.parametrize("sig", ["", "not-base64!", base64.b64encode(b"\x01" * 256).decode()])
def test_garbage_signature_is_false_not_error(alice, sig):
    assert verify(sig, alice.public_sign_key, "m") is False
