from __future__ import annotations

import json
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from .encoding import b64_decode, b64_encode, canonical_bytes
from .errors import DecryptionError, PlaintextTooLargeError
from .keys import load_private_key, load_public_key


_HASH_LEN = 32  # SHA-256

_OAEP = padding.OAEP(
    mgf=padding.MGF1(algorithm=hashes.SHA256()),
    algorithm=hashes.SHA256(),
    label=None,
)


def max_plaintext_bytes(modulus_bits: int) -> int:
    return modulus_bits // 8 - 2 * _HASH_LEN - 2


# =============================================================================
# RSA-OAEP (wraps short values such as conversation keys)
# =============================================================================

def encrypt_asymmetric(public_encrypt_key: str, value: Any) -> str:
    pub = load_public_key(public_encrypt_key, "encrypt")
    plaintext = canonical_bytes(value)
    limit = max_plaintext_bytes(pub.key_size)
    if len(plaintext) > limit:
        raise PlaintextTooLargeError(
            f"{len(plaintext)} bytes exceeds the RSA-OAEP bound of {limit} bytes"
        )
    return b64_encode(pub.encrypt(plaintext, _OAEP))


def decrypt_asymmetric(private_encrypt_key: str, ciphertext: str) -> Any:
    priv = load_private_key(private_encrypt_key, "encrypt")
    try:
        raw = b64_decode(ciphertext)
    except ValueError as e:
        raise DecryptionError("ciphertext is not valid base64") from e
    if len(raw) != priv.key_size // 8:
        raise DecryptionError("ciphertext length does not match key size")
    try:
        plaintext = priv.decrypt(raw, _OAEP)
    except ValueError as e:
        # Wrong key or corrupted ciphertext; OAEP does not say which
        raise DecryptionError("decryption failed") from e
    try:
        return json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecryptionError("decrypted value is not JSON") from e


# =============================================================================
# RSASSA-PKCS1-v1_5 signatures over canonical strings
# =============================================================================

def sign(private_sign_key: str, data: str) -> str:
    priv = load_private_key(private_sign_key, "sign")
    return b64_encode(priv.sign(data.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256()))


def verify(signature: str, public_sign_key: str, data: str) -> bool:
    """
    Return True iff signature is valid for data under public_sign_key.

    A bad or undecodable signature is False, not an exception. A malformed
    key raises KeyFormatError.
    """
    pub = load_public_key(public_sign_key, "sign")
    try:
        sig = b64_decode(signature)
    except ValueError:
        return False
    try:
        pub.verify(sig, data.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256())
    except InvalidSignature:
        return False
    return True
