from __future__ import annotations

import json
from typing import Any, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .encoding import DEFAULT_RANDOM, SecureRandom, b64_decode, b64_encode, canonical_bytes
from .errors import AuthenticationError, DecryptionError
from .keys import load_symmetric_key


IV_LENGTH = 12  # 96-bit GCM nonce
TAG_LENGTH = 16


def encrypt_symmetric(key: str, value: Any, *, rng: Optional[SecureRandom] = None) -> str:
    """
    AES-256-GCM over the canonical serialization of value.

    Returns base64(IV || ciphertext || tag). A fresh IV is drawn for every call.
    """
    aes = AESGCM(load_symmetric_key(key))
    iv = (DEFAULT_RANDOM if rng is None else rng).token_bytes(IV_LENGTH)
    if len(iv) != IV_LENGTH:
        raise ValueError("random source returned a short IV")
    ciphertext = aes.encrypt(iv, canonical_bytes(value), associated_data=None)
    return b64_encode(iv + ciphertext)


def decrypt_symmetric(key: str, blob: str) -> Any:
    aes = AESGCM(load_symmetric_key(key))
    try:
        raw = b64_decode(blob)
    except ValueError as e:
        raise DecryptionError("ciphertext is not valid base64") from e
    if len(raw) < IV_LENGTH + TAG_LENGTH:
        raise DecryptionError("ciphertext too short")

    iv, ciphertext = raw[:IV_LENGTH], raw[IV_LENGTH:]
    try:
        plaintext = aes.decrypt(iv, ciphertext, associated_data=None)
    except InvalidTag as e:
        raise AuthenticationError("authentication tag mismatch") from e
    try:
        return json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecryptionError("decrypted payload is not JSON") from e
