"""
Key codec: generation and import of sign / encrypt key pairs and of
conversation (symmetric) keys.

Transport form
- public keys:  base64(DER SubjectPublicKeyInfo)
- private keys: base64(DER PKCS#8, unencrypted)
- symmetric:    base64(32 random bytes), AES-256-GCM

Sign and encrypt keys are both RSA but use different modulus lengths, so a
key handed to the wrong operation is rejected on import instead of being
silently used for the other purpose.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .encoding import DEFAULT_RANDOM, SecureRandom, b64_decode, b64_encode
from .errors import KeyFormatError


KeyPurpose = Literal["sign", "encrypt"]

PUBLIC_EXPONENT = 65537
SIGN_MODULUS_BITS = 2048
ENCRYPT_MODULUS_BITS = 3072
SYMMETRIC_KEY_BYTES = 32

_MODULUS_BITS = {
    "sign": SIGN_MODULUS_BITS,
    "encrypt": ENCRYPT_MODULUS_BITS,
}


@dataclass(frozen=True)
class KeyPair:
    public_key: str
    private_key: str


def _modulus_bits(purpose: KeyPurpose) -> int:
    try:
        return _MODULUS_BITS[purpose]
    except KeyError:
        raise ValueError("purpose must be 'sign' or 'encrypt'") from None


# =============================================================================
# Generation
# =============================================================================

def generate_key_pair(purpose: KeyPurpose) -> KeyPair:
    bits = _modulus_bits(purpose)
    priv = rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=bits)
    return KeyPair(
        public_key=serialize_public_key(priv.public_key()),
        private_key=serialize_private_key(priv),
    )


def generate_symmetric_key(rng: Optional[SecureRandom] = None) -> str:
    return b64_encode((DEFAULT_RANDOM if rng is None else rng).token_bytes(SYMMETRIC_KEY_BYTES))


# =============================================================================
# Serialization
# =============================================================================

def serialize_public_key(key: rsa.RSAPublicKey) -> str:
    raw = key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return b64_encode(raw)


def serialize_private_key(key: rsa.RSAPrivateKey) -> str:
    raw = key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return b64_encode(raw)


# =============================================================================
# Import
# =============================================================================

def _check_purpose(key_size: int, purpose: KeyPurpose) -> None:
    expected = _modulus_bits(purpose)
    if key_size != expected:
        raise KeyFormatError(
            f"{key_size}-bit RSA key cannot be used to {purpose} (expected {expected}-bit)"
        )


def load_public_key(key_b64: str, purpose: KeyPurpose) -> rsa.RSAPublicKey:
    try:
        key = serialization.load_der_public_key(b64_decode(key_b64))
    except (ValueError, UnsupportedAlgorithm) as e:
        raise KeyFormatError(f"malformed public key: {e}") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise KeyFormatError("public key is not RSA")
    _check_purpose(key.key_size, purpose)
    return key


def load_private_key(key_b64: str, purpose: KeyPurpose) -> rsa.RSAPrivateKey:
    try:
        key = serialization.load_der_private_key(b64_decode(key_b64), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyFormatError(f"malformed private key: {e}") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise KeyFormatError("private key is not RSA")
    _check_purpose(key.key_size, purpose)
    return key


def load_symmetric_key(key_b64: str) -> bytes:
    try:
        raw = b64_decode(key_b64)
    except ValueError as e:
        raise KeyFormatError(f"malformed symmetric key: {e}") from e
    if len(raw) != SYMMETRIC_KEY_BYTES:
        raise KeyFormatError("symmetric key must be 32 bytes")
    return raw


def public_key_from_private(private_key_b64: str, purpose: KeyPurpose) -> str:
    return serialize_public_key(load_private_key(private_key_b64, purpose).public_key())
