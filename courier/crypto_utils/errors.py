"""
Typed failures raised by the crypto layer.

All of them derive from ValueError so callers that already treat protocol
violations as ValueError keep working.
"""


class CryptoError(ValueError):
    pass


class KeyFormatError(CryptoError):
    """Key material is malformed or was generated for another purpose."""


class DecryptionError(CryptoError):
    """Ciphertext could not be decoded, decrypted or parsed."""


class AuthenticationError(CryptoError):
    """AEAD tag did not verify: tampered ciphertext or wrong key."""


class PlaintextTooLargeError(CryptoError):
    """Serialized value does not fit the RSA-OAEP plaintext bound."""


class InvalidSignatureError(CryptoError):
    """Decrypted content carries an attribution that does not verify."""
