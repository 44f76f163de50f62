"""
Message envelopes: sign the plaintext, then encrypt the signed bundle under
the conversation key.

Anyone holding the conversation key can decrypt, but only the holder of a
private sign key can produce a payload that opens as authored by it.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import ValidationError

from ..crypto_utils.asymmetric import sign, verify
from ..crypto_utils.encoding import SecureRandom, canonical_string
from ..crypto_utils.errors import InvalidSignatureError, KeyFormatError
from ..crypto_utils.symmetric import decrypt_symmetric, encrypt_symmetric
from .models import Credentials, DecipheredMessage, SignedPayload

# Fields owned by the envelope; a payload cannot override them
_RESERVED = ("publicSignKey", "public_sign_key", "timestamp")


def build_envelope(
    conversation_key: str,
    credentials: Credentials,
    message: dict[str, Any],
    *,
    rng: Optional[SecureRandom] = None,
) -> str:
    if not isinstance(message, dict):
        raise ValueError("message must be a dict")

    signed = SignedPayload(
        public_sign_key=credentials.public_sign_key,
        signature=sign(credentials.private_sign_key, canonical_string(message)),
        payload=message,
    )
    return encrypt_symmetric(conversation_key, signed.to_wire(), rng=rng)


def open_envelope(conversation_key: str, envelope: str, timestamp: int) -> DecipheredMessage:
    """
    Decrypt and authenticate an envelope.

    Raises AuthenticationError / DecryptionError if the ciphertext does not
    open under conversation_key, and InvalidSignatureError if it opens but
    the embedded attribution does not verify.
    """
    decrypted = decrypt_symmetric(conversation_key, envelope)
    try:
        signed = SignedPayload.model_validate(decrypted)
    except ValidationError as e:
        raise InvalidSignatureError("envelope does not carry a signed payload") from e

    try:
        ok = verify(signed.signature, signed.public_sign_key, canonical_string(signed.payload))
    except KeyFormatError as e:
        raise InvalidSignatureError("envelope names an unusable sign key") from e
    if not ok:
        raise InvalidSignatureError("envelope signature does not verify")

    fields = {k: v for k, v in signed.payload.items() if k not in _RESERVED}
    return DecipheredMessage(
        public_sign_key=signed.public_sign_key,
        timestamp=timestamp,
        **fields,
    )
