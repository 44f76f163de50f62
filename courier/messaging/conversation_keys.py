from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from ..crypto_utils.asymmetric import encrypt_asymmetric
from ..crypto_utils.encoding import SecureRandom
from ..crypto_utils.keys import generate_symmetric_key, load_public_key
from .errors import InvalidParticipantsError
from .models import Identity

logger = logging.getLogger(__name__)


def create_conversation_keys(
    participants: Sequence[Identity],
    *,
    requested: Optional[Iterable[str]] = None,
    rng: Optional[SecureRandom] = None,
) -> dict[str, str]:
    """
    Generate one conversation key and wrap it for every participant.

    - participants: resolved directory records.
    - requested: the public sign keys the caller asked for. When given, the
      resolved set must cover it exactly, otherwise InvalidParticipantsError.

    Returns {publicSignKey: wrapped conversation key}. All participant keys
    are validated before any key material is generated. Every call yields a
    fresh, unrelated conversation key.
    """
    by_sign_key: dict[str, Identity] = {}
    for identity in participants:
        if identity.public_sign_key in by_sign_key:
            raise InvalidParticipantsError("duplicate participant")
        by_sign_key[identity.public_sign_key] = identity

    if not by_sign_key:
        raise InvalidParticipantsError("no participants")

    if requested is not None:
        wanted = set(requested)
        if len(wanted) != len(by_sign_key) or wanted != set(by_sign_key):
            raise InvalidParticipantsError("unknown or missing participants")

    # Reject unusable encrypt keys up front (KeyFormatError)
    for identity in by_sign_key.values():
        load_public_key(identity.public_encrypt_key, "encrypt")

    conversation_key = generate_symmetric_key(rng)
    wrapped = {
        sign_key: encrypt_asymmetric(identity.public_encrypt_key, conversation_key)
        for sign_key, identity in by_sign_key.items()
    }
    logger.debug("wrapped conversation key for %d participants", len(wrapped))
    return wrapped
