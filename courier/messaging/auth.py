"""
Nonce-based request authorization.

A client asks for a nonce, signs {action, publicSignKey, payload, nonce}
with its private sign key, and sends the SignedRequest. The server consumes
the nonce before checking the signature, so every nonce authorizes at most
one attempt whatever its outcome. There is no session: each request
re-derives trust from scratch.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Union

from ..crypto_utils.asymmetric import sign, verify
from ..crypto_utils.encoding import canonical_string, key_fingerprint
from ..crypto_utils.errors import KeyFormatError
from .errors import NonceExpiredOrUnknown
from .models import Credentials, SignedRequest
from .stores import NonceStore, maybe_await

logger = logging.getLogger(__name__)

NonceIssuer = Callable[[str], Union[str, Awaitable[str]]]


def canonical_string_for_auth_sign(
    *,
    action: str,
    public_sign_key: str,
    payload: Any,
    nonce: str,
) -> str:
    return canonical_string({
        "action": action,
        "publicSignKey": public_sign_key,
        "payload": payload,
        "nonce": nonce,
    })


# =============================================================================
# Client side
# =============================================================================

def sign_request(credentials: Credentials, action: str, payload: Any, nonce: str) -> SignedRequest:
    token = sign(
        credentials.private_sign_key,
        canonical_string_for_auth_sign(
            action=action,
            public_sign_key=credentials.public_sign_key,
            payload=payload,
            nonce=nonce,
        ),
    )
    return SignedRequest(
        payload=payload,
        public_sign_key=credentials.public_sign_key,
        nonce=nonce,
        auth_token=token,
    )


async def build_signed_request(
    credentials: Credentials,
    action: str,
    payload: Any,
    issue_nonce: NonceIssuer,
) -> SignedRequest:
    """Fetch a fresh nonce through issue_nonce (sync or async) and sign the request."""
    nonce = await maybe_await(issue_nonce(credentials.public_sign_key))
    return sign_request(credentials, action, payload, nonce)


# =============================================================================
# Server side
# =============================================================================

async def issue_nonce(nonce_store: NonceStore, public_sign_key: str) -> str:
    nonce = await maybe_await(nonce_store.issue(public_sign_key))
    logger.debug("issued nonce for %s", key_fingerprint(public_sign_key))
    return nonce


async def verify_signed_request(
    nonce_store: NonceStore,
    request: SignedRequest,
    action: str,
) -> bool:
    """
    Consume the request nonce and check the signature.

    Returns False for an unknown, consumed or expired nonce (nothing is
    touched) and, after consuming the nonce, for a bad signature or an
    unusable key.
    """
    if not await maybe_await(nonce_store.consume(request.public_sign_key, request.nonce)):
        logger.warning(
            "%s: unknown or expired nonce for %s", action, key_fingerprint(request.public_sign_key)
        )
        return False
    logger.debug("%s: consumed nonce for %s", action, key_fingerprint(request.public_sign_key))

    data = canonical_string_for_auth_sign(
        action=action,
        public_sign_key=request.public_sign_key,
        payload=request.payload,
        nonce=request.nonce,
    )
    try:
        ok = verify(request.auth_token, request.public_sign_key, data)
    except KeyFormatError:
        ok = False
    if not ok:
        logger.warning("%s: bad signature from %s", action, key_fingerprint(request.public_sign_key))
    return ok


async def require_signed_request(
    nonce_store: NonceStore,
    request: SignedRequest,
    action: str,
) -> Any:
    """Like verify_signed_request but raises NonceExpiredOrUnknown; returns the payload."""
    if not await verify_signed_request(nonce_store, request, action):
        raise NonceExpiredOrUnknown(action)
    return request.payload
