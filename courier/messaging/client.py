"""
Client-side protocol, written once over the Backend interface.

Recommended usage pattern
- creds = await create_identity(backend, "alice")
- client = MessagingClient(backend, creds)
- cid = await client.create_conversation([creds.public_sign_key, bob_key], "title")
- await client.send_message(cid, {"type": "text", "text": "hi"})
- webhook receivers: await client.handle_webhook_update(WebhookUpdate.model_validate(body))

The conversation key is fetched per call through a nonce-signed request and
unwrapped locally. Callers that already hold the key can use
send_message_with_key / open_message directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from ..crypto_utils.asymmetric import decrypt_asymmetric
from ..crypto_utils.encoding import SecureRandom
from ..crypto_utils.errors import CryptoError, DecryptionError
from ..crypto_utils.keys import generate_key_pair, load_symmetric_key
from .auth import build_signed_request
from .backend import ACTION_CONVERSATION_KEY, ACTION_SET_ALIAS, Backend, normalize_alias
from .conversation_keys import create_conversation_keys
from .envelope import build_envelope, open_envelope
from .models import Credentials, DecipheredMessage, SignedRequest, WebhookUpdate

logger = logging.getLogger(__name__)


async def create_identity(backend: Backend, name: str) -> Credentials:
    """Generate sign + encrypt key pairs and register the public halves."""
    sign_pair = generate_key_pair("sign")
    encrypt_pair = generate_key_pair("encrypt")
    await backend.create_identity(name, sign_pair.public_key, encrypt_pair.public_key)
    return Credentials(
        public_sign_key=sign_pair.public_key,
        private_sign_key=sign_pair.private_key,
        public_encrypt_key=encrypt_pair.public_key,
        private_encrypt_key=encrypt_pair.private_key,
    )


@dataclass(frozen=True)
class WebhookResult:
    conversation_id: str
    message: DecipheredMessage
    conversation_key: str


class MessagingClient:
    def __init__(
        self,
        backend: Backend,
        credentials: Credentials,
        *,
        rng: Optional[SecureRandom] = None,
    ):
        self.backend = backend
        self.credentials = credentials
        self._rng = rng

    async def build_signed_request(self, action: str, payload: Any) -> SignedRequest:
        return await build_signed_request(self.credentials, action, payload, self.backend.issue_nonce)

    # conversations ------------------------------------------------------

    async def create_conversation(self, public_sign_keys: Sequence[str], title: str) -> str:
        keys = list(public_sign_keys)
        identities = await self.backend.find_identities(keys)
        wrapped = create_conversation_keys(identities, requested=keys, rng=self._rng)
        return await self.backend.create_conversation(wrapped, title)

    async def get_conversation_key(self, conversation_id: str) -> str:
        """
        Fetch this identity's wrapped key and unwrap it.

        Raises ConversationKeyNotFoundError when the identity holds no key for
        the conversation and DecryptionError when the wrapped key does not
        open under our private encrypt key.
        """
        request = await self.build_signed_request(
            ACTION_CONVERSATION_KEY, {"conversationId": conversation_id},
        )
        wrapped = await self.backend.conversation_key(request)
        key = decrypt_asymmetric(self.credentials.private_encrypt_key, wrapped)
        if not isinstance(key, str):
            raise DecryptionError("wrapped conversation key is not a key string")
        load_symmetric_key(key)
        return key

    # messages -----------------------------------------------------------

    async def send_message_with_key(
        self,
        conversation_id: str,
        conversation_key: str,
        message: dict[str, Any],
    ) -> str:
        envelope = build_envelope(conversation_key, self.credentials, message, rng=self._rng)
        return await self.backend.send_message(conversation_id, envelope)

    async def send_message(self, conversation_id: str, message: dict[str, Any]) -> str:
        key = await self.get_conversation_key(conversation_id)
        return await self.send_message_with_key(conversation_id, key, message)

    @staticmethod
    def open_message(conversation_key: str, envelope: str, timestamp: int) -> DecipheredMessage:
        return open_envelope(conversation_key, envelope, timestamp)

    async def read_conversation(self, conversation_id: str) -> list[DecipheredMessage]:
        """Open every stored message; any envelope that fails to open fails the whole read."""
        key = await self.get_conversation_key(conversation_id)
        stored = await self.backend.messages(conversation_id)
        return [open_envelope(key, m.payload, m.timestamp) for m in stored]

    async def handle_webhook_update(self, update: WebhookUpdate) -> WebhookResult:
        key = await self.get_conversation_key(update.conversation_id)
        try:
            message = open_envelope(key, update.payload, update.timestamp)
        except CryptoError:
            logger.warning("webhook update for %s did not open", update.conversation_id)
            raise
        return WebhookResult(
            conversation_id=update.conversation_id,
            message=message,
            conversation_key=key,
        )

    # identity settings ---------------------------------------------------

    async def set_alias(self, alias: str) -> str:
        request = await self.build_signed_request(ACTION_SET_ALIAS, {"alias": normalize_alias(alias)})
        return await self.backend.set_alias(request)

    async def set_webhook(self, url: str) -> None:
        await self.backend.set_webhook(url, self.credentials.public_sign_key)
