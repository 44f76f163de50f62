"""
Server-side handlers over a persistence collaborator.

LocalBackend is the direct-persistence implementation of the Backend
interface; GatewayBackend (gateway.py) is the HTTP-mediated one. The client
talks to either through the same methods.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import re
import time
from typing import Any, Callable, Optional, Protocol, Sequence, runtime_checkable

from ..crypto_utils.encoding import key_fingerprint
from ..crypto_utils.keys import load_public_key
from .auth import issue_nonce, require_signed_request
from .config import ProtocolSettings
from .errors import (
    AliasNotSetError,
    AliasTakenError,
    ConversationKeyNotFoundError,
    ConversationNotFoundError,
    IdentityExistsError,
    IdentityNotFoundError,
    InvalidAliasError,
    InvalidParticipantsError,
)
from .models import Identity, SignedRequest, StoredMessage
from .stores import EntityStore, InMemoryNonceStore, NonceStore, Notifier, maybe_await

logger = logging.getLogger(__name__)

ACTION_CONVERSATION_KEY = "conversationKey"
ACTION_SET_ALIAS = "setAlias"


@runtime_checkable
class Backend(Protocol):
    async def find_identities(self, public_sign_keys: Sequence[str]) -> list[Identity]: ...
    async def create_identity(self, name: str, public_sign_key: str, public_encrypt_key: str) -> None: ...
    async def create_conversation(self, wrapped_keys: dict[str, str], title: str) -> str: ...
    async def issue_nonce(self, public_sign_key: str) -> str: ...
    async def conversation_key(self, request: SignedRequest) -> str: ...
    async def send_message(self, conversation_id: str, encrypted_message: str) -> str: ...
    async def messages(self, conversation_id: str) -> list[StoredMessage]: ...
    async def set_webhook(self, url: str, public_sign_key: str) -> None: ...
    async def set_alias(self, request: SignedRequest) -> str: ...
    async def alias_to_public_sign_key(self, alias: str) -> str: ...
    async def public_sign_key_to_alias(self, public_sign_key: str) -> str: ...


# =============================================================================
# Aliases
# =============================================================================

_ALIAS_PATTERN = re.compile(r"^[a-z0-9_]{1,15}$")
ALIAS_MAX_LENGTH = 15


def normalize_alias(alias: str) -> str:
    return re.sub(r"\s+", "", alias.strip().lower())[:ALIAS_MAX_LENGTH]


def is_valid_alias(alias: str) -> bool:
    return alias == normalize_alias(alias) and bool(_ALIAS_PATTERN.match(alias))


# =============================================================================
# Direct-persistence backend
# =============================================================================

class LocalBackend:
    def __init__(
        self,
        store: EntityStore,
        nonce_store: Optional[NonceStore] = None,
        notifier: Optional[Notifier] = None,
        *,
        settings: Optional[ProtocolSettings] = None,
        clock: Callable[[], float] = time.time,
    ):
        if settings is None:
            settings = ProtocolSettings()
        self.store = store
        if nonce_store is None:
            nonce_store = InMemoryNonceStore(settings.nonce_ttl_seconds)
        self.nonce_store = nonce_store
        self.notifier = notifier
        self._clock = clock
        self._pending: set[asyncio.Future] = set()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # identities ---------------------------------------------------------

    async def find_identities(self, public_sign_keys: Sequence[str]) -> list[Identity]:
        return await maybe_await(self.store.find_identities(list(public_sign_keys)))

    async def create_identity(self, name: str, public_sign_key: str, public_encrypt_key: str) -> None:
        load_public_key(public_sign_key, "sign")
        load_public_key(public_encrypt_key, "encrypt")
        if await maybe_await(self.store.find_identities([public_sign_key])):
            logger.warning("refused re-registration of %s", key_fingerprint(public_sign_key))
            raise IdentityExistsError(public_sign_key)
        await maybe_await(self.store.add_identity(Identity(
            public_sign_key=public_sign_key,
            public_encrypt_key=public_encrypt_key,
            name=name,
        )))
        logger.debug("registered identity %s", key_fingerprint(public_sign_key))

    async def set_webhook(self, url: str, public_sign_key: str) -> None:
        if not await maybe_await(self.store.update_identity(public_sign_key, webhook=url)):
            raise IdentityNotFoundError(public_sign_key)

    async def set_alias(self, request: SignedRequest) -> str:
        payload = await require_signed_request(self.nonce_store, request, ACTION_SET_ALIAS)
        alias = normalize_alias(str(_as_dict(payload).get("alias", "")))
        if not is_valid_alias(alias):
            raise InvalidAliasError(alias)

        found = await maybe_await(self.store.find_identities([request.public_sign_key]))
        if not found:
            raise IdentityNotFoundError(request.public_sign_key)
        holder = await maybe_await(self.store.find_identity_by_alias(alias))
        if holder is not None and holder.public_sign_key != request.public_sign_key:
            raise AliasTakenError(alias)

        await maybe_await(self.store.update_identity(request.public_sign_key, alias=alias))
        return alias

    async def alias_to_public_sign_key(self, alias: str) -> str:
        holder = await maybe_await(self.store.find_identity_by_alias(normalize_alias(alias)))
        if holder is None:
            raise IdentityNotFoundError(alias)
        return holder.public_sign_key

    async def public_sign_key_to_alias(self, public_sign_key: str) -> str:
        found = await maybe_await(self.store.find_identities([public_sign_key]))
        if not found:
            raise IdentityNotFoundError(public_sign_key)
        if not found[0].alias:
            raise AliasNotSetError(public_sign_key)
        return found[0].alias

    # conversations ------------------------------------------------------

    async def create_conversation(self, wrapped_keys: dict[str, str], title: str) -> str:
        identities = await maybe_await(self.store.find_identities(list(wrapped_keys)))
        if len(identities) != len(wrapped_keys):
            raise InvalidParticipantsError("unknown participants")

        owners = [i.public_sign_key for i in identities]
        conversation_id = await maybe_await(self.store.add_conversation(title, owners))
        await maybe_await(self.store.add_wrapped_keys(
            conversation_id, {owner: wrapped_keys[owner] for owner in owners},
        ))
        logger.debug("created conversation %s with %d participants", conversation_id, len(owners))
        return conversation_id

    async def issue_nonce(self, public_sign_key: str) -> str:
        return await issue_nonce(self.nonce_store, public_sign_key)

    async def conversation_key(self, request: SignedRequest) -> str:
        payload = await require_signed_request(self.nonce_store, request, ACTION_CONVERSATION_KEY)
        conversation_id = str(_as_dict(payload).get("conversationId", ""))
        wrapped = await maybe_await(
            self.store.get_wrapped_key(conversation_id, request.public_sign_key)
        )
        if wrapped is None:
            raise ConversationKeyNotFoundError(conversation_id)
        return wrapped

    # messages -----------------------------------------------------------

    async def send_message(self, conversation_id: str, encrypted_message: str) -> str:
        try:
            message_id = await maybe_await(
                self.store.add_message(conversation_id, encrypted_message, self._now_ms())
            )
        except KeyError:
            raise ConversationNotFoundError(conversation_id) from None
        logger.debug("stored message %s in %s", message_id, conversation_id)
        if self.notifier is not None:
            self._notify(message_id)
        return message_id

    def _notify(self, message_id: str) -> None:
        # at-most-once: delivery problems never fail or delay the send
        try:
            result = self.notifier.notify(message_id)
        except Exception:
            logger.exception("notify failed for message %s", message_id)
            return
        if not inspect.isawaitable(result):
            return

        task = asyncio.ensure_future(result)
        self._pending.add(task)

        def _done(t: asyncio.Future) -> None:
            self._pending.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error("notify failed for message %s", message_id, exc_info=t.exception())

        task.add_done_callback(_done)

    async def wait_for_notifications(self) -> None:
        """Wait until every scheduled fan-out has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def messages(self, conversation_id: str) -> list[StoredMessage]:
        return await maybe_await(self.store.list_messages(conversation_id))


def _as_dict(payload: Any) -> dict:
    return payload if isinstance(payload, dict) else {}
