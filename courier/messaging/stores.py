"""
Collaborator interfaces (sync or async) and simple in-memory implementations.

The protocol layer only needs point lookups and inserts; any store that
implements these methods, with plain or coroutine functions, can be plugged
in. Results are passed through maybe_await().
"""

from __future__ import annotations

import inspect
import itertools
import threading
import time
import uuid
from typing import Any, Callable, Iterable, Optional, Protocol, runtime_checkable

from ..crypto_utils.encoding import DEFAULT_RANDOM, SecureRandom
from .models import Identity, StoredMessage


# =============================================================================
# Interfaces (sync or async)
# =============================================================================

@runtime_checkable
class NonceStore(Protocol):
    # Single-use auth nonces scoped to an identity
    def issue(self, identity: str) -> str: ...
    def consume(self, identity: str, token: str) -> bool: ...


@runtime_checkable
class EntityStore(Protocol):
    # Persistence collaborator: identities, conversations, wrapped keys, messages
    def add_identity(self, identity: Identity) -> None: ...
    def find_identities(self, public_sign_keys: Iterable[str]) -> list[Identity]: ...
    def update_identity(self, public_sign_key: str, **fields: Any) -> bool: ...
    def find_identity_by_alias(self, alias: str) -> Optional[Identity]: ...
    def add_conversation(self, title: str, participant_keys: Iterable[str]) -> str: ...
    def add_wrapped_keys(self, conversation_id: str, wrapped: dict[str, str]) -> None: ...
    def get_wrapped_key(self, conversation_id: str, public_sign_key: str) -> Optional[str]: ...
    # raises KeyError for an unknown conversation
    def add_message(self, conversation_id: str, payload: str, timestamp: int) -> str: ...
    def get_message(self, message_id: str) -> Optional[StoredMessage]: ...
    def list_messages(self, conversation_id: str) -> list[StoredMessage]: ...
    def participants(self, conversation_id: str) -> list[Identity]: ...


@runtime_checkable
class Notifier(Protocol):
    # Fire-and-forget fan-out trigger for a stored message
    def notify(self, message_id: str) -> None: ...


async def maybe_await(x: Any) -> Any:
    return await x if inspect.isawaitable(x) else x


# =============================================================================
# In-memory nonce store
# =============================================================================

class InMemoryNonceStore:
    """
    Nonce store with TTL.

    consume() is check-and-delete under one lock, so two concurrent
    verifications of the same nonce cannot both succeed. Expired entries are
    swept on every call.
    """
    def __init__(
        self,
        ttl_seconds: int = 120,
        *,
        rng: Optional[SecureRandom] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = int(ttl_seconds)
        self._rng = DEFAULT_RANDOM if rng is None else rng
        self._clock = clock
        self._lock = threading.Lock()
        self._issued: dict[tuple[str, str], float] = {}

    def _gc(self, now: float) -> None:
        dead = [k for k, expires in self._issued.items() if expires <= now]
        for k in dead:
            del self._issued[k]

    def issue(self, identity: str) -> str:
        token = str(uuid.UUID(bytes=self._rng.token_bytes(16), version=4))
        with self._lock:
            now = self._clock()
            self._gc(now)
            self._issued[(str(identity), token)] = now + self.ttl_seconds
        return token

    def consume(self, identity: str, token: str) -> bool:
        with self._lock:
            now = self._clock()
            self._gc(now)
            return self._issued.pop((str(identity), str(token)), None) is not None

    def __len__(self) -> int:
        with self._lock:
            self._gc(self._clock())
            return len(self._issued)


# =============================================================================
# In-memory entity store
# =============================================================================

class InMemoryEntityStore:
    """
    Dict-backed EntityStore. Records are copied in and out so callers cannot
    mutate stored state by accident.
    """
    def __init__(self):
        self._identities: dict[str, Identity] = {}
        self._conversations: dict[str, dict[str, Any]] = {}
        self._keys: dict[tuple[str, str], str] = {}
        self._messages: dict[str, StoredMessage] = {}
        # insertion order breaks timestamp ties
        self._seq = itertools.count()
        self._order: dict[str, int] = {}

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    # identities ---------------------------------------------------------

    def add_identity(self, identity: Identity) -> None:
        self._identities[identity.public_sign_key] = identity.model_copy()

    def find_identities(self, public_sign_keys: Iterable[str]) -> list[Identity]:
        out = []
        for k in dict.fromkeys(public_sign_keys):
            rec = self._identities.get(k)
            if rec is not None:
                out.append(rec.model_copy())
        return out

    def update_identity(self, public_sign_key: str, **fields: Any) -> bool:
        rec = self._identities.get(public_sign_key)
        if rec is None:
            return False
        self._identities[public_sign_key] = rec.model_copy(update=fields)
        return True

    def find_identity_by_alias(self, alias: str) -> Optional[Identity]:
        for rec in self._identities.values():
            if rec.alias == alias:
                return rec.model_copy()
        return None

    # conversations and keys ---------------------------------------------

    def add_conversation(self, title: str, participant_keys: Iterable[str]) -> str:
        cid = self._new_id()
        self._conversations[cid] = {"title": title, "participants": list(participant_keys)}
        return cid

    def add_wrapped_keys(self, conversation_id: str, wrapped: dict[str, str]) -> None:
        if conversation_id not in self._conversations:
            raise KeyError(f"unknown conversation {conversation_id}")
        for owner, key in wrapped.items():
            self._keys[(conversation_id, owner)] = key

    def get_wrapped_key(self, conversation_id: str, public_sign_key: str) -> Optional[str]:
        return self._keys.get((conversation_id, public_sign_key))

    def participants(self, conversation_id: str) -> list[Identity]:
        conv = self._conversations.get(conversation_id)
        if conv is None:
            return []
        return self.find_identities(conv["participants"])

    # messages -----------------------------------------------------------

    def add_message(self, conversation_id: str, payload: str, timestamp: int) -> str:
        if conversation_id not in self._conversations:
            raise KeyError(f"unknown conversation {conversation_id}")
        mid = self._new_id()
        self._messages[mid] = StoredMessage(
            id=mid, conversation_id=conversation_id, payload=payload, timestamp=timestamp,
        )
        self._order[mid] = next(self._seq)
        return mid

    def get_message(self, message_id: str) -> Optional[StoredMessage]:
        msg = self._messages.get(message_id)
        return msg.model_copy() if msg is not None else None

    def list_messages(self, conversation_id: str) -> list[StoredMessage]:
        msgs = [m for m in self._messages.values() if m.conversation_id == conversation_id]
        msgs.sort(key=lambda m: (m.timestamp, self._order[m.id]))
        return [m.model_copy() for m in msgs]
