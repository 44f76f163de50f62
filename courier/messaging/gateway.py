"""
Gateway-mediated backend.

Wire format: every call is a JSON POST of {"endpoint": <name>, "payload": {...}}
to the gateway URL. A rejected call answers {"error": <code>}; the client maps
the code back to the same MessagingError subclass LocalBackend raises, so
callers see identical failures through either backend.

dispatch() is the server half: it routes a decoded body into a LocalBackend.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional, Sequence

import httpx
from pydantic import ValidationError

from ..crypto_utils.errors import CryptoError
from .backend import LocalBackend
from .config import ProtocolSettings
from .errors import MessagingError, error_from_code
from .models import Identity, SignedRequest, StoredMessage

logger = logging.getLogger(__name__)


# =============================================================================
# Client
# =============================================================================

class GatewayBackend:
    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise ValueError("gateway base_url must be non-empty")
        self.base_url = base_url
        self.timeout_s = timeout_s
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: ProtocolSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "GatewayBackend":
        if not settings.gateway_url:
            raise ValueError("gateway_url is not configured")
        return cls(settings.gateway_url, timeout_s=settings.gateway_timeout_s, transport=transport)

    async def _call(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            resp = await client.post(self.base_url, json={"endpoint": endpoint, "payload": payload})
        resp.raise_for_status()
        body = resp.json()
        if not isinstance(body, dict):
            raise ValueError(f"{endpoint}: gateway returned a non-object body")
        if "error" in body:
            raise error_from_code(str(body["error"]))
        return body

    async def find_identities(self, public_sign_keys: Sequence[str]) -> list[Identity]:
        body = await self._call("identities", {"publicSignKeys": list(public_sign_keys)})
        return [Identity.model_validate(x) for x in body.get("identities", [])]

    async def create_identity(self, name: str, public_sign_key: str, public_encrypt_key: str) -> None:
        await self._call("createAnonymousIdentity", {
            "name": name,
            "publicSignKey": public_sign_key,
            "publicEncryptKey": public_encrypt_key,
        })

    async def create_conversation(self, wrapped_keys: dict[str, str], title: str) -> str:
        body = await self._call("createConversation", {
            "publicSignKeyToEncryptedSymmetricKey": dict(wrapped_keys),
            "title": title,
        })
        return str(body["conversationId"])

    async def issue_nonce(self, public_sign_key: str) -> str:
        body = await self._call("issueNonce", {"publicSignKey": public_sign_key})
        return str(body["nonce"])

    async def conversation_key(self, request: SignedRequest) -> str:
        body = await self._call("conversationKey", request.to_wire())
        return str(body["conversationKey"])

    async def send_message(self, conversation_id: str, encrypted_message: str) -> str:
        body = await self._call("sendMessage", {
            "conversation": conversation_id,
            "encryptedMessage": encrypted_message,
        })
        return str(body["messageId"])

    async def messages(self, conversation_id: str) -> list[StoredMessage]:
        body = await self._call("messages", {"conversationId": conversation_id})
        return [StoredMessage.model_validate(x) for x in body.get("messages", [])]

    async def set_webhook(self, url: str, public_sign_key: str) -> None:
        await self._call("setWebhook", {"url": url, "publicSignKey": public_sign_key})

    async def set_alias(self, request: SignedRequest) -> str:
        body = await self._call("setAlias", request.to_wire())
        return str(body["alias"])

    async def alias_to_public_sign_key(self, alias: str) -> str:
        body = await self._call("aliasToPublicSignKey", {"alias": alias})
        return str(body["publicSignKey"])

    async def public_sign_key_to_alias(self, public_sign_key: str) -> str:
        body = await self._call("publicSignKeyToAlias", {"publicSignKey": public_sign_key})
        return str(body["alias"])


# =============================================================================
# Server
# =============================================================================

Handler = Callable[[LocalBackend, dict], Awaitable[dict]]


async def _identities(b: LocalBackend, p: dict) -> dict:
    found = await b.find_identities([str(k) for k in p["publicSignKeys"]])
    return {"identities": [i.to_wire() for i in found]}


async def _create_identity(b: LocalBackend, p: dict) -> dict:
    await b.create_identity(str(p.get("name", "")), p["publicSignKey"], p["publicEncryptKey"])
    return {}


async def _create_conversation(b: LocalBackend, p: dict) -> dict:
    wrapped = p["publicSignKeyToEncryptedSymmetricKey"]
    if not isinstance(wrapped, dict):
        raise TypeError("publicSignKeyToEncryptedSymmetricKey must be an object")
    cid = await b.create_conversation({str(k): str(v) for k, v in wrapped.items()}, str(p["title"]))
    return {"conversationId": cid}


async def _issue_nonce(b: LocalBackend, p: dict) -> dict:
    return {"nonce": await b.issue_nonce(str(p["publicSignKey"]))}


async def _conversation_key(b: LocalBackend, p: dict) -> dict:
    return {"conversationKey": await b.conversation_key(SignedRequest.model_validate(p))}


async def _send_message(b: LocalBackend, p: dict) -> dict:
    return {"messageId": await b.send_message(str(p["conversation"]), str(p["encryptedMessage"]))}


async def _messages(b: LocalBackend, p: dict) -> dict:
    msgs = await b.messages(str(p["conversationId"]))
    return {"messages": [m.to_wire() for m in msgs]}


async def _set_webhook(b: LocalBackend, p: dict) -> dict:
    await b.set_webhook(str(p["url"]), str(p["publicSignKey"]))
    return {"success": True}


async def _set_alias(b: LocalBackend, p: dict) -> dict:
    return {"alias": await b.set_alias(SignedRequest.model_validate(p))}


async def _alias_to_public_sign_key(b: LocalBackend, p: dict) -> dict:
    return {"publicSignKey": await b.alias_to_public_sign_key(str(p["alias"]))}


async def _public_sign_key_to_alias(b: LocalBackend, p: dict) -> dict:
    return {"alias": await b.public_sign_key_to_alias(str(p["publicSignKey"]))}


ENDPOINTS: dict[str, Handler] = {
    "identities": _identities,
    "createAnonymousIdentity": _create_identity,
    "createConversation": _create_conversation,
    "issueNonce": _issue_nonce,
    "conversationKey": _conversation_key,
    "sendMessage": _send_message,
    "messages": _messages,
    "setWebhook": _set_webhook,
    "setAlias": _set_alias,
    "aliasToPublicSignKey": _alias_to_public_sign_key,
    "publicSignKeyToAlias": _public_sign_key_to_alias,
}


async def dispatch(backend: LocalBackend, body: Any) -> dict[str, Any]:
    """Route one decoded gateway request. Never raises for a bad request."""
    if not isinstance(body, dict):
        return {"error": "bad-request"}
    endpoint = body.get("endpoint")
    payload = body.get("payload")
    handler = ENDPOINTS.get(endpoint) if isinstance(endpoint, str) else None
    if handler is None or not isinstance(payload, dict):
        return {"error": "unknown-endpoint" if handler is None else "bad-request"}

    try:
        return await handler(backend, payload)
    except MessagingError as e:
        return {"error": e.code}
    except (ValidationError, KeyError, TypeError, CryptoError) as e:
        logger.warning("%s: bad request: %s: %s", endpoint, type(e).__name__, e)
        return {"error": "bad-request"}
