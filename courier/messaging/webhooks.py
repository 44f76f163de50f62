from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from .config import ProtocolSettings
from .models import WebhookUpdate
from .stores import EntityStore, maybe_await

logger = logging.getLogger(__name__)


class HttpWebhookNotifier:
    """
    Notifier that POSTs a WebhookUpdate to every participant with a webhook.

    Delivery is at-most-once: failures are logged and dropped, never retried.
    The update carries only the encrypted envelope; receivers must fetch and
    unwrap their conversation key to read it.
    """
    def __init__(
        self,
        store: EntityStore,
        *,
        timeout_s: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store
        self.timeout_s = timeout_s
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        store: EntityStore,
        settings: ProtocolSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "HttpWebhookNotifier":
        return cls(store, timeout_s=settings.webhook_timeout_s, transport=transport)

    async def notify(self, message_id: str) -> None:
        message = await maybe_await(self.store.get_message(message_id))
        if message is None:
            logger.warning("notify: unknown message %s", message_id)
            return

        participants = await maybe_await(self.store.participants(message.conversation_id))
        urls = [p.webhook for p in participants if p.webhook]
        if not urls:
            return

        update = WebhookUpdate(
            payload=message.payload,
            timestamp=message.timestamp,
            conversation_id=message.conversation_id,
        ).to_wire()

        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            await asyncio.gather(*(self._post(client, url, update) for url in urls))

    async def _post(self, client: httpx.AsyncClient, url: str, update: dict) -> None:
        try:
            resp = await client.post(url, json=update)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("failed to call webhook %s: %s: %s", url, type(e).__name__, e)
