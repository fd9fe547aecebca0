"""
Telegram Bot API source.

Pulls channel posts with getUpdates short polling. The update_id drives the
cursor, the message_id is the dedup key. Only one consumer may poll a bot at
a time; Telegram answers a second one with HTTP 409, which is surfaced as
UpstreamConflict.
"""

import logging
from typing import Any

import httpx

from signal_ingest.errors import (
    ConfigurationError,
    UpstreamConflict,
    UpstreamError,
    UpstreamRateLimited,
)
from signal_ingest.models import UpstreamBatch, UpstreamMessage
from signal_ingest.sources.base import MessageSource

logger = logging.getLogger(__name__)

ALLOWED_UPDATES = ["message", "channel_post", "edited_channel_post"]


def parse_update(update: dict[str, Any]) -> UpstreamMessage | None:
    """Convert a raw Bot API update into an upstream message.

    Updates without text still produce a message so the cursor moves past them.
    """
    update_id = update.get("update_id")
    if not isinstance(update_id, int):
        return None

    payload = None
    for key in ALLOWED_UPDATES:
        if update.get(key):
            payload = update[key]
            break

    if payload is None:
        return UpstreamMessage(upstream_id=update_id, text=None, dedup_key=str(update_id))

    message_id = payload.get("message_id", update_id)
    return UpstreamMessage(
        upstream_id=update_id,
        text=payload.get("text"),
        dedup_key=str(message_id),
    )


class BotApiSource(MessageSource):
    """getUpdates poller over httpx."""

    name = "bot_api"
    supports_resync = True

    def __init__(
        self,
        token: str,
        api_base: str = "https://api.telegram.org",
        limit: int = 100,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.token = token
        self.api_base = api_base.rstrip("/")
        self.limit = limit
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _method_url(self, method: str) -> str:
        if not self.token:
            raise ConfigurationError("TELEGRAM_BOT_TOKEN is not configured")
        return f"{self.api_base}/bot{self.token}/{method}"

    async def _call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Call a Bot API method and return its `result` field."""
        url = self._method_url(method)
        try:
            response = await self._client.post(url, json=params or {})
        except httpx.HTTPError as e:
            raise UpstreamError(f"Telegram {method} request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        description = data.get("description") or response.reason_phrase or ""

        if response.status_code == 409 or "conflict" in description.lower():
            raise UpstreamConflict(description or "Conflict with another getUpdates consumer")
        if response.status_code == 429:
            retry_after = (data.get("parameters") or {}).get("retry_after")
            raise UpstreamRateLimited(description or "Too Many Requests", retry_after=retry_after)
        if response.status_code >= 400 or not data.get("ok"):
            raise UpstreamError(
                f"Telegram {method} failed ({response.status_code}): {description}"
            )
        return data.get("result")

    async def delete_webhook(self) -> None:
        """Switch the bot to polling mode; failures are not fatal."""
        try:
            await self._call("deleteWebhook", {"drop_pending_updates": False})
        except UpstreamError as e:
            logger.warning("deleteWebhook failed (non-critical): %s", e)

    async def set_webhook(self, url: str) -> Any:
        """Register a push endpoint for updates."""
        return await self._call(
            "setWebhook",
            {
                "url": url,
                "allowed_updates": ALLOWED_UPDATES,
                "drop_pending_updates": False,
            },
        )

    async def get_updates(self, offset: int) -> list[dict[str, Any]]:
        result = await self._call(
            "getUpdates",
            {
                "offset": offset,
                "limit": self.limit,
                "timeout": 0,
                "allowed_updates": ALLOWED_UPDATES,
            },
        )
        return result or []

    async def fetch(self, offset: int) -> UpstreamBatch:
        self._method_url("getUpdates")  # fail fast without a token

        await self.delete_webhook()
        updates = await self.get_updates(offset)
        messages = [m for m in (parse_update(u) for u in updates) if m is not None]
        logger.debug("getUpdates offset=%s returned %d updates", offset, len(messages))
        return UpstreamBatch(messages=messages)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
