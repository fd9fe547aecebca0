"""Channel history reader over a Telethon user session."""

import logging
from typing import Any

from telethon import TelegramClient

from signal_ingest.errors import ConfigurationError, UpstreamError
from signal_ingest.models import UpstreamBatch, UpstreamMessage
from signal_ingest.sources.base import MessageSource

logger = logging.getLogger(__name__)


class MTProtoSource(MessageSource):
    """Reads channel messages newer than the cursor, oldest first.

    The channel message id is both the upstream id and the dedup key. From
    the initial cursor only the latest `limit` messages are read, so a fresh
    deployment does not replay the whole channel history.
    """

    name = "mtproto"

    def __init__(
        self,
        api_id: int,
        api_hash: str,
        channel: str,
        session_name: str = "signal_ingest_session",
        limit: int = 100,
        initial_cursor: int = 0,
        client: Any = None,
    ) -> None:
        self.api_id = api_id
        self.api_hash = api_hash
        self.channel = channel
        self.session_name = session_name
        self.limit = limit
        self.initial_cursor = initial_cursor
        self._owns_client = client is None
        self._client = client

    async def _connect(self) -> Any:
        if self._client is not None:
            return self._client

        if not self.api_id or not self.api_hash:
            raise ConfigurationError("TELEGRAM_API_ID and TELEGRAM_API_HASH are required")

        client = TelegramClient(self.session_name, self.api_id, self.api_hash)
        await client.connect()
        if not await client.is_user_authorized():
            await client.disconnect()
            raise ConfigurationError(
                f"Telegram session '{self.session_name}' is not authorized; log in once interactively"
            )
        self._client = client
        return client

    async def fetch(self, offset: int) -> UpstreamBatch:
        client = await self._connect()

        try:
            if offset <= self.initial_cursor:
                latest = [m async for m in client.iter_messages(self.channel, limit=self.limit)]
                latest.reverse()
                raw_messages = latest
            else:
                # min_id is exclusive
                raw_messages = [
                    m
                    async for m in client.iter_messages(
                        self.channel,
                        min_id=offset - 1,
                        limit=self.limit,
                        reverse=True,
                    )
                ]
        except (ConnectionError, OSError) as e:
            raise UpstreamError(f"Failed to read channel {self.channel}: {e}") from e

        messages = [
            UpstreamMessage(upstream_id=m.id, text=m.message, dedup_key=str(m.id))
            for m in raw_messages
        ]
        logger.debug("Read %d messages from %s after cursor %s", len(messages), self.channel, offset)
        return UpstreamBatch(messages=messages)

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.disconnect()
            self._client = None
