"""Factory function for creating message sources."""

from __future__ import annotations

from typing import TYPE_CHECKING

from signal_ingest.sources.base import MessageSource
from signal_ingest.sources.bot_api import BotApiSource
from signal_ingest.sources.channel_page import ChannelPageSource
from signal_ingest.sources.mtproto import MTProtoSource

if TYPE_CHECKING:
    from signal_ingest.config import AppConfig


def create_message_source(app_config: AppConfig) -> MessageSource:
    """Create the upstream message source selected by configuration.

    Args:
        app_config: Application configuration

    Returns:
        A message source instance

    Raises:
        ValueError: If the source kind is not recognized
    """
    telegram = app_config.telegram
    source = app_config.source

    if source.kind == "bot_api":
        return BotApiSource(
            token=telegram.bot_token,
            api_base=telegram.api_base,
            limit=telegram.poll_limit,
            timeout=source.timeout_seconds,
        )
    elif source.kind == "mtproto":
        return MTProtoSource(
            api_id=telegram.api_id,
            api_hash=telegram.api_hash,
            channel=telegram.channel,
            session_name=telegram.session_name,
            limit=telegram.poll_limit,
            initial_cursor=app_config.ingestion.initial_cursor,
        )
    elif source.kind == "channel_page":
        return ChannelPageSource(
            channel=telegram.channel,
            rss_url_template=source.rss_bridge_url,
            page_url_template=source.channel_page_url,
            timeout=source.timeout_seconds,
            retries=source.retries,
        )
    else:
        raise ValueError(f"Unknown signal source: {source.kind}")
