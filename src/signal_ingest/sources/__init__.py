"""Upstream message sources."""

from signal_ingest.sources.base import MessageSource
from signal_ingest.sources.bot_api import BotApiSource, parse_update
from signal_ingest.sources.channel_page import ChannelPageSource
from signal_ingest.sources.factory import create_message_source
from signal_ingest.sources.mtproto import MTProtoSource

__all__ = [
    "MessageSource",
    "BotApiSource",
    "ChannelPageSource",
    "MTProtoSource",
    "create_message_source",
    "parse_update",
]
