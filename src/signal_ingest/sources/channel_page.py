"""
Public channel source, read without any Telegram credentials.

Tries an RSS bridge first and falls back to the public web preview
(t.me/s/<channel>). Both expose a publish time for every post, so the
upstream id is the publish time in epoch milliseconds and the cursor keeps
one meaning whichever page answered.
"""

import asyncio
import calendar
import hashlib
import logging
from datetime import datetime

import feedparser
import httpx
from bs4 import BeautifulSoup

from signal_ingest.errors import UpstreamError
from signal_ingest.models import UpstreamBatch, UpstreamMessage
from signal_ingest.sources.base import MessageSource

logger = logging.getLogger(__name__)


def text_digest(text: str) -> str:
    """Stable dedup key for posts without a platform id."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


def html_to_text(html: str) -> str:
    return BeautifulSoup(html, "html.parser").get_text("\n", strip=True)


def parse_feed(content: str) -> list[UpstreamMessage]:
    """Parse an RSS bridge document into messages keyed by publish time."""
    feed = feedparser.parse(content)
    if feed.bozo and not feed.entries:
        raise UpstreamError(f"Unreadable RSS feed: {feed.get('bozo_exception')}")

    messages = []
    for entry in feed.entries:
        published = entry.get("published_parsed") or entry.get("updated_parsed")
        description = entry.get("summary") or entry.get("description") or ""
        if not published or not description:
            continue
        published_ms = calendar.timegm(published) * 1000
        messages.append(
            UpstreamMessage(
                upstream_id=published_ms,
                text=html_to_text(description),
                dedup_key=str(published_ms),
            )
        )
    return messages


def parse_channel_page(html: str) -> list[UpstreamMessage]:
    """Parse the t.me/s web preview into messages keyed by publish time."""
    soup = BeautifulSoup(html, "html.parser")
    messages = []
    for post in soup.select("div.tgme_widget_message"):
        body = post.select_one("div.tgme_widget_message_text")
        stamp = post.select_one("time[datetime]")
        if body is None or stamp is None:
            continue

        try:
            published = datetime.fromisoformat(stamp["datetime"])
        except ValueError:
            logger.debug("Skipping post with bad timestamp %r", stamp["datetime"])
            continue

        text = body.get_text("\n", strip=True)
        data_post = post.get("data-post", "")
        post_id = data_post.rsplit("/", 1)[-1]
        messages.append(
            UpstreamMessage(
                upstream_id=int(published.timestamp() * 1000),
                text=text,
                dedup_key=post_id if post_id.isdigit() else text_digest(text),
            )
        )
    return messages


class ChannelPageSource(MessageSource):
    """RSS bridge with public web page fallback."""

    name = "channel_page"

    def __init__(
        self,
        channel: str,
        rss_url_template: str = "https://rsshub.app/telegram/channel/{channel}",
        page_url_template: str = "https://t.me/s/{channel}",
        timeout: float = 10.0,
        retries: int = 2,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.channel = channel
        self.rss_url = rss_url_template.format(channel=channel)
        self.page_url = page_url_template.format(channel=channel)
        self.retries = retries
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": "Mozilla/5.0 (compatible; signal-ingest)"},
        )

    async def _get_text(self, url: str) -> str:
        """GET with exponential backoff between attempts (1s, 2s, ...)."""
        last_error: Exception | None = None
        for attempt in range(self.retries + 1):
            if attempt:
                await asyncio.sleep(2 ** (attempt - 1))
            try:
                response = await self._client.get(url)
                response.raise_for_status()
                return response.text
            except httpx.HTTPError as e:
                last_error = e
                logger.debug("Fetch %s attempt %d failed: %s", url, attempt + 1, e)
        raise UpstreamError(f"Failed to fetch {url}: {last_error}")

    async def fetch_rss(self) -> list[UpstreamMessage]:
        return parse_feed(await self._get_text(self.rss_url))

    async def fetch_page(self) -> list[UpstreamMessage]:
        return parse_channel_page(await self._get_text(self.page_url))

    async def fetch(self, offset: int) -> UpstreamBatch:
        try:
            messages = await self.fetch_rss()
        except UpstreamError as e:
            logger.warning("RSS bridge unavailable, falling back to channel page: %s", e)
            try:
                messages = await self.fetch_page()
            except UpstreamError as page_error:
                raise UpstreamError(
                    f"Both RSS bridge and channel page failed: {e}; {page_error}"
                ) from page_error

        fresh = sorted(
            (m for m in messages if m.upstream_id >= offset),
            key=lambda m: m.upstream_id,
        )
        return UpstreamBatch(messages=fresh)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
