"""Tests for the upstream message sources."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from signal_ingest.classifier import MessageClassifier
from signal_ingest.config import AppConfig
from signal_ingest.errors import (
    ConfigurationError,
    UpstreamConflict,
    UpstreamError,
    UpstreamRateLimited,
)
from signal_ingest.models import ParsedResult, ParsedSignal
from signal_ingest.sources import (
    BotApiSource,
    ChannelPageSource,
    MTProtoSource,
    create_message_source,
    parse_update,
)
from signal_ingest.sources.channel_page import parse_channel_page, parse_feed, text_digest


def epoch_ms(hour: int, minute: int) -> int:
    return int(datetime(2025, 3, 14, hour, minute, tzinfo=timezone.utc).timestamp() * 1000)


RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
<channel>
<title>EyadTraderBot2 - Telegram Channel</title>
<link>https://t.me/s/EyadTraderBot2</link>
<description>Signals</description>
<item>
<title>WIN</title>
<description><![CDATA[✅ WIN]]></description>
<pubDate>Fri, 14 Mar 2025 16:12:00 GMT</pubDate>
<link>https://t.me/EyadTraderBot2/101</link>
</item>
<item>
<title>Signal</title>
<description><![CDATA[💷 AUDCHF-OTC<br>💎 M1<br>⌚️ 16:15:00<br>🔼 call]]></description>
<pubDate>Fri, 14 Mar 2025 16:10:00 GMT</pubDate>
<link>https://t.me/EyadTraderBot2/100</link>
</item>
</channel>
</rss>
"""

CHANNEL_PAGE = """<html><body><section class="tgme_channel_history">
<div class="tgme_widget_message_wrap">
<div class="tgme_widget_message text_not_supported_wrap js-widget_message" data-post="EyadTraderBot2/205">
<div class="tgme_widget_message_text js-message_text" dir="auto">💷 EURUSD-OTC<br/>💎 M5<br/>🔽 put</div>
<div class="tgme_widget_message_footer">
<a class="tgme_widget_message_date" href="https://t.me/EyadTraderBot2/205"><time datetime="2025-03-14T16:15:00+00:00" class="time">16:15</time></a>
</div>
</div>
</div>
<div class="tgme_widget_message_wrap">
<div class="tgme_widget_message js-widget_message">
<div class="tgme_widget_message_text js-message_text" dir="auto">✅ WIN</div>
<div class="tgme_widget_message_footer"><time datetime="2025-03-14T16:18:00+00:00" class="time">16:18</time></div>
</div>
</div>
<div class="tgme_widget_message_wrap">
<div class="tgme_widget_message js-widget_message" data-post="EyadTraderBot2/207">
<div class="tgme_widget_message_photo_wrap"></div>
</div>
</div>
</section></body></html>
"""


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestParseUpdate:
    """Tests for Bot API update parsing."""

    def test_channel_post(self) -> None:
        message = parse_update(
            {"update_id": 10, "channel_post": {"message_id": 55, "text": "✅ WIN"}}
        )

        assert message.upstream_id == 10
        assert message.dedup_key == "55"
        assert message.text == "✅ WIN"

    def test_payload_priority(self) -> None:
        message = parse_update(
            {
                "update_id": 11,
                "edited_channel_post": {"message_id": 2, "text": "edited"},
                "message": {"message_id": 1, "text": "original"},
            }
        )

        assert message.text == "original"

    def test_update_without_payload(self) -> None:
        message = parse_update({"update_id": 12, "my_chat_member": {}})

        assert message.upstream_id == 12
        assert message.text is None

    def test_update_without_id(self) -> None:
        assert parse_update({"message": {"text": "hi"}}) is None


class TestBotApiSource:
    """Tests for BotApiSource."""

    @pytest.mark.asyncio
    async def test_fetch_updates(self) -> None:
        calls: list[tuple[str, dict]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            method = request.url.path.rsplit("/", 1)[-1]
            calls.append((method, json.loads(request.content or b"{}")))
            if method == "deleteWebhook":
                return httpx.Response(200, json={"ok": True, "result": True})
            return httpx.Response(
                200,
                json={
                    "ok": True,
                    "result": [
                        {"update_id": 501, "channel_post": {"message_id": 9, "text": "EURUSD M5 CALL"}},
                        {"update_id": 502, "channel_post": {"message_id": 10, "text": "✅ WIN"}},
                    ],
                },
            )

        source = BotApiSource(token="123:abc", client=mock_client(handler))
        batch = await source.fetch(500)

        assert [m.upstream_id for m in batch.messages] == [501, 502]
        assert batch.max_upstream_id == 502
        assert [c[0] for c in calls] == ["deleteWebhook", "getUpdates"]
        assert calls[0][1] == {"drop_pending_updates": False}
        assert calls[1][1] == {
            "offset": 500,
            "limit": 100,
            "timeout": 0,
            "allowed_updates": ["message", "channel_post", "edited_channel_post"],
        }

    @pytest.mark.asyncio
    async def test_conflict(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("deleteWebhook"):
                return httpx.Response(200, json={"ok": True, "result": True})
            return httpx.Response(
                409,
                json={
                    "ok": False,
                    "error_code": 409,
                    "description": "Conflict: terminated by other getUpdates request",
                },
            )

        source = BotApiSource(token="123:abc", client=mock_client(handler))

        with pytest.raises(UpstreamConflict, match="terminated by other getUpdates"):
            await source.fetch(0)

    @pytest.mark.asyncio
    async def test_rate_limit(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("deleteWebhook"):
                return httpx.Response(200, json={"ok": True, "result": True})
            return httpx.Response(
                429,
                json={
                    "ok": False,
                    "error_code": 429,
                    "description": "Too Many Requests: retry after 5",
                    "parameters": {"retry_after": 5},
                },
            )

        source = BotApiSource(token="123:abc", client=mock_client(handler))

        with pytest.raises(UpstreamRateLimited, match="Too Many Requests") as exc_info:
            await source.fetch(0)
        assert exc_info.value.retry_after == 5

    @pytest.mark.asyncio
    async def test_delete_webhook_failure_is_not_fatal(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("deleteWebhook"):
                return httpx.Response(500, json={"ok": False, "description": "Internal"})
            return httpx.Response(200, json={"ok": True, "result": []})

        source = BotApiSource(token="123:abc", client=mock_client(handler))

        batch = await source.fetch(0)

        assert len(batch) == 0

    @pytest.mark.asyncio
    async def test_api_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("deleteWebhook"):
                return httpx.Response(200, json={"ok": True, "result": True})
            return httpx.Response(401, json={"ok": False, "description": "Unauthorized"})

        source = BotApiSource(token="123:abc", client=mock_client(handler))

        with pytest.raises(UpstreamError, match="Unauthorized"):
            await source.fetch(0)

    @pytest.mark.asyncio
    async def test_missing_token_fails_before_any_request(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        source = BotApiSource(token="", client=mock_client(handler))

        with pytest.raises(ConfigurationError):
            await source.fetch(0)

    @pytest.mark.asyncio
    async def test_set_webhook(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True, "result": True})

        source = BotApiSource(token="123:abc", client=mock_client(handler))

        assert await source.set_webhook("https://example.com/api/telegram/webhook") is True
        assert seen["path"] == "/bot123:abc/setWebhook"
        assert seen["body"]["url"] == "https://example.com/api/telegram/webhook"
        assert seen["body"]["drop_pending_updates"] is False


class TestChannelPageParsing:
    """Tests for RSS and web page parsing."""

    def test_parse_feed(self) -> None:
        messages = parse_feed(RSS_FEED)

        assert {m.upstream_id for m in messages} == {epoch_ms(16, 10), epoch_ms(16, 12)}
        signal = next(m for m in messages if m.upstream_id == epoch_ms(16, 10))
        assert signal.dedup_key == str(epoch_ms(16, 10))
        assert "<br" not in signal.text
        assert isinstance(MessageClassifier().classify(signal.text), ParsedSignal)

    def test_parse_channel_page(self) -> None:
        messages = parse_channel_page(CHANNEL_PAGE)

        assert len(messages) == 2
        signal, result = messages
        assert signal.dedup_key == "205"
        assert signal.upstream_id == epoch_ms(16, 15)
        assert isinstance(MessageClassifier().classify(signal.text), ParsedSignal)
        assert result.dedup_key == text_digest("✅ WIN")
        assert len(result.dedup_key) == 16
        assert isinstance(MessageClassifier().classify(result.text), ParsedResult)


class TestChannelPageSource:
    """Tests for ChannelPageSource."""

    @pytest.mark.asyncio
    async def test_rss_first_and_oldest_first(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.host == "rsshub.app"
            return httpx.Response(200, text=RSS_FEED)

        source = ChannelPageSource("EyadTraderBot2", retries=0, client=mock_client(handler))
        batch = await source.fetch(0)

        assert [m.upstream_id for m in batch.messages] == [epoch_ms(16, 10), epoch_ms(16, 12)]

    @pytest.mark.asyncio
    async def test_messages_below_cursor_are_dropped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=RSS_FEED)

        source = ChannelPageSource("EyadTraderBot2", retries=0, client=mock_client(handler))
        batch = await source.fetch(epoch_ms(16, 10) + 1)

        assert [m.upstream_id for m in batch.messages] == [epoch_ms(16, 12)]

    @pytest.mark.asyncio
    async def test_falls_back_to_channel_page(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "rsshub.app":
                return httpx.Response(503, text="Service Unavailable")
            assert str(request.url) == "https://t.me/s/EyadTraderBot2"
            return httpx.Response(200, text=CHANNEL_PAGE)

        source = ChannelPageSource("EyadTraderBot2", retries=0, client=mock_client(handler))
        batch = await source.fetch(0)

        assert [m.dedup_key for m in batch.messages][0] == "205"
        assert len(batch) == 2

    @pytest.mark.asyncio
    async def test_both_failing_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad Gateway")

        source = ChannelPageSource("EyadTraderBot2", retries=0, client=mock_client(handler))

        with pytest.raises(UpstreamError, match="Both RSS bridge and channel page failed"):
            await source.fetch(0)

    @pytest.mark.slow
    @pytest.mark.asyncio
    async def test_retries_transient_failure(self) -> None:
        attempts = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            attempts["count"] += 1
            if attempts["count"] == 1:
                return httpx.Response(503)
            return httpx.Response(200, text=RSS_FEED)

        source = ChannelPageSource("EyadTraderBot2", retries=1, client=mock_client(handler))
        batch = await source.fetch(0)

        assert attempts["count"] == 2
        assert len(batch) == 2


class FakeMessage:
    def __init__(self, id: int, message: str | None) -> None:
        self.id = id
        self.message = message


class FakeTelegramClient:
    """Mimics TelegramClient.iter_messages ordering and min_id semantics."""

    def __init__(self, messages: list[FakeMessage]) -> None:
        self.messages = messages
        self.calls: list[dict] = []

    def iter_messages(self, entity, limit=None, min_id=0, reverse=False):
        self.calls.append({"entity": entity, "limit": limit, "min_id": min_id, "reverse": reverse})
        items = sorted((m for m in self.messages if m.id > min_id), key=lambda m: m.id, reverse=not reverse)

        async def _iterate():
            for m in items[:limit]:
                yield m

        return _iterate()


class TestMTProtoSource:
    """Tests for MTProtoSource."""

    @pytest.mark.asyncio
    async def test_initial_cursor_reads_latest(self) -> None:
        client = FakeTelegramClient([FakeMessage(i, f"msg {i}") for i in range(1, 11)])
        source = MTProtoSource(api_id=1, api_hash="x", channel="EyadTraderBot2", limit=3, client=client)

        batch = await source.fetch(0)

        assert [m.upstream_id for m in batch.messages] == [8, 9, 10]
        assert batch.messages[0].dedup_key == "8"

    @pytest.mark.asyncio
    async def test_reads_from_cursor(self) -> None:
        client = FakeTelegramClient([FakeMessage(i, f"msg {i}") for i in range(1, 11)])
        source = MTProtoSource(api_id=1, api_hash="x", channel="EyadTraderBot2", limit=100, client=client)

        batch = await source.fetch(8)

        assert [m.upstream_id for m in batch.messages] == [8, 9, 10]
        assert client.calls[-1]["min_id"] == 7
        assert client.calls[-1]["reverse"] is True

    @pytest.mark.asyncio
    async def test_missing_credentials(self) -> None:
        source = MTProtoSource(api_id=0, api_hash="", channel="EyadTraderBot2")

        with pytest.raises(ConfigurationError):
            await source.fetch(0)


class TestCreateMessageSource:
    """Tests for the source factory."""

    @pytest.mark.asyncio
    async def test_known_sources(self) -> None:
        app_config = AppConfig()

        for kind, expected in [
            ("bot_api", BotApiSource),
            ("mtproto", MTProtoSource),
            ("channel_page", ChannelPageSource),
        ]:
            app_config.source.kind = kind
            source = create_message_source(app_config)
            assert isinstance(source, expected)
            await source.close()

    def test_unknown_source(self) -> None:
        app_config = AppConfig()
        app_config.source.kind = "carrier_pigeon"

        with pytest.raises(ValueError, match="Unknown signal source"):
            create_message_source(app_config)

    @pytest.mark.asyncio
    async def test_only_bot_api_can_resync(self) -> None:
        app_config = AppConfig()
        resync = {}

        for kind in ("bot_api", "mtproto", "channel_page"):
            app_config.source.kind = kind
            source = create_message_source(app_config)
            resync[kind] = source.supports_resync
            await source.close()

        assert resync == {"bot_api": True, "mtproto": False, "channel_page": False}
