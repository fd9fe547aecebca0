"""Tests for the WebSocket event fan-out and logging setup."""

import json
import logging

import pytest

from signal_ingest.events import SIGNAL_INSERTED, ConnectionManager
from signal_ingest.logging_setup import ROOT_LOGGER, setup_logging
from signal_ingest.models import Direction, Outcome, ParsedSignal
from signal_ingest.stores.memory import InMemorySignalStore


class FakeWebSocket:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.accepted = False
        self.sent: list[str] = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(data)


class TestConnectionManager:
    """Tests for ConnectionManager."""

    @pytest.mark.asyncio
    async def test_publish_reaches_clients(self, clock) -> None:
        store = InMemorySignalStore()
        record = await store.insert_if_absent(
            ParsedSignal(asset="EUR/USD", timeframe="M5", direction=Direction.PUT), "9", clock()
        )
        manager = ConnectionManager()
        ws = FakeWebSocket()
        await manager.connect(ws)

        await manager.publish(SIGNAL_INSERTED, record)

        assert ws.accepted
        message = json.loads(ws.sent[0])
        assert message["type"] == "signal_inserted"
        assert message["signal"]["asset"] == "EUR/USD"
        assert message["signal"]["telegram_message_id"] == "9"

    @pytest.mark.asyncio
    async def test_broken_clients_are_dropped(self) -> None:
        manager = ConnectionManager()
        good, bad = FakeWebSocket(), FakeWebSocket(fail=True)
        await manager.connect(good)
        await manager.connect(bad)

        await manager.broadcast({"type": "result_updated", "result": Outcome.WIN.value})

        assert manager.connection_count == 1
        assert len(good.sent) == 1

    @pytest.mark.asyncio
    async def test_disconnect_unknown_is_noop(self) -> None:
        manager = ConnectionManager()
        manager.disconnect(FakeWebSocket())

        assert manager.connection_count == 0


@pytest.fixture
def clean_logger():
    logger = logging.getLogger(ROOT_LOGGER)
    saved = list(logger.handlers)
    logger.handlers.clear()
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = saved


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_file_handler_and_idempotence(self, clean_logger, tmp_path) -> None:
        log_file = tmp_path / "logs" / "ingest.log"

        first = setup_logging("DEBUG", str(log_file), to_console=False)
        second = setup_logging("INFO", str(log_file), to_console=False)

        assert first is second is clean_logger
        assert len(clean_logger.handlers) == 1
        assert clean_logger.level == logging.DEBUG
        assert log_file.parent.is_dir()

    def test_console_only(self, clean_logger) -> None:
        setup_logging("warning")

        assert len(clean_logger.handlers) == 1
        assert clean_logger.level == logging.WARNING
