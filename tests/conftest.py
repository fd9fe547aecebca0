"""
Root conftest.py for signal-ingest tests.

Contains shared fixtures and configuration for all test modules.
"""

import json
import os
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from dotenv import load_dotenv

from signal_ingest.config import IngestionConfig
from signal_ingest.ingestion import IngestionLoop
from signal_ingest.models import UpstreamBatch, UpstreamMessage
from signal_ingest.sources.base import MessageSource
from signal_ingest.stores.memory import InMemorySettingsStore, InMemorySignalStore
from signal_ingest.stores.settings import (
    SettingsCursorStore,
    SettingsEmptyPollStore,
    SettingsLockStore,
)

# Load environment variables at test collection time
load_dotenv()

DATA_DIR = Path(__file__).parent / "data"


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test requiring real Telegram credentials",
    )
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow running",
    )


class FrozenClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class ScriptedSource(MessageSource):
    """Returns pre-scripted batches in order, then empty batches.

    A scripted item that is an exception instance is raised instead.
    """

    name = "scripted"
    supports_resync = True

    def __init__(self, batches: list | None = None) -> None:
        self.batches = list(batches or [])
        self.offsets: list[int] = []

    def push(self, *messages: tuple[int, str | None]) -> None:
        """Queue one batch of (upstream_id, text) pairs; dedup key is the id."""
        self.batches.append(
            UpstreamBatch(
                messages=[
                    UpstreamMessage(upstream_id=uid, text=text, dedup_key=str(uid))
                    for uid, text in messages
                ]
            )
        )

    async def fetch(self, offset: int) -> UpstreamBatch:
        self.offsets.append(offset)
        if not self.batches:
            return UpstreamBatch()
        item = self.batches.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 3, 14, 16, 20, 0, tzinfo=timezone.utc))


@pytest.fixture
def signal_store() -> InMemorySignalStore:
    return InMemorySignalStore()


@pytest.fixture
def settings_store() -> InMemorySettingsStore:
    return InMemorySettingsStore()


@pytest.fixture
def ingestion_config() -> IngestionConfig:
    return IngestionConfig(
        lock_ttl_seconds=7,
        cursor_key="fast_telegram_offset",
        lock_key="tg_updates_lock",
        empty_key="fast_telegram_empty",
        stall_threshold=3,
        stall_window_seconds=60,
        initial_cursor=0,
    )


@pytest.fixture
def source() -> ScriptedSource:
    return ScriptedSource()


@pytest.fixture
def make_loop(
    signal_store: InMemorySignalStore,
    settings_store: InMemorySettingsStore,
    ingestion_config: IngestionConfig,
    clock: FrozenClock,
) -> Callable[..., IngestionLoop]:
    """Build an ingestion loop over the in-memory stores."""

    def _make(source: MessageSource, **kwargs) -> IngestionLoop:
        return IngestionLoop(
            source=source,
            signal_store=signal_store,
            cursor=SettingsCursorStore(
                settings_store, ingestion_config.cursor_key, ingestion_config.initial_cursor
            ),
            lock=SettingsLockStore(settings_store, ingestion_config.lock_key),
            empty_poll=SettingsEmptyPollStore(settings_store, ingestion_config.empty_key),
            config=ingestion_config,
            clock=clock,
            **kwargs,
        )

    return _make


@pytest.fixture(scope="session")
def channel_samples() -> list[dict]:
    """Labelled channel messages."""
    with open(DATA_DIR / "channel_samples.json", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture(scope="session")
def telegram_credentials() -> dict | None:
    """Provide Telegram credentials from environment variables.

    Returns:
        dict with bot_token and channel, or None if not configured
    """
    token = os.getenv("TELEGRAM_BOT_TOKEN")
    if not token:
        return None
    return {
        "bot_token": token,
        "channel": os.getenv("TELEGRAM_CHANNEL", "EyadTraderBot2"),
    }
