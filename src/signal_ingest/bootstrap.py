"""Builds a configured ingestion loop backed by the SQLite stores."""

import logging

from signal_ingest.classifier import MessageClassifier
from signal_ingest.config import AppConfig
from signal_ingest.events import EventSink
from signal_ingest.ingestion import IngestionLoop
from signal_ingest.reconciler import ResultReconciler, create_window_policy
from signal_ingest.sources.factory import create_message_source
from signal_ingest.stores.settings import (
    SettingsCursorStore,
    SettingsEmptyPollStore,
    SettingsLockStore,
)
from signal_ingest.stores.sqlite import SqliteSettingsStore, SqliteSignalStore, init_database

logger = logging.getLogger(__name__)


async def build_ingestion_loop(app_config: AppConfig, events: EventSink | None = None) -> IngestionLoop:
    """Create the database if needed and wire every component from configuration.

    Raises:
        ValueError: If the source kind or window policy is not recognized
    """
    db_path = app_config.database.path
    await init_database(db_path)

    ingestion = app_config.ingestion
    reconcile = app_config.reconcile

    signal_store = SqliteSignalStore(db_path)
    settings = SqliteSettingsStore(db_path)
    policy = create_window_policy(
        reconcile.window_policy,
        lookback_minutes=reconcile.lookback_minutes,
        window_minutes=reconcile.entry_window_minutes,
        rollover_hours=reconcile.day_rollover_hours,
    )
    source = create_message_source(app_config)

    logger.info("Ingestion wired: source=%s, window=%s, db=%s", source.name, policy.name, db_path)

    return IngestionLoop(
        source=source,
        signal_store=signal_store,
        cursor=SettingsCursorStore(settings, ingestion.cursor_key, ingestion.initial_cursor),
        lock=SettingsLockStore(settings, ingestion.lock_key),
        empty_poll=SettingsEmptyPollStore(settings, ingestion.empty_key),
        classifier=MessageClassifier(),
        reconciler=ResultReconciler(signal_store, policy),
        config=ingestion,
        events=events,
    )
