"""Signal and settings stores."""

from signal_ingest.stores.base import (
    CursorStore,
    EmptyPollStore,
    EmptyStreak,
    LockStore,
    SettingsStore,
    SignalStore,
)
from signal_ingest.stores.memory import InMemorySettingsStore, InMemorySignalStore
from signal_ingest.stores.settings import (
    SettingsCursorStore,
    SettingsEmptyPollStore,
    SettingsLockStore,
)
from signal_ingest.stores.sqlite import SqliteSettingsStore, SqliteSignalStore, init_database

__all__ = [
    # Interfaces
    "SignalStore",
    "SettingsStore",
    "CursorStore",
    "LockStore",
    "EmptyPollStore",
    "EmptyStreak",
    # Implementations
    "InMemorySignalStore",
    "InMemorySettingsStore",
    "SqliteSignalStore",
    "SqliteSettingsStore",
    "SettingsCursorStore",
    "SettingsLockStore",
    "SettingsEmptyPollStore",
    "init_database",
]
