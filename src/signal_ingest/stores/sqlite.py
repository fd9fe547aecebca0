"""Signal and settings stores backed by SQLite."""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from signal_ingest.errors import StoreError
from signal_ingest.models import (
    Direction,
    Outcome,
    ParsedSignal,
    SignalRecord,
    SignalStatus,
)
from signal_ingest.stores.base import SettingsStore, SignalStore

logger = logging.getLogger(__name__)

# SQL schema
CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS signals (
    id TEXT PRIMARY KEY,
    telegram_message_id TEXT NOT NULL UNIQUE,
    asset TEXT NOT NULL,
    original_asset TEXT,
    timeframe TEXT NOT NULL,
    direction TEXT NOT NULL,
    entry_time TEXT,
    raw_message TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    result TEXT,
    received_at TEXT NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_signals_received_at ON signals(received_at);
CREATE INDEX IF NOT EXISTS idx_signals_result ON signals(result);

CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
"""


def _timestamp(value: datetime) -> str:
    """Fixed-width UTC timestamp so text comparison orders correctly."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _row_to_record(row: aiosqlite.Row) -> SignalRecord:
    return SignalRecord(
        id=row["id"],
        dedup_key=row["telegram_message_id"],
        asset=row["asset"],
        original_asset=row["original_asset"] or "",
        timeframe=row["timeframe"],
        direction=Direction(row["direction"]),
        entry_time=row["entry_time"],
        raw_message=row["raw_message"] or "",
        status=SignalStatus(row["status"]),
        result=Outcome(row["result"]) if row["result"] else None,
        received_at=datetime.fromisoformat(row["received_at"]),
    )


async def init_database(db_path: str | Path) -> None:
    """Create tables and indexes if needed."""
    try:
        async with aiosqlite.connect(db_path) as db:
            await db.executescript(CREATE_TABLES_SQL)
            await db.commit()
    except aiosqlite.Error as e:
        raise StoreError(f"Failed to initialize database at {db_path}: {e}") from e
    logger.info("Database initialized at %s", db_path)


class SqliteSignalStore(SignalStore):
    """The signals table in a SQLite file."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)

    async def insert_if_absent(
        self, signal: ParsedSignal, dedup_key: str, received_at: datetime
    ) -> SignalRecord | None:
        record = SignalRecord(
            id=uuid.uuid4().hex,
            dedup_key=dedup_key,
            asset=signal.asset,
            original_asset=signal.original_asset,
            timeframe=signal.timeframe,
            direction=signal.direction,
            entry_time=signal.entry_time,
            raw_message=signal.raw_message,
            received_at=received_at,
        )

        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute(
                    """
                    INSERT OR IGNORE INTO signals (
                        id, telegram_message_id, asset, original_asset, timeframe,
                        direction, entry_time, raw_message, status, received_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.id,
                        dedup_key,
                        record.asset,
                        record.original_asset,
                        record.timeframe,
                        record.direction.value,
                        record.entry_time,
                        record.raw_message,
                        record.status.value,
                        _timestamp(received_at),
                    ),
                )
                await db.commit()
                inserted = cursor.rowcount == 1
        except aiosqlite.Error as e:
            raise StoreError(f"Failed to insert signal {dedup_key}: {e}") from e

        return record if inserted else None

    async def list_open(self, since: datetime) -> list[SignalRecord]:
        return await self._select(
            "SELECT * FROM signals WHERE result IS NULL AND received_at >= ? "
            "ORDER BY received_at DESC",
            (_timestamp(since),),
        )

    async def set_result_if_unset(self, signal_id: str, outcome: Outcome) -> bool:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute(
                    "UPDATE signals SET result = ? WHERE id = ? AND result IS NULL",
                    (outcome.value, signal_id),
                )
                await db.commit()
                return cursor.rowcount == 1
        except aiosqlite.Error as e:
            raise StoreError(f"Failed to set result for signal {signal_id}: {e}") from e

    async def list_recent(self, limit: int = 20, open_only: bool = False) -> list[SignalRecord]:
        where_clause = "WHERE result IS NULL" if open_only else ""
        return await self._select(
            f"SELECT * FROM signals {where_clause} ORDER BY received_at DESC LIMIT ?",
            (limit,),
        )

    async def outcome_counts(self) -> dict[str, int]:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                async with db.execute(
                    "SELECT COALESCE(result, 'open'), COUNT(*) FROM signals "
                    "GROUP BY COALESCE(result, 'open')"
                ) as cursor:
                    rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StoreError(f"Failed to count outcomes: {e}") from e
        return {row[0]: row[1] for row in rows}

    async def _select(self, query: str, params: tuple) -> list[SignalRecord]:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = aiosqlite.Row
                async with db.execute(query, params) as cursor:
                    rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StoreError(f"Failed to read signals: {e}") from e
        return [_row_to_record(row) for row in rows]


class SqliteSettingsStore(SettingsStore):
    """The settings key/value table, values stored as JSON text."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)

    async def get(self, key: str) -> dict | None:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                async with db.execute(
                    "SELECT value FROM settings WHERE key = ? LIMIT 1", (key,)
                ) as cursor:
                    row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreError(f"Failed to read setting {key}: {e}") from e

        if not row:
            return None
        try:
            value = json.loads(row[0])
        except json.JSONDecodeError:
            logger.warning("Setting %s holds invalid JSON, ignoring", key)
            return None
        return value if isinstance(value, dict) else None

    async def put(self, key: str, value: dict) -> None:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    """
                    INSERT INTO settings (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, json.dumps(value)),
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise StoreError(f"Failed to write setting {key}: {e}") from e
