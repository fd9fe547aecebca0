"""In-memory stores for tests and dry runs."""

import copy
import uuid
from collections import Counter
from datetime import datetime

from signal_ingest.models import Outcome, ParsedSignal, SignalRecord
from signal_ingest.stores.base import SettingsStore, SignalStore


class InMemorySignalStore(SignalStore):
    """Signals kept in a dict keyed by id."""

    def __init__(self) -> None:
        self.records: dict[str, SignalRecord] = {}
        self._by_dedup_key: dict[str, str] = {}

    async def get_by_dedup_key(self, dedup_key: str) -> SignalRecord | None:
        """Look up the live record for a dedup key."""
        signal_id = self._by_dedup_key.get(dedup_key)
        return self.records.get(signal_id) if signal_id else None

    async def insert_if_absent(
        self, signal: ParsedSignal, dedup_key: str, received_at: datetime
    ) -> SignalRecord | None:
        if dedup_key in self._by_dedup_key:
            return None

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
        self.records[record.id] = record
        self._by_dedup_key[dedup_key] = record.id
        return copy.copy(record)

    async def list_open(self, since: datetime) -> list[SignalRecord]:
        matches = [
            copy.copy(r)
            for r in self.records.values()
            if r.is_open and r.received_at >= since
        ]
        return sorted(matches, key=lambda r: r.received_at, reverse=True)

    async def set_result_if_unset(self, signal_id: str, outcome: Outcome) -> bool:
        record = self.records.get(signal_id)
        if record is None or not record.is_open:
            return False
        record.result = outcome
        return True

    async def list_recent(self, limit: int = 20, open_only: bool = False) -> list[SignalRecord]:
        records = [r for r in self.records.values() if not open_only or r.is_open]
        records.sort(key=lambda r: r.received_at, reverse=True)
        return [copy.copy(r) for r in records[:limit]]

    async def outcome_counts(self) -> dict[str, int]:
        counts = Counter(
            r.result.value if r.result else "open" for r in self.records.values()
        )
        return dict(counts)

    def __len__(self) -> int:
        return len(self.records)


class InMemorySettingsStore(SettingsStore):
    """Settings rows kept in a dict."""

    def __init__(self) -> None:
        self.values: dict[str, dict] = {}

    async def get(self, key: str) -> dict | None:
        value = self.values.get(key)
        return dict(value) if value is not None else None

    async def put(self, key: str, value: dict) -> None:
        self.values[key] = dict(value)
