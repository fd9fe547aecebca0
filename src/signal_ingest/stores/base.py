"""Store interfaces used by the ingestion loop.

Both signal-store write operations are idempotent: inserting a message whose
dedup key already exists is a no-op, and a result is only written while the
signal's result is still empty. A cycle that re-runs after a lock expiry can
therefore replay messages safely.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from signal_ingest.models import Outcome, ParsedSignal, SignalRecord


class SignalStore(ABC):
    """The signals table."""

    @abstractmethod
    async def insert_if_absent(
        self, signal: ParsedSignal, dedup_key: str, received_at: datetime
    ) -> SignalRecord | None:
        """Insert a new pending signal unless the dedup key is already stored.

        Returns:
            The inserted record, or None if a record with this key exists
        """
        pass

    @abstractmethod
    async def list_open(self, since: datetime) -> list[SignalRecord]:
        """Signals without a result received at or after `since`, newest first."""
        pass

    @abstractmethod
    async def set_result_if_unset(self, signal_id: str, outcome: Outcome) -> bool:
        """Attach an outcome only if the signal has none yet.

        Returns:
            True if the row was updated, False if it already had a result
        """
        pass

    @abstractmethod
    async def list_recent(self, limit: int = 20, open_only: bool = False) -> list[SignalRecord]:
        pass

    @abstractmethod
    async def outcome_counts(self) -> dict[str, int]:
        """Number of signals per outcome value, plus "open" for unresolved ones."""
        pass


class SettingsStore(ABC):
    """Generic key/value settings table holding small JSON objects."""

    @abstractmethod
    async def get(self, key: str) -> dict | None:
        pass

    @abstractmethod
    async def put(self, key: str, value: dict) -> None:
        pass


class CursorStore(ABC):
    """Persisted position in the upstream update stream."""

    @abstractmethod
    async def get_offset(self) -> int:
        pass

    @abstractmethod
    async def set_offset(self, offset: int) -> None:
        pass


class LockStore(ABC):
    """Time-boxed mutual exclusion between ingestion cycles."""

    @abstractmethod
    async def locked_until(self) -> datetime | None:
        pass

    @abstractmethod
    async def acquire(self, until: datetime) -> None:
        pass

    @abstractmethod
    async def release(self) -> None:
        """Expire the lock by moving locked-until into the past."""
        pass


@dataclass
class EmptyStreak:
    """Consecutive empty polls and the time of the latest one."""

    count: int = 0
    at: datetime | None = None


class EmptyPollStore(ABC):
    """Counter of consecutive empty polls, used for stall recovery."""

    @abstractmethod
    async def get_streak(self) -> EmptyStreak:
        pass

    @abstractmethod
    async def set_streak(self, streak: EmptyStreak) -> None:
        pass
