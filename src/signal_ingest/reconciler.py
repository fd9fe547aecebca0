"""
Result reconciliation.

Attaches a win/loss result message to the open signal it most likely refers
to. Result messages usually carry no reference to their signal, so matching
is heuristic: restrict open signals to a recency window, narrow by asset and
timeframe hints when they leave at least one candidate, then take the most
recently received signal.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, time, timedelta

from signal_ingest.models import ParsedResult, SignalRecord
from signal_ingest.stores.base import SignalStore
from signal_ingest.symbols import assets_overlap

logger = logging.getLogger(__name__)


class WindowPolicy(ABC):
    """Decides which open signals are still eligible for a result."""

    name: str = ""

    @abstractmethod
    def since(self, now: datetime) -> datetime:
        """Earliest received_at to load from the store."""
        pass

    def accepts(self, record: SignalRecord, now: datetime) -> bool:
        """Extra per-signal check applied after loading."""
        return True


class LookbackWindow(WindowPolicy):
    """Fixed wall-clock lookback from now."""

    name = "lookback"

    def __init__(self, minutes: int = 120) -> None:
        self.lookback = timedelta(minutes=minutes)

    def since(self, now: datetime) -> datetime:
        return now - self.lookback


class EntryTimeWindow(LookbackWindow):
    """Signals whose entry time lies 0 to `window_minutes` in the past.

    entry_time is a bare time of day, so it is anchored to the date the
    signal was received. An anchored time more than `rollover_hours` after
    received_at belongs to the previous day (a 23:58 entry posted at 00:01).
    """

    name = "entry_time"

    def __init__(
        self,
        lookback_minutes: int = 120,
        window_minutes: int = 20,
        rollover_hours: int = 6,
    ) -> None:
        super().__init__(lookback_minutes)
        self.window = timedelta(minutes=window_minutes)
        self.rollover = timedelta(hours=rollover_hours)

    def entry_datetime(self, record: SignalRecord) -> datetime | None:
        if not record.entry_time:
            return None
        try:
            entry = time.fromisoformat(record.entry_time)
        except ValueError:
            logger.debug("Unparseable entry_time %r on signal %s", record.entry_time, record.id)
            return None

        anchored = datetime.combine(record.received_at.date(), entry, tzinfo=record.received_at.tzinfo)
        if anchored - record.received_at > self.rollover:
            anchored -= timedelta(days=1)
        return anchored

    def accepts(self, record: SignalRecord, now: datetime) -> bool:
        entry = self.entry_datetime(record)
        if entry is None:
            return False
        elapsed = now - entry
        return timedelta(0) <= elapsed <= self.window


def create_window_policy(
    name: str,
    lookback_minutes: int = 120,
    window_minutes: int = 20,
    rollover_hours: int = 6,
) -> WindowPolicy:
    """Create a window policy by name.

    Raises:
        ValueError: If the policy name is not recognized
    """
    if name == "lookback":
        return LookbackWindow(lookback_minutes)
    elif name == "entry_time":
        return EntryTimeWindow(lookback_minutes, window_minutes, rollover_hours)
    else:
        raise ValueError(f"Unknown window policy: {name}")


class ResultReconciler:
    """Matches results to open signals and writes the outcome once."""

    def __init__(self, store: SignalStore, policy: WindowPolicy | None = None) -> None:
        self.store = store
        self.policy = policy or LookbackWindow()

    async def candidates(self, now: datetime) -> list[SignalRecord]:
        """Open signals inside the window, newest first."""
        records = await self.store.list_open(self.policy.since(now))
        return [r for r in records if self.policy.accepts(r, now)]

    @staticmethod
    def find_match(result: ParsedResult, candidates: list[SignalRecord]) -> SignalRecord | None:
        """Pick the signal a result most likely refers to.

        Each hint narrows the pool only when something survives it.
        """
        if not candidates:
            return None

        pool = candidates
        if result.asset:
            by_asset = [c for c in pool if assets_overlap(c.asset, result.asset)]
            if by_asset:
                pool = by_asset
        if result.timeframe:
            wanted = result.timeframe.upper()
            by_timeframe = [c for c in pool if c.timeframe.upper() == wanted]
            if by_timeframe:
                pool = by_timeframe

        return max(pool, key=lambda c: c.received_at)

    async def apply(self, result: ParsedResult, now: datetime) -> SignalRecord | None:
        """Attach the result to its best matching open signal.

        Returns:
            The updated record, or None when nothing was updated
        """
        pool = await self.candidates(now)
        match = self.find_match(result, pool)
        if match is None:
            logger.info(
                "No open signal for %s result (asset=%s, timeframe=%s, policy=%s), dropping",
                result.outcome.value,
                result.asset,
                result.timeframe,
                self.policy.name,
            )
            return None

        if not await self.store.set_result_if_unset(match.id, result.outcome):
            logger.info("Signal %s already has a result, leaving it unchanged", match.id)
            return None

        match.result = result.outcome
        logger.info(
            "Result %s applied to signal %s (%s %s)",
            result.outcome.value,
            match.id,
            match.asset,
            match.timeframe,
        )
        return match
