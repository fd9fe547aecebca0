"""
Ingestion loop.

One call to `IngestionLoop.run_cycle()` is one unit of scheduled work:

    acquire lock -> pull from cursor -> classify and apply each message
    in order -> advance cursor -> release lock

Cycles are serialized by a time-boxed lock held in the settings store. A
crashed cycle leaves the lock to expire after its TTL; the next cycle may
then replay part of the batch, which is safe because signal inserts are
keyed by dedup key and results are only written while still empty.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from signal_ingest.classifier import MessageClassifier
from signal_ingest.config import IngestionConfig
from signal_ingest.errors import StoreError, UpstreamConflict, UpstreamRateLimited
from signal_ingest.events import RESULT_UPDATED, SIGNAL_INSERTED, EventSink
from signal_ingest.models import (
    CycleSummary,
    MessageKind,
    ParsedSignal,
    SignalRecord,
    UpstreamMessage,
)
from signal_ingest.reconciler import ResultReconciler
from signal_ingest.sources.base import MessageSource
from signal_ingest.sources.bot_api import parse_update
from signal_ingest.stores.base import (
    CursorStore,
    EmptyPollStore,
    EmptyStreak,
    LockStore,
    SignalStore,
)

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IngestionLoop:
    """Pulls upstream messages and turns them into signals and results."""

    def __init__(
        self,
        source: MessageSource,
        signal_store: SignalStore,
        cursor: CursorStore,
        lock: LockStore,
        empty_poll: EmptyPollStore,
        classifier: MessageClassifier | None = None,
        reconciler: ResultReconciler | None = None,
        config: IngestionConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
        events: EventSink | None = None,
    ) -> None:
        self.source = source
        self.signal_store = signal_store
        self.cursor = cursor
        self.lock = lock
        self.empty_poll = empty_poll
        self.classifier = classifier or MessageClassifier()
        self.reconciler = reconciler or ResultReconciler(signal_store)
        self.config = config or IngestionConfig()
        self.clock = clock
        self.events = events

    async def run_cycle(self) -> CycleSummary:
        """Run one ingestion cycle.

        Returns:
            Summary of the cycle; skipped when another cycle holds the lock or
            the upstream is rate limiting, conflict when another consumer
            holds the upstream stream

        Raises:
            Any error other than an upstream conflict or a per-message store
            failure, after the lock has been released
        """
        now = self.clock()
        locked_until = await self.lock.locked_until()
        if locked_until is not None and locked_until > now:
            logger.info("Another cycle holds the lock until %s, skipping", locked_until.isoformat())
            return CycleSummary(skipped=True, reason="locked")

        await self.lock.acquire(now + timedelta(seconds=self.config.lock_ttl_seconds))
        try:
            return await self._run_locked(now)
        finally:
            await self.lock.release()

    async def _run_locked(self, now: datetime) -> CycleSummary:
        offset = await self.cursor.get_offset()
        try:
            batch = await self.source.fetch(offset)
        except UpstreamConflict as e:
            logger.warning("Upstream conflict, another poller is active: %s", e)
            return CycleSummary(success=False, conflict=True, reason=str(e))
        except UpstreamRateLimited as e:
            logger.warning("Upstream rate limit, retry after %ss: %s", e.retry_after, e)
            return CycleSummary(success=False, skipped=True, reason=f"rate_limited: {e}")

        if not batch.messages:
            await self._record_empty_poll(now)
            return CycleSummary()

        await self.empty_poll.set_streak(EmptyStreak(count=0, at=now))

        summary = CycleSummary(messages_checked=len(batch))
        for message in batch.messages:
            try:
                await self._handle(message, summary)
            except StoreError:
                logger.exception("Failed to store message %s, continuing", message.dedup_key)

        max_id = batch.max_upstream_id
        if max_id is not None and max_id >= offset:
            await self.cursor.set_offset(max_id + 1)

        logger.info(
            "Cycle done: %d messages, %d signals, %d results",
            summary.messages_checked,
            summary.signals_found,
            summary.results_updated,
        )
        return summary

    async def _record_empty_poll(self, now: datetime) -> None:
        """Extend the empty-poll streak and reset the cursor when it stalls."""
        streak = await self.empty_poll.get_streak()
        window = timedelta(seconds=self.config.stall_window_seconds)
        if streak.at is not None and timedelta(0) <= now - streak.at <= window:
            count = streak.count + 1
        else:
            count = 1

        if count >= self.config.stall_threshold and self.source.supports_resync:
            await self.cursor.set_offset(self.config.initial_cursor)
            await self.empty_poll.set_streak(EmptyStreak(count=0, at=now))
            logger.warning(
                "No updates %dx within %ss, resetting cursor to %s",
                count,
                self.config.stall_window_seconds,
                self.config.initial_cursor,
            )
            return

        await self.empty_poll.set_streak(EmptyStreak(count=count, at=now))

    async def _handle(self, message: UpstreamMessage, summary: CycleSummary) -> MessageKind:
        parsed = self.classifier.classify(message.text)
        if parsed is None:
            return MessageKind.IGNORED

        now = self.clock()
        if isinstance(parsed, ParsedSignal):
            record = await self.signal_store.insert_if_absent(parsed, message.dedup_key, now)
            if record is None:
                logger.debug("Signal %s already stored", message.dedup_key)
            else:
                logger.info(
                    "New signal %s: %s %s %s %s",
                    message.dedup_key,
                    record.asset,
                    record.timeframe,
                    record.direction.value,
                    record.entry_time or "",
                )
                summary.signals.append(record)
                await self._publish(SIGNAL_INSERTED, record)
            return MessageKind.SIGNAL

        updated = await self.reconciler.apply(parsed, now)
        if updated is not None:
            summary.results_updated += 1
            await self._publish(RESULT_UPDATED, updated)
        return MessageKind.RESULT

    async def _publish(self, event_type: str, record: SignalRecord) -> None:
        if self.events is None:
            return
        try:
            await self.events.publish(event_type, record)
        except Exception as e:
            logger.warning("Failed to publish %s event: %s", event_type, e)

    async def process_update(self, update: dict[str, Any]) -> dict[str, Any]:
        """Classify and apply one pushed Bot API update.

        Pushed updates bypass the lock and the cursor; the dedup key keeps a
        later poll of the same message from inserting it twice.
        """
        message = parse_update(update)
        if message is None or not message.text:
            return {"ok": True, "ignored": True}

        kind = await self._handle(message, CycleSummary())
        return {"ok": True, "type": kind.value}
