"""
Data models for the Telegram signal ingestion service.

This module contains all data classes and enums used throughout the application.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Direction(Enum):
    """Trade direction of a binary-option signal."""

    CALL = "CALL"
    PUT = "PUT"

    @classmethod
    def from_keyword(cls, keyword: str) -> "Direction":
        """Map a channel keyword (call/put/buy/sell, any case) to a direction.

        Raises:
            ValueError: If the keyword is not a known direction word
        """
        word = keyword.strip().upper()
        if word in ("CALL", "BUY"):
            return cls.CALL
        if word in ("PUT", "SELL"):
            return cls.PUT
        raise ValueError(f"Unknown direction keyword: {keyword!r}")


class Outcome(Enum):
    """Outcome attached to a signal once its result message arrives."""

    WIN = "win"
    WIN1 = "win1"  # won on the first martingale step
    WIN2 = "win2"  # won on the second martingale step
    LOSS = "loss"

    @property
    def is_win(self) -> bool:
        return self is not Outcome.LOSS


class SignalStatus(Enum):
    """Execution status; written by the downstream executor, not by ingestion."""

    PENDING = "pending"
    EXECUTED = "executed"
    FAILED = "failed"


class MessageKind(Enum):
    """Classification of an incoming channel message."""

    SIGNAL = "signal"
    RESULT = "result"
    IGNORED = "ignored"


@dataclass
class ParsedSignal:
    """Trade signal extracted from one channel message."""

    asset: str  # normalized, e.g. "EUR/USD"
    timeframe: str  # e.g. "M1", "H1"
    direction: Direction
    entry_time: str | None = None  # "HH:MM:SS", no date
    original_asset: str = ""  # as written in the channel, e.g. "EURUSD-OTC"
    raw_message: str = ""

    kind = MessageKind.SIGNAL


@dataclass
class ParsedResult:
    """Win/loss outcome extracted from a channel message.

    Asset and timeframe are optional hints for reconciliation.
    """

    outcome: Outcome
    asset: str | None = None
    timeframe: str | None = None
    raw_message: str = ""

    kind = MessageKind.RESULT


@dataclass
class SignalRecord:
    """A persisted row of the signals table."""

    id: str
    dedup_key: str
    asset: str
    timeframe: str
    direction: Direction
    received_at: datetime
    entry_time: str | None = None
    original_asset: str = ""
    raw_message: str = ""
    status: SignalStatus = SignalStatus.PENDING
    result: Outcome | None = None

    @property
    def is_open(self) -> bool:
        """True while no result has been attached."""
        return self.result is None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "id": self.id,
            "telegram_message_id": self.dedup_key,
            "asset": self.asset,
            "original_asset": self.original_asset,
            "timeframe": self.timeframe,
            "direction": self.direction.value,
            "entry_time": self.entry_time,
            "raw_message": self.raw_message,
            "status": self.status.value,
            "result": self.result.value if self.result else None,
            "received_at": self.received_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SignalRecord":
        """Deserialize from a dictionary produced by to_dict or a store row."""
        result = data.get("result")
        return cls(
            id=str(data["id"]),
            dedup_key=str(data["telegram_message_id"]),
            asset=data["asset"],
            original_asset=data.get("original_asset") or "",
            timeframe=data["timeframe"],
            direction=Direction(data["direction"]),
            entry_time=data.get("entry_time"),
            raw_message=data.get("raw_message") or "",
            status=SignalStatus(data.get("status", "pending")),
            result=Outcome(result) if result else None,
            received_at=datetime.fromisoformat(data["received_at"]),
        )


@dataclass
class UpstreamMessage:
    """One message pulled from the upstream channel.

    upstream_id orders messages and drives the cursor; dedup_key identifies
    the message in the signals table.
    """

    upstream_id: int
    text: str | None
    dedup_key: str


@dataclass
class UpstreamBatch:
    """Messages returned by one pull, in upstream order."""

    messages: list[UpstreamMessage] = field(default_factory=list)

    @property
    def max_upstream_id(self) -> int | None:
        if not self.messages:
            return None
        return max(m.upstream_id for m in self.messages)

    def __len__(self) -> int:
        return len(self.messages)


@dataclass
class CycleSummary:
    """Outcome of one ingestion cycle, rendered as the JSON response."""

    success: bool = True
    messages_checked: int = 0
    results_updated: int = 0
    signals: list[SignalRecord] = field(default_factory=list)
    skipped: bool = False
    conflict: bool = False
    reason: str | None = None

    @property
    def signals_found(self) -> int:
        return len(self.signals)

    def to_dict(self) -> dict[str, Any]:
        if self.skipped:
            return {"success": self.success, "skipped": True, "reason": self.reason}
        if self.conflict:
            return {"success": False, "conflict": True, "reason": self.reason}
        return {
            "success": self.success,
            "messagesChecked": self.messages_checked,
            "signalsFound": self.signals_found,
            "resultsUpdated": self.results_updated,
            "signals": [s.to_dict() for s in self.signals],
        }
