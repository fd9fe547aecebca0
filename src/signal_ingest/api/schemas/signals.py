"""Signal schemas."""

from datetime import datetime

from pydantic import BaseModel

from signal_ingest.models import SignalRecord


class SignalResponse(BaseModel):
    """A stored signal."""

    id: str
    telegram_message_id: str
    asset: str
    original_asset: str = ""
    timeframe: str
    direction: str  # "CALL" or "PUT"
    entry_time: str | None = None
    status: str = "pending"
    result: str | None = None  # "win", "win1", "win2", "loss"
    received_at: datetime
    raw_message: str = ""

    @classmethod
    def from_record(cls, record: SignalRecord) -> "SignalResponse":
        return cls(**record.to_dict())


class SignalListResponse(BaseModel):
    """Most recent signals, newest first."""

    signals: list[SignalResponse] = []
    count: int = 0


class SignalStatsResponse(BaseModel):
    """Signal totals per outcome."""

    total: int = 0
    open: int = 0
    win: int = 0
    win1: int = 0
    win2: int = 0
    loss: int = 0
    win_rate: float | None = None  # wins of any level / resolved


class WebhookSetupResponse(BaseModel):
    """Response after registering the Bot API webhook."""

    success: bool
    webhook: str
    telegram: bool | dict | None = None
