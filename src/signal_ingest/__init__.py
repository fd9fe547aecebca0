"""
Signal Ingest - Telegram trading signal ingestion and result reconciliation

This package pulls messages from a Telegram signal channel, classifies them
into trade signals and win/loss results, stores signals once per upstream
message, and attaches each result to the open signal it most likely refers to.

Main Components:
    - IngestionLoop: Lock-guarded pull/classify/apply cycle
    - MessageClassifier: Signal and result pattern matcher
    - ResultReconciler: Matches results to open signals
    - Message sources: Bot API, MTProto channel reader, public channel page

Example:
    >>> import asyncio
    >>> from signal_ingest import config
    >>> from signal_ingest.bootstrap import build_ingestion_loop
    >>> loop = asyncio.run(build_ingestion_loop(config))
    >>> summary = asyncio.run(loop.run_cycle())
"""

from signal_ingest.classifier import MessageClassifier
from signal_ingest.config import AppConfig, config
from signal_ingest.ingestion import IngestionLoop
from signal_ingest.models import (
    CycleSummary,
    Direction,
    MessageKind,
    Outcome,
    ParsedResult,
    ParsedSignal,
    SignalRecord,
    SignalStatus,
)
from signal_ingest.reconciler import (
    EntryTimeWindow,
    LookbackWindow,
    ResultReconciler,
    create_window_policy,
)

__all__ = [
    # Main loop
    "IngestionLoop",
    # Components
    "MessageClassifier",
    "ResultReconciler",
    "LookbackWindow",
    "EntryTimeWindow",
    "create_window_policy",
    # Configuration
    "AppConfig",
    "config",
    # Models
    "Direction",
    "Outcome",
    "SignalStatus",
    "MessageKind",
    "ParsedSignal",
    "ParsedResult",
    "SignalRecord",
    "CycleSummary",
]

__version__ = "0.1.0"
