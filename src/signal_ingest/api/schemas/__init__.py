from .signals import (
    SignalListResponse,
    SignalResponse,
    SignalStatsResponse,
    WebhookSetupResponse,
)

__all__ = [
    "SignalListResponse",
    "SignalResponse",
    "SignalStatsResponse",
    "WebhookSetupResponse",
]
