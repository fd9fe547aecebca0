# API Routers
from . import health, signals, telegram

__all__ = [
    "health",
    "signals",
    "telegram",
]
