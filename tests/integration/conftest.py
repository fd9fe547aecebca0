"""
Integration test fixtures for live Telegram sources.

Tests are skipped automatically when credentials are not configured.
"""

import os
from pathlib import Path

import pytest


@pytest.fixture(scope="module")
def bot_credentials(telegram_credentials: dict | None) -> dict:
    """Bot API credentials, skipping the module when absent."""
    if telegram_credentials is None:
        pytest.skip("TELEGRAM_BOT_TOKEN not configured in environment")
    return telegram_credentials


@pytest.fixture(scope="module")
def mtproto_credentials() -> dict:
    """MTProto credentials plus an existing session file, or skip."""
    api_id = int(os.getenv("TELEGRAM_API_ID", "0") or 0)
    api_hash = os.getenv("TELEGRAM_API_HASH", "")
    session_name = os.getenv("TELEGRAM_SESSION_NAME", "signal_ingest_session")

    if not api_id or not api_hash:
        pytest.skip("TELEGRAM_API_ID / TELEGRAM_API_HASH not configured in environment")
    if not Path(f"{session_name}.session").exists():
        pytest.skip(
            f"Telegram session '{session_name}' not found. "
            "Create it with: python scripts/setup_telegram_session.py"
        )

    return {
        "api_id": api_id,
        "api_hash": api_hash,
        "session_name": session_name,
        "channel": os.getenv("TELEGRAM_CHANNEL", "EyadTraderBot2").lstrip("@"),
    }
