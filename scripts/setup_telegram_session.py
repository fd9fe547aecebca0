#!/usr/bin/env python3
"""
Create the Telethon session used by the MTProto source.

Run once interactively; afterwards SIGNAL_SOURCE=mtproto can read the
channel without prompting.

Usage:
    python scripts/setup_telegram_session.py
"""

import asyncio

from telethon import TelegramClient

from signal_ingest.classifier import MessageClassifier
from signal_ingest.config import config


async def main() -> None:
    """Log in and check the configured channel is readable."""
    telegram = config.telegram
    if not telegram.api_id or not telegram.api_hash:
        print("ERROR: TELEGRAM_API_ID and TELEGRAM_API_HASH must be set in .env")
        return

    print(f"Session: {telegram.session_name}")
    print(f"Channel: {telegram.channel}")
    print("You will be prompted for your phone number and login code.")
    print()

    client = TelegramClient(telegram.session_name, telegram.api_id, telegram.api_hash)
    await client.start()

    try:
        me = await client.get_me()
        print(f"Logged in as: {me.first_name} (@{me.username})")

        entity = await client.get_entity(telegram.channel)
        print(f"Channel found: {getattr(entity, 'title', telegram.channel)}")

        classifier = MessageClassifier()
        messages = await client.get_messages(entity, limit=5)
        for m in reversed(messages):
            parsed = classifier.classify(m.message or "")
            kind = type(parsed).__name__ if parsed else "ignored"
            print(f"  [{m.id}] {kind:<13} {(m.message or '')[:50]!r}")
    finally:
        await client.disconnect()

    print()
    print(f"Session file created: {telegram.session_name}.session")


if __name__ == "__main__":
    asyncio.run(main())
