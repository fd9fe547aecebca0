"""Cursor, lock and empty-streak stores kept as rows of the settings table."""

from datetime import datetime, timezone

from signal_ingest.stores.base import (
    CursorStore,
    EmptyPollStore,
    EmptyStreak,
    LockStore,
    SettingsStore,
)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _parse_time(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SettingsCursorStore(CursorStore):
    """Cursor stored as {"offset": n}."""

    def __init__(self, settings: SettingsStore, key: str, initial: int = 0) -> None:
        self.settings = settings
        self.key = key
        self.initial = initial

    async def get_offset(self) -> int:
        value = await self.settings.get(self.key)
        offset = value.get("offset") if value else None
        if isinstance(offset, int) and not isinstance(offset, bool):
            return offset
        return self.initial

    async def set_offset(self, offset: int) -> None:
        await self.settings.put(self.key, {"offset": offset})


class SettingsLockStore(LockStore):
    """Lock stored as {"until": iso-timestamp}."""

    def __init__(self, settings: SettingsStore, key: str) -> None:
        self.settings = settings
        self.key = key

    async def locked_until(self) -> datetime | None:
        value = await self.settings.get(self.key)
        return _parse_time(value.get("until")) if value else None

    async def acquire(self, until: datetime) -> None:
        await self.settings.put(self.key, {"until": until.isoformat()})

    async def release(self) -> None:
        await self.settings.put(self.key, {"until": EPOCH.isoformat()})


class SettingsEmptyPollStore(EmptyPollStore):
    """Empty-poll streak stored as {"count": n, "at": iso-timestamp}."""

    def __init__(self, settings: SettingsStore, key: str) -> None:
        self.settings = settings
        self.key = key

    async def get_streak(self) -> EmptyStreak:
        value = await self.settings.get(self.key) or {}
        try:
            count = int(value.get("count", 0))
        except (TypeError, ValueError):
            count = 0
        return EmptyStreak(count=count, at=_parse_time(value.get("at")))

    async def set_streak(self, streak: EmptyStreak) -> None:
        await self.settings.put(
            self.key,
            {"count": streak.count, "at": streak.at.isoformat() if streak.at else None},
        )
