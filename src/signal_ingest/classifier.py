"""
Message classifier for Telegram signal channels.

This module turns one raw channel message into a structured ParsedSignal,
a ParsedResult, or None for everything else.

Signal formats, tried in order (first match wins):
    - Marked: emoji markers in front of each field
          💷 AUDCHF-OTC
          💎 M1
          ⌚️ 16:15:00
          🔼 call
    - Inline: "<PAIR> <TIMEFRAME> <CALL|PUT|BUY|SELL> [HH:MM:SS]",
      with slash pairs, six-letter pairs or commodity names

Result messages carry a win marker (✅, "win", "won", "ربح") or a loss marker
(❌, "loss", "lose", "lost", "خسارة", "خسر"), optionally a martingale level
("win 1", "win²", "✅ 2", "win ١") and optionally the asset/timeframe markers.
"""

import logging
import re
from abc import ABC, abstractmethod

from signal_ingest.models import Direction, Outcome, ParsedResult, ParsedSignal
from signal_ingest.symbols import CURRENCY_CODES, normalize_asset

logger = logging.getLogger(__name__)

# Instrument codes: slash pair, commodity name, or six+ letter code, each with optional -OTC
ASSET_CODE = (
    r"[A-Z]{3}/[A-Z]{3}(?:-OTC)?"
    r"|(?:GOLD|SILVER|OIL|XAU|XAG)(?:-OTC)?(?![A-Z])"
    r"|[A-Z]{6,}(?:-OTC)?"
)
TIMEFRAME_CODE = r"[MH]\d+"
CLOCK_TIME = r"\d{2}:\d{2}:\d{2}"
DIRECTION_WORD = r"CALL|PUT|BUY|SELL"
CURRENCY_CODE = "|".join(sorted(CURRENCY_CODES))

MARKED_ASSET = re.compile(rf"💷\s*({ASSET_CODE})", re.IGNORECASE)
MARKED_TIMEFRAME = re.compile(rf"💎\s*({TIMEFRAME_CODE})", re.IGNORECASE)
MARKED_TIME = re.compile(rf"⌚️?\s*({CLOCK_TIME})")
MARKED_UP = re.compile(r"🔼️?\s*(call|buy)\b", re.IGNORECASE)
MARKED_DOWN = re.compile(r"🔽️?\s*(put|sell)\b", re.IGNORECASE)

WIN_MARKER = re.compile(r"✅|✔️?|\bw(?:in|on)(?![a-z])|ربح", re.IGNORECASE)
LOSS_MARKER = re.compile(r"❌|⛔️?|\blos(?:s|e|t)(?![a-z])|خسارة|خسر", re.IGNORECASE)

LEVEL_DIGITS = {"1": 1, "¹": 1, "١": 1, "2": 2, "²": 2, "٢": 2}
WIN_LEVEL_PATTERNS = (
    re.compile(r"\bw(?:in|on)\s*([12¹²١٢])(?!\d)", re.IGNORECASE),
    re.compile(r"\bw(?:in|on)\b.*?([¹²١٢])", re.IGNORECASE),
    re.compile(r"ربح\s*([12١٢])(?!\d)"),
    re.compile(r"[✅✔]️?\s*([12¹²١٢])(?!\d)"),
)

# Unmarked hints inside result messages; plain six-letter words are too ambiguous here
INLINE_RESULT_ASSET = re.compile(
    r"\b([A-Z]{3}/[A-Z]{3}(?:-OTC)?|[A-Z]{6}-OTC|GOLD|SILVER|XAUUSD|XAGUSD)\b",
    re.IGNORECASE,
)
INLINE_TIMEFRAME = re.compile(rf"\b({TIMEFRAME_CODE})\b", re.IGNORECASE)


class SignalPattern(ABC):
    """One recognizable signal format."""

    name: str = ""

    @abstractmethod
    def match(self, text: str) -> ParsedSignal | None:
        """Return the parsed signal if the text is in this format."""
        pass


class MarkedSignalPattern(SignalPattern):
    """Emoji-marked multi-line format used by the primary channel."""

    name = "marked"

    def match(self, text: str) -> ParsedSignal | None:
        asset_match = MARKED_ASSET.search(text)
        timeframe_match = MARKED_TIMEFRAME.search(text)
        up_match = MARKED_UP.search(text)
        down_match = MARKED_DOWN.search(text)

        if not (asset_match and timeframe_match and (up_match or down_match)):
            return None

        # Both arrows present: the first one in the text wins
        direction_match = min(
            (m for m in (up_match, down_match) if m is not None),
            key=lambda m: m.start(),
        )
        time_match = MARKED_TIME.search(text)
        original = asset_match.group(1).upper()

        return ParsedSignal(
            asset=normalize_asset(original),
            timeframe=timeframe_match.group(1).upper(),
            direction=Direction.from_keyword(direction_match.group(1)),
            entry_time=time_match.group(1) if time_match else None,
            original_asset=original,
            raw_message=text,
        )


class InlineSignalPattern(SignalPattern):
    """Single-line "<asset> <timeframe> <direction> [time]" format."""

    def __init__(self, name: str, asset_code: str) -> None:
        self.name = name
        self.regex = re.compile(
            rf"\b({asset_code})\s+({TIMEFRAME_CODE})\s+({DIRECTION_WORD})\b"
            rf"(?:\s+({CLOCK_TIME}))?",
            re.IGNORECASE,
        )

    def match(self, text: str) -> ParsedSignal | None:
        m = self.regex.search(text)
        if m is None:
            return None

        original = m.group(1).upper()
        return ParsedSignal(
            asset=normalize_asset(original),
            timeframe=m.group(2).upper(),
            direction=Direction.from_keyword(m.group(3)),
            entry_time=m.group(4),
            original_asset=original,
            raw_message=text,
        )


class ResultPattern:
    """Win/loss outcome format with optional level and asset hints."""

    def match(self, text: str) -> ParsedResult | None:
        normalized = re.sub(r"\s+", " ", text).strip()
        has_win = WIN_MARKER.search(normalized) is not None
        has_loss = LOSS_MARKER.search(normalized) is not None
        if not has_win and not has_loss:
            return None

        outcome = Outcome.LOSS if has_loss else self._win_level(normalized)
        asset, timeframe = self._hints(normalized)
        return ParsedResult(outcome=outcome, asset=asset, timeframe=timeframe, raw_message=text)

    def _win_level(self, text: str) -> Outcome:
        for pattern in WIN_LEVEL_PATTERNS:
            m = pattern.search(text)
            if m:
                level = LEVEL_DIGITS[m.group(1)]
                return Outcome.WIN1 if level == 1 else Outcome.WIN2
        return Outcome.WIN

    def _hints(self, text: str) -> tuple[str | None, str | None]:
        asset_match = MARKED_ASSET.search(text) or INLINE_RESULT_ASSET.search(text)
        timeframe_match = MARKED_TIMEFRAME.search(text) or INLINE_TIMEFRAME.search(text)
        asset = normalize_asset(asset_match.group(1)) if asset_match else None
        timeframe = timeframe_match.group(1).upper() if timeframe_match else None
        return asset, timeframe


DEFAULT_SIGNAL_PATTERNS: tuple[SignalPattern, ...] = (
    MarkedSignalPattern(),
    InlineSignalPattern("slash_pair", r"[A-Z]{3}/[A-Z]{3}(?:-OTC)?"),
    InlineSignalPattern("commodity", r"(?:GOLD|SILVER|OIL|XAU|XAG)(?:-OTC)?"),
    InlineSignalPattern(
        "six_letter_pair", rf"(?:{CURRENCY_CODE})(?:{CURRENCY_CODE})(?:-OTC)?"
    ),
)


class MessageClassifier:
    """Classifies channel messages into signals, results, or nothing.

    Signal patterns are tried first, so a message carrying a full
    asset/timeframe/direction triple is a signal even when it also
    contains a result marker.
    """

    def __init__(
        self,
        signal_patterns: tuple[SignalPattern, ...] = DEFAULT_SIGNAL_PATTERNS,
        result_pattern: ResultPattern | None = None,
    ) -> None:
        self.signal_patterns = signal_patterns
        self.result_pattern = result_pattern or ResultPattern()

    def classify(self, text: str | None) -> ParsedSignal | ParsedResult | None:
        """Classify one raw message.

        Args:
            text: The raw message text

        Returns:
            ParsedSignal, ParsedResult, or None for non-trading content
        """
        if not text or not text.strip():
            return None

        logger.debug("Classifying message: %s", text[:100])

        signal = self.parse_signal(text)
        if signal is not None:
            return signal
        return self.parse_result(text)

    def parse_signal(self, text: str) -> ParsedSignal | None:
        for pattern in self.signal_patterns:
            try:
                signal = pattern.match(text)
            except ValueError as e:
                logger.debug("Pattern %s rejected message: %s", pattern.name, e)
                continue
            if signal is not None:
                logger.debug(
                    "Signal (%s): %s %s %s %s",
                    pattern.name,
                    signal.asset,
                    signal.timeframe,
                    signal.direction.value,
                    signal.entry_time,
                )
                return signal
        return None

    def parse_result(self, text: str) -> ParsedResult | None:
        result = self.result_pattern.match(text)
        if result is not None:
            logger.debug(
                "Result: %s (asset=%s, timeframe=%s)",
                result.outcome.value,
                result.asset,
                result.timeframe,
            )
        return result
