#!/usr/bin/env python3
"""
Run the message classifier over exported channel history.

Input is a JSON list of {"id", "text"} objects (or {"messages": [...]}),
for example the output of an MTProto export. Prints per-kind counts and
a sample of each kind, for tuning patterns against real channel posts.

Usage:
    python scripts/classify_messages.py path/to/messages.json
    python scripts/classify_messages.py path/to/messages.json --show 10
"""

import argparse
import json
from collections import defaultdict
from pathlib import Path

from signal_ingest.classifier import MessageClassifier
from signal_ingest.models import MessageKind, ParsedResult, ParsedSignal


def load_messages(path: Path) -> list[dict]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("messages", [])
    return [m for m in data if isinstance(m, dict) and m.get("text")]


def describe(parsed: ParsedSignal | ParsedResult | None) -> str:
    if isinstance(parsed, ParsedSignal):
        return (
            f"{parsed.asset} ({parsed.original_asset}) {parsed.timeframe} "
            f"{parsed.direction.value} {parsed.entry_time or '-'}"
        )
    if isinstance(parsed, ParsedResult):
        return f"{parsed.outcome.value} asset={parsed.asset} timeframe={parsed.timeframe}"
    return "ignored"


def parse_args() -> argparse.Namespace:
    """Parse CLI args."""
    parser = argparse.ArgumentParser(description="Classify exported channel messages.")
    parser.add_argument("file", type=Path, help="JSON file with exported messages.")
    parser.add_argument("--show", type=int, default=5, help="Samples to print per kind.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    classifier = MessageClassifier()
    messages = load_messages(args.file)
    print(f"Loaded {len(messages)} messages from {args.file}")

    by_kind: dict[MessageKind, list[tuple[dict, str]]] = defaultdict(list)
    for message in messages:
        parsed = classifier.classify(message["text"])
        kind = parsed.kind if parsed is not None else MessageKind.IGNORED
        by_kind[kind].append((message, describe(parsed)))

    print("\n--- Counts ---")
    for kind in MessageKind:
        print(f"{kind.value:>8}: {len(by_kind[kind])}")

    for kind in MessageKind:
        samples = by_kind[kind][: args.show]
        if not samples:
            continue
        print(f"\n--- {kind.value} samples ---")
        for message, summary in samples:
            preview = message["text"][:80].replace("\n", " | ")
            print(f"[{message.get('id')}] {summary}\n    {preview}")


if __name__ == "__main__":
    main()
