"""Append-only JSONL log of finished generations."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class HistoryEntry:
    """One finished generation."""

    timestamp: str
    command: str
    model: str | None = None
    prompt: str | None = None
    seed: int | None = None
    task_id: str | None = None
    output_path: str | None = None
    cost: str | None = None
    elapsed_ms: int | None = None

    def to_json(self) -> str:
        payload = {key: value for key, value in asdict(self).items() if value is not None}
        return json.dumps(payload, ensure_ascii=False)

    @classmethod
    def from_dict(cls, raw: dict[str, object]) -> HistoryEntry | None:
        known = {item.name for item in fields(cls)}
        values = {key: value for key, value in raw.items() if key in known}
        if not isinstance(values.get("timestamp"), str) or not isinstance(
            values.get("command"),
            str,
        ):
            return None
        return cls(**values)  # type: ignore[arg-type]


class HistoryLog:
    """History file accessor; ``append`` never raises."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def append(self, entry: HistoryEntry) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(entry.to_json() + "\n")
        except OSError as exc:
            logger.warning("Could not append history to %s: %s", self.path, exc)

    def read(self) -> list[HistoryEntry]:
        """Return all entries, skipping corrupted lines."""

        try:
            raw = self.path.read_text("utf-8")
        except OSError:
            return []
        entries: list[HistoryEntry] = []
        for line in raw.splitlines():
            if not line.strip():
                continue
            try:
                parsed = json.loads(line)
            except json.JSONDecodeError:
                continue
            if not isinstance(parsed, dict):
                continue
            entry = HistoryEntry.from_dict(parsed)
            if entry is not None:
                entries.append(entry)
        return entries

    def search(self, term: str | None = None, limit: int | None = None) -> list[HistoryEntry]:
        entries = self.read()
        if term:
            needle = term.lower()
            entries = [
                entry
                for entry in entries
                if needle in (entry.prompt or "").lower() or needle in entry.command.lower()
            ]
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries
