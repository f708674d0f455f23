"""Progress events emitted by the lifecycle engine and best-effort side effects."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TaskEventKind(str, Enum):
    """Kinds of progress events a reporter can render."""

    LABEL = "label"
    INFO = "info"
    STATUS_CHANGED = "status_changed"
    COMPLETED = "completed"
    FAILED = "failed"
    WARNING = "warning"


@dataclass(slots=True)
class TaskEvent:
    """One structured progress event; the engine never formats output itself."""

    kind: TaskEventKind
    message: str
    task_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


class TaskEventSink(Protocol):
    """Presentation layer contract (spinners, colored text, JSON)."""

    def emit(self, event: TaskEvent) -> None:
        """Render or record one event."""
        raise NotImplementedError


class NullEventSink:
    """Sink that drops every event."""

    def emit(self, event: TaskEvent) -> None:
        del event


class RecordingEventSink:
    """Sink that keeps events in memory, used by tests and JSON output."""

    def __init__(self) -> None:
        self.events: list[TaskEvent] = []

    def emit(self, event: TaskEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[TaskEventKind]:
        return [event.kind for event in self.events]


class BestEffortNotifier:
    """Runs side effects whose failure must never reach the caller.

    Used for history logging, last-output bookkeeping and the generation
    counter. Each call has its own failure boundary.
    """

    def run(self, name: str, action: Callable[[], T]) -> T | None:
        try:
            return action()
        except Exception:  # noqa: BLE001
            logger.warning("Best-effort side effect %r failed", name, exc_info=True)
            return None
