"""Domain models for remote tasks, artifacts and batch outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from freepik_cli.tasks.errors import RemoteApiError, ValidationError


class TaskStatus(str, Enum):
    """Remote task states reported by the API."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED.value, TaskStatus.FAILED.value})
_KNOWN_LOWER = frozenset(status.value.lower() for status in TaskStatus)


class PollState(str, Enum):
    """Client-side poll machine states."""

    WAITING = "waiting"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(slots=True, frozen=True)
class TaskEndpoint:
    """Create and poll paths for one remote operation."""

    create_path: str
    poll_path: str

    @classmethod
    def same(cls, path: str) -> TaskEndpoint:
        return cls(create_path=path, poll_path=path)

    def status_path(self, task_id: str) -> str:
        return f"{self.poll_path.rstrip('/')}/{task_id}"


@dataclass(slots=True, frozen=True)
class Artifact:
    """One downloadable output of a completed task."""

    url: str
    content_type: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class TaskSnapshot:
    """Decoded task envelope: ``{"data": {"task_id", "status", "generated"}}``."""

    task_id: str
    status: str
    artifacts: list[Artifact]
    raw: dict[str, Any]

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED.value

    @property
    def is_failed(self) -> bool:
        return self.status == TaskStatus.FAILED.value

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def data(self) -> dict[str, Any]:
        data = self.raw.get("data")
        return data if isinstance(data, dict) else {}


def normalize_artifacts(raw_generated: object) -> list[Artifact]:
    """Convert the wire ``generated`` list (URL strings or objects) into artifacts.

    Object entries keep every key besides ``url`` and ``content_type`` in
    ``Artifact.extra`` so nothing the API sent is lost.
    """

    if raw_generated is None:
        return []
    if not isinstance(raw_generated, list):
        raise ValidationError(
            message=f"Unexpected 'generated' payload type: {type(raw_generated).__name__}",
        )

    artifacts: list[Artifact] = []
    for position, item in enumerate(raw_generated):
        if isinstance(item, str):
            if not item:
                raise ValidationError(message=f"Empty artifact URL at position {position}")
            artifacts.append(Artifact(url=item))
            continue
        if isinstance(item, dict):
            url = item.get("url")
            if not isinstance(url, str) or not url:
                raise ValidationError(message=f"Artifact at position {position} has no url")
            content_type = item.get("content_type")
            extra = {key: value for key, value in item.items() if key not in {"url", "content_type"}}
            artifacts.append(
                Artifact(
                    url=url,
                    content_type=content_type if isinstance(content_type, str) else None,
                    extra=extra,
                ),
            )
            continue
        raise ValidationError(
            message=f"Unsupported artifact entry at position {position}: {item!r}",
        )
    return artifacts


def parse_task_snapshot(response: dict[str, Any], *, task_id: str | None = None) -> TaskSnapshot:
    """Decode a create or status response into a snapshot.

    ``task_id`` is used as a fallback when the status envelope omits it.
    """

    data = response.get("data")
    if not isinstance(data, dict):
        raise RemoteApiError(
            message="Malformed task response: missing 'data' object",
            body=response,
        )
    resolved_task_id = data.get("task_id") or task_id or ""
    status = data.get("status")
    if not isinstance(status, str):
        status = "" if status is None else str(status)
    return TaskSnapshot(
        task_id=str(resolved_task_id),
        status=status.upper() if status.lower() in _KNOWN_LOWER else status,
        artifacts=normalize_artifacts(data.get("generated")),
        raw=response,
    )


@dataclass(slots=True)
class BatchOutcome:
    """Result of one batch item; independent of every sibling."""

    index: int
    success: bool
    output: Any = None
    error: str | None = None


@dataclass(slots=True)
class BatchReport:
    """All batch outcomes in input order plus wall-clock timing."""

    outcomes: list[BatchOutcome]
    elapsed_seconds: float

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)
