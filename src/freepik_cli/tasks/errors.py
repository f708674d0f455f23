"""Error taxonomy for the task lifecycle engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True, eq=False)
class FreepikError(Exception):
    """Base error for API, task and download failures."""

    message: str
    code: str = "freepik_error"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True, eq=False)
class RemoteApiError(FreepikError):
    """Non-2xx HTTP response (or a network failure, reported as status 0)."""

    code: str = "remote_api_error"
    status_code: int = 0
    body: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, status_code: int, body: dict[str, Any]) -> RemoteApiError:
        message = body.get("message") or body.get("error")
        if not isinstance(message, str) or not message:
            message = f"API request failed with status {status_code}"
        return cls(message=message, status_code=status_code, body=body)


@dataclass(slots=True, eq=False)
class TaskFailedError(FreepikError):
    """Remote task reached the terminal FAILED state."""

    code: str = "task_failed"
    task_id: str = ""
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, eq=False)
class TaskTimedOutError(FreepikError):
    """Local poll loop gave up; the remote task may still be running."""

    code: str = "task_timed_out"
    task_id: str = ""
    poll_path: str = ""
    max_wait_seconds: float = 0.0

    @property
    def resume_hint(self) -> str:
        return f"freepik status {self.task_id} --endpoint {self.poll_path}"


@dataclass(slots=True, eq=False)
class DownloadError(FreepikError):
    """Artifact fetch returned non-2xx or the network failed."""

    code: str = "download_failed"
    url: str = ""
    status_code: int | None = None


@dataclass(slots=True, eq=False)
class ValidationError(FreepikError):
    """Malformed caller input, raised before any network call."""

    code: str = "validation_error"
