"""Create -> poll -> terminal state machine for one remote task."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import NoReturn

from freepik_cli.tasks.errors import TaskFailedError, TaskTimedOutError
from freepik_cli.tasks.events import NullEventSink, TaskEvent, TaskEventKind, TaskEventSink
from freepik_cli.tasks.models import PollState, TaskEndpoint, TaskSnapshot, parse_task_snapshot
from freepik_cli.tasks.submitter import ApiClient

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_MAX_WAIT_SECONDS = 300.0
LONG_MAX_WAIT_SECONDS = 600.0

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class TaskPoller:
    """Polls ``<poll_path>/<task_id>`` at a fixed interval until a terminal state.

    There is no backoff and no jitter; every sleep lasts ``interval_seconds``.
    Timing out stops the local loop only, the remote task keeps running.
    """

    def __init__(  # noqa: PLR0913
        self,
        client: ApiClient,
        *,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_wait_seconds: float = DEFAULT_MAX_WAIT_SECONDS,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        events: TaskEventSink | None = None,
    ) -> None:
        if interval_seconds < 0:
            raise ValueError("Poll interval must be >= 0.")
        if max_wait_seconds <= 0:
            raise ValueError("Maximum wait must be > 0.")
        self.client = client
        self.interval_seconds = interval_seconds
        self.max_wait_seconds = max_wait_seconds
        self._clock = clock
        self._sleep = sleep
        self._events = events or NullEventSink()
        self.state = PollState.WAITING
        self.poll_count = 0

    async def wait(
        self,
        endpoint: TaskEndpoint,
        task_id: str,
        *,
        max_wait_seconds: float | None = None,
    ) -> TaskSnapshot:
        """Return the COMPLETED snapshot or raise ``TaskFailedError`` / ``TaskTimedOutError``."""

        max_wait = max_wait_seconds if max_wait_seconds is not None else self.max_wait_seconds
        self.state = PollState.WAITING
        self.poll_count = 0
        started_at = self._clock()
        last_status: str | None = None
        status_path = endpoint.status_path(task_id)

        while True:
            elapsed = self._clock() - started_at
            if elapsed >= max_wait:
                self._timed_out(endpoint=endpoint, task_id=task_id, max_wait=max_wait)

            response = await self.client.get(status_path)
            self.poll_count += 1
            snapshot = parse_task_snapshot(response, task_id=task_id)

            if snapshot.is_completed:
                self.state = PollState.COMPLETED
                count = len(snapshot.artifacts)
                self._events.emit(
                    TaskEvent(
                        kind=TaskEventKind.COMPLETED,
                        message=f"Task completed ({count} file{'s' if count != 1 else ''})",
                        task_id=task_id,
                        data={"polls": self.poll_count, "elapsed_seconds": elapsed},
                    ),
                )
                return snapshot

            if snapshot.is_failed:
                self.state = PollState.FAILED
                self._events.emit(
                    TaskEvent(kind=TaskEventKind.FAILED, message="Task failed", task_id=task_id),
                )
                raise TaskFailedError(
                    message=f"Task {task_id} failed. {snapshot.data}",
                    task_id=task_id,
                    payload=snapshot.raw,
                )

            if snapshot.status != last_status:
                last_status = snapshot.status
                self._events.emit(
                    TaskEvent(
                        kind=TaskEventKind.STATUS_CHANGED,
                        message=f"Status: {snapshot.status} - waiting for task {task_id[:8]}...",
                        task_id=task_id,
                        data={"status": snapshot.status},
                    ),
                )
            logger.debug("Task %s status=%s poll=%d", task_id, snapshot.status, self.poll_count)
            await self._sleep(self.interval_seconds)

    def _timed_out(self, *, endpoint: TaskEndpoint, task_id: str, max_wait: float) -> NoReturn:
        self.state = PollState.TIMED_OUT
        error = TaskTimedOutError(
            message=(
                f"Task {task_id} timed out after {max_wait:g}s. "
                f"Check status with: freepik status {task_id} --endpoint {endpoint.poll_path}"
            ),
            task_id=task_id,
            poll_path=endpoint.poll_path,
            max_wait_seconds=max_wait,
        )
        self._events.emit(
            TaskEvent(
                kind=TaskEventKind.WARNING,
                message="Task timed out",
                task_id=task_id,
                data={"resume": error.resume_hint},
            ),
        )
        raise error
