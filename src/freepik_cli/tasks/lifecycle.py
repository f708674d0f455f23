"""Submit -> wait -> download composition for a single remote task."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from freepik_cli.history import HistoryEntry, HistoryLog
from freepik_cli.tasks.events import (
    BestEffortNotifier,
    NullEventSink,
    TaskEvent,
    TaskEventKind,
    TaskEventSink,
)
from freepik_cli.tasks.materializer import ArtifactMaterializer
from freepik_cli.tasks.models import TaskEndpoint, TaskSnapshot
from freepik_cli.tasks.poller import TaskPoller
from freepik_cli.tasks.submitter import TaskSubmitter

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class HistoryContext:
    """Identifiers recorded in the history log once a generation finishes."""

    command: str
    model: str | None = None
    prompt: str | None = None
    seed: int | None = None
    cost: str | None = None


@dataclass(slots=True)
class RunOptions:
    """Per-invocation switches for ``TaskLifecycle.run``."""

    output: Path | None = None
    skip_download: bool = False
    skip_poll: bool = False
    max_wait_seconds: float | None = None
    label: str | None = None
    history: HistoryContext | None = None


@dataclass(slots=True)
class LifecycleResult:
    """Outcome of one lifecycle: the task handle and any files written."""

    task_id: str
    poll_path: str
    snapshot: TaskSnapshot
    paths: list[Path] = field(default_factory=list)
    polled: bool = False
    elapsed_seconds: float = 0.0


class TaskLifecycle:
    """Composes submitter, poller and materializer into one operation.

    A fresh poller is built for every run so concurrent lifecycles never
    share polling state.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        submitter: TaskSubmitter,
        poller_factory: Callable[[], TaskPoller],
        materializer: ArtifactMaterializer,
        events: TaskEventSink | None = None,
        history: HistoryLog | None = None,
        notifier: BestEffortNotifier | None = None,
    ) -> None:
        self.submitter = submitter
        self.poller_factory = poller_factory
        self.materializer = materializer
        self._events = events or NullEventSink()
        self._history = history
        self._notifier = notifier or BestEffortNotifier()

    async def run(
        self,
        endpoint: TaskEndpoint,
        payload: dict[str, Any],
        options: RunOptions | None = None,
    ) -> LifecycleResult:
        """Run the full lifecycle; the first error at any stage propagates unchanged."""

        opts = options or RunOptions()
        started_at = time.monotonic()
        if opts.label:
            self._events.emit(TaskEvent(kind=TaskEventKind.LABEL, message=opts.label))

        snapshot = await self.submitter.submit(endpoint, payload)
        result = LifecycleResult(
            task_id=snapshot.task_id,
            poll_path=endpoint.poll_path,
            snapshot=snapshot,
        )
        self._events.emit(
            TaskEvent(
                kind=TaskEventKind.INFO,
                message=f"Task created: {snapshot.task_id}",
                task_id=snapshot.task_id,
                data={"status": snapshot.status},
            ),
        )

        if opts.skip_download:
            self._events.emit(
                TaskEvent(
                    kind=TaskEventKind.INFO,
                    message=(
                        f"Check status with: freepik status {snapshot.task_id} "
                        f"--endpoint {endpoint.poll_path}"
                    ),
                    task_id=snapshot.task_id,
                    data={"poll_path": endpoint.poll_path},
                ),
            )
            result.elapsed_seconds = time.monotonic() - started_at
            return result

        if not snapshot.is_completed:
            if opts.skip_poll:
                result.elapsed_seconds = time.monotonic() - started_at
                return result
            poller = self.poller_factory()
            snapshot = await poller.wait(
                endpoint,
                snapshot.task_id,
                max_wait_seconds=opts.max_wait_seconds,
            )
            result.snapshot = snapshot
            result.polled = True
        else:
            logger.info("Task %s completed inline, skipping poll", snapshot.task_id)

        result.paths = await self.materializer.materialize(snapshot.artifacts, opts.output)
        result.elapsed_seconds = time.monotonic() - started_at
        if opts.history is not None and self._history is not None:
            self._record_history(opts.history, result)
        return result

    def _record_history(self, context: HistoryContext, result: LifecycleResult) -> None:
        history = self._history
        if history is None:
            return
        entry = HistoryEntry(
            timestamp=datetime.now(tz=UTC).isoformat(),
            command=context.command,
            model=context.model,
            prompt=context.prompt,
            seed=context.seed,
            task_id=result.task_id,
            output_path=str(result.paths[0]) if result.paths else None,
            cost=context.cost,
            elapsed_ms=int(result.elapsed_seconds * 1000),
        )
        self._notifier.run("history", lambda: history.append(entry))
