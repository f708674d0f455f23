"""Windowed concurrent execution of independent lifecycles."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from freepik_cli.tasks.errors import ValidationError
from freepik_cli.tasks.events import NullEventSink, TaskEvent, TaskEventKind, TaskEventSink
from freepik_cli.tasks.models import BatchOutcome, BatchReport

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT")


class BatchScheduler:
    """Runs ``worker(item, index)`` for every item, at most ``concurrency`` at a time.

    Items are split into sequential windows; a window starts only after the
    previous one fully settled. Any ``Exception`` from a worker becomes a
    failed outcome for that item alone. Failed items are never retried.
    """

    def __init__(
        self,
        *,
        events: TaskEventSink | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._events = events or NullEventSink()
        self._clock = clock

    async def run_all(
        self,
        items: Sequence[ItemT],
        worker: Callable[[ItemT, int], Awaitable[object]],
        concurrency: int,
    ) -> BatchReport:
        if concurrency < 1:
            raise ValidationError(message=f"Concurrency must be >= 1, got {concurrency}")

        started_at = self._clock()
        outcomes: list[BatchOutcome] = []
        total_windows = math.ceil(len(items) / concurrency)

        for window_no, window_start in enumerate(range(0, len(items), concurrency), start=1):
            window = items[window_start : window_start + concurrency]
            self._events.emit(
                TaskEvent(
                    kind=TaskEventKind.INFO,
                    message=f"Processing batch {window_no}/{total_windows}...",
                    data={"window": window_no, "windows": total_windows},
                ),
            )
            indexes = range(window_start, window_start + len(window))
            results = await asyncio.gather(
                *(worker(item, index) for item, index in zip(window, indexes, strict=True)),
                return_exceptions=True,
            )
            for index, result in zip(indexes, results, strict=True):
                outcomes.append(self._to_outcome(index, result))

        outcomes.sort(key=lambda outcome: outcome.index)
        report = BatchReport(outcomes=outcomes, elapsed_seconds=self._clock() - started_at)
        logger.info(
            "Batch complete: succeeded=%d failed=%d elapsed=%.1fs",
            report.succeeded,
            report.failed,
            report.elapsed_seconds,
        )
        return report

    def _to_outcome(self, index: int, result: object) -> BatchOutcome:
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            outcome = BatchOutcome(index=index, success=False, error=str(result) or repr(result))
            self._events.emit(
                TaskEvent(
                    kind=TaskEventKind.WARNING,
                    message=f"[{index + 1}] Failed: {outcome.error}",
                    data={"index": index},
                ),
            )
            return outcome
        self._events.emit(
            TaskEvent(
                kind=TaskEventKind.COMPLETED,
                message=f"[{index + 1}] -> {result}",
                data={"index": index},
            ),
        )
        return BatchOutcome(index=index, success=True, output=result)
