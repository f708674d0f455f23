"""Artifact download, naming and persistence."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Callable
from pathlib import Path, PurePosixPath
from typing import Protocol
from urllib.parse import urlparse

from freepik_cli.http.fetcher import ArtifactFetcher
from freepik_cli.tasks.errors import DownloadError
from freepik_cli.tasks.events import (
    BestEffortNotifier,
    NullEventSink,
    TaskEvent,
    TaskEventKind,
    TaskEventSink,
)
from freepik_cli.tasks.models import Artifact

logger = logging.getLogger(__name__)

DEFAULT_FILENAME_PREFIX = "freepik"
FALLBACK_EXTENSION = ".png"
MIME_EXTENSIONS: dict[str, str] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
    "video/mp4": ".mp4",
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/wav": ".wav",
}
_SLUG_RE = re.compile(r"[^a-z0-9]+")
_SLUG_MAX_CHARS = 30


class GenerationTracker(Protocol):
    """Persistent bookkeeping touched after every successful download."""

    def record_last_output(self, path: Path) -> None:
        """Remember the most recently written file for ``freepik open``."""
        raise NotImplementedError

    def track_generation(self) -> bool:
        """Increment the generation counter; return True when the one-time notice is due."""
        raise NotImplementedError


def guess_extension(url: str, content_type: str | None = None) -> str:
    """Resolve a file extension: MIME type, then URL path, then ``.png``."""

    if content_type:
        mime = content_type.split(";", 1)[0].strip().lower()
        extension = MIME_EXTENSIONS.get(mime)
        if extension:
            return extension

    suffix = PurePosixPath(urlparse(url).path).suffix
    if suffix:
        return suffix
    return FALLBACK_EXTENSION


def indexed_output_path(base: Path, index: int) -> Path:
    """Insert ``-{index}`` before the extension: ``cat.png`` -> ``cat-2.png``."""

    return base.with_name(f"{base.stem}-{index}{base.suffix}")


def indexed_output_paths(base: Path, count: int) -> list[Path]:
    """Fan one base path out into ``count`` 1-indexed paths."""

    return [indexed_output_path(base, index) for index in range(1, count + 1)]


def slugify_prompt(prompt: str) -> str:
    slug = _SLUG_RE.sub("-", prompt.lower()).strip("-")
    return slug[:_SLUG_MAX_CHARS]


def expand_name_template(  # noqa: PLR0913
    template: str,
    *,
    prompt: str,
    model: str,
    seed: int,
    ext: str,
    n: int,
    timestamp: int,
) -> str:
    """Fill ``{prompt}``, ``{model}``, ``{seed}``, ``{ext}``, ``{n}`` and ``{timestamp}``."""

    replacements = {
        "{prompt}": slugify_prompt(prompt),
        "{model}": model,
        "{seed}": str(seed),
        "{ext}": ext.lstrip("."),
        "{n}": str(n),
        "{timestamp}": str(timestamp),
    }
    result = template
    for placeholder, value in replacements.items():
        result = result.replace(placeholder, value)
    return result


class ArtifactMaterializer:
    """Downloads artifacts to local files.

    Guarantees one file per artifact, no colliding destinations and remote
    ordering in the returned list. Downloads run sequentially; the first
    failure aborts the rest of the set.
    """

    def __init__(  # noqa: PLR0913
        self,
        fetcher: ArtifactFetcher,
        *,
        output_dir: Callable[[], Path],
        tracker: GenerationTracker | None = None,
        events: TaskEventSink | None = None,
        notifier: BestEffortNotifier | None = None,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self.fetcher = fetcher
        self._output_dir = output_dir
        self._tracker = tracker
        self._events = events or NullEventSink()
        self._notifier = notifier or BestEffortNotifier()
        self._clock_ms = clock_ms or (lambda: int(time.time() * 1000))

    async def materialize(
        self,
        artifacts: list[Artifact],
        base_path: Path | None = None,
    ) -> list[Path]:
        if not artifacts:
            self._events.emit(TaskEvent(kind=TaskEventKind.WARNING, message="No files to download"))
            return []

        destinations = self._explicit_destinations(len(artifacts), base_path)
        used: set[Path] = set()
        paths: list[Path] = []
        for position, artifact in enumerate(artifacts):
            saved = await self._download_one(
                artifact,
                destination=destinations[position],
                sequence=position + 1 if len(artifacts) > 1 else None,
                used=used,
            )
            used.add(saved)
            paths.append(saved)
            self._events.emit(
                TaskEvent(
                    kind=TaskEventKind.COMPLETED,
                    message=f"Saved to {saved}",
                    data={"path": str(saved), "url": artifact.url},
                ),
            )

        self._after_success(paths)
        return paths

    async def save_bytes(self, content: bytes, path: Path) -> Path:
        """Persist an inline (base64) result the API returned instead of a URL."""

        await asyncio.to_thread(_write_file, path, content)
        self._events.emit(
            TaskEvent(
                kind=TaskEventKind.COMPLETED,
                message=f"Saved to {path}",
                data={"path": str(path)},
            ),
        )
        self._after_success([path])
        return path

    def default_path(self, prefix: str, extension: str = FALLBACK_EXTENSION) -> Path:
        """``<output dir>/<prefix>-<ms><extension>``, bumped past files already on disk."""

        return self._default_destination(
            extension=extension,
            sequence=None,
            used=set(),
            prefix=prefix,
        )

    def _explicit_destinations(self, count: int, base_path: Path | None) -> list[Path | None]:
        if base_path is None:
            return [None] * count
        if count == 1:
            return [base_path]
        return list(indexed_output_paths(base_path, count))

    async def _download_one(
        self,
        artifact: Artifact,
        *,
        destination: Path | None,
        sequence: int | None,
        used: set[Path],
    ) -> Path:
        logger.debug("Downloading %s", artifact.url)
        result = await self.fetcher.fetch(artifact.url)
        if not result.is_success:
            raise DownloadError(
                message=f"Failed to download file: {result.error or result.status_code}",
                url=artifact.url,
                status_code=result.status_code or None,
            )

        if destination is None:
            content_type = artifact.content_type or result.content_type or None
            destination = self._default_destination(
                extension=guess_extension(artifact.url, content_type),
                sequence=sequence,
                used=used,
            )

        await asyncio.to_thread(_write_file, destination, result.content)
        logger.debug("Saved %d bytes to %s", len(result.content), destination)
        return destination

    def _default_destination(
        self,
        *,
        extension: str,
        sequence: int | None,
        used: set[Path],
        prefix: str = DEFAULT_FILENAME_PREFIX,
    ) -> Path:
        stem = f"{prefix}-{self._clock_ms()}"
        if sequence is not None:
            stem = f"{stem}-{sequence}"
        directory = self._output_dir()
        candidate = directory / f"{stem}{extension}"
        bump = 1
        while candidate in used or candidate.exists():
            candidate = directory / f"{stem}_{bump}{extension}"
            bump += 1
        return candidate

    def _after_success(self, paths: list[Path]) -> None:
        tracker = self._tracker
        if tracker is None:
            return
        self._notifier.run("last_output_path", lambda: tracker.record_last_output(paths[-1]))
        nudge_due = self._notifier.run("generation_counter", tracker.track_generation)
        if nudge_due:
            self._events.emit(
                TaskEvent(
                    kind=TaskEventKind.INFO,
                    message=(
                        "Enjoying freepik-cli? Star us on GitHub: "
                        "https://github.com/Balneario-de-Cofrentes/freepik-cli"
                    ),
                ),
            )


def _write_file(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
