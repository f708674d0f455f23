"""Controllers for CLI commands: build payloads, run lifecycles, render lines."""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
import random
import re
import shutil
import subprocess
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import rich_click as click

from freepik_cli.catalog import (
    CLASSIFY_PATH,
    DEFAULT_EXPAND_ENGINE,
    DEFAULT_IMAGE_MODEL,
    DESCRIBE_ENDPOINT,
    EXPAND_ENDPOINTS,
    ICON_ENDPOINT,
    LORA_MAX_IMAGES,
    LORA_MIN_IMAGES,
    LORA_TRAIN_CHARACTER_PATH,
    LORA_TRAIN_STYLE_PATH,
    LORAS_PATH,
    MODEL_INFO,
    MUSIC_ENDPOINT,
    RATE_LIMIT_PROBE_PATH,
    REIMAGINE_ENDPOINT,
    REIMAGINE_IMAGINATION_LEVELS,
    RELIGHT_ENDPOINT,
    REMOVE_BG_PATH,
    SEARCH_PATH,
    SFX_ENDPOINT,
    STYLE_TRANSFER_ENDPOINT,
    UPSCALE_ENDPOINT,
    UPSCALE_FACTORS,
    ModelCategory,
    cost_estimate,
    get_image_model,
    get_video_model,
    select_smart_model,
)
from freepik_cli.config import ConfigStore, Settings, mask_api_key
from freepik_cli.history import HistoryLog
from freepik_cli.http.fetcher import ArtifactFetcher
from freepik_cli.http.transport import ApiContext, ApiTransport
from freepik_cli.image_input import image_value
from freepik_cli.opener import open_path
from freepik_cli.tasks.batch import BatchScheduler
from freepik_cli.tasks.errors import FreepikError, RemoteApiError, ValidationError
from freepik_cli.tasks.events import (
    BestEffortNotifier,
    NullEventSink,
    TaskEvent,
    TaskEventKind,
    TaskEventSink,
)
from freepik_cli.tasks.lifecycle import HistoryContext, LifecycleResult, RunOptions, TaskLifecycle
from freepik_cli.tasks.materializer import (
    ArtifactMaterializer,
    expand_name_template,
    indexed_output_paths,
)
from freepik_cli.tasks.models import (
    Artifact,
    BatchReport,
    TaskEndpoint,
    normalize_artifacts,
    parse_task_snapshot,
)
from freepik_cli.tasks.poller import TaskPoller
from freepik_cli.tasks.submitter import TaskSubmitter
from freepik_cli.templates import TEMPLATES, expand_template, template_variables

logger = logging.getLogger(__name__)

MAX_COUNT = 10
MAX_SEED = 2_147_483_647
SUPPORTED_BATCH_COMMANDS = ("generate", "upscale", "remove-bg")
AI_GENERATED_THRESHOLD = 0.5
REMBG_TIMEOUT_SECONDS = 300
_DATA_URI_PREFIX_RE = re.compile(r"^data:image/\w+;base64,")

_EVENT_STYLES: dict[TaskEventKind, tuple[str, str]] = {
    TaskEventKind.LABEL: ("i", "cyan"),
    TaskEventKind.INFO: ("i", "cyan"),
    TaskEventKind.STATUS_CHANGED: ("…", "bright_black"),
    TaskEventKind.COMPLETED: ("✓", "green"),
    TaskEventKind.FAILED: ("✗", "red"),
    TaskEventKind.WARNING: ("!", "yellow"),
}


class ConsoleReporter:
    """Renders engine events as colored console lines."""

    def emit(self, event: TaskEvent) -> None:
        symbol, color = _EVENT_STYLES[event.kind]
        click.echo(f"{click.style(symbol, fg=color)} {event.message}", err=True)


@dataclass(slots=True)
class GlobalOptions:
    """Flags shared by every command."""

    verbose: bool = False
    json_output: bool = False


@dataclass(slots=True)
class GenerateCommand:
    """CLI input for text-to-image generation.

    ``template`` replaces ``prompt`` with an expanded prompt template.
    """

    prompt: str = ""
    model: str | None = None
    output: Path | None = None
    seed: int | None = None
    webhook: str | None = None
    download: bool = True
    open_after: bool = False
    count: int = 1
    smart: bool = False
    name_template: str | None = None
    template: str | None = None
    template_vars: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class VideoCommand:
    """CLI input for video generation."""

    model: str
    image: str | None = None
    prompt: str | None = None
    output: Path | None = None
    download: bool = True


@dataclass(slots=True)
class UpscaleCommand:
    """CLI input for creative upscaling."""

    image: str
    scale: str = "2x"
    optimized_for: str | None = None
    prompt: str | None = None
    creativity: int = 0
    hdr: int = 0
    resemblance: int = 0
    engine: str | None = None
    output: Path | None = None
    download: bool = True
    open_after: bool = False


@dataclass(slots=True)
class ImageEditCommand:
    """CLI input for single-image edits (relight, style-transfer, reimagine)."""

    kind: str
    image: str
    prompt: str | None = None
    style_image: str | None = None
    imagination: str | None = None
    aspect_ratio: str | None = None
    webhook: str | None = None
    output: Path | None = None
    download: bool = True
    open_after: bool = False


@dataclass(slots=True)
class ExpandCommand:
    """CLI input for outpainting; sides are in pixels."""

    image: str
    left: int = 0
    right: int = 0
    top: int = 0
    bottom: int = 0
    prompt: str | None = None
    engine: str = DEFAULT_EXPAND_ENGINE
    output: Path | None = None
    download: bool = True
    open_after: bool = False


@dataclass(slots=True)
class RemoveBgCommand:
    """CLI input for background removal."""

    image: str
    output: Path | None = None
    open_after: bool = False
    local: bool = False


@dataclass(slots=True)
class SearchCommand:
    """CLI input for stock content search."""

    query: str
    page: int = 1
    limit: int = 10
    order: str | None = "relevance"
    orientation: str | None = None
    content_type: str | None = None
    license: str | None = None
    ai_generated: bool = False


@dataclass(slots=True)
class LoraTrainCommand:
    """CLI input for LoRA training; ``kind`` is ``character`` or ``style``."""

    kind: str
    name: str
    images: str
    quality: str = "high"
    gender: str | None = None
    description: str | None = None


@dataclass(slots=True)
class SimpleTaskCommand:
    """CLI input for prompt-driven endpoints (music, sfx, icon)."""

    kind: str
    prompt: str
    output: Path | None = None
    download: bool = True
    body: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class StatusCommand:
    """CLI input for one-shot status lookup."""

    task_id: str
    endpoint: str
    output: Path | None = None


@dataclass(slots=True)
class BatchCommand:
    """CLI input for manifest-driven batch runs."""

    manifest_path: Path
    concurrency: int = 3


@dataclass(slots=True)
class HistoryCommand:
    """CLI input for history listing."""

    limit: int = 20
    search: str | None = None


@dataclass(slots=True)
class _Runtime:
    transport: ApiTransport
    lifecycle: TaskLifecycle
    events: TaskEventSink
    context: ApiContext


class FreepikCliController:
    """Coordinates configuration, the task engine and console rendering."""

    def __init__(
        self,
        options: GlobalOptions | None = None,
        *,
        settings: Settings | None = None,
        api_transport: Any = None,
        download_transport: Any = None,
    ) -> None:
        self.options = options or GlobalOptions()
        self._settings = settings
        self._api_transport = api_transport
        self._download_transport = download_transport

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = Settings.from_env()
            self._settings.validate()
        return self._settings

    async def generate(self, command: GenerateCommand) -> list[str]:
        template_warnings: list[str] = []
        if command.template:
            command.prompt, template_warnings = expand_template(
                command.template,
                command.template_vars,
            )
        if not command.prompt.strip():
            raise ValidationError(
                message="A prompt is required. Provide one as argument or use --template.",
            )
        store = ConfigStore(self.settings)
        model_name = command.model or store.load().default_model or DEFAULT_IMAGE_MODEL
        lines: list[str] = []
        if command.smart:
            model_name, reason = select_smart_model(command.prompt)
            lines.append(f"Smart selection: {model_name} (detected: {reason})")
        model = get_image_model(model_name)
        count = max(1, min(MAX_COUNT, command.count))

        async with self._runtime() as runtime:
            for warning in template_warnings:
                runtime.events.emit(TaskEvent(kind=TaskEventKind.WARNING, message=warning))
            if command.template:
                self._info(
                    runtime,
                    f'Template "{command.template}" expanded to: "{_preview(command.prompt, 80)}"',
                )
            self._info(
                runtime,
                f"Generating{f' {count} images' if count > 1 else ''} with {model_name}: "
                f'"{_preview(command.prompt, 60)}"',
            )
            if count == 1:
                result = await runtime.lifecycle.run(
                    model.endpoint,
                    _image_body(command, model_name, command.seed),
                    RunOptions(
                        output=command.output,
                        skip_download=not command.download,
                        history=HistoryContext(
                            command="generate",
                            model=model_name,
                            prompt=command.prompt,
                            seed=command.seed,
                            cost=cost_estimate(model_name),
                        ),
                    ),
                )
                if command.open_after and result.paths:
                    open_path(result.paths[0])
                return lines + self._result_lines(result)

            seeds = [random.randint(0, MAX_SEED) for _ in range(count)]  # noqa: S311
            outputs = _count_output_paths(command, model_name, seeds)
            self._info(runtime, f"Spawning {count} parallel generations with seeds: {seeds}")

            async def _one(seed: int, index: int) -> list[Path]:
                result = await runtime.lifecycle.run(
                    model.endpoint,
                    _image_body(command, model_name, seed),
                    RunOptions(
                        output=outputs[index],
                        skip_download=not command.download,
                        history=HistoryContext(
                            command="generate",
                            model=model_name,
                            prompt=command.prompt,
                            seed=seed,
                            cost=cost_estimate(model_name),
                        ),
                    ),
                )
                return result.paths

            report = await BatchScheduler(events=runtime.events).run_all(seeds, _one, count)
            all_paths = [path for outcome in report.outcomes if outcome.success for path in outcome.output]
            if command.open_after and all_paths:
                open_path(all_paths[0])
            if self.options.json_output:
                return [
                    _dump(
                        [
                            {
                                "index": outcome.index + 1,
                                "seed": seeds[outcome.index],
                                "success": outcome.success,
                                "paths": [str(path) for path in outcome.output or []],
                                "error": outcome.error,
                            }
                            for outcome in report.outcomes
                        ],
                    ),
                ]
            return [*lines, *self._batch_summary_lines(report)]

    async def video(self, command: VideoCommand) -> list[str]:
        model = get_video_model(command.model)
        if model.category == ModelCategory.IMAGE_TO_VIDEO and not command.image:
            raise ValidationError(
                message=(
                    f'Model "{command.model}" is image-to-video and requires --image. '
                    "For text-to-video, use --model wan-2.5-t2v"
                ),
            )
        if model.category == ModelCategory.TEXT_TO_VIDEO and not command.prompt:
            raise ValidationError(
                message=f'Model "{command.model}" is text-to-video and requires --prompt',
            )
        body: dict[str, Any] = {}
        if command.image:
            body["image"] = image_value(command.image)
        if command.prompt:
            body["prompt"] = command.prompt

        async with self._runtime() as runtime:
            result = await runtime.lifecycle.run(
                model.endpoint,
                body,
                RunOptions(
                    output=command.output,
                    skip_download=not command.download,
                    max_wait_seconds=self.settings.poll.long_max_wait_seconds,
                    label=f"Generating video with {command.model}...",
                    history=HistoryContext(
                        command="video",
                        model=command.model,
                        prompt=command.prompt,
                        cost=cost_estimate(command.model),
                    ),
                ),
            )
        return self._result_lines(result)

    async def upscale(self, command: UpscaleCommand) -> list[str]:
        body = _upscale_body(
            image=command.image,
            scale=command.scale,
            creativity=command.creativity,
            hdr=command.hdr,
            resemblance=command.resemblance,
        )
        if command.optimized_for:
            body["optimized_for"] = command.optimized_for
        if command.prompt:
            body["prompt"] = command.prompt
        if command.engine:
            body["engine"] = command.engine

        async with self._runtime() as runtime:
            result = await runtime.lifecycle.run(
                UPSCALE_ENDPOINT,
                body,
                RunOptions(
                    output=command.output,
                    skip_download=not command.download,
                    label=f"Upscaling image ({command.scale})...",
                    history=HistoryContext(command="upscale", cost=cost_estimate("upscale")),
                ),
            )
        if command.open_after and result.paths:
            open_path(result.paths[0])
        return self._result_lines(result)

    async def edit_image(self, command: ImageEditCommand) -> list[str]:
        endpoint, body, label = _image_edit_request(command)
        return await self._run_edit(
            endpoint,
            body,
            kind=command.kind,
            label=label,
            output=command.output,
            download=command.download,
            open_after=command.open_after,
        )

    async def expand(self, command: ExpandCommand) -> list[str]:
        endpoint = EXPAND_ENDPOINTS.get(command.engine)
        if endpoint is None:
            raise ValidationError(
                message=f'Invalid engine "{command.engine}". Use: {", ".join(EXPAND_ENDPOINTS)}',
            )
        sides = (command.left, command.right, command.top, command.bottom)
        if any(side < 0 for side in sides):
            raise ValidationError(message="Expand directions cannot be negative")
        if not any(sides):
            raise ValidationError(
                message=(
                    "At least one expand direction must be > 0. "
                    "Use --left, --right, --top, --bottom"
                ),
            )
        body: dict[str, Any] = {
            "image": image_value(command.image),
            "expand_left": command.left,
            "expand_right": command.right,
            "expand_up": command.top,
            "expand_down": command.bottom,
        }
        if command.prompt:
            body["prompt"] = command.prompt
        return await self._run_edit(
            endpoint,
            body,
            kind="expand",
            label=(
                f"Expanding image (L:{command.left} R:{command.right} "
                f"T:{command.top} B:{command.bottom}) with {command.engine}..."
            ),
            output=command.output,
            download=command.download,
            open_after=command.open_after,
        )

    async def remove_bg(self, command: RemoveBgCommand) -> list[str]:
        """Synchronous endpoint: the POST response carries the image, nothing is polled."""

        if command.local:
            return await self._remove_bg_locally(command)
        async with self._runtime() as runtime:
            self._info(runtime, "Removing background...")
            response = await runtime.transport.post(
                REMOVE_BG_PATH,
                {"image": image_value(command.image)},
            )
            if self.options.json_output:
                return [_dump(response)]
            paths = await _save_background_removal(
                runtime.lifecycle.materializer,
                response,
                command.output,
            )
        if not paths:
            return [_dump(response)]
        if command.open_after:
            open_path(paths[0])
        return [str(path) for path in paths]

    async def _remove_bg_locally(self, command: RemoveBgCommand) -> list[str]:
        executable = shutil.which("rembg")
        if executable is None:
            raise ValidationError(message="rembg not found. Install with: pip install rembg[cli]")
        output = command.output or (
            ConfigStore(self.settings).get_output_dir()
            / f"freepik-nobg-{int(time.time() * 1000)}.png"
        )
        self._event_sink().emit(
            TaskEvent(kind=TaskEventKind.INFO, message="Removing background locally with rembg..."),
        )
        await asyncio.to_thread(_run_rembg, executable, command.image, output)
        if command.open_after:
            open_path(output)
        if self.options.json_output:
            return [_dump({"paths": [str(output)]})]
        return [str(output)]

    async def describe(self, image: str) -> list[str]:
        body = {"image": image_value(image)}
        async with self._runtime() as runtime:
            self._info(runtime, "Analyzing image to generate prompt...")
            response = await runtime.transport.post(DESCRIBE_ENDPOINT.create_path, body)
            created = parse_task_snapshot(response)
            inline = _described_prompt(created.data)
            if inline:
                return [_dump(response)] if self.options.json_output else _prompt_lines(inline)
            if not created.task_id:
                raise RemoteApiError(
                    message="Describe response carried neither a prompt nor a task id",
                    body=response,
                )
            self._info(runtime, f"Task created: {created.task_id}")
            snapshot = await runtime.lifecycle.poller_factory().wait(
                DESCRIBE_ENDPOINT,
                created.task_id,
            )

        if self.options.json_output:
            return [_dump(snapshot.raw)]
        described = _described_prompt(snapshot.data)
        if described:
            return _prompt_lines(described)
        if snapshot.artifacts:
            return [
                f"  {artifact.extra.get('text') or artifact.url}" for artifact in snapshot.artifacts
            ]
        return [_dump(snapshot.raw)]

    async def classify(self, image: str) -> list[str]:
        async with self._runtime() as runtime:
            self._info(runtime, "Analyzing image...")
            response = await runtime.transport.post(CLASSIFY_PATH, {"image": image_value(image)})
        if self.options.json_output:
            return [_dump(response)]
        data = response.get("data")
        probability = data.get("ai_generated") if isinstance(data, dict) else None
        if isinstance(probability, bool) or not isinstance(probability, int | float):
            return [_dump(response)]
        verdict = "AI-generated" if probability >= AI_GENERATED_THRESHOLD else "Not AI-generated"
        return [f"{verdict} (probability: {probability * 100:.1f}%)"]

    async def search(self, command: SearchCommand) -> list[str]:
        params = _search_params(command)
        async with self._runtime() as runtime:
            self._info(runtime, f'Searching: "{command.query}"')
            response = await runtime.transport.get(SEARCH_PATH, params=params)
        if self.options.json_output:
            return [_dump(response)]

        results = [item for item in response.get("data") or [] if isinstance(item, dict)]
        if not results:
            return ["No results found."]
        meta = response.get("meta")
        pagination = meta.get("pagination") if isinstance(meta, dict) else None
        if not isinstance(pagination, dict):
            pagination = {}
        total = pagination.get("total", len(results))

        lines = [
            f"Found {total} results (showing {len(results)})",
            f"  {'Title':<40}  {'Author':<16}  {'Downloads':<10}  URL",
            f"  {'-' * 40}  {'-' * 16}  {'-' * 10}  {'-' * 30}",
        ]
        for item in results:
            author = item.get("author")
            author_name = author.get("name") if isinstance(author, dict) else None
            title = str(item.get("title") or "Untitled")[:40]
            downloads = item.get("downloads")
            downloads_text = "-" if downloads is None else str(downloads)
            lines.append(
                f"  {title:<40}  {str(author_name or 'Unknown')[:16]:<16}  "
                f"{downloads_text:<10}  {item.get('url') or ''}",
            )
        last_page = _as_int(pagination.get("last_page") or 1, "last_page")
        if command.page < last_page:
            lines.append(
                f"Page {command.page}/{last_page}. Use --page {command.page + 1} for next page.",
            )
        return lines

    async def lora_list(self) -> list[str]:
        async with self._runtime() as runtime:
            self._info(runtime, "Fetching LoRA models...")
            response = await runtime.transport.get(LORAS_PATH)
        if self.options.json_output:
            return [_dump(response)]
        loras = [item for item in response.get("data") or [] if isinstance(item, dict)]
        if not loras:
            return ["No LoRA models found. Train one with: freepik lora train-character <name>"]
        lines = [
            f"LoRA Models ({len(loras)})",
            f"  {'ID':<12}  {'Name':<24}  {'Category':<14}  {'Type':<12}  Status",
        ]
        for lora in loras:
            lines.append(
                f"  {str(lora.get('id', ''))[:12]:<12}  {str(lora.get('name') or '')[:24]:<24}  "
                f"{str(lora.get('category') or '-')[:14]:<14}  "
                f"{str(lora.get('type') or '-')[:12]:<12}  {str(lora.get('status') or '-')[:12]}",
            )
        return lines

    async def lora_train(self, command: LoraTrainCommand) -> list[str]:
        paths = {"character": LORA_TRAIN_CHARACTER_PATH, "style": LORA_TRAIN_STYLE_PATH}
        path = paths.get(command.kind)
        if path is None:
            raise ValidationError(message=f"Unsupported LoRA kind: {command.kind!r}")
        images = [part.strip() for part in command.images.split(",") if part.strip()]
        if not LORA_MIN_IMAGES <= len(images) <= LORA_MAX_IMAGES:
            raise ValidationError(
                message=(
                    f"{command.kind.capitalize()} LoRA requires "
                    f"{LORA_MIN_IMAGES}-{LORA_MAX_IMAGES} images, got {len(images)}"
                ),
            )
        body: dict[str, Any] = {
            "name": command.name,
            "images": [image_value(image) for image in images],
            "quality": command.quality,
        }
        if command.kind == "character":
            body["gender"] = command.gender or "neutral"
        if command.description:
            body["description"] = command.description

        async with self._runtime() as runtime:
            self._info(
                runtime,
                f'Training {command.kind} LoRA "{command.name}" with {len(images)} images...',
            )
            response = await runtime.transport.post(path, body)
        if self.options.json_output:
            return [_dump(response)]
        lines = [f'LoRA training started for "{command.name}"']
        data = response.get("data")
        if isinstance(data, dict) and data.get("id"):
            lines.append(f"LoRA ID: {data['id']}")
        lines.append("Training may take several minutes. Check status with: freepik lora list")
        return lines

    def models(self) -> list[str]:
        if self.options.json_output:
            return [_dump({name: asdict(info) for name, info in MODEL_INFO.items()})]
        lines: list[str] = []
        for group, title in (
            ("image", "Image Generation Models:"),
            ("video", "Video Models:"),
            ("editing", "Editing Tools:"),
        ):
            infos = [info for info in MODEL_INFO.values() if info.group == group]
            if not infos:
                continue
            lines.extend(
                [
                    "",
                    title,
                    f"  {'Name':<17}  {'Speed':<12}  {'Quality':<12}  {'Tier':<10}  Notes",
                    f"  {'-' * 17}  {'-' * 12}  {'-' * 12}  {'-' * 10}  {'-' * 30}",
                ],
            )
            lines.extend(
                f"  {info.name:<17}  {info.speed:<12}  {info.quality:<12}  "
                f"{info.tier:<10}  {info.notes}"
                for info in infos
            )
        lines.extend(["", "Use --json for machine-readable output."])
        return lines

    def templates(self) -> list[str]:
        if self.options.json_output:
            return [_dump(TEMPLATES)]
        lines = [
            "Prompt Templates",
            'Use with: freepik generate --template <name> --vars "key=value,key2=value2"',
            "",
        ]
        for name, template in TEMPLATES.items():
            lines.extend([f"  {name}", f"  {template}"])
            variables = template_variables(template)
            if variables:
                lines.append(f"  Variables: {', '.join(f'{{{var}}}' for var in variables)}")
            lines.append("")
        lines.append(
            'Example: freepik generate --template product-photo --vars "product=sneakers" '
            "-o sneakers.png",
        )
        return lines

    async def _run_edit(  # noqa: PLR0913
        self,
        endpoint: TaskEndpoint,
        body: dict[str, Any],
        *,
        kind: str,
        label: str,
        output: Path | None,
        download: bool,
        open_after: bool,
    ) -> list[str]:
        async with self._runtime() as runtime:
            result = await runtime.lifecycle.run(
                endpoint,
                body,
                RunOptions(
                    output=output,
                    skip_download=not download,
                    label=label,
                    history=HistoryContext(
                        command=kind,
                        prompt=body.get("prompt"),
                        cost=cost_estimate(kind),
                    ),
                ),
            )
        if open_after and result.paths:
            open_path(result.paths[0])
        return self._result_lines(result)

    async def simple_task(self, command: SimpleTaskCommand) -> list[str]:
        endpoints = {"music": MUSIC_ENDPOINT, "sfx": SFX_ENDPOINT, "icon": ICON_ENDPOINT}
        endpoint = endpoints.get(command.kind)
        if endpoint is None:
            raise ValidationError(message=f"Unsupported task kind: {command.kind!r}")
        if not command.prompt.strip():
            raise ValidationError(message="A prompt is required.")
        body = {"prompt": command.prompt, **command.body}
        long_running = command.kind in {"music", "sfx"}

        async with self._runtime() as runtime:
            result = await runtime.lifecycle.run(
                endpoint,
                body,
                RunOptions(
                    output=command.output,
                    skip_download=not command.download,
                    max_wait_seconds=self.settings.poll.long_max_wait_seconds
                    if long_running
                    else None,
                    label=f'Generating {command.kind}: "{_preview(command.prompt, 60)}"',
                    history=HistoryContext(command=command.kind, prompt=command.prompt),
                ),
            )
        return self._result_lines(result)

    async def status(self, command: StatusCommand) -> list[str]:
        endpoint = TaskEndpoint.same(command.endpoint)
        async with self._runtime() as runtime:
            self._info(runtime, f"Checking task {command.task_id}...")
            response = await runtime.transport.get(endpoint.status_path(command.task_id))
            if self.options.json_output:
                return [_dump(response)]
            snapshot = parse_task_snapshot(response, task_id=command.task_id)
            lines: list[str] = []
            if snapshot.is_completed:
                count = len(snapshot.artifacts)
                lines.append(f"Task completed ({count} file{'s' if count != 1 else ''})")
                lines.extend(f"  URL: {artifact.url}" for artifact in snapshot.artifacts)
                if command.output is not None and snapshot.artifacts:
                    paths = await runtime.lifecycle.materializer.materialize(
                        snapshot.artifacts,
                        command.output,
                    )
                    lines.extend(f"Saved to {path}" for path in paths)
            elif snapshot.is_failed:
                lines.append("Task failed")
                lines.append(_dump(snapshot.data))
            elif snapshot.status in {"PENDING", "PROCESSING"}:
                lines.append(f"Task is {snapshot.status.lower()}")
                lines.append("Run this command again to check, or wait for webhook notification")
            else:
                lines.append(f"Task status: {snapshot.status}")
                lines.append(_dump(snapshot.data))
            return lines

    async def batch(self, command: BatchCommand) -> list[str]:
        items = load_manifest(command.manifest_path)
        concurrency = max(1, command.concurrency)

        async with self._runtime() as runtime:
            self._info(
                runtime,
                f"Loaded {len(items)} items from manifest (concurrency: {concurrency})",
            )

            async def _worker(item: dict[str, Any], index: int) -> str:
                try:
                    paths = await self._run_manifest_item(runtime, item)
                except FreepikError as exc:
                    raise FreepikError(
                        message=f"{item.get('command')}: {exc}",
                        code=exc.code,
                    ) from exc
                return ", ".join(str(path) for path in paths)

            report = await BatchScheduler(events=runtime.events).run_all(
                items,
                _worker,
                concurrency,
            )

        if self.options.json_output:
            return [
                _dump(
                    [
                        {
                            "index": outcome.index + 1,
                            "success": outcome.success,
                            "output": outcome.output,
                            "error": outcome.error,
                        }
                        for outcome in report.outcomes
                    ],
                ),
            ]
        return self._batch_summary_lines(report)

    async def _run_manifest_item(
        self,
        runtime: _Runtime,
        item: dict[str, Any],
    ) -> list[Path]:
        command = item.get("command")
        output = Path(item["output"]) if item.get("output") else None
        lifecycle = runtime.lifecycle
        if command == "generate":
            prompt = item.get("prompt")
            if not prompt:
                raise ValidationError(message='Missing "prompt" field')
            model_name = str(item.get("model") or DEFAULT_IMAGE_MODEL)
            model = get_image_model(model_name)
            body: dict[str, Any] = {"prompt": prompt}
            if item.get("seed") is not None:
                body["seed"] = _as_int(item["seed"], "seed")
            result = await lifecycle.run(
                model.endpoint,
                body,
                RunOptions(
                    output=output,
                    history=HistoryContext(
                        command="generate",
                        model=model_name,
                        prompt=str(prompt),
                        seed=body.get("seed"),
                        cost=cost_estimate(model_name),
                    ),
                ),
            )
            return result.paths
        if command == "upscale":
            image = item.get("image")
            if not image:
                raise ValidationError(message='Missing "image" field')
            body = _upscale_body(image=str(image), scale=str(item.get("scale") or "2x"))
            result = await lifecycle.run(
                UPSCALE_ENDPOINT,
                body,
                RunOptions(
                    output=output,
                    history=HistoryContext(command="upscale", cost=cost_estimate("upscale")),
                ),
            )
            return result.paths
        if command == "remove-bg":
            image = item.get("image")
            if not image:
                raise ValidationError(message='Missing "image" field')
            response = await runtime.transport.post(
                REMOVE_BG_PATH,
                {"image": image_value(str(image))},
            )
            paths = await _save_background_removal(lifecycle.materializer, response, output)
            if not paths:
                raise RemoteApiError(
                    message="Background removal response carried no image",
                    body=response,
                )
            return paths
        raise ValidationError(
            message=(
                f'Unknown command "{command}". '
                f"Supported: {', '.join(SUPPORTED_BATCH_COMMANDS)}"
            ),
        )

    async def credits(self) -> list[str]:
        async with self._runtime() as runtime:
            try:
                await runtime.transport.get(RATE_LIMIT_PROBE_PATH)
            except RemoteApiError as exc:
                logger.debug("Rate-limit probe returned %s", exc.status_code)
            snapshot = runtime.context.rate_limit

        if self.options.json_output:
            return [
                _dump(
                    {
                        "rate_limit": snapshot.to_dict(),
                        "models": {
                            name: {"tier": info.tier, "cost": info.cost_estimate}
                            for name, info in MODEL_INFO.items()
                        },
                    },
                ),
            ]

        lines = ["Freepik API Status"]
        if snapshot.known:
            lines.append(f"  Rate limit:    {snapshot.remaining}/{snapshot.limit} requests remaining")
            if snapshot.reset_seconds is not None:
                lines.append(f"  Resets in:     {snapshot.reset_seconds} seconds")
        else:
            lines.append("  Rate limit:    (make a request first to see limits)")
        for group, title in (("image", "Image models"), ("video", "Video models"), ("editing", "Editing")):
            lines.append(f"{title}:")
            for info in MODEL_INFO.values():
                if info.group == group:
                    lines.append(f"  {info.name:<17}{info.tier:<9}{info.cost_estimate}")
        return lines

    def history(self, command: HistoryCommand) -> list[str]:
        log = HistoryLog(self.settings.history_path)
        entries = log.search(command.search, limit=max(1, command.limit))
        if self.options.json_output:
            return [_dump([json.loads(entry.to_json()) for entry in entries])]
        if not entries:
            return [f"No history found. History is stored at: {log.path}"]
        lines = [f"Generation History (last {len(entries)})"]
        lines.append(f"  {'Time':<20}  {'Command':<12}  {'Model':<16}  Prompt")
        for entry in entries:
            lines.append(
                f"  {entry.timestamp[:19]:<20}  {entry.command[:12]:<12}  "
                f"{(entry.model or '-')[:16]:<16}  {_preview(entry.prompt or '-', 36)}",
            )
        return lines

    def open_last(self, target: str | None) -> list[str]:
        if target:
            open_path(target)
            return [f"Opening: {target}"]
        last = ConfigStore(self.settings).load().last_output_path
        if not last:
            raise ValidationError(
                message="No recent file found. Generate something first, or specify a file path.",
            )
        open_path(last)
        return [f"Opening last generated: {last}"]

    def show_config(self) -> list[str]:
        store = ConfigStore(self.settings)
        config = store.load()
        key = self.settings.api_key_env or config.api_key
        source = "env" if self.settings.api_key_env else "config"
        return [
            f"Config file: {store.path}",
            f"API key:     {mask_api_key(key) + f' ({source})' if key else '(not set)'}",
            f"Output dir:  {config.output_dir or '.'}",
            f"Model:       {config.default_model or DEFAULT_IMAGE_MODEL}",
            f"Generations: {config.generations}",
        ]

    def set_config(self, **changes: object) -> list[str]:
        if "default_model" in changes:
            get_image_model(str(changes["default_model"]))
        ConfigStore(self.settings).update(**changes)
        return [f"Saved {', '.join(sorted(changes))} to {self.settings.config_path}"]

    @asynccontextmanager
    async def _runtime(self) -> AsyncIterator[_Runtime]:
        settings = self.settings
        store = ConfigStore(settings)
        context = ApiContext(
            api_key=store.get_api_key(),
            base_url=settings.http.base_url,
            verbose=self.options.verbose,
        )
        events = self._event_sink()
        notifier = BestEffortNotifier()
        transport = ApiTransport(
            context,
            timeout_seconds=settings.http.request_timeout_seconds,
            transport=self._api_transport,
        )
        fetcher = ArtifactFetcher(
            timeout_seconds=settings.http.download_timeout_seconds,
            max_retries=settings.http.download_max_retries,
            transport=self._download_transport,
        )

        def _poller() -> TaskPoller:
            return TaskPoller(
                transport,
                interval_seconds=settings.poll.interval_seconds,
                max_wait_seconds=settings.poll.max_wait_seconds,
                events=events,
            )

        lifecycle = TaskLifecycle(
            submitter=TaskSubmitter(transport),
            poller_factory=_poller,
            materializer=ArtifactMaterializer(
                fetcher,
                output_dir=store.get_output_dir,
                tracker=store,
                events=events,
                notifier=notifier,
            ),
            events=events,
            history=HistoryLog(settings.history_path),
            notifier=notifier,
        )
        try:
            yield _Runtime(
                transport=transport,
                lifecycle=lifecycle,
                events=events,
                context=context,
            )
        finally:
            await transport.aclose()
            await fetcher.aclose()

    def _event_sink(self) -> TaskEventSink:
        return NullEventSink() if self.options.json_output else ConsoleReporter()

    def _info(self, runtime: _Runtime, message: str) -> None:
        runtime.events.emit(TaskEvent(kind=TaskEventKind.INFO, message=message))

    def _result_lines(self, result: LifecycleResult) -> list[str]:
        if self.options.json_output:
            return [
                _dump(
                    {
                        "task_id": result.task_id,
                        "status": result.snapshot.status,
                        "poll_path": result.poll_path,
                        "paths": [str(path) for path in result.paths],
                        "elapsed_seconds": round(result.elapsed_seconds, 3),
                    },
                ),
            ]
        return [str(path) for path in result.paths]

    def _batch_summary_lines(self, report: BatchReport) -> list[str]:
        lines = [f"Batch complete in {report.elapsed_seconds:.1f}s"]
        summary = f"  {report.succeeded} succeeded"
        if report.failed:
            summary += f"  {report.failed} failed"
        lines.append(summary)
        return lines


def load_manifest(path: Path) -> list[dict[str, Any]]:
    """Load a JSON array of batch items."""

    if path.suffix.lower() != ".json":
        raise ValidationError(
            message=(
                f'Unsupported manifest format "{path.suffix}". Use a .json file. Example:\n'
                '[\n  { "command": "generate", "prompt": "cat in space", "output": "cat.png" }\n]'
            ),
        )
    try:
        parsed = json.loads(path.read_text("utf-8"))
    except OSError as exc:
        raise ValidationError(message=f"Cannot read manifest {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ValidationError(message=f"Manifest {path} is not valid JSON: {exc}") from exc
    if not isinstance(parsed, list) or not all(isinstance(item, dict) for item in parsed):
        raise ValidationError(message="Manifest must be a JSON array of items")
    return parsed


def _image_body(command: GenerateCommand, model_name: str, seed: int | None) -> dict[str, Any]:
    body: dict[str, Any] = {"prompt": command.prompt}
    for key, value in command.extra.items():
        if value is None:
            continue
        if model_name == "mystic" and key == "style":
            body["styling"] = {"style": value}
            continue
        body[key] = value
    if seed is not None:
        body["seed"] = seed
    if command.webhook:
        body["webhook"] = command.webhook
    return body


def _upscale_body(
    *,
    image: str,
    scale: str,
    creativity: int = 0,
    hdr: int = 0,
    resemblance: int = 0,
) -> dict[str, Any]:
    factor = UPSCALE_FACTORS.get(scale)
    if factor is None:
        raise ValidationError(
            message=f'Invalid scale "{scale}". Use: {", ".join(UPSCALE_FACTORS)}',
        )
    return {
        "image": image_value(image),
        "scale_factor": factor,
        "creativity": creativity,
        "hdr": hdr,
        "resemblance": resemblance,
    }


def _image_edit_request(command: ImageEditCommand) -> tuple[TaskEndpoint, dict[str, Any], str]:
    """Validate an edit and return its endpoint, request body and progress label."""

    if command.kind == "relight":
        body: dict[str, Any] = {"image": image_value(command.image)}
        if command.prompt:
            body["prompt"] = command.prompt
        return RELIGHT_ENDPOINT, body, "Relighting image..."
    if command.kind == "style-transfer":
        if not command.style_image:
            raise ValidationError(message="Style transfer requires a --style reference image")
        body = {
            "image": image_value(command.image),
            "style_image": image_value(command.style_image),
        }
        return STYLE_TRANSFER_ENDPOINT, body, "Applying style transfer..."
    if command.kind == "reimagine":
        if command.imagination and command.imagination not in REIMAGINE_IMAGINATION_LEVELS:
            raise ValidationError(
                message=(
                    f'Invalid imagination level "{command.imagination}". '
                    f"Use: {', '.join(REIMAGINE_IMAGINATION_LEVELS)}"
                ),
            )
        body = {"image": image_value(command.image)}
        optional = {
            "prompt": command.prompt,
            "imagination": command.imagination,
            "aspect_ratio": command.aspect_ratio,
            "webhook": command.webhook,
        }
        body.update({key: value for key, value in optional.items() if value})
        return REIMAGINE_ENDPOINT, body, "Reimagining image..."
    raise ValidationError(message=f"Unsupported edit kind: {command.kind!r}")


async def _save_background_removal(
    materializer: ArtifactMaterializer,
    response: dict[str, Any],
    output: Path | None,
) -> list[Path]:
    """Save the image a remove-background response carries: URL, inline base64 or ``generated``.

    Returns an empty list when the response holds none of them.
    """

    data = response.get("data")
    if not isinstance(data, dict):
        return []
    image_url = data.get("image_url")
    if isinstance(image_url, str) and image_url:
        artifacts = [Artifact(url=image_url)]
    elif isinstance(data.get("base64"), str) and data["base64"]:
        try:
            content = base64.b64decode(_DATA_URI_PREFIX_RE.sub("", data["base64"]), validate=True)
        except binascii.Error as exc:
            raise RemoteApiError(
                message=f"Invalid base64 image in response: {exc}",
                body=response,
            ) from exc
        destination = output or materializer.default_path("freepik-nobg")
        return [await materializer.save_bytes(content, destination)]
    elif isinstance(data.get("generated"), list) and data["generated"]:
        artifacts = normalize_artifacts(data["generated"][:1])
    else:
        return []
    return await materializer.materialize(
        artifacts,
        output or materializer.default_path("freepik-nobg"),
    )


def _run_rembg(executable: str, source: str, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    try:
        completed = subprocess.run(  # noqa: S603
            [executable, "i", source, str(destination)],
            check=False,
            capture_output=True,
            text=True,
            timeout=REMBG_TIMEOUT_SECONDS,
        )
    except subprocess.TimeoutExpired as exc:
        raise FreepikError(
            message=f"rembg timed out after {REMBG_TIMEOUT_SECONDS}s",
            code="rembg_failed",
        ) from exc
    except OSError as exc:
        raise FreepikError(message=f"rembg failed to start: {exc}", code="rembg_failed") from exc
    if completed.returncode != 0:
        detail = completed.stderr.strip() or f"exit code {completed.returncode}"
        raise FreepikError(message=f"rembg failed: {detail}", code="rembg_failed")


def _described_prompt(data: dict[str, Any]) -> str | None:
    for key in ("prompt", "description", "text"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _prompt_lines(prompt: str) -> list[str]:
    return ["Generated prompt:", "", f"  {prompt}", ""]


def _search_params(command: SearchCommand) -> dict[str, str]:
    params = {"term": command.query, "page": str(command.page), "limit": str(command.limit)}
    if command.order:
        params["order"] = command.order
    if command.orientation:
        params["filters[orientation][photo]"] = command.orientation
    if command.content_type:
        params["filters[content_type][photo]"] = "1" if command.content_type == "photo" else "0"
    if command.license:
        params["filters[license][freemium]"] = "1" if command.license == "freemium" else "0"
    if command.ai_generated:
        params["filters[ai-generated]"] = "1"
    return params


def _count_output_paths(
    command: GenerateCommand,
    model_name: str,
    seeds: list[int],
) -> list[Path | None]:
    if command.name_template:
        ext = command.output.suffix.lstrip(".") if command.output and command.output.suffix else "png"
        timestamp = int(time.time() * 1000)
        return [
            Path(
                expand_name_template(
                    command.name_template,
                    prompt=command.prompt,
                    model=model_name,
                    seed=seed,
                    ext=ext,
                    n=position + 1,
                    timestamp=timestamp,
                ),
            )
            for position, seed in enumerate(seeds)
        ]
    if command.output is not None:
        return list(indexed_output_paths(command.output, len(seeds)))
    return [None] * len(seeds)


def _as_int(value: object, name: str) -> int:
    try:
        return int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError) as exc:
        raise ValidationError(message=f"Invalid {name}: {value!r}") from exc


def _preview(text: str, limit: int) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


def _dump(payload: object) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, default=str)
