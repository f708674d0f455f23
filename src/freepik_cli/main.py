"""CLI entrypoint for freepik-cli."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import rich_click as click

from freepik_cli import __version__
from freepik_cli.catalog import (
    DEFAULT_EXPAND_ENGINE,
    DEFAULT_VIDEO_MODEL,
    EXPAND_ENDPOINTS,
    REIMAGINE_IMAGINATION_LEVELS,
    TEXT_TO_IMAGE_MODELS,
    UPSCALE_FACTORS,
)
from freepik_cli.controllers import (
    BatchCommand,
    ExpandCommand,
    FreepikCliController,
    GenerateCommand,
    GlobalOptions,
    HistoryCommand,
    ImageEditCommand,
    LoraTrainCommand,
    RemoveBgCommand,
    SearchCommand,
    SimpleTaskCommand,
    StatusCommand,
    UpscaleCommand,
    VideoCommand,
)
from freepik_cli.tasks.errors import FreepikError

click.rich_click.USE_MARKDOWN = True
T = TypeVar("T")


@click.group()
@click.version_option(version=__version__, prog_name="freepik")
@click.option("--verbose", is_flag=True, default=False, help="Log HTTP requests and responses.")
@click.option("--json", "json_output", is_flag=True, default=False, help="Print JSON output.")
@click.pass_context
def freepik(ctx: click.Context, verbose: bool, json_output: bool) -> None:
    """Generate images, video and audio with the **Freepik** API."""

    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    if ctx.obj is None:
        ctx.obj = FreepikCliController()
    ctx.obj.options = GlobalOptions(verbose=verbose, json_output=json_output)


@freepik.command("generate")
@click.argument("prompt", required=False, default="")
@click.option(
    "--model",
    type=click.Choice(list(TEXT_TO_IMAGE_MODELS)),
    default=None,
    help="Model to use. Defaults to the configured model.",
)
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None, help="Output file.")
@click.option("--seed", type=click.IntRange(min=0), default=None, help="Seed for reproducibility.")
@click.option("--aspect-ratio", default=None, help="Aspect ratio, for example square_1_1.")
@click.option("--style", default=None, help="Style preset (mystic only).")
@click.option("--webhook", default=None, help="Webhook URL for async notification.")
@click.option("--no-download", is_flag=True, default=False, help="Print the task id and exit.")
@click.option("--open", "open_after", is_flag=True, default=False, help="Open the result.")
@click.option(
    "--count",
    type=click.IntRange(min=1, max=10),
    default=1,
    show_default=True,
    help="Number of parallel generations with random seeds.",
)
@click.option("--smart", is_flag=True, default=False, help="Pick the model from the prompt.")
@click.option(
    "--name-template",
    default=None,
    help="Output name template: {prompt} {model} {seed} {n} {timestamp} {ext}.",
)
@click.option("--template", default=None, help="Prompt template name (see `freepik templates`).")
@click.option("--vars", "template_vars", default=None, help="Template variables: k=v,k2=v2.")
@click.pass_obj
def generate(  # noqa: PLR0913
    controller: FreepikCliController,
    prompt: str,
    model: str | None,
    output: Path | None,
    seed: int | None,
    aspect_ratio: str | None,
    style: str | None,
    webhook: str | None,
    no_download: bool,
    open_after: bool,
    count: int,
    smart: bool,
    name_template: str | None,
    template: str | None,
    template_vars: str | None,
) -> None:
    """Generate images from a text prompt or a prompt template."""

    _emit_lines(
        _run(
            lambda: controller.generate(
                GenerateCommand(
                    prompt=prompt,
                    model=model,
                    output=output,
                    seed=seed,
                    webhook=webhook,
                    download=not no_download,
                    open_after=open_after,
                    count=count,
                    smart=smart,
                    name_template=name_template,
                    template=template,
                    template_vars=template_vars,
                    extra={"aspect_ratio": aspect_ratio, "style": style},
                ),
            ),
        ),
    )


@freepik.command("video")
@click.option("--model", default=DEFAULT_VIDEO_MODEL, show_default=True, help="Video model.")
@click.option("--image", default=None, help="Source image URL or local path.")
@click.option("--prompt", default=None, help="Prompt for text-to-video models.")
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None, help="Output file.")
@click.option("--no-download", is_flag=True, default=False, help="Print the task id and exit.")
@click.pass_obj
def video(
    controller: FreepikCliController,
    model: str,
    image: str | None,
    prompt: str | None,
    output: Path | None,
    no_download: bool,
) -> None:
    """Generate a video from an image or a prompt."""

    _emit_lines(
        _run(
            lambda: controller.video(
                VideoCommand(
                    model=model,
                    image=image,
                    prompt=prompt,
                    output=output,
                    download=not no_download,
                ),
            ),
        ),
    )


@freepik.command("upscale")
@click.argument("image")
@click.option(
    "--scale",
    type=click.Choice(list(UPSCALE_FACTORS)),
    default="2x",
    show_default=True,
    help="Upscale factor.",
)
@click.option("--optimized-for", default=None, help="Optimization preset.")
@click.option("--prompt", default=None, help="Optional guidance prompt.")
@click.option("--creativity", type=click.IntRange(-10, 10), default=0, show_default=True)
@click.option("--hdr", type=click.IntRange(-10, 10), default=0, show_default=True)
@click.option("--resemblance", type=click.IntRange(-10, 10), default=0, show_default=True)
@click.option("--engine", default=None, help="Upscaler engine.")
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None, help="Output file.")
@click.option("--no-download", is_flag=True, default=False, help="Print the task id and exit.")
@click.option("--open", "open_after", is_flag=True, default=False, help="Open the result.")
@click.pass_obj
def upscale(  # noqa: PLR0913
    controller: FreepikCliController,
    image: str,
    scale: str,
    optimized_for: str | None,
    prompt: str | None,
    creativity: int,
    hdr: int,
    resemblance: int,
    engine: str | None,
    output: Path | None,
    no_download: bool,
    open_after: bool,
) -> None:
    """Upscale an image with the creative upscaler."""

    _emit_lines(
        _run(
            lambda: controller.upscale(
                UpscaleCommand(
                    image=image,
                    scale=scale,
                    optimized_for=optimized_for,
                    prompt=prompt,
                    creativity=creativity,
                    hdr=hdr,
                    resemblance=resemblance,
                    engine=engine,
                    output=output,
                    download=not no_download,
                    open_after=open_after,
                ),
            ),
        ),
    )


@freepik.command("relight")
@click.argument("image")
@click.option("--prompt", default=None, help='Lighting description, e.g. "golden hour".')
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None, help="Output file.")
@click.option("--no-download", is_flag=True, default=False, help="Print the task id and exit.")
@click.option("--open", "open_after", is_flag=True, default=False, help="Open the result.")
@click.pass_obj
def relight(  # noqa: PLR0913
    controller: FreepikCliController,
    image: str,
    prompt: str | None,
    output: Path | None,
    no_download: bool,
    open_after: bool,
) -> None:
    """Change the lighting of an image."""

    _emit_lines(
        _run(
            lambda: controller.edit_image(
                ImageEditCommand(
                    kind="relight",
                    image=image,
                    prompt=prompt,
                    output=output,
                    download=not no_download,
                    open_after=open_after,
                ),
            ),
        ),
    )


@freepik.command("expand")
@click.argument("image")
@click.option("--left", type=click.IntRange(0, 2048), default=0, help="Pixels to add on the left.")
@click.option("--right", type=click.IntRange(0, 2048), default=0, help="Pixels to add right.")
@click.option("--top", type=click.IntRange(0, 2048), default=0, help="Pixels to add on top.")
@click.option("--bottom", type=click.IntRange(0, 2048), default=0, help="Pixels to add below.")
@click.option("--prompt", default=None, help="Guidance for the new area.")
@click.option(
    "--engine",
    type=click.Choice(list(EXPAND_ENDPOINTS)),
    default=DEFAULT_EXPAND_ENGINE,
    show_default=True,
    help="Outpainting engine.",
)
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None, help="Output file.")
@click.option("--no-download", is_flag=True, default=False, help="Print the task id and exit.")
@click.option("--open", "open_after", is_flag=True, default=False, help="Open the result.")
@click.pass_obj
def expand(  # noqa: PLR0913
    controller: FreepikCliController,
    image: str,
    left: int,
    right: int,
    top: int,
    bottom: int,
    prompt: str | None,
    engine: str,
    output: Path | None,
    no_download: bool,
    open_after: bool,
) -> None:
    """Expand (outpaint) an image."""

    _emit_lines(
        _run(
            lambda: controller.expand(
                ExpandCommand(
                    image=image,
                    left=left,
                    right=right,
                    top=top,
                    bottom=bottom,
                    prompt=prompt,
                    engine=engine,
                    output=output,
                    download=not no_download,
                    open_after=open_after,
                ),
            ),
        ),
    )


@freepik.command("style-transfer")
@click.argument("image")
@click.option("--style", "style_image", required=True, help="Style reference image URL or path.")
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None, help="Output file.")
@click.option("--no-download", is_flag=True, default=False, help="Print the task id and exit.")
@click.option("--open", "open_after", is_flag=True, default=False, help="Open the result.")
@click.pass_obj
def style_transfer(  # noqa: PLR0913
    controller: FreepikCliController,
    image: str,
    style_image: str,
    output: Path | None,
    no_download: bool,
    open_after: bool,
) -> None:
    """Transfer the style of a reference image to IMAGE."""

    _emit_lines(
        _run(
            lambda: controller.edit_image(
                ImageEditCommand(
                    kind="style-transfer",
                    image=image,
                    style_image=style_image,
                    output=output,
                    download=not no_download,
                    open_after=open_after,
                ),
            ),
        ),
    )


@freepik.command("reimagine")
@click.argument("image")
@click.option("--prompt", default=None, help="Guidance for the new version.")
@click.option(
    "--imagination",
    type=click.Choice(REIMAGINE_IMAGINATION_LEVELS),
    default=None,
    help="How far to stray from the source.",
)
@click.option("--aspect-ratio", default=None, help="Aspect ratio, e.g. widescreen_16_9.")
@click.option("--webhook", default=None, help="Webhook URL for async notification.")
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None, help="Output file.")
@click.option("--no-download", is_flag=True, default=False, help="Print the task id and exit.")
@click.option("--open", "open_after", is_flag=True, default=False, help="Open the result.")
@click.pass_obj
def reimagine(  # noqa: PLR0913
    controller: FreepikCliController,
    image: str,
    prompt: str | None,
    imagination: str | None,
    aspect_ratio: str | None,
    webhook: str | None,
    output: Path | None,
    no_download: bool,
    open_after: bool,
) -> None:
    """Reimagine an image in a different style."""

    _emit_lines(
        _run(
            lambda: controller.edit_image(
                ImageEditCommand(
                    kind="reimagine",
                    image=image,
                    prompt=prompt,
                    imagination=imagination,
                    aspect_ratio=aspect_ratio,
                    webhook=webhook,
                    output=output,
                    download=not no_download,
                    open_after=open_after,
                ),
            ),
        ),
    )


@freepik.command("remove-bg")
@click.argument("image")
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None, help="Output file.")
@click.option("--local", is_flag=True, default=False, help="Use a local rembg install instead.")
@click.option("--open", "open_after", is_flag=True, default=False, help="Open the result.")
@click.pass_obj
def remove_bg(
    controller: FreepikCliController,
    image: str,
    output: Path | None,
    local: bool,
    open_after: bool,
) -> None:
    """Remove the background from an image."""

    _emit_lines(
        _run(
            lambda: controller.remove_bg(
                RemoveBgCommand(image=image, output=output, open_after=open_after, local=local),
            ),
        ),
    )


@freepik.command("describe")
@click.argument("image")
@click.pass_obj
def describe(controller: FreepikCliController, image: str) -> None:
    """Turn an image into a text prompt."""

    _emit_lines(_run(lambda: controller.describe(image)))


@freepik.command("classify")
@click.argument("image")
@click.pass_obj
def classify(controller: FreepikCliController, image: str) -> None:
    """Estimate whether an image is AI-generated."""

    _emit_lines(_run(lambda: controller.classify(image)))


@freepik.command("search")
@click.argument("query")
@click.option("--page", type=click.IntRange(min=1), default=1, show_default=True)
@click.option("--limit", type=click.IntRange(1, 100), default=10, show_default=True)
@click.option(
    "--order",
    type=click.Choice(["relevance", "recent"]),
    default="relevance",
    show_default=True,
)
@click.option(
    "--orientation",
    type=click.Choice(["landscape", "portrait", "square"]),
    default=None,
)
@click.option("--type", "content_type", type=click.Choice(["photo", "psd", "vector"]), default=None)
@click.option("--license", "license_", type=click.Choice(["freemium", "premium"]), default=None)
@click.option("--ai-generated", is_flag=True, default=False, help="Only AI-generated content.")
@click.pass_obj
def search(  # noqa: PLR0913
    controller: FreepikCliController,
    query: str,
    page: int,
    limit: int,
    order: str,
    orientation: str | None,
    content_type: str | None,
    license_: str | None,
    ai_generated: bool,
) -> None:
    """Search Freepik stock content."""

    _emit_lines(
        _run(
            lambda: controller.search(
                SearchCommand(
                    query=query,
                    page=page,
                    limit=limit,
                    order=order,
                    orientation=orientation,
                    content_type=content_type,
                    license=license_,
                    ai_generated=ai_generated,
                ),
            ),
        ),
    )


@freepik.group()
def lora() -> None:
    """Manage LoRA models."""


@lora.command("list")
@click.pass_obj
def lora_list(controller: FreepikCliController) -> None:
    """List available LoRA models."""

    _emit_lines(_run(controller.lora_list))


@lora.command("train-character")
@click.argument("name")
@click.option("--images", required=True, help="Comma-separated image paths or URLs (8-20).")
@click.option("--quality", type=click.Choice(["high", "ultra"]), default="high", show_default=True)
@click.option(
    "--gender",
    type=click.Choice(["male", "female", "neutral", "custom"]),
    default="neutral",
    show_default=True,
)
@click.option("--description", default=None, help="Description of the character.")
@click.pass_obj
def lora_train_character(  # noqa: PLR0913
    controller: FreepikCliController,
    name: str,
    images: str,
    quality: str,
    gender: str,
    description: str | None,
) -> None:
    """Train a character LoRA."""

    _emit_lines(
        _run(
            lambda: controller.lora_train(
                LoraTrainCommand(
                    kind="character",
                    name=name,
                    images=images,
                    quality=quality,
                    gender=gender,
                    description=description,
                ),
            ),
        ),
    )


@lora.command("train-style")
@click.argument("name")
@click.option("--images", required=True, help="Comma-separated image paths or URLs (8-20).")
@click.option("--quality", type=click.Choice(["high", "ultra"]), default="high", show_default=True)
@click.option("--description", default=None, help="Description of the style.")
@click.pass_obj
def lora_train_style(
    controller: FreepikCliController,
    name: str,
    images: str,
    quality: str,
    description: str | None,
) -> None:
    """Train a style LoRA."""

    _emit_lines(
        _run(
            lambda: controller.lora_train(
                LoraTrainCommand(
                    kind="style",
                    name=name,
                    images=images,
                    quality=quality,
                    description=description,
                ),
            ),
        ),
    )


@freepik.command("music")
@click.argument("prompt")
@click.option("--duration", type=click.IntRange(min=1), default=None, help="Length in seconds.")
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None, help="Output file.")
@click.option("--no-download", is_flag=True, default=False, help="Print the task id and exit.")
@click.pass_obj
def music(
    controller: FreepikCliController,
    prompt: str,
    duration: int | None,
    output: Path | None,
    no_download: bool,
) -> None:
    """Generate a music track from a prompt."""

    body = {"music_length_seconds": duration} if duration else {}
    _emit_lines(
        _run(
            lambda: controller.simple_task(
                SimpleTaskCommand(
                    kind="music",
                    prompt=prompt,
                    output=output,
                    download=not no_download,
                    body=body,
                ),
            ),
        ),
    )


@freepik.command("sfx")
@click.argument("prompt")
@click.option("--duration", type=click.FloatRange(min=0.5), default=None, help="Length in seconds.")
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None, help="Output file.")
@click.option("--no-download", is_flag=True, default=False, help="Print the task id and exit.")
@click.pass_obj
def sfx(
    controller: FreepikCliController,
    prompt: str,
    duration: float | None,
    output: Path | None,
    no_download: bool,
) -> None:
    """Generate a sound effect from a prompt."""

    body = {"duration_seconds": duration} if duration else {}
    _emit_lines(
        _run(
            lambda: controller.simple_task(
                SimpleTaskCommand(
                    kind="sfx",
                    prompt=prompt,
                    output=output,
                    download=not no_download,
                    body=body,
                ),
            ),
        ),
    )


@freepik.command("icon")
@click.argument("prompt")
@click.option("--style", default=None, help="Icon style, for example solid or outline.")
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None, help="Output file.")
@click.option("--no-download", is_flag=True, default=False, help="Print the task id and exit.")
@click.pass_obj
def icon(
    controller: FreepikCliController,
    prompt: str,
    style: str | None,
    output: Path | None,
    no_download: bool,
) -> None:
    """Generate an icon from a prompt."""

    body = {"style": style} if style else {}
    _emit_lines(
        _run(
            lambda: controller.simple_task(
                SimpleTaskCommand(
                    kind="icon",
                    prompt=prompt,
                    output=output,
                    download=not no_download,
                    body=body,
                ),
            ),
        ),
    )


@freepik.command("status")
@click.argument("task_id")
@click.option("--endpoint", required=True, help="Poll path, for example /v1/ai/mystic.")
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="Download completed results to this path.",
)
@click.pass_obj
def status(
    controller: FreepikCliController,
    task_id: str,
    endpoint: str,
    output: Path | None,
) -> None:
    """Check the status of a task once."""

    _emit_lines(
        _run(
            lambda: controller.status(
                StatusCommand(task_id=task_id, endpoint=endpoint, output=output),
            ),
        ),
    )


@freepik.command("batch")
@click.argument("manifest", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option(
    "--concurrency",
    type=click.IntRange(min=1, max=10),
    default=3,
    show_default=True,
    help="Items processed at once.",
)
@click.pass_obj
def batch(controller: FreepikCliController, manifest: Path, concurrency: int) -> None:
    """Run generations from a JSON manifest."""

    _emit_lines(
        _run(
            lambda: controller.batch(
                BatchCommand(manifest_path=manifest, concurrency=concurrency),
            ),
        ),
    )


@freepik.command("credits")
@click.pass_obj
def credits_command(controller: FreepikCliController) -> None:
    """Show rate-limit status and model pricing."""

    _emit_lines(_run(controller.credits))


@freepik.command("models")
@click.pass_obj
def models(controller: FreepikCliController) -> None:
    """List every model with speed, quality and tier."""

    _emit_lines(_call(controller.models))


@freepik.command("templates")
@click.pass_obj
def templates(controller: FreepikCliController) -> None:
    """List prompt templates for `generate --template`."""

    _emit_lines(_call(controller.templates))


@freepik.command("history")
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=20,
    show_default=True,
    help="Number of entries to show.",
)
@click.option("--search", default=None, help="Filter by prompt or command.")
@click.pass_obj
def history(controller: FreepikCliController, limit: int, search: str | None) -> None:
    """Show recent generations."""

    _emit_lines(_call(lambda: controller.history(HistoryCommand(limit=limit, search=search))))


@freepik.command("open")
@click.argument("target", required=False)
@click.pass_obj
def open_command(controller: FreepikCliController, target: str | None) -> None:
    """Open the last generated file, or TARGET."""

    _emit_lines(_call(lambda: controller.open_last(target)))


@freepik.group()
def config() -> None:
    """Persisted configuration."""


@config.command("show")
@click.pass_obj
def config_show(controller: FreepikCliController) -> None:
    """Show the current configuration."""

    _emit_lines(_call(controller.show_config))


@config.command("set-key")
@click.argument("api_key")
@click.pass_obj
def config_set_key(controller: FreepikCliController, api_key: str) -> None:
    """Store the API key."""

    _emit_lines(_call(lambda: controller.set_config(api_key=api_key)))


@config.command("set-output-dir")
@click.argument("directory", type=click.Path(path_type=Path, file_okay=False))
@click.pass_obj
def config_set_output_dir(controller: FreepikCliController, directory: Path) -> None:
    """Set the default output directory."""

    _emit_lines(_call(lambda: controller.set_config(output_dir=str(directory))))


@config.command("set-default-model")
@click.argument("model")
@click.pass_obj
def config_set_default_model(controller: FreepikCliController, model: str) -> None:
    """Set the default image model."""

    _emit_lines(_call(lambda: controller.set_config(default_model=model)))


def _run(factory: Callable[[], Awaitable[T]]) -> T:
    async def _main() -> T:
        return await factory()

    return _call(lambda: asyncio.run(_main()))


def _call(action: Callable[[], T]) -> T:
    try:
        return action()
    except (FreepikError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    freepik()
