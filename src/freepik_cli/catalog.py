"""Model and endpoint registry for the Freepik API."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from freepik_cli.tasks.errors import ValidationError
from freepik_cli.tasks.models import TaskEndpoint

DEFAULT_IMAGE_MODEL = "flux-2-turbo"
DEFAULT_VIDEO_MODEL = "kling-2.6-pro"


class ModelCategory(str, Enum):
    TEXT_TO_IMAGE = "text-to-image"
    IMAGE_TO_VIDEO = "image-to-video"
    TEXT_TO_VIDEO = "text-to-video"


@dataclass(slots=True, frozen=True)
class ModelEntry:
    """One generation model and the endpoint that serves it."""

    name: str
    endpoint: TaskEndpoint
    category: ModelCategory


@dataclass(slots=True, frozen=True)
class ModelInfo:
    """Speed, quality and pricing shown by ``freepik models`` and ``freepik credits``."""

    name: str
    speed: str
    quality: str
    tier: str
    cost_estimate: str
    notes: str
    group: str


def _model(name: str, path: str, category: ModelCategory) -> ModelEntry:
    return ModelEntry(name=name, endpoint=TaskEndpoint.same(path), category=category)


TEXT_TO_IMAGE_MODELS: dict[str, ModelEntry] = {
    entry.name: entry
    for entry in (
        _model("mystic", "/v1/ai/mystic", ModelCategory.TEXT_TO_IMAGE),
        _model("flux-2-pro", "/v1/ai/text-to-image/flux-2-pro", ModelCategory.TEXT_TO_IMAGE),
        _model("flux-2-turbo", "/v1/ai/text-to-image/flux-2-turbo", ModelCategory.TEXT_TO_IMAGE),
        _model("flux-2-klein", "/v1/ai/text-to-image/flux-2-klein", ModelCategory.TEXT_TO_IMAGE),
        _model(
            "flux-kontext",
            "/v1/ai/text-to-image/flux-kontext-pro",
            ModelCategory.TEXT_TO_IMAGE,
        ),
        _model("flux-pro-1.1", "/v1/ai/text-to-image/flux-pro-v1-1", ModelCategory.TEXT_TO_IMAGE),
        _model("flux-dev", "/v1/ai/text-to-image/flux-dev", ModelCategory.TEXT_TO_IMAGE),
        _model("hyperflux", "/v1/ai/text-to-image/hyperflux", ModelCategory.TEXT_TO_IMAGE),
        _model("seedream-4", "/v1/ai/text-to-image/seedream-4", ModelCategory.TEXT_TO_IMAGE),
        _model("seedream-4.5", "/v1/ai/text-to-image/seedream-4-5", ModelCategory.TEXT_TO_IMAGE),
        _model("runway", "/v1/ai/text-to-image/runway", ModelCategory.TEXT_TO_IMAGE),
    )
}

VIDEO_MODELS: dict[str, ModelEntry] = {
    entry.name: entry
    for entry in (
        _model(
            "kling-2.1-pro",
            "/v1/ai/image-to-video/kling-v2-1-pro",
            ModelCategory.IMAGE_TO_VIDEO,
        ),
        _model(
            "kling-2.5-pro",
            "/v1/ai/image-to-video/kling-v2-5-pro",
            ModelCategory.IMAGE_TO_VIDEO,
        ),
        _model(
            "kling-2.6-pro",
            "/v1/ai/image-to-video/kling-v2-6-pro",
            ModelCategory.IMAGE_TO_VIDEO,
        ),
        _model(
            "hailuo-02",
            "/v1/ai/image-to-video/minimax-hailuo-02-1080p",
            ModelCategory.IMAGE_TO_VIDEO,
        ),
        _model(
            "wan-2.5-t2v",
            "/v1/ai/text-to-video/wan-2-5-t2v-1080p",
            ModelCategory.TEXT_TO_VIDEO,
        ),
    )
}

UPSCALE_ENDPOINT = TaskEndpoint.same("/v1/ai/upscaler-creative")
ICON_ENDPOINT = TaskEndpoint.same("/v1/ai/text-to-icon")
MUSIC_ENDPOINT = TaskEndpoint.same("/v1/ai/music-generation")
SFX_ENDPOINT = TaskEndpoint.same("/v1/ai/sound-effects")
RELIGHT_ENDPOINT = TaskEndpoint.same("/v1/ai/image-relight")
STYLE_TRANSFER_ENDPOINT = TaskEndpoint.same("/v1/ai/image-style-transfer")
REIMAGINE_ENDPOINT = TaskEndpoint.same("/v1/ai/beta/text-to-image/reimagine-flux")
DESCRIBE_ENDPOINT = TaskEndpoint.same("/v1/ai/image-to-prompt")
EXPAND_ENDPOINTS: dict[str, TaskEndpoint] = {
    "flux-pro": TaskEndpoint.same("/v1/ai/image-expand/flux-pro"),
    "ideogram": TaskEndpoint.same("/v1/ai/image-expand/ideogram"),
    "seedream-v4-5": TaskEndpoint.same("/v1/ai/image-expand/seedream-v4-5"),
}
DEFAULT_EXPAND_ENGINE = "flux-pro"
REIMAGINE_IMAGINATION_LEVELS = ("wild", "subtle", "vivid")

# Synchronous endpoints: the POST response carries the result.
REMOVE_BG_PATH = "/v1/ai/remove-background"
CLASSIFY_PATH = "/v1/ai/classifier/image"
SEARCH_PATH = "/v1/resources"
LORAS_PATH = "/v1/ai/loras"
LORA_TRAIN_CHARACTER_PATH = "/v1/ai/loras/characters"
LORA_TRAIN_STYLE_PATH = "/v1/ai/loras/styles"
LORA_MIN_IMAGES = 8
LORA_MAX_IMAGES = 20

RATE_LIMIT_PROBE_PATH = "/v1/ai/text-to-image/flux-2-turbo"

UPSCALE_FACTORS: dict[str, int] = {"2x": 2, "4x": 4, "8x": 8, "16x": 16}

MODEL_INFO: dict[str, ModelInfo] = {
    info.name: info
    for info in (
        ModelInfo(
            "flux-2-turbo", "Fast", "Good", "Free", "free (up to 100/day)",
            "Default, best speed/cost ratio", "image",
        ),
        ModelInfo(
            "hyperflux", "Ultra-fast", "Good", "Free", "free (up to 100/day)",
            "Sub-second generation", "image",
        ),
        ModelInfo(
            "flux-dev", "Medium", "Very Good", "Free", "free (up to 50/day)",
            "Supports styling effects (color, framing, lighting)", "image",
        ),
        ModelInfo(
            "seedream-4", "Fast", "Good", "Free", "free (up to 50/day)",
            "ByteDance model", "image",
        ),
        ModelInfo(
            "seedream-4.5", "Fast", "Very Good", "Free", "free (up to 50/day)",
            "Improved ByteDance model", "image",
        ),
        ModelInfo(
            "flux-2-klein", "Ultra-fast", "Good", "Free", "free (up to 100/day)",
            "Lightweight, very fast", "image",
        ),
        ModelInfo(
            "mystic", "Medium", "Excellent", "Premium", "~€0.05/image",
            "Freepik flagship, ultra-realistic", "image",
        ),
        ModelInfo(
            "flux-2-pro", "Medium", "Very Good", "Premium", "~€0.04/image",
            "Professional grade", "image",
        ),
        ModelInfo(
            "flux-kontext", "Medium", "Very Good", "Premium", "~€0.04/image",
            "Context-aware generation", "image",
        ),
        ModelInfo(
            "flux-pro-1.1", "Medium", "Very Good", "Premium", "~€0.04/image",
            "Flux Pro v1.1", "image",
        ),
        ModelInfo(
            "runway", "Medium", "Excellent", "Premium", "~€0.05/image",
            "Runway model", "image",
        ),
        ModelInfo(
            "kling-2.1-pro", "Slow", "Very Good", "Premium", "~€0.25/video",
            "Image-to-video", "video",
        ),
        ModelInfo(
            "kling-2.5-pro", "Slow", "Excellent", "Premium", "~€0.28/video",
            "Image-to-video, improved", "video",
        ),
        ModelInfo(
            "kling-2.6-pro", "Slow", "Excellent", "Premium", "~€0.30/video",
            "Image-to-video, latest", "video",
        ),
        ModelInfo(
            "hailuo-02", "Slow", "Excellent", "Premium", "~€0.20/video",
            "Minimax Hailuo, 1080p", "video",
        ),
        ModelInfo(
            "wan-2.5-t2v", "Slow", "Very Good", "Premium", "~€0.15/video",
            "Text-to-video, 1080p", "video",
        ),
        ModelInfo(
            "upscale", "Medium", "Excellent", "Premium", "~€0.10/image",
            "Creative upscaler (2x-16x)", "editing",
        ),
        ModelInfo(
            "remove-bg", "Fast", "Very Good", "Premium", "~€0.05/image",
            "Background removal", "editing",
        ),
        ModelInfo(
            "relight", "Medium", "Very Good", "Premium", "~€0.10/image",
            "Image relighting", "editing",
        ),
        ModelInfo(
            "reimagine", "Medium", "Very Good", "Premium", "~€0.05/image",
            "Reimagine with different style", "editing",
        ),
    )
}

_SMART_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("photo", "portrait", "realistic", "person", "face", "headshot", "human"), "mystic"),
    (("logo", "icon", "minimal", "flat", "simple", "badge", "emblem"), "hyperflux"),
    (("art", "illustration", "painting", "watercolor", "sketch", "artistic", "anime"), "flux-dev"),
    (("banner", "poster", "advertisement", "commercial", "marketing", "ad"), "flux-2-pro"),
)


def get_image_model(name: str) -> ModelEntry:
    model = TEXT_TO_IMAGE_MODELS.get(name)
    if model is None:
        available = ", ".join(TEXT_TO_IMAGE_MODELS)
        raise ValidationError(message=f'Unknown model "{name}". Available: {available}')
    return model


def get_video_model(name: str) -> ModelEntry:
    model = VIDEO_MODELS.get(name)
    if model is None:
        available = ", ".join(VIDEO_MODELS)
        raise ValidationError(message=f'Unknown video model "{name}". Available: {available}')
    return model


def select_smart_model(prompt: str) -> tuple[str, str]:
    """Pick a model by prompt keywords; return ``(model, matched keywords)``."""

    lowered = prompt.lower()
    for keywords, model in _SMART_RULES:
        matched = [keyword for keyword in keywords if keyword in lowered]
        if matched:
            return model, ", ".join(matched)
    return DEFAULT_IMAGE_MODEL, "default fallback"


def cost_estimate(name: str) -> str | None:
    info = MODEL_INFO.get(name)
    return info.cost_estimate if info else None
