"""Named prompt templates with ``{placeholder}`` variables."""

from __future__ import annotations

import re

from freepik_cli.tasks.errors import ValidationError

TEMPLATES: dict[str, str] = {
    "product-photo": (
        "Professional product photography of {product}, white background, studio lighting, "
        "high detail, commercial quality"
    ),
    "social-post": (
        "{subject}, vibrant colors, eye-catching composition, social media optimized, {mood} mood"
    ),
    "portrait": (
        "Professional portrait of {subject}, {style} style, {lighting} lighting, "
        "shallow depth of field"
    ),
    "landscape": "{scene}, {time_of_day}, dramatic {weather} sky, ultra-wide angle, cinematic",
    "hero-image": (
        "Website hero image, {subject}, modern {style} design, professional, high resolution, "
        "21:9 aspect ratio"
    ),
    "logo": (
        "Minimalist logo design for {brand}, {style} style, clean lines, vector-quality, "
        "white background"
    ),
    "icon-set": "Set of {style} icons for {subject}, consistent style, clean design, flat colors",
}

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")


def parse_template_vars(raw: str | None) -> dict[str, str]:
    """Parse ``key=value,key2=value2``; pairs without ``=`` or a key are ignored."""

    values: dict[str, str] = {}
    if not raw:
        return values
    for pair in raw.split(","):
        key, sep, value = pair.partition("=")
        key = key.strip()
        if sep and key:
            values[key] = value.strip()
    return values


def template_variables(template: str) -> list[str]:
    return list(dict.fromkeys(_PLACEHOLDER_RE.findall(template)))


def expand_template(name: str, raw_vars: str | None = None) -> tuple[str, list[str]]:
    """Return the expanded prompt and a warning for every placeholder left unfilled."""

    template = TEMPLATES.get(name)
    if template is None:
        raise ValidationError(
            message=f'Unknown template "{name}". Available: {", ".join(TEMPLATES)}',
        )
    values = parse_template_vars(raw_vars)
    warnings: list[str] = []

    def _fill(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in values:
            return values[key]
        warnings.append(f"Template variable {{{key}}} was not provided")
        return match.group(0)

    return _PLACEHOLDER_RE.sub(_fill, template), warnings
