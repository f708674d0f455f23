"""Image arguments: URLs pass through, local files become data URIs."""

from __future__ import annotations

import base64
from pathlib import Path

from freepik_cli.tasks.errors import ValidationError

_MIME_BY_SUFFIX = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".bmp": "image/bmp",
}


def is_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


def image_value(value: str) -> str:
    """Return the API ``image`` field for a URL or local file path."""

    if is_url(value):
        return value
    path = Path(value).expanduser()
    if not path.is_file():
        raise ValidationError(message=f"Image file not found: {value}")
    mime = _MIME_BY_SUFFIX.get(path.suffix.lower(), "image/png")
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime};base64,{encoded}"
