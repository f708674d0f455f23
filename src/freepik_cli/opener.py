"""Launch the platform viewer for a file or URL without waiting on it."""

from __future__ import annotations

import logging
import os
import subprocess
import sys

logger = logging.getLogger(__name__)


def open_command() -> list[str]:
    if sys.platform == "darwin":
        return ["open"]
    if sys.platform == "win32":
        return ["cmd", "/c", "start", ""]
    return ["xdg-open"]


def open_path(target: str | os.PathLike[str]) -> bool:
    """Fire-and-forget; returns False when the viewer could not be started."""

    command = [*open_command(), os.fspath(target)]
    try:
        subprocess.Popen(  # noqa: S603
            command,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=sys.platform != "win32",
        )
    except OSError as exc:
        logger.warning("Could not open %s: %s", target, exc)
        return False
    return True
