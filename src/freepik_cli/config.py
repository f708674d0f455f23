"""Runtime configuration and the persisted CLI config file."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from urllib.parse import urlparse

from freepik_cli.tasks.errors import ValidationError

logger = logging.getLogger(__name__)

API_KEY_ENV = "FREEPIK_API_KEY"
CONFIG_DIR_ENV = "FREEPIK_CONFIG_DIR"
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "freepik-cli"
CONFIG_FILENAME = "config.json"
HISTORY_FILENAME = "history.jsonl"
STAR_NUDGE_AFTER = 5


@dataclass(slots=True)
class PollSettings:
    """Poll loop timing."""

    interval_seconds: float = 2.0
    max_wait_seconds: float = 300.0
    long_max_wait_seconds: float = 600.0


@dataclass(slots=True)
class HttpSettings:
    """Transport settings."""

    base_url: str = "https://api.freepik.com"
    request_timeout_seconds: float = 60.0
    download_timeout_seconds: float = 120.0
    download_max_retries: int = 3


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    config_dir: Path = DEFAULT_CONFIG_DIR
    api_key_env: str | None = None
    http: HttpSettings = field(default_factory=HttpSettings)
    poll: PollSettings = field(default_factory=PollSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults for interactive use."""

        return cls(
            config_dir=Path(os.getenv(CONFIG_DIR_ENV, str(DEFAULT_CONFIG_DIR))).expanduser(),
            api_key_env=os.getenv(API_KEY_ENV) or None,
            http=HttpSettings(
                base_url=os.getenv("FREEPIK_BASE_URL", "https://api.freepik.com").rstrip("/"),
                request_timeout_seconds=float(
                    os.getenv("FREEPIK_REQUEST_TIMEOUT_SECONDS", "60"),
                ),
                download_timeout_seconds=float(
                    os.getenv("FREEPIK_DOWNLOAD_TIMEOUT_SECONDS", "120"),
                ),
                download_max_retries=int(os.getenv("FREEPIK_DOWNLOAD_MAX_RETRIES", "3")),
            ),
            poll=PollSettings(
                interval_seconds=float(os.getenv("FREEPIK_POLL_INTERVAL_SECONDS", "2")),
                max_wait_seconds=float(os.getenv("FREEPIK_MAX_WAIT_SECONDS", "300")),
                long_max_wait_seconds=float(os.getenv("FREEPIK_LONG_MAX_WAIT_SECONDS", "600")),
            ),
        )

    @property
    def config_path(self) -> Path:
        return self.config_dir / CONFIG_FILENAME

    @property
    def history_path(self) -> Path:
        return self.config_dir / HISTORY_FILENAME

    def validate(self) -> None:
        """Raise ``ValueError`` on settings that would break the transport or poller."""

        parsed = urlparse(self.http.base_url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(
                f"Invalid FREEPIK_BASE_URL: {self.http.base_url!r}. "
                "Expected an absolute http:// or https:// URL.",
            )
        if self.poll.interval_seconds < 0:
            raise ValueError("FREEPIK_POLL_INTERVAL_SECONDS must be >= 0.")
        if self.poll.max_wait_seconds <= 0:
            raise ValueError("FREEPIK_MAX_WAIT_SECONDS must be > 0.")
        if self.poll.long_max_wait_seconds <= 0:
            raise ValueError("FREEPIK_LONG_MAX_WAIT_SECONDS must be > 0.")
        if self.http.request_timeout_seconds <= 0:
            raise ValueError("FREEPIK_REQUEST_TIMEOUT_SECONDS must be > 0.")
        if self.http.download_max_retries < 0:
            raise ValueError("FREEPIK_DOWNLOAD_MAX_RETRIES must be >= 0.")


@dataclass(slots=True)
class CliConfig:
    """Contents of ``config.json``."""

    api_key: str | None = None
    output_dir: str | None = None
    default_model: str | None = None
    generations: int = 0
    star_nudge_shown: bool = False
    last_output_path: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, object]) -> CliConfig:
        known = {item.name for item in fields(cls)}
        values = {key: value for key, value in raw.items() if key in known}
        config = cls(**values)  # type: ignore[arg-type]
        if not isinstance(config.generations, int):
            config.generations = 0
        return config


class ConfigStore:
    """Reads and writes the persisted JSON config.

    Environment wins over the file for the API key.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    def path(self) -> Path:
        return self.settings.config_path

    def load(self) -> CliConfig:
        try:
            raw = json.loads(self.path.read_text("utf-8"))
        except FileNotFoundError:
            return CliConfig()
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable config %s: %s", self.path, exc)
            return CliConfig()
        if not isinstance(raw, dict):
            return CliConfig()
        return CliConfig.from_dict(raw)

    def save(self, config: CliConfig) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(asdict(config), indent=2) + "\n", "utf-8")

    def get_api_key(self) -> str:
        if self.settings.api_key_env:
            return self.settings.api_key_env
        config = self.load()
        if config.api_key:
            return config.api_key
        raise ValidationError(
            message=(
                f"No API key found. Set {API_KEY_ENV} environment variable "
                "or run: freepik config set-key <key>"
            ),
        )

    def get_output_dir(self) -> Path:
        config = self.load()
        return Path(config.output_dir).expanduser() if config.output_dir else Path()

    def update(self, **changes: object) -> CliConfig:
        config = self.load()
        for key, value in changes.items():
            if not hasattr(config, key):
                raise ValueError(f"Unknown config key: {key!r}")
            setattr(config, key, value)
        self.save(config)
        return config

    def record_last_output(self, path: Path) -> None:
        self.update(last_output_path=str(path))

    def track_generation(self) -> bool:
        """Count one successful generation; True exactly once, when the star notice is due."""

        config = self.load()
        config.generations += 1
        nudge_due = not config.star_nudge_shown and config.generations >= STAR_NUDGE_AFTER
        if nudge_due:
            config.star_nudge_shown = True
        self.save(config)
        return nudge_due


def mask_api_key(key: str) -> str:
    if len(key) <= 8:
        return "****"
    return f"{key[:4]}...{key[-4:]}"
