from __future__ import annotations

from pathlib import Path

import allure
import pytest

from freepik_cli.config import (
    STAR_NUDGE_AFTER,
    CliConfig,
    ConfigStore,
    HttpSettings,
    PollSettings,
    Settings,
    mask_api_key,
)
from freepik_cli.tasks.errors import ValidationError

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Settings & Config Store"),
]


def test_from_env_reads_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("FREEPIK_CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("FREEPIK_API_KEY", "env-key")
    monkeypatch.setenv("FREEPIK_BASE_URL", "https://proxy.test/")
    monkeypatch.setenv("FREEPIK_POLL_INTERVAL_SECONDS", "0.5")
    monkeypatch.setenv("FREEPIK_MAX_WAIT_SECONDS", "30")

    settings = Settings.from_env()

    assert settings.config_dir == tmp_path
    assert settings.api_key_env == "env-key"
    assert settings.http.base_url == "https://proxy.test"
    assert settings.poll.interval_seconds == 0.5
    assert settings.poll.max_wait_seconds == 30.0
    assert settings.history_path == tmp_path / "history.jsonl"


def test_from_env_treats_empty_api_key_as_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FREEPIK_API_KEY", "")

    assert Settings.from_env().api_key_env is None


@pytest.mark.parametrize(
    ("settings", "message"),
    [
        (Settings(http=HttpSettings(base_url="ftp://api.test")), "Invalid FREEPIK_BASE_URL"),
        (Settings(poll=PollSettings(interval_seconds=-1)), "POLL_INTERVAL"),
        (Settings(poll=PollSettings(max_wait_seconds=0)), "MAX_WAIT"),
        (Settings(http=HttpSettings(request_timeout_seconds=0)), "REQUEST_TIMEOUT"),
    ],
)
def test_validate_rejects_bad_values(settings: Settings, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        settings.validate()


def test_env_api_key_wins_over_file(settings: Settings) -> None:
    store = ConfigStore(settings)
    store.update(api_key="file-key")

    assert store.get_api_key() == "test-key-123456"


def test_file_api_key_used_without_env(tmp_path: Path) -> None:
    store = ConfigStore(Settings(config_dir=tmp_path))
    store.update(api_key="file-key")

    assert store.get_api_key() == "file-key"


def test_missing_api_key_raises_with_hint(tmp_path: Path) -> None:
    store = ConfigStore(Settings(config_dir=tmp_path))

    with pytest.raises(ValidationError, match="freepik config set-key"):
        store.get_api_key()


def test_corrupt_config_file_loads_defaults(tmp_path: Path) -> None:
    settings = Settings(config_dir=tmp_path)
    settings.config_path.write_text("{not json", "utf-8")

    assert ConfigStore(settings).load() == CliConfig()


def test_update_rejects_unknown_keys(settings: Settings) -> None:
    with pytest.raises(ValueError, match="Unknown config key"):
        ConfigStore(settings).update(colour="blue")


def test_output_dir_defaults_to_cwd_and_expands_user(settings: Settings) -> None:
    store = ConfigStore(settings)
    assert store.get_output_dir() == Path()

    store.update(output_dir="~/renders")
    assert store.get_output_dir() == Path("~/renders").expanduser()


def test_star_nudge_fires_exactly_once(settings: Settings) -> None:
    store = ConfigStore(settings)

    results = [store.track_generation() for _ in range(STAR_NUDGE_AFTER + 3)]

    assert results.count(True) == 1
    assert results.index(True) == STAR_NUDGE_AFTER - 1
    assert store.load().generations == STAR_NUDGE_AFTER + 3


def test_record_last_output_persists_path(settings: Settings, tmp_path: Path) -> None:
    store = ConfigStore(settings)
    store.record_last_output(tmp_path / "cat.png")

    assert store.load().last_output_path == str(tmp_path / "cat.png")


def test_mask_api_key() -> None:
    assert mask_api_key("abcd1234efgh5678") == "abcd...5678"
    assert mask_api_key("short") == "****"
