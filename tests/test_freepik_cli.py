from __future__ import annotations

import json
from pathlib import Path

import allure
import httpx
from click.testing import CliRunner

from freepik_cli import __version__
from freepik_cli.config import ConfigStore, Settings
from freepik_cli.controllers import FreepikCliController
from freepik_cli.history import HistoryLog
from freepik_cli.main import freepik

pytestmark = [
    allure.epic("Generation Commands"),
    allure.feature("CLI"),
]

CREATE_PATH = "/v1/ai/text-to-image/flux-2-turbo"


def _api(request: httpx.Request) -> httpx.Response:
    if request.method == "POST" and request.url.path == CREATE_PATH:
        return httpx.Response(200, json={"data": {"task_id": "task-1", "status": "CREATED"}})
    if request.method == "GET" and request.url.path == f"{CREATE_PATH}/task-1":
        return httpx.Response(
            200,
            json={
                "data": {
                    "task_id": "task-1",
                    "status": "COMPLETED",
                    "generated": ["https://cdn.test/out.png"],
                },
            },
            headers={"x-ratelimit-limit": "100", "x-ratelimit-remaining": "97"},
        )
    return httpx.Response(404, json={"message": f"no route {request.url.path}"})


def _cdn(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=b"png", headers={"content-type": "image/png"})


def _controller(settings: Settings, api=_api) -> FreepikCliController:
    return FreepikCliController(
        settings=settings,
        api_transport=httpx.MockTransport(api),
        download_transport=httpx.MockTransport(_cdn),
    )


def test_version():
    assert __version__


def test_version_option():
    runner = CliRunner()
    result = runner.invoke(freepik, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_generate_downloads_result_and_records_history(settings: Settings, tmp_path: Path) -> None:
    target = tmp_path / "cat.png"
    runner = CliRunner()

    result = runner.invoke(
        freepik,
        ["generate", "a cat in space", "-o", str(target)],
        obj=_controller(settings),
    )

    assert result.exit_code == 0, result.output
    assert target.read_bytes() == b"png"
    assert str(target) in result.output
    entries = HistoryLog(settings.history_path).read()
    assert [(entry.command, entry.model, entry.task_id) for entry in entries] == [
        ("generate", "flux-2-turbo", "task-1"),
    ]
    assert ConfigStore(settings).load().last_output_path == str(target)


def test_generate_json_output(settings: Settings, tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        freepik,
        ["--json", "generate", "a cat", "-o", str(tmp_path / "cat.png")],
        obj=_controller(settings),
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["task_id"] == "task-1"
    assert payload["status"] == "COMPLETED"
    assert payload["paths"] == [str(tmp_path / "cat.png")]


def test_generate_no_download_prints_resume_command(settings: Settings) -> None:
    runner = CliRunner()

    result = runner.invoke(
        freepik,
        ["generate", "a cat", "--no-download"],
        obj=_controller(settings),
    )

    assert result.exit_code == 0, result.output
    assert f"freepik status task-1 --endpoint {CREATE_PATH}" in result.output


def test_remote_error_becomes_click_exception(settings: Settings) -> None:
    def api(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "Invalid API key"})

    runner = CliRunner()
    result = runner.invoke(freepik, ["generate", "a cat"], obj=_controller(settings, api))

    assert result.exit_code == 1
    assert "Invalid API key" in result.output


def test_text_to_video_requires_prompt(settings: Settings) -> None:
    runner = CliRunner()

    result = runner.invoke(
        freepik,
        ["video", "--model", "wan-2.5-t2v"],
        obj=_controller(settings),
    )

    assert result.exit_code == 1
    assert "requires --prompt" in result.output


def test_batch_isolates_unknown_commands(settings: Settings, tmp_path: Path) -> None:
    manifest = tmp_path / "jobs.json"
    manifest.write_text(
        json.dumps(
            [
                {"command": "generate", "prompt": "a cat", "output": str(tmp_path / "cat.png")},
                {"command": "explode", "prompt": "boom"},
            ],
        ),
        "utf-8",
    )
    runner = CliRunner()

    result = runner.invoke(freepik, ["batch", str(manifest)], obj=_controller(settings))

    assert result.exit_code == 0, result.output
    assert (tmp_path / "cat.png").exists()
    assert "1 succeeded  1 failed" in result.output
    assert 'Unknown command "explode"' in result.output


def test_batch_rejects_non_json_manifest(settings: Settings, tmp_path: Path) -> None:
    manifest = tmp_path / "jobs.csv"
    manifest.write_text("generate,a cat\n", "utf-8")
    runner = CliRunner()

    result = runner.invoke(freepik, ["batch", str(manifest)], obj=_controller(settings))

    assert result.exit_code == 1
    assert "Use a .json file" in result.output


def test_status_json_prints_raw_response(settings: Settings) -> None:
    runner = CliRunner()

    result = runner.invoke(
        freepik,
        ["--json", "status", "task-1", "--endpoint", CREATE_PATH],
        obj=_controller(settings),
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["data"]["status"] == "COMPLETED"


def test_credits_shows_rate_limit_even_when_probe_fails(settings: Settings) -> None:
    def api(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={"message": "prompt is required"},
            headers={
                "x-ratelimit-limit": "100",
                "x-ratelimit-remaining": "42",
                "x-ratelimit-reset": "30",
            },
        )

    runner = CliRunner()
    result = runner.invoke(freepik, ["credits"], obj=_controller(settings, api))

    assert result.exit_code == 0, result.output
    assert "42/100 requests remaining" in result.output
    assert "Resets in:     30 seconds" in result.output
    assert "mystic" in result.output


def test_config_set_key_and_show_masks_key(tmp_path: Path) -> None:
    settings = Settings(config_dir=tmp_path)
    controller = FreepikCliController(settings=settings)
    runner = CliRunner()

    saved = runner.invoke(freepik, ["config", "set-key", "abcd1234efgh5678"], obj=controller)
    shown = runner.invoke(freepik, ["config", "show"], obj=controller)

    assert saved.exit_code == 0, saved.output
    assert shown.exit_code == 0, shown.output
    assert "abcd...5678 (config)" in shown.output
    assert "abcd1234efgh5678" not in shown.output


def test_config_set_default_model_validates_name(tmp_path: Path) -> None:
    controller = FreepikCliController(settings=Settings(config_dir=tmp_path))
    runner = CliRunner()

    result = runner.invoke(freepik, ["config", "set-default-model", "dalle"], obj=controller)

    assert result.exit_code == 1
    assert 'Unknown model "dalle"' in result.output


def test_history_lists_recent_entries(settings: Settings, tmp_path: Path) -> None:
    runner = CliRunner()
    controller = _controller(settings)
    runner.invoke(freepik, ["generate", "a cat", "-o", str(tmp_path / "cat.png")], obj=controller)

    result = runner.invoke(freepik, ["history", "--search", "cat"], obj=controller)

    assert result.exit_code == 0, result.output
    assert "Generation History (last 1)" in result.output
    assert "flux-2-turbo" in result.output


def test_open_without_history_fails(tmp_path: Path) -> None:
    controller = FreepikCliController(settings=Settings(config_dir=tmp_path))
    runner = CliRunner()

    result = runner.invoke(freepik, ["open"], obj=controller)

    assert result.exit_code == 1
    assert "No recent file found" in result.output


def test_count_and_batch_json_number_items_from_one(settings: Settings, tmp_path: Path) -> None:
    manifest = tmp_path / "jobs.json"
    manifest.write_text(
        json.dumps([{"command": "generate", "prompt": "a dog", "output": str(tmp_path / "dog.png")}]),
        "utf-8",
    )
    runner = CliRunner()
    controller = _controller(settings)

    counted = runner.invoke(
        freepik,
        ["--json", "generate", "a cat", "--count", "2", "-o", str(tmp_path / "cat.png")],
        obj=controller,
    )
    batched = runner.invoke(freepik, ["--json", "batch", str(manifest)], obj=controller)

    assert counted.exit_code == 0, counted.output
    assert batched.exit_code == 0, batched.output
    assert [item["index"] for item in json.loads(counted.output)] == [1, 2]
    assert [item["index"] for item in json.loads(batched.output)] == [1]
    assert (tmp_path / "cat-1.png").exists()
    assert (tmp_path / "cat-2.png").exists()
