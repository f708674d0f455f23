from __future__ import annotations

import json
from pathlib import Path

import allure
import httpx
from click.testing import CliRunner

from freepik_cli.config import Settings
from freepik_cli.controllers import FreepikCliController
from freepik_cli.main import freepik
from freepik_cli.templates import TEMPLATES

pytestmark = [
    allure.epic("Generation Commands"),
    allure.feature("Discovery"),
]

CREATE_PATH = "/v1/ai/text-to-image/flux-2-turbo"


def _controller(settings: Settings, api) -> FreepikCliController:
    return FreepikCliController(
        settings=settings,
        api_transport=httpx.MockTransport(api),
        download_transport=httpx.MockTransport(
            lambda request: httpx.Response(200, content=b"png"),
        ),
    )


def _generate_api(posted: list[dict]):
    def api(request: httpx.Request) -> httpx.Response:
        if request.method == "POST" and request.url.path == CREATE_PATH:
            posted.append(json.loads(request.content))
            return httpx.Response(200, json={"data": {"task_id": "task-1", "status": "CREATED"}})
        return httpx.Response(
            200,
            json={
                "data": {
                    "task_id": "task-1",
                    "status": "COMPLETED",
                    "generated": ["https://cdn.test/out.png"],
                },
            },
        )

    return api


def _get_api(path: str, payload: dict, seen: list[httpx.Request]):
    def api(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.method == "GET" and request.url.path == path:
            return httpx.Response(200, json=payload)
        return httpx.Response(404, json={"message": f"no route {request.url.path}"})

    return api


def test_models_groups_models_by_kind(settings: Settings) -> None:
    result = CliRunner().invoke(freepik, ["models"], obj=FreepikCliController(settings=settings))

    assert result.exit_code == 0, result.output
    output = result.output
    assert output.index("Image Generation Models:") < output.index("Video Models:")
    assert output.index("Video Models:") < output.index("Editing Tools:")
    assert "hyperflux" in output
    assert "Sub-second generation" in output


def test_models_json_exposes_every_field(settings: Settings) -> None:
    result = CliRunner().invoke(
        freepik,
        ["--json", "models"],
        obj=FreepikCliController(settings=settings),
    )

    assert result.exit_code == 0, result.output
    mystic = json.loads(result.output)["mystic"]
    assert mystic["tier"] == "Premium"
    assert mystic["quality"] == "Excellent"
    assert mystic["group"] == "image"


def test_templates_lists_names_and_variables(settings: Settings) -> None:
    result = CliRunner().invoke(freepik, ["templates"], obj=FreepikCliController(settings=settings))

    assert result.exit_code == 0, result.output
    assert "product-photo" in result.output
    assert "Variables: {subject}, {style}, {lighting}" in result.output


def test_templates_json(settings: Settings) -> None:
    result = CliRunner().invoke(
        freepik,
        ["--json", "templates"],
        obj=FreepikCliController(settings=settings),
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == TEMPLATES


def test_generate_with_template_posts_expanded_prompt(settings: Settings, tmp_path: Path) -> None:
    posted: list[dict] = []

    result = CliRunner().invoke(
        freepik,
        [
            "generate",
            "--template",
            "product-photo",
            "--vars",
            "product=sneakers",
            "-o",
            str(tmp_path / "sneakers.png"),
        ],
        obj=_controller(settings, _generate_api(posted)),
    )

    assert result.exit_code == 0, result.output
    assert posted[0]["prompt"] == TEMPLATES["product-photo"].replace("{product}", "sneakers")
    assert 'Template "product-photo" expanded to' in result.output
    assert (tmp_path / "sneakers.png").exists()


def test_generate_template_warns_on_missing_variable(settings: Settings, tmp_path: Path) -> None:
    posted: list[dict] = []

    result = CliRunner().invoke(
        freepik,
        [
            "generate",
            "--template",
            "social-post",
            "--vars",
            "subject=coffee",
            "-o",
            str(tmp_path / "post.png"),
        ],
        obj=_controller(settings, _generate_api(posted)),
    )

    assert result.exit_code == 0, result.output
    assert "Template variable {mood} was not provided" in result.output
    assert "{mood} mood" in posted[0]["prompt"]


def test_generate_without_prompt_or_template_fails(settings: Settings) -> None:
    posted: list[dict] = []

    result = CliRunner().invoke(
        freepik,
        ["generate"],
        obj=_controller(settings, _generate_api(posted)),
    )

    assert result.exit_code == 1
    assert "A prompt is required" in result.output
    assert posted == []


def test_generate_unknown_template_fails(settings: Settings) -> None:
    posted: list[dict] = []

    result = CliRunner().invoke(
        freepik,
        ["generate", "--template", "poster"],
        obj=_controller(settings, _generate_api(posted)),
    )

    assert result.exit_code == 1
    assert 'Unknown template "poster"' in result.output
    assert posted == []


def test_search_sends_filters_and_renders_results(settings: Settings) -> None:
    seen: list[httpx.Request] = []
    payload = {
        "data": [
            {
                "title": "Sunset over the dunes",
                "author": {"name": "dune-photo"},
                "downloads": 1200,
                "url": "https://www.freepik.test/photo/1",
            },
        ],
        "meta": {"pagination": {"total": 42, "current_page": 2, "last_page": 9}},
    }

    result = CliRunner().invoke(
        freepik,
        [
            "search",
            "sunset",
            "--page",
            "2",
            "--limit",
            "5",
            "--orientation",
            "landscape",
            "--type",
            "photo",
            "--ai-generated",
        ],
        obj=_controller(settings, _get_api("/v1/resources", payload, seen)),
    )

    assert result.exit_code == 0, result.output
    assert dict(seen[0].url.params) == {
        "term": "sunset",
        "page": "2",
        "limit": "5",
        "order": "relevance",
        "filters[orientation][photo]": "landscape",
        "filters[content_type][photo]": "1",
        "filters[ai-generated]": "1",
    }
    assert "Found 42 results (showing 1)" in result.output
    assert "Sunset over the dunes" in result.output
    assert "dune-photo" in result.output
    assert "Page 2/9. Use --page 3 for next page." in result.output


def test_search_without_results(settings: Settings) -> None:
    seen: list[httpx.Request] = []

    result = CliRunner().invoke(
        freepik,
        ["search", "nothing"],
        obj=_controller(settings, _get_api("/v1/resources", {"data": []}, seen)),
    )

    assert result.exit_code == 0, result.output
    assert "No results found." in result.output


def test_lora_list_renders_table(settings: Settings) -> None:
    seen: list[httpx.Request] = []
    payload = {
        "data": [
            {"id": "lora-1", "name": "hero", "category": "character", "status": "ready"},
        ],
    }

    result = CliRunner().invoke(
        freepik,
        ["lora", "list"],
        obj=_controller(settings, _get_api("/v1/ai/loras", payload, seen)),
    )

    assert result.exit_code == 0, result.output
    assert "LoRA Models (1)" in result.output
    assert "lora-1" in result.output
    assert "character" in result.output


def test_lora_list_empty_suggests_training(settings: Settings) -> None:
    seen: list[httpx.Request] = []

    result = CliRunner().invoke(
        freepik,
        ["lora", "list"],
        obj=_controller(settings, _get_api("/v1/ai/loras", {"data": []}, seen)),
    )

    assert result.exit_code == 0, result.output
    assert "freepik lora train-character <name>" in result.output


def test_lora_training_requires_eight_to_twenty_images(settings: Settings) -> None:
    seen: list[httpx.Request] = []

    result = CliRunner().invoke(
        freepik,
        ["lora", "train-character", "hero", "--images", "https://a.test/1.jpg,https://a.test/2.jpg"],
        obj=_controller(settings, _get_api("/v1/ai/loras", {}, seen)),
    )

    assert result.exit_code == 1
    assert "Character LoRA requires 8-20 images, got 2" in result.output
    assert seen == []


def test_lora_train_style_posts_images(settings: Settings) -> None:
    posted: list[dict] = []
    images = [f"https://a.test/{n}.jpg" for n in range(8)]

    def api(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/ai/loras/styles"
        posted.append(json.loads(request.content))
        return httpx.Response(200, json={"data": {"id": "lora-9"}})

    result = CliRunner().invoke(
        freepik,
        ["lora", "train-style", "inkwash", "--images", ",".join(images), "--quality", "ultra"],
        obj=_controller(settings, api),
    )

    assert result.exit_code == 0, result.output
    assert posted == [{"name": "inkwash", "images": images, "quality": "ultra"}]
    assert "LoRA ID: lora-9" in result.output
