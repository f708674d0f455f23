from __future__ import annotations

import json

import allure
import httpx
import pytest

from freepik_cli.http.transport import (
    API_KEY_HEADER,
    ApiContext,
    ApiTransport,
    RateLimitSnapshot,
    truncate_payload,
)
from freepik_cli.tasks.errors import RemoteApiError

pytestmark = [
    allure.epic("Task Lifecycle"),
    allure.feature("Transport"),
]


def _transport(handler, context: ApiContext | None = None) -> ApiTransport:
    return ApiTransport(
        context or ApiContext(api_key="secret-key", base_url="https://api.test"),
        transport=httpx.MockTransport(handler),
    )


async def test_send_attaches_api_key_and_json_body() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["key"] = request.headers.get(API_KEY_HEADER)
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"task_id": "t1", "status": "CREATED"}})

    transport = _transport(handler)
    response = await transport.post("/v1/ai/mystic", {"prompt": "cat"})
    await transport.aclose()

    assert response == {"data": {"task_id": "t1", "status": "CREATED"}}
    assert seen == {
        "key": "secret-key",
        "url": "https://api.test/v1/ai/mystic",
        "body": {"prompt": "cat"},
    }


async def test_get_encodes_query_params() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"data": []})

    transport = _transport(handler)
    await transport.get("/v1/resources", params={"term": "cat", "filters[ai-generated]": "1"})
    await transport.aclose()

    assert seen == {
        "path": "/v1/resources",
        "params": {"term": "cat", "filters[ai-generated]": "1"},
    }


async def test_rate_limit_headers_update_context_on_every_response() -> None:
    remaining = iter(["99", "98"])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={},
            headers={
                "x-ratelimit-limit": "100",
                "x-ratelimit-remaining": next(remaining),
                "x-ratelimit-reset": "60",
            },
        )

    seen: list[RateLimitSnapshot] = []
    context = ApiContext(api_key="k", base_url="https://api.test", on_rate_limit=seen.append)
    transport = _transport(handler, context)
    await transport.get("/a")
    await transport.get("/b")
    await transport.aclose()

    assert context.rate_limit == RateLimitSnapshot(limit=100, remaining=98, reset_seconds=60)
    assert [snapshot.remaining for snapshot in seen] == [99, 98]


async def test_missing_rate_limit_headers_give_unknown_snapshot() -> None:
    context = ApiContext(api_key="k", base_url="https://api.test")
    transport = _transport(lambda request: httpx.Response(200, json={}), context)
    await transport.get("/a")
    await transport.aclose()

    assert context.rate_limit == RateLimitSnapshot()
    assert not context.rate_limit.known


async def test_non_json_body_is_wrapped_as_raw_text() -> None:
    transport = _transport(lambda request: httpx.Response(200, text="plain text"))
    response = await transport.get("/a")
    await transport.aclose()

    assert response == {"raw": "plain text"}


async def test_empty_body_is_empty_dict() -> None:
    transport = _transport(lambda request: httpx.Response(204))
    response = await transport.get("/a")
    await transport.aclose()

    assert response == {}


async def test_non_2xx_raises_remote_api_error_with_message_and_body() -> None:
    body = {"message": "Invalid prompt", "invalid_params": [{"field": "prompt"}]}
    transport = _transport(lambda request: httpx.Response(400, json=body))

    with pytest.raises(RemoteApiError) as exc_info:
        await transport.post("/v1/ai/mystic", {"prompt": ""})
    await transport.aclose()

    assert exc_info.value.status_code == 400
    assert exc_info.value.body == body
    assert str(exc_info.value) == "Invalid prompt"


async def test_non_2xx_without_message_uses_status_text() -> None:
    transport = _transport(lambda request: httpx.Response(503, text="upstream down"))

    with pytest.raises(RemoteApiError, match="API request failed with status 503") as exc_info:
        await transport.get("/a")
    await transport.aclose()

    assert exc_info.value.body == {"raw": "upstream down"}


async def test_network_error_maps_to_status_zero() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = _transport(handler)
    with pytest.raises(RemoteApiError) as exc_info:
        await transport.get("/a")
    await transport.aclose()

    assert exc_info.value.status_code == 0


def test_rate_limit_snapshot_ignores_unparseable_values() -> None:
    snapshot = RateLimitSnapshot.from_headers(
        httpx.Headers(
            {
                "x-ratelimit-limit": "abc",
                "x-ratelimit-remaining": "5.0",
                "x-ratelimit-reset": "",
            },
        ),
    )

    assert snapshot == RateLimitSnapshot(limit=None, remaining=5, reset_seconds=None)


def test_truncate_payload_cuts_long_base64_fields() -> None:
    rendered = truncate_payload({"image": "A" * 500, "prompt": "cat"})

    assert "...[truncated]" in rendered
    assert "A" * 101 not in rendered
    assert '"prompt": "cat"' in rendered
