"""Authenticated async transport for the Freepik REST API."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from freepik_cli.tasks.errors import RemoteApiError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.freepik.com"
DEFAULT_TIMEOUT_SECONDS = 60.0
API_KEY_HEADER = "x-freepik-api-key"
RATE_LIMIT_LIMIT_HEADER = "x-ratelimit-limit"
RATE_LIMIT_REMAINING_HEADER = "x-ratelimit-remaining"
RATE_LIMIT_RESET_HEADER = "x-ratelimit-reset"

_BASE64_FIELD_RE = re.compile(
    r'("(?:image|image_url|image_base64|base64)":\s*")([A-Za-z0-9+/=]{100})[A-Za-z0-9+/=]+(")',
)


@dataclass(slots=True, frozen=True)
class RateLimitSnapshot:
    """Advisory rate-limit state from the latest response."""

    limit: int | None = None
    remaining: int | None = None
    reset_seconds: int | None = None

    @property
    def known(self) -> bool:
        return self.limit is not None and self.remaining is not None

    def to_dict(self) -> dict[str, int | None]:
        return {
            "limit": self.limit,
            "remaining": self.remaining,
            "reset_seconds": self.reset_seconds,
        }

    @classmethod
    def from_headers(cls, headers: httpx.Headers) -> RateLimitSnapshot:
        return cls(
            limit=_parse_header_number(headers.get(RATE_LIMIT_LIMIT_HEADER)),
            remaining=_parse_header_number(headers.get(RATE_LIMIT_REMAINING_HEADER)),
            reset_seconds=_parse_header_number(headers.get(RATE_LIMIT_RESET_HEADER)),
        )


@dataclass(slots=True)
class ApiContext:
    """Per-process API state shared by the transport and reporters.

    Every response overwrites ``rate_limit`` (last write wins); nothing
    reads it to gate requests.
    """

    api_key: str
    base_url: str = DEFAULT_BASE_URL
    verbose: bool = False
    rate_limit: RateLimitSnapshot = field(default_factory=RateLimitSnapshot)
    on_rate_limit: Callable[[RateLimitSnapshot], None] | None = None

    def record_rate_limit(self, snapshot: RateLimitSnapshot) -> None:
        self.rate_limit = snapshot
        if self.on_rate_limit is not None:
            self.on_rate_limit(snapshot)


class ApiTransport:
    """Issues JSON requests, captures rate limits, maps non-2xx to ``RemoteApiError``."""

    def __init__(
        self,
        context: ApiContext,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.context = context
        self._client = httpx.AsyncClient(
            base_url=context.base_url,
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers={API_KEY_HEADER: context.api_key},
            transport=transport,
            follow_redirects=True,
        )

    async def send(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        *,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Send one request and return the parsed JSON body."""

        if self.context.verbose:
            logger.debug("%s %s%s", method, self.context.base_url, path)
            if body:
                logger.debug("Body: %s", truncate_payload(body))

        try:
            response = await self._client.request(method, path, json=body, params=params)
        except httpx.HTTPError as exc:
            logger.warning("HTTP error calling %s %s: %s", method, path, exc)
            raise RemoteApiError(
                message=f"Network error calling {method} {path}: {exc}",
                status_code=0,
            ) from exc

        snapshot = RateLimitSnapshot.from_headers(response.headers)
        self.context.record_rate_limit(snapshot)

        if self.context.verbose:
            logger.debug("Response: %s %s", response.status_code, response.reason_phrase)
            if snapshot.remaining is not None:
                logger.debug(
                    "Rate limit: %s/%s remaining, resets in %ss",
                    snapshot.remaining,
                    snapshot.limit,
                    snapshot.reset_seconds,
                )

        data = _parse_body(response.text)
        if not response.is_success:
            raise RemoteApiError.from_response(response.status_code, data)
        return data

    async def get(self, path: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        return await self.send("GET", path, params=params)

    async def post(self, path: str, body: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self.send("POST", path, body)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> ApiTransport:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()


def truncate_payload(body: dict[str, Any]) -> str:
    """Render a request body for debug logs with long base64 values cut."""

    rendered = json.dumps(body, indent=2, ensure_ascii=False)
    return _BASE64_FIELD_RE.sub(r"\1\2...[truncated]\3", rendered)


def _parse_body(text: str) -> dict[str, Any]:
    if not text:
        return {}
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return {"raw": text}
    if isinstance(parsed, dict):
        return parsed
    return {"raw": parsed}


def _parse_header_number(value: str | None) -> int | None:
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        return None
