"""Async artifact downloader with retries and timeout."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 120.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_USER_AGENT = "freepik-cli/1.0 (+https://github.com/Balneario-de-Cofrentes/freepik-cli)"


@dataclass(slots=True)
class FetchResult:
    """Result of one artifact download."""

    url: str
    status_code: int
    content: bytes
    content_type: str
    is_success: bool
    error: str | None = None


class ArtifactFetcher:
    """Unauthenticated HTTP client for artifact URLs (CDN links, signed URLs).

    The API key is never attached to these requests.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = httpx.Timeout(timeout_seconds, connect=10.0)
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            headers={"User-Agent": user_agent},
            transport=transport or httpx.AsyncHTTPTransport(retries=max_retries),
            follow_redirects=True,
        )

    async def fetch(self, url: str) -> FetchResult:
        """Download URL content, returning a structured result instead of raising."""

        try:
            response = await self._client.get(url)
            content_type = response.headers.get("content-type", "")
            return FetchResult(
                url=url,
                status_code=response.status_code,
                content=response.content,
                content_type=content_type,
                is_success=response.is_success,
                error=None
                if response.is_success
                else f"HTTP {response.status_code} {response.reason_phrase}".strip(),
            )
        except httpx.TimeoutException:
            logger.warning("Timeout downloading %s", url)
            return FetchResult(
                url=url,
                status_code=0,
                content=b"",
                content_type="",
                is_success=False,
                error="timeout",
            )
        except httpx.HTTPError as exc:
            logger.warning("HTTP error downloading %s: %s", url, exc)
            return FetchResult(
                url=url,
                status_code=0,
                content=b"",
                content_type="",
                is_success=False,
                error=str(exc),
            )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> ArtifactFetcher:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()
