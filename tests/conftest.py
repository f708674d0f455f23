"""Shared test fixtures."""

from __future__ import annotations

from collections import deque
from pathlib import Path
from typing import Any

import pytest

from freepik_cli.config import Settings


class FakeClock:
    """Monotonic clock advanced only by ``sleep``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedApiClient:
    """In-memory API client replaying queued responses."""

    def __init__(
        self,
        *,
        create: dict[str, Any] | None = None,
        statuses: list[dict[str, Any]] | None = None,
    ) -> None:
        self.create = create or {}
        self.statuses = deque(statuses or [])
        self.posts: list[tuple[str, dict[str, Any] | None]] = []
        self.gets: list[str] = []

    async def post(self, path: str, body: dict[str, Any] | None = None) -> dict[str, Any]:
        self.posts.append((path, body))
        return self.create

    async def get(self, path: str) -> dict[str, Any]:
        self.gets.append(path)
        if len(self.statuses) > 1:
            return self.statuses.popleft()
        return self.statuses[0]


def task_envelope(
    status: str,
    *,
    task_id: str = "task-123",
    generated: list[Any] | None = None,
) -> dict[str, Any]:
    data: dict[str, Any] = {"task_id": task_id, "status": status}
    if generated is not None:
        data["generated"] = generated
    return {"data": data}


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(config_dir=tmp_path / "config", api_key_env="test-key-123456")
