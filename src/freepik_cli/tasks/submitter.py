"""Task creation: turn an (endpoint, payload) pair into a task handle."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from freepik_cli.tasks.errors import RemoteApiError
from freepik_cli.tasks.models import TaskEndpoint, TaskSnapshot, parse_task_snapshot

logger = logging.getLogger(__name__)


class ApiClient(Protocol):
    """Subset of ``ApiTransport`` the engine depends on."""

    async def get(self, path: str) -> dict[str, Any]:
        raise NotImplementedError

    async def post(self, path: str, body: dict[str, Any] | None = None) -> dict[str, Any]:
        raise NotImplementedError


class TaskSubmitter:
    """Creates remote tasks. No retries: submission errors propagate as-is."""

    def __init__(self, client: ApiClient) -> None:
        self.client = client

    async def submit(self, endpoint: TaskEndpoint, payload: dict[str, Any]) -> TaskSnapshot:
        """POST the payload; a COMPLETED status means the result came back inline."""

        response = await self.client.post(endpoint.create_path, payload)
        snapshot = parse_task_snapshot(response)
        if not snapshot.task_id and not snapshot.is_completed:
            raise RemoteApiError(
                message=f"Task creation on {endpoint.create_path} returned no task_id",
                body=response,
            )
        logger.info(
            "Task created: task_id=%s status=%s endpoint=%s inline_artifacts=%d",
            snapshot.task_id,
            snapshot.status,
            endpoint.create_path,
            len(snapshot.artifacts),
        )
        return snapshot
