from __future__ import annotations

import allure
import pytest

from freepik_cli.tasks.errors import RemoteApiError, TaskTimedOutError, ValidationError
from freepik_cli.tasks.models import (
    Artifact,
    BatchOutcome,
    BatchReport,
    TaskEndpoint,
    normalize_artifacts,
    parse_task_snapshot,
)

pytestmark = [
    allure.epic("Task Lifecycle"),
    allure.feature("Task Models"),
]


def test_normalize_artifacts_accepts_mixed_strings_and_objects() -> None:
    artifacts = normalize_artifacts(
        [
            "https://cdn.test/a.png",
            {"url": "https://cdn.test/b.webp", "content_type": "image/webp", "width": 512},
        ],
    )

    assert artifacts == [
        Artifact(url="https://cdn.test/a.png"),
        Artifact(url="https://cdn.test/b.webp", content_type="image/webp", extra={"width": 512}),
    ]


def test_normalize_artifacts_treats_missing_list_as_empty() -> None:
    assert normalize_artifacts(None) == []


@pytest.mark.parametrize(
    "raw",
    [
        "https://cdn.test/a.png",
        [""],
        [{"content_type": "image/png"}],
        [42],
    ],
)
def test_normalize_artifacts_rejects_malformed_entries(raw: object) -> None:
    with pytest.raises(ValidationError):
        normalize_artifacts(raw)


def test_parse_task_snapshot_uppercases_known_status_and_keeps_unknown() -> None:
    known = parse_task_snapshot({"data": {"task_id": "t", "status": "completed"}})
    unknown = parse_task_snapshot({"data": {"task_id": "t", "status": "CREATED"}})

    assert known.is_completed
    assert known.is_terminal
    assert unknown.status == "CREATED"
    assert not unknown.is_terminal


def test_parse_task_snapshot_falls_back_to_known_task_id() -> None:
    snapshot = parse_task_snapshot({"data": {"status": "IN_PROGRESS"}}, task_id="abc")

    assert snapshot.task_id == "abc"


def test_parse_task_snapshot_requires_data_envelope() -> None:
    with pytest.raises(RemoteApiError, match="missing 'data'"):
        parse_task_snapshot({"raw": "oops"})


def test_task_endpoint_status_path_joins_poll_path_and_task_id() -> None:
    endpoint = TaskEndpoint(create_path="/v1/ai/mystic", poll_path="/v1/ai/mystic/")

    assert endpoint.status_path("t-1") == "/v1/ai/mystic/t-1"


def test_timed_out_error_carries_resume_hint() -> None:
    error = TaskTimedOutError(
        message="timed out",
        task_id="t-1",
        poll_path="/v1/ai/mystic",
        max_wait_seconds=300,
    )

    assert error.resume_hint == "freepik status t-1 --endpoint /v1/ai/mystic"


def test_batch_report_counts() -> None:
    report = BatchReport(
        outcomes=[
            BatchOutcome(index=0, success=True, output="a.png"),
            BatchOutcome(index=1, success=False, error="boom"),
            BatchOutcome(index=2, success=True, output="c.png"),
        ],
        elapsed_seconds=1.5,
    )

    assert (report.succeeded, report.failed) == (2, 1)
