"""Tests for the Azure Batch task status client."""

from __future__ import annotations

import base64
import hashlib
import hmac
from datetime import UTC, datetime

import httpx
import pytest

from autotune_web.services.batch_client import (
    BatchClient,
    BatchSharedKeyAuth,
    TaskNotCompleteError,
)
from tests.test_constants import TEST_BATCH_ACCOUNT_KEY

ACCOUNT_URL = "https://autotune.westeurope.batch.azure.com"


def _client(handler) -> BatchClient:
    return BatchClient(
        ACCOUNT_URL,
        "autotune",
        TEST_BATCH_ACCOUNT_KEY,
        api_version="2024-07-01.20.0",
        transport=httpx.MockTransport(handler),
    )


def _task(exit_code=0, **info) -> dict:
    execution = {
        "startTime": "2026-10-18T21:00:05.1234567Z",
        "endTime": "2026-10-18T21:04:47Z",
        "exitCode": exit_code,
    }
    execution.update(info)
    return {"id": "Autotune", "state": "completed", "executionInfo": execution}


class TestGetTaskStatus:
    def test_reads_exit_code_and_times(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_task(exit_code=0))

        with _client(handler) as client:
            status = client.get_task_status("autotune-job-abc", "Autotune")

        assert status.exit_code == 0
        assert status.succeeded is True
        assert status.started_at == datetime(2026, 10, 18, 21, 0, 5, 123456, tzinfo=UTC)
        assert status.ended_at == datetime(2026, 10, 18, 21, 4, 47, tzinfo=UTC)
        assert seen[0].url.path == "/jobs/autotune-job-abc/tasks/Autotune"
        assert seen[0].url.params["api-version"] == "2024-07-01.20.0"

    def test_nonzero_exit_code(self) -> None:
        with _client(lambda r: httpx.Response(200, json=_task(exit_code=3))) as client:
            status = client.get_task_status("autotune-job-abc", "Autotune")
        assert status.exit_code == 3
        assert status.succeeded is False

    def test_missing_task_raises_http_error(self) -> None:
        with _client(lambda r: httpx.Response(404, json={"code": "JobNotFound"})) as client:
            with pytest.raises(httpx.HTTPStatusError):
                client.get_task_status("autotune-job-missing", "Autotune")

    def test_running_task_raises_not_complete(self) -> None:
        body = {"id": "Autotune", "state": "running", "executionInfo": {"startTime": "2026-10-18T21:00:05Z"}}
        with _client(lambda r: httpx.Response(200, json=body)) as client:
            with pytest.raises(TaskNotCompleteError):
                client.get_task_status("autotune-job-abc", "Autotune")


class TestSharedKeyAuth:
    def test_request_is_signed(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_task())

        with _client(handler) as client:
            client.get_task_status("autotune-job-abc", "Autotune")

        request = seen[0]
        assert "ocp-date" in request.headers
        scheme, _, credential = request.headers["Authorization"].partition(" ")
        assert scheme == "SharedKey"
        account, _, signature = credential.partition(":")
        assert account == "autotune"

        auth = BatchSharedKeyAuth("autotune", TEST_BATCH_ACCOUNT_KEY)
        expected = base64.b64encode(
            hmac.new(
                base64.b64decode(TEST_BATCH_ACCOUNT_KEY),
                auth.string_to_sign(request).encode("utf-8"),
                hashlib.sha256,
            ).digest()
        ).decode("ascii")
        assert signature == expected

    def test_string_to_sign_layout(self) -> None:
        request = httpx.Request(
            "GET",
            f"{ACCOUNT_URL}/jobs/j1/tasks/Autotune?api-version=2024-07-01.20.0",
            headers={"ocp-date": "Sun, 18 Oct 2026 21:05:00 GMT"},
        )
        text = BatchSharedKeyAuth("autotune", TEST_BATCH_ACCOUNT_KEY).string_to_sign(request)
        assert text.startswith("GET\n")
        assert "ocp-date:Sun, 18 Oct 2026 21:05:00 GMT\n" in text
        assert text.endswith("/autotune/jobs/j1/tasks/Autotune\napi-version:2024-07-01.20.0")

    def test_invalid_key_fails_on_request_not_on_construction(self) -> None:
        client = BatchClient(
            ACCOUNT_URL,
            "autotune",
            "not base64!",
            api_version="2024-07-01.20.0",
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json=_task())),
        )
        with client, pytest.raises(ValueError):
            client.get_task_status("autotune-job-abc", "Autotune")
