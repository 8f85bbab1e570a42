"""Azure Batch task status lookup over the Batch REST API.

Requests are signed with the account's Shared Key. Only the single call the
results callback needs is implemented: reading a task's execution info.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from email.utils import formatdate
from urllib.parse import quote, unquote

import httpx

from autotune_web.config import Settings

logger = logging.getLogger(__name__)

USER_AGENT = "Autotune/0.1 (results-callback)"

_FRACTION_RE = re.compile(r"\.(\d+)")

_SIGNED_HEADERS = (
    "content-encoding",
    "content-language",
    "content-length",
    "content-md5",
    "content-type",
    "date",
    "if-modified-since",
    "if-match",
    "if-none-match",
    "if-unmodified-since",
    "range",
)


class TaskNotCompleteError(RuntimeError):
    """The task exists but has no exit code yet."""


@dataclass(frozen=True)
class TaskStatus:
    exit_code: int
    started_at: datetime | None
    ended_at: datetime | None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class BatchSharedKeyAuth(httpx.Auth):
    """Sign requests with ``Authorization: SharedKey <account>:<signature>``."""

    def __init__(self, account_name: str, account_key: str) -> None:
        self.account_name = account_name
        self.account_key = account_key

    def string_to_sign(self, request: httpx.Request) -> str:
        headers = request.headers
        values = []
        for name in _SIGNED_HEADERS:
            value = headers.get(name, "")
            if name == "content-length" and value == "0":
                value = ""
            values.append(value)

        canonical_headers = "".join(
            f"{name}:{headers[name]}\n"
            for name in sorted(h.lower() for h in headers.keys() if h.lower().startswith("ocp-"))
        )

        resource = f"/{self.account_name}{unquote(request.url.path)}"
        params = sorted(
            (key.lower(), value) for key, value in request.url.params.multi_items()
        )
        canonical_resource = resource + "".join(f"\n{key}:{value}" for key, value in params)

        return request.method + "\n" + "\n".join(values) + "\n" + canonical_headers + canonical_resource

    def auth_flow(self, request: httpx.Request):
        request.headers["ocp-date"] = formatdate(usegmt=True)
        key = base64.b64decode(self.account_key)
        digest = hmac.new(key, self.string_to_sign(request).encode("utf-8"), hashlib.sha256).digest()
        signature = base64.b64encode(digest).decode("ascii")
        request.headers["Authorization"] = f"SharedKey {self.account_name}:{signature}"
        yield request


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    # Batch returns e.g. 2024-05-01T10:11:12.1234567Z; fromisoformat wants <= 6 fractional digits
    cleaned = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6], value.replace("Z", "+00:00"))
    return datetime.fromisoformat(cleaned)


class BatchClient:
    """Thin Azure Batch client. Use as a context manager so the HTTP pool is closed."""

    def __init__(
        self,
        account_url: str,
        account_name: str,
        account_key: str,
        *,
        api_version: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_version = api_version
        self._client = httpx.Client(
            base_url=account_url,
            auth=BatchSharedKeyAuth(account_name, account_key),
            timeout=timeout,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "BatchClient":
        return cls(
            settings.batch_account_url,
            settings.batch_account_name,
            settings.batch_account_key,
            api_version=settings.batch_api_version,
            timeout=settings.http_timeout,
            **kwargs,
        )

    def __enter__(self) -> "BatchClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def get_task_status(self, job_id: str, task_id: str) -> TaskStatus:
        """Return exit code and start/end times of a task.

        Raises httpx.HTTPStatusError when the job or task does not exist and
        TaskNotCompleteError when it has not finished.
        """
        path = f"/jobs/{quote(job_id, safe='')}/tasks/{quote(task_id, safe='')}"
        response = self._client.get(path, params={"api-version": self.api_version})
        response.raise_for_status()
        info = response.json().get("executionInfo") or {}
        exit_code = info.get("exitCode")
        if exit_code is None:
            raise TaskNotCompleteError(
                f"task {task_id} of job {job_id} has no exit code (state={response.json().get('state')})"
            )
        status = TaskStatus(
            exit_code=int(exit_code),
            started_at=_parse_timestamp(info.get("startTime")),
            ended_at=_parse_timestamp(info.get("endTime")),
        )
        logger.info(
            "batch_task_status: job=%s task=%s exit_code=%d", job_id, task_id, status.exit_code
        )
        return status
