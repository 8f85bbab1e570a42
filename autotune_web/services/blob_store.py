"""Blob storage access for batch job output containers.

Each batch job writes its output files to a container named after the job.
Two stores are supported: Azure Blob Storage over REST with a SAS token, and a
mounted directory (one sub-directory per container) selected with a
``file://`` blob endpoint.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, unquote, urlparse

import httpx

from autotune_web.config import Settings

logger = logging.getLogger(__name__)


class BlobNotFoundError(LookupError):
    """The container or blob does not exist."""


@dataclass(frozen=True)
class BlobInfo:
    name: str
    size: int


class BlobStore(Protocol):
    def list_blobs(self, container: str) -> list[BlobInfo]: ...

    def download(self, container: str, name: str) -> bytes: ...

    def close(self) -> None: ...


class HttpBlobStore:
    """Azure Blob Storage REST client authenticated with a SAS token."""

    def __init__(
        self,
        endpoint: str,
        sas_token: str = "",
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint
        self._sas = httpx.QueryParams(sas_token)
        self._client = httpx.Client(
            base_url=endpoint.rstrip("/"),
            timeout=timeout,
            headers={"x-ms-version": "2021-08-06"},
            transport=transport,
        )

    def __enter__(self) -> "HttpBlobStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str, params: dict[str, str] | None = None) -> httpx.Response:
        if not self.endpoint:
            raise RuntimeError("blob endpoint is not configured (STORAGE_CONNECTION_STRING)")
        query = self._sas.merge(params or {})
        response = self._client.get(path, params=query)
        if response.status_code == 404:
            raise BlobNotFoundError(f"not found: {path}")
        response.raise_for_status()
        return response

    def list_blobs(self, container: str) -> list[BlobInfo]:
        blobs: list[BlobInfo] = []
        marker = ""
        while True:
            params = {"restype": "container", "comp": "list"}
            if marker:
                params["marker"] = marker
            root = ET.fromstring(self._get(f"/{quote(container)}", params).content)
            for blob in root.iter("Blob"):
                name = blob.findtext("Name") or ""
                size = blob.findtext("Properties/Content-Length") or "0"
                blobs.append(BlobInfo(name=name, size=int(size)))
            marker = root.findtext("NextMarker") or ""
            if not marker:
                return blobs

    def download(self, container: str, name: str) -> bytes:
        return self._get(f"/{quote(container)}/{quote(name)}").content


class LocalBlobStore:
    """Containers as directories under ``root``; blob names are relative POSIX paths."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def close(self) -> None:
        pass

    def _container_dir(self, container: str) -> Path:
        path = self.root / container
        if not path.is_dir():
            raise BlobNotFoundError(f"container not found: {container}")
        return path

    def list_blobs(self, container: str) -> list[BlobInfo]:
        base = self._container_dir(container)
        return [
            BlobInfo(name=path.relative_to(base).as_posix(), size=path.stat().st_size)
            for path in sorted(base.rglob("*"))
            if path.is_file()
        ]

    def download(self, container: str, name: str) -> bytes:
        base = self._container_dir(container).resolve()
        path = (base / name).resolve()
        if base not in path.parents or not path.is_file():
            raise BlobNotFoundError(f"blob not found: {container}/{name}")
        return path.read_bytes()


def open_blob_store(settings: Settings) -> BlobStore:
    """Build the blob store described by the storage connection string."""
    endpoint = settings.blob_endpoint
    if endpoint.startswith("file://"):
        return LocalBlobStore(unquote(urlparse(endpoint).path))
    return HttpBlobStore(endpoint, settings.blob_sas_token, timeout=settings.http_timeout)
