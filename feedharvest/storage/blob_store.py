"""
Content-addressed blob stores.

A blob store takes a set of named files, stores them as one unit and returns
a content identifier (CID) for the unit. Nothing is ever updated or deleted.

- IpfsBlobStore: uploads through an IPFS HTTP API (``/api/v0/add``), wrapping
  the files in a directory so one CID addresses the whole set
- LocalBlobStore: writes the set under ``<root>/<digest>/`` for development
  and offline runs
"""

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Sequence

import httpx

from feedharvest.core.config import Config
from feedharvest.core.errors import BlobStoreError
from feedharvest.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class NamedFile:
    """One file of an upload unit."""
    name: str
    data: bytes
    content_type: str = "application/octet-stream"

    @classmethod
    def json(cls, name: str, obj: Any) -> "NamedFile":
        return cls(name, json.dumps(obj, ensure_ascii=False).encode("utf-8"), "application/json")

    @classmethod
    def html(cls, name: str, markup: str) -> "NamedFile":
        return cls(name, markup.encode("utf-8"), "text/html;charset=UTF-8")


class BlobStore(Protocol):
    async def put(self, files: Sequence[NamedFile]) -> str:
        ...


class IpfsBlobStore:
    """
    Blob store backed by an IPFS node or pinning service speaking the
    Kubo RPC API.
    """

    def __init__(
        self,
        api_url: str,
        token: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            api_url: Base URL of the API (e.g. http://127.0.0.1:5001)
            token: Optional bearer token for hosted pinning services
            timeout: Request timeout in seconds
            client: Optional shared httpx client (its base settings are used as-is)
        """
        self._api_url = api_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._client = client

    def _headers(self) -> Dict[str, str]:
        if self._token:
            return {"Authorization": f"Bearer {self._token}"}
        return {}

    async def put(self, files: Sequence[NamedFile]) -> str:
        if not files:
            raise BlobStoreError("refusing to upload an empty file set")

        url = f"{self._api_url}/api/v0/add"
        params = {"wrap-with-directory": "true", "cid-version": "1", "pin": "true"}
        multipart = [("file", (f.name, f.data, f.content_type)) for f in files]

        try:
            if self._client is not None:
                resp = await self._client.post(url, params=params, files=multipart, headers=self._headers())
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.post(url, params=params, files=multipart, headers=self._headers())
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise BlobStoreError(f"upload of {[f.name for f in files]} failed: {e}") from e

        cid = self._directory_cid(resp.text)
        logger.debug(f"Uploaded {len(files)} file(s) -> {cid}")
        return cid

    @staticmethod
    def _directory_cid(body: str) -> str:
        """
        The add endpoint streams one JSON object per added entry; the wrapping
        directory is the entry with an empty name and comes last.
        """
        entries = []
        for line in body.splitlines():
            if not line.strip():
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError as e:
                raise BlobStoreError(f"unexpected add response line: {line[:200]!r}") from e

        for entry in reversed(entries):
            if entry.get("Name", "") == "" and entry.get("Hash"):
                return entry["Hash"]
        raise BlobStoreError("add response did not include a directory CID")


class LocalBlobStore:
    """
    Content-addressed store on the local filesystem.

    The identifier is a SHA-256 digest over the file names and contents, so
    the same file set always maps to the same directory.
    """

    def __init__(self, root: Path):
        self._root = root
        self._root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def digest(files: Sequence[NamedFile]) -> str:
        h = hashlib.sha256()
        for f in sorted(files, key=lambda f: f.name):
            h.update(f.name.encode("utf-8"))
            h.update(b"\0")
            h.update(hashlib.sha256(f.data).digest())
        return "sha256-" + h.hexdigest()

    async def put(self, files: Sequence[NamedFile]) -> str:
        if not files:
            raise BlobStoreError("refusing to store an empty file set")

        cid = self.digest(files)
        target = self._root / cid
        try:
            target.mkdir(parents=True, exist_ok=True)
            for f in files:
                (target / f.name).write_bytes(f.data)
        except OSError as e:
            raise BlobStoreError(f"writing {target} failed: {e}") from e

        logger.debug(f"Stored {len(files)} file(s) -> {target}")
        return cid

    def path_for(self, cid: str) -> Path:
        return self._root / cid


def make_blob_store(config: Config) -> BlobStore:
    """Build the blob store selected by BLOB_BACKEND."""
    if config.blob_backend == "ipfs":
        logger.info(f"Using IPFS blob store at {config.ipfs_api_url}")
        return IpfsBlobStore(config.ipfs_api_url, token=config.ipfs_api_token, timeout=config.blob_timeout_s)
    logger.info(f"Using local blob store under {config.local_blob_dir}")
    return LocalBlobStore(config.local_blob_dir)
