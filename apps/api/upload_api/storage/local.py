from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import time
from collections.abc import Mapping
from pathlib import Path
from urllib.parse import quote, urlencode

from upload_api.storage.base import (
    BlobInfo,
    BlobNotFoundError,
    BlobStore,
    BlobStoreError,
    StoredBlob,
)

_OBJECTS_DIR = "objects"
_META_DIR = "meta"


class LocalBlobStore(BlobStore):
    """Filesystem-backed store for development and tests.

    Object bytes live under ``<root>/objects/<key>`` with a JSON sidecar under
    ``<root>/meta/<key>.json``. URLs point at the API's ``/blobs`` route, which
    serves the bytes back; signed URLs carry an HMAC over key and expiry.
    """

    def __init__(self, root_dir: str, *, base_url: str, signing_key: str) -> None:
        self._root = Path(root_dir)
        self._objects = self._root / _OBJECTS_DIR
        self._meta = self._root / _META_DIR
        self._objects.mkdir(parents=True, exist_ok=True)
        self._meta.mkdir(parents=True, exist_ok=True)
        self._base_url = base_url.rstrip("/")
        self._signing_key = signing_key.encode("utf-8")

    def _path_for_key(self, key: str) -> Path:
        key = key.lstrip("/")
        root = self._objects.resolve()
        try:
            path = (root / key).resolve()
        except (OSError, ValueError) as e:
            # Embedded NUL bytes and over-long names fail inside resolve().
            raise BlobStoreError(f"Invalid blob key: {key!r}") from e
        if path == root or not str(path).startswith(str(root) + os.sep):
            raise BlobStoreError(f"Invalid blob key: {key!r}")
        return path

    def _meta_path_for_key(self, key: str) -> Path:
        rel = self._path_for_key(key).relative_to(self._objects.resolve())
        return self._meta.resolve() / f"{rel}.json"

    def put_bytes(
        self,
        *,
        key: str,
        data: bytes,
        content_type: str | None,
        metadata: Mapping[str, str] | None = None,
    ) -> StoredBlob:
        path = self._path_for_key(key)
        meta_path = self._meta_path_for_key(key)
        sidecar = {"content_type": content_type, "metadata": dict(metadata or {})}
        try:
            # Sidecar first: an object whose bytes exist always has metadata.
            _atomic_write(meta_path, json.dumps(sidecar, sort_keys=True).encode("utf-8"))
            _atomic_write(path, data)
        except OSError as e:
            raise BlobStoreError(str(e)) from e
        return StoredBlob(storage_key=key, size_bytes=len(data))

    def get_bytes(self, *, key: str) -> bytes:
        path = self._path_for_key(key)
        try:
            return path.read_bytes()
        except OSError as e:
            raise BlobStoreError(str(e)) from e

    def delete(self, *, key: str) -> None:
        path = self._path_for_key(key)
        meta_path = self._meta_path_for_key(key)
        try:
            # Bytes first, mirroring put_bytes: a visible object keeps its sidecar.
            path.unlink(missing_ok=True)
            meta_path.unlink(missing_ok=True)
        except OSError as e:
            raise BlobStoreError(str(e)) from e

    def exists(self, *, key: str) -> bool:
        try:
            return self._path_for_key(key).is_file()
        except BlobStoreError:
            return False

    def get_metadata(self, *, key: str) -> BlobInfo:
        path = self._path_for_key(key)
        try:
            size = path.stat().st_size
            sidecar = json.loads(self._meta_path_for_key(key).read_text("utf-8"))
        except FileNotFoundError as e:
            raise BlobNotFoundError(str(e)) from e
        except (OSError, ValueError) as e:
            raise BlobStoreError(str(e)) from e
        return BlobInfo(
            key=key,
            size_bytes=size,
            content_type=sidecar.get("content_type"),
            metadata=dict(sidecar.get("metadata") or {}),
        )

    def list_objects(self, *, prefix: str = "") -> list[BlobInfo]:
        out: list[BlobInfo] = []
        try:
            for path in self._objects.rglob("*"):
                if not path.is_file() or path.name.endswith(".tmp"):
                    continue
                key = path.relative_to(self._objects).as_posix()
                if key.startswith(prefix):
                    out.append(BlobInfo(key=key, size_bytes=path.stat().st_size))
        except OSError as e:
            raise BlobStoreError(str(e)) from e
        # Match S3's lexicographic listing order.
        out.sort(key=lambda info: info.key)
        return out

    def get_download_url(self, *, key: str, expires_in_seconds: int) -> str:
        expires = int(time.time()) + int(expires_in_seconds)
        query = urlencode({"expires": expires, "signature": self.sign(key, expires=expires)})
        return f"{self.get_public_url(key=key)}?{query}"

    def get_public_url(self, *, key: str) -> str:
        return f"{self._base_url}/blobs/{quote(key, safe='/')}"

    def check_ready(self) -> None:
        if not self._objects.is_dir():
            raise BlobStoreError(f"Blob directory missing: {self._objects}")

    def sign(self, key: str, *, expires: int) -> str:
        digest = hmac.new(
            self._signing_key, f"{key}:{expires}".encode("utf-8"), hashlib.sha256
        ).digest()
        return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")

    def verify_signature(self, key: str, *, expires: int, signature: str, now_ts: float) -> bool:
        if expires < now_ts:
            return False
        return hmac.compare_digest(self.sign(key, expires=expires), signature)


def _atomic_write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, "wb") as f:
        f.write(data)
    os.replace(tmp_path, path)
