from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True)
class StoredBlob:
    storage_key: str
    size_bytes: int


@dataclass(frozen=True)
class BlobInfo:
    key: str
    size_bytes: int
    content_type: str | None = None
    metadata: Mapping[str, str] = field(default_factory=dict)


class BlobStoreError(RuntimeError):
    pass


class BlobNotFoundError(BlobStoreError):
    pass


class BlobStore:
    def put_bytes(
        self,
        *,
        key: str,
        data: bytes,
        content_type: str | None,
        metadata: Mapping[str, str] | None = None,
    ) -> StoredBlob:  # pragma: no cover
        raise NotImplementedError

    def get_bytes(self, *, key: str) -> bytes:  # pragma: no cover
        raise NotImplementedError

    def delete(self, *, key: str) -> None:  # pragma: no cover
        """Remove an object; deleting a missing key is not an error."""
        raise NotImplementedError

    def exists(self, *, key: str) -> bool:  # pragma: no cover
        raise NotImplementedError

    def get_metadata(self, *, key: str) -> BlobInfo:  # pragma: no cover
        raise NotImplementedError

    def list_objects(self, *, prefix: str = "") -> list[BlobInfo]:  # pragma: no cover
        """Enumerate stored objects. Metadata is not guaranteed to be populated."""
        raise NotImplementedError

    def get_download_url(self, *, key: str, expires_in_seconds: int) -> str:  # pragma: no cover
        raise NotImplementedError

    def get_public_url(self, *, key: str) -> str:  # pragma: no cover
        raise NotImplementedError

    def check_ready(self) -> None:
        return None
