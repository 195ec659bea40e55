from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from upload_api.core.config import Settings
from upload_api.core.errors import NotFoundError, StorageReadError
from upload_api.core.otel import traced_span
from upload_api.services.blocking import run_blocking
from upload_api.services.uploads import (
    ORIGINAL_NAME_METADATA_KEY,
    PDF_CONTENT_TYPE,
    blob_key_for,
)
from upload_api.storage.base import BlobNotFoundError, BlobStore, BlobStoreError

logger = logging.getLogger("upload.api")

T = TypeVar("T")


@dataclass(frozen=True)
class AccessDescriptor:
    file_id: str
    file_url: str
    content_type: str | None
    extension: str
    file_name: str | None = None


def infer_extension(content_type: str | None) -> str:
    # Display hint only; the stored bytes are not inspected.
    return ".pdf" if content_type == PDF_CONTENT_TYPE else ".png"


def file_id_for_key(key: str, *, settings: Settings) -> str:
    prefix = settings.BLOB_KEY_PREFIX
    return key[len(prefix) :] if prefix and key.startswith(prefix) else key


async def _read(
    func: Callable[..., T],
    *,
    settings: Settings,
    operation: str,
    allow_missing: bool = False,
    **kwargs: Any,
) -> T:
    try:
        with traced_span(f"storage.{operation}", key=kwargs.get("key")):
            return await run_blocking(func, timeout=settings.STORAGE_TIMEOUT_SECONDS, **kwargs)
    except BlobStoreError as e:
        if allow_missing and isinstance(e, BlobNotFoundError):
            raise
        logger.error("storage.read_failed operation=%s error=%s", operation, e)
        raise StorageReadError(f"Error retrieving file: {e}") from e
    except TimeoutError as e:
        logger.error("storage.read_timeout operation=%s", operation)
        raise StorageReadError("Timed out retrieving file") from e


async def get_file(*, file_id: str, settings: Settings, blob_store: BlobStore) -> AccessDescriptor:
    key = blob_key_for(file_id, settings=settings)
    exists = await _read(blob_store.exists, settings=settings, operation="exists", key=key)
    if not exists:
        raise NotFoundError()

    try:
        info = await _read(
            blob_store.get_metadata,
            settings=settings,
            operation="metadata",
            allow_missing=True,
            key=key,
        )
    except BlobNotFoundError as e:
        raise NotFoundError() from e
    url = await _read(
        blob_store.get_download_url,
        settings=settings,
        operation="sign",
        key=key,
        expires_in_seconds=settings.SIGNED_URL_TTL_SECONDS,
    )
    return AccessDescriptor(
        file_id=file_id,
        file_url=url,
        content_type=info.content_type,
        extension=infer_extension(info.content_type),
        file_name=info.metadata.get(ORIGINAL_NAME_METADATA_KEY),
    )


async def find_file_by_name(
    *, file_name: str, settings: Settings, blob_store: BlobStore
) -> AccessDescriptor:
    """Return the first stored object whose original filename equals ``file_name``.

    This is a full scan in store enumeration order; with duplicate names the
    winner depends on that order.
    """
    listing = await _read(
        blob_store.list_objects,
        settings=settings,
        operation="list",
        prefix=settings.BLOB_KEY_PREFIX,
    )
    for item in listing:
        try:
            info = await _read(
                blob_store.get_metadata,
                settings=settings,
                operation="metadata",
                allow_missing=True,
                key=item.key,
            )
        except BlobNotFoundError:
            # Deleted between the listing and the lookup.
            continue
        if info.metadata.get(ORIGINAL_NAME_METADATA_KEY) != file_name:
            continue

        url = await _read(
            blob_store.get_download_url,
            settings=settings,
            operation="sign",
            key=item.key,
            expires_in_seconds=settings.SIGNED_URL_TTL_SECONDS,
        )
        return AccessDescriptor(
            file_id=file_id_for_key(item.key, settings=settings),
            file_url=url,
            content_type=info.content_type,
            extension=infer_extension(info.content_type),
            file_name=file_name,
        )

    raise NotFoundError()


async def list_file_urls(*, settings: Settings, blob_store: BlobStore) -> list[str]:
    listing = await _read(
        blob_store.list_objects,
        settings=settings,
        operation="list",
        prefix=settings.BLOB_KEY_PREFIX,
    )
    return [blob_store.get_public_url(key=item.key) for item in listing]
