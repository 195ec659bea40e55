from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field

from upload_api.core.config import Settings
from upload_api.core.errors import (
    MissingFileError,
    StorageWriteError,
    TransformError,
    UnsupportedTypeError,
)
from upload_api.core.ids import IdentifierGenerator
from upload_api.core.metrics import observe_upload
from upload_api.core.otel import traced_span
from upload_api.services.blocking import run_blocking
from upload_api.services.images import ImageTransformer, content_type_for_format
from upload_api.storage.base import BlobStore, BlobStoreError

logger = logging.getLogger("upload.api")

PDF_CONTENT_TYPE = "application/pdf"
UPLOAD_SUCCESS_MESSAGE = "File uploaded and processed successfully"
ORIGINAL_NAME_METADATA_KEY = "name"


@dataclass(frozen=True)
class UploadedFile:
    data: bytes
    content_type: str
    filename: str


@dataclass(frozen=True)
class UploadResult:
    file_id: str
    file_url: str
    content_type: str
    message: str = UPLOAD_SUCCESS_MESSAGE


def normalize_content_type(raw: str | None) -> str:
    return (raw or "").split(";", 1)[0].strip().lower()


def classify_content_type(content_type: str) -> str | None:
    if content_type.startswith("image/"):
        return "image"
    if content_type == PDF_CONTENT_TYPE:
        return "pdf"
    return None


def blob_key_for(file_id: str, *, settings: Settings) -> str:
    return f"{settings.BLOB_KEY_PREFIX}{file_id}"


@dataclass
class _GuardedPut:
    """A store write whose result is dropped if the caller stops waiting for it.

    The write runs in a worker thread that cannot be interrupted. When the
    request times out first, the object is deleted as soon as the write lands,
    so a failed upload never becomes retrievable.
    """

    blob_store: BlobStore
    key: str
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _committed: bool = field(default=False, init=False)
    _abandoned: bool = field(default=False, init=False)

    def run(self, *, data: bytes, content_type: str, metadata: Mapping[str, str]) -> None:
        self.blob_store.put_bytes(
            key=self.key, data=data, content_type=content_type, metadata=metadata
        )
        with self._lock:
            if not self._abandoned:
                self._committed = True
                return
        logger.warning("upload.discard_late_write key=%s", self.key)
        try:
            self.blob_store.delete(key=self.key)
        except BlobStoreError as e:
            logger.error("upload.discard_failed key=%s error=%s", self.key, e)

    def abandon(self) -> bool:
        """Give up on the write. Returns False when it already completed."""
        with self._lock:
            if self._committed:
                return False
            self._abandoned = True
            return True


async def process_upload(
    *,
    upload: UploadedFile | None,
    settings: Settings,
    blob_store: BlobStore,
    transformer: ImageTransformer,
    id_generator: IdentifierGenerator,
) -> UploadResult:
    if upload is None:
        raise MissingFileError()

    declared = normalize_content_type(upload.content_type)
    kind = classify_content_type(declared)
    if kind is None:
        observe_upload(kind="unsupported", outcome="rejected")
        logger.info("upload.rejected content_type=%s filename=%s", declared, upload.filename)
        raise UnsupportedTypeError(upload.content_type)

    if kind == "image":
        try:
            with traced_span("upload.transform", size_bytes=len(upload.data)):
                data = await run_blocking(
                    transformer.resize_and_encode,
                    upload.data,
                    width=settings.IMAGE_TARGET_WIDTH,
                    height=settings.IMAGE_TARGET_HEIGHT,
                    format=settings.IMAGE_OUTPUT_FORMAT,
                    timeout=settings.STORAGE_TIMEOUT_SECONDS,
                )
        except TransformError as e:
            observe_upload(kind=kind, outcome="transform_failed")
            logger.info("upload.transform_failed filename=%s error=%s", upload.filename, e)
            raise
        except TimeoutError as e:
            observe_upload(kind=kind, outcome="transform_failed")
            raise TransformError("Timed out processing image") from e
        content_type = content_type_for_format(settings.IMAGE_OUTPUT_FORMAT)
    else:
        data = upload.data
        content_type = PDF_CONTENT_TYPE

    file_id = id_generator.generate()
    key = blob_key_for(file_id, settings=settings)
    put = _GuardedPut(blob_store=blob_store, key=key)
    try:
        with traced_span("upload.store", key=key, content_type=content_type):
            await run_blocking(
                put.run,
                data=data,
                content_type=content_type,
                metadata={ORIGINAL_NAME_METADATA_KEY: upload.filename},
                timeout=settings.STORAGE_TIMEOUT_SECONDS,
            )
    except BlobStoreError as e:
        observe_upload(kind=kind, outcome="storage_failed")
        logger.error("upload.storage_failed file_id=%s key=%s error=%s", file_id, key, e)
        raise StorageWriteError(f"Blob stream error: {e}") from e
    except TimeoutError as e:
        if put.abandon():
            observe_upload(kind=kind, outcome="storage_failed")
            logger.error("upload.storage_timeout file_id=%s key=%s", file_id, key)
            raise StorageWriteError("Timed out storing file") from e
        # The write finished just as the deadline passed; keep it.

    observe_upload(kind=kind, outcome="stored")
    logger.info(
        "upload.stored file_id=%s content_type=%s size_bytes=%d",
        file_id,
        content_type,
        len(data),
    )
    return UploadResult(
        file_id=file_id,
        file_url=blob_store.get_public_url(key=key),
        content_type=content_type,
    )
