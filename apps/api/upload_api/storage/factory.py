from __future__ import annotations

from upload_api.core.config import Settings
from upload_api.storage.base import BlobStore
from upload_api.storage.local import LocalBlobStore
from upload_api.storage.s3 import S3BlobStore, S3Config


def build_blob_store(settings: Settings) -> BlobStore:
    if settings.BLOB_STORE == "local":
        return LocalBlobStore(
            settings.LOCAL_BLOB_DIR,
            base_url=settings.API_BASE_URL,
            signing_key=settings.LOCAL_BLOB_SIGNING_KEY,
        )
    if settings.BLOB_STORE == "s3":
        return S3BlobStore(
            S3Config(
                bucket=settings.S3_BUCKET,
                access_key_id=settings.S3_ACCESS_KEY_ID,
                secret_access_key=settings.S3_SECRET_ACCESS_KEY,
                endpoint_url=settings.S3_ENDPOINT_URL,
                region=settings.S3_REGION,
                public_base_url=settings.S3_PUBLIC_BASE_URL,
                timeout_seconds=settings.STORAGE_TIMEOUT_SECONDS,
            )
        )
    raise ValueError(f"Unsupported BLOB_STORE: {settings.BLOB_STORE}")
