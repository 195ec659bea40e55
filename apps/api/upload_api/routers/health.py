from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from upload_api.core.config import Settings
from upload_api.core.deps import get_app_settings, get_blob_store
from upload_api.services.blocking import run_blocking
from upload_api.storage.base import BlobStore, BlobStoreError

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "up", "message": "API is running"}


@router.get("/readyz")
async def readyz(
    settings: Settings = Depends(get_app_settings),
    blob_store: BlobStore = Depends(get_blob_store),
) -> dict[str, str]:
    try:
        await run_blocking(blob_store.check_ready, timeout=settings.STORAGE_TIMEOUT_SECONDS)
    except (BlobStoreError, TimeoutError) as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="blob store not ready",
        ) from e
    return {"status": "ready"}
