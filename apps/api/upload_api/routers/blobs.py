from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from upload_api.core.deps import get_blob_store
from upload_api.core.middleware import now_ts
from upload_api.storage.base import BlobStore, BlobStoreError
from upload_api.storage.local import LocalBlobStore

router = APIRouter(tags=["blobs"])


@router.get("/blobs/{key:path}")
def blobs_get(
    key: str,
    expires: int | None = Query(default=None),
    signature: str | None = Query(default=None),
    blob_store: BlobStore = Depends(get_blob_store),
) -> Response:
    # Only the local store serves bytes through the API; S3 URLs point at the bucket.
    if not isinstance(blob_store, LocalBlobStore):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")

    if expires is not None or signature is not None:
        if expires is None or not signature or not blob_store.verify_signature(
            key, expires=expires, signature=signature, now_ts=now_ts()
        ):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid signature")

    if not blob_store.exists(key=key):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    try:
        info = blob_store.get_metadata(key=key)
        data = blob_store.get_bytes(key=key)
    except BlobStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Blob unavailable"
        ) from e
    return Response(content=data, media_type=info.content_type or "application/octet-stream")
