from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from upload_api.core.config import Settings
from upload_api.core.deps import (
    get_app_settings,
    get_blob_store,
    get_id_generator,
    get_image_transformer,
)
from upload_api.core.ids import IdentifierGenerator
from upload_api.schemas.files import ErrorOut, FileByNameOut, FileOut, UploadOut
from upload_api.services.files import find_file_by_name, get_file, list_file_urls
from upload_api.services.images import ImageTransformer
from upload_api.services.uploads import UploadedFile, process_upload
from upload_api.storage.base import BlobStore

router = APIRouter(tags=["files"], responses={500: {"model": ErrorOut}})


async def _read_upload(file: UploadFile | None, *, max_bytes: int) -> UploadedFile | None:
    if file is None:
        return None
    data = await file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail=f"File exceeds the {max_bytes} byte upload limit",
        )
    return UploadedFile(
        data=data,
        content_type=file.content_type or "",
        filename=file.filename or "",
    )


@router.post("/upload", response_model=UploadOut)
async def files_upload(
    file: UploadFile | None = File(default=None),
    settings: Settings = Depends(get_app_settings),
    blob_store: BlobStore = Depends(get_blob_store),
    transformer: ImageTransformer = Depends(get_image_transformer),
    id_generator: IdentifierGenerator = Depends(get_id_generator),
) -> UploadOut:
    upload = await _read_upload(file, max_bytes=settings.MAX_UPLOAD_BYTES)
    result = await process_upload(
        upload=upload,
        settings=settings,
        blob_store=blob_store,
        transformer=transformer,
        id_generator=id_generator,
    )
    return UploadOut(file_id=result.file_id, file_url=result.file_url, message=result.message)


@router.get("/file/{file_id}", response_model=FileOut, responses={404: {"model": ErrorOut}})
async def files_get(
    file_id: str,
    settings: Settings = Depends(get_app_settings),
    blob_store: BlobStore = Depends(get_blob_store),
) -> FileOut:
    found = await get_file(file_id=file_id, settings=settings, blob_store=blob_store)
    return FileOut(
        file_id=found.file_id,
        file_url=found.file_url,
        content_type=found.content_type,
        extension=found.extension,
    )


@router.get(
    "/file-by-name/{name}", response_model=FileByNameOut, responses={404: {"model": ErrorOut}}
)
async def files_get_by_name(
    name: str,
    settings: Settings = Depends(get_app_settings),
    blob_store: BlobStore = Depends(get_blob_store),
) -> FileByNameOut:
    found = await find_file_by_name(file_name=name, settings=settings, blob_store=blob_store)
    return FileByNameOut(file_name=name, file_url=found.file_url, content_type=found.content_type)


@router.get("/files", response_model=list[str])
async def files_list(
    settings: Settings = Depends(get_app_settings),
    blob_store: BlobStore = Depends(get_blob_store),
) -> list[str]:
    return await list_file_urls(settings=settings, blob_store=blob_store)
