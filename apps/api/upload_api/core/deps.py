from __future__ import annotations

from fastapi import Request

from upload_api.core.config import Settings
from upload_api.core.ids import IdentifierGenerator
from upload_api.services.images import ImageTransformer
from upload_api.storage.base import BlobStore

# Components are built once in `create_app` and shared through `app.state`;
# tests swap them by replacing the state.


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_image_transformer(request: Request) -> ImageTransformer:
    return request.app.state.image_transformer


def get_id_generator(request: Request) -> IdentifierGenerator:
    return request.app.state.id_generator
