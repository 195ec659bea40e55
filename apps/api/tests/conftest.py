from __future__ import annotations

import io
from collections.abc import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from PIL import Image

from upload_api.core.config import Settings, get_settings
from upload_api.main import create_app
from upload_api.storage.local import LocalBlobStore

PDF_BYTES = b"%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\ntrailer << /Root 1 0 R >>\n%%EOF\n"


class SequenceIdGenerator:
    def __init__(self, ids: list[str]) -> None:
        self._ids = iter(ids)

    def generate(self) -> str:
        return next(self._ids)


def make_image_bytes(
    *, width: int = 10, height: int = 10, fmt: str = "PNG", mode: str = "RGB"
) -> bytes:
    color = (200, 30, 30, 255)[: len(mode)] if mode in {"RGB", "RGBA", "CMYK"} else 128
    image = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def build_settings(tmp_path, **overrides) -> Settings:
    values = {
        "APP_ENV": "test",
        "BLOB_STORE": "local",
        "LOCAL_BLOB_DIR": str(tmp_path / "blobs"),
        "LOCAL_BLOB_SIGNING_KEY": "test-signing-key",
        "API_BASE_URL": "http://testserver",
        "ENABLE_OTEL_TRACING": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return build_settings(tmp_path)


@pytest.fixture()
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def blob_store(app: FastAPI) -> LocalBlobStore:
    return app.state.blob_store
