from __future__ import annotations

import io
import os

import httpx
from PIL import Image


def _assert_ok(response: httpx.Response, *, label: str) -> None:
    if response.status_code >= 400:
        raise RuntimeError(f"{label} failed: HTTP {response.status_code} body={response.text}")


def _png_stub() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (10, 10), (0, 128, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


def main() -> None:
    base_url = os.environ.get("API_BASE_URL", "http://localhost:8000")
    filename = os.environ.get("SMOKE_FILENAME", "smoke-stub.png")

    with httpx.Client(base_url=base_url, timeout=20.0) as client:
        health = client.get("/health")
        _assert_ok(health, label="GET /health")
        print("ok: GET /health")

        ready = client.get("/readyz")
        _assert_ok(ready, label="GET /readyz")
        print("ok: GET /readyz")

        upload = client.post("/upload", files={"file": (filename, _png_stub(), "image/png")})
        _assert_ok(upload, label="POST /upload")
        file_id = upload.json()["fileId"]
        print(f"ok: POST /upload fileId={file_id}")

        detail = client.get(f"/file/{file_id}")
        _assert_ok(detail, label="GET /file/{fileId}")
        detail_data = detail.json()
        if detail_data["contentType"] != "image/png" or detail_data["extension"] != ".png":
            raise RuntimeError(f"GET /file/{{fileId}} returned unexpected body: {detail_data}")
        print("ok: GET /file/{fileId}")

        by_name = client.get(f"/file-by-name/{filename}")
        _assert_ok(by_name, label="GET /file-by-name/{name}")
        print("ok: GET /file-by-name/{name}")

        listing = client.get("/files")
        _assert_ok(listing, label="GET /files")
        if not any(file_id in url for url in listing.json()):
            raise RuntimeError("GET /files did not include the uploaded file")
        print("ok: GET /files")

    print("smoke: all checks passed")


if __name__ == "__main__":
    main()
