from __future__ import annotations

import time
from urllib.parse import parse_qs, urlsplit

import pytest

from upload_api.storage.base import BlobNotFoundError, BlobStoreError
from upload_api.storage.local import LocalBlobStore


@pytest.fixture()
def store(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(
        str(tmp_path / "blobs"), base_url="http://files.local/", signing_key="secret"
    )


def test_put_and_read_back_with_metadata(store: LocalBlobStore) -> None:
    stored = store.put_bytes(
        key="abc", data=b"payload", content_type="application/pdf", metadata={"name": "résumé.pdf"}
    )
    assert stored.storage_key == "abc"
    assert stored.size_bytes == 7

    assert store.exists(key="abc") is True
    assert store.get_bytes(key="abc") == b"payload"
    info = store.get_metadata(key="abc")
    assert info.content_type == "application/pdf"
    assert info.metadata == {"name": "résumé.pdf"}
    assert info.size_bytes == 7


def test_missing_key_does_not_exist(store: LocalBlobStore) -> None:
    assert store.exists(key="nope") is False
    with pytest.raises(BlobNotFoundError):
        store.get_metadata(key="nope")


def test_keys_cannot_escape_root(store: LocalBlobStore) -> None:
    with pytest.raises(BlobStoreError):
        store.put_bytes(key="../outside", data=b"x", content_type=None)
    assert store.exists(key="../outside") is False


def test_listing_is_sorted_and_filtered_by_prefix(store: LocalBlobStore) -> None:
    for key in ("uploads/b", "uploads/a", "other/c"):
        store.put_bytes(key=key, data=b"x", content_type="image/png", metadata={"name": key})

    assert [info.key for info in store.list_objects()] == ["other/c", "uploads/a", "uploads/b"]
    assert [info.key for info in store.list_objects(prefix="uploads/")] == [
        "uploads/a",
        "uploads/b",
    ]


def test_listing_skips_metadata_sidecars(store: LocalBlobStore) -> None:
    store.put_bytes(key="one", data=b"x", content_type=None, metadata={"name": "one"})
    assert [info.key for info in store.list_objects()] == ["one"]


def test_public_url_is_deterministic(store: LocalBlobStore) -> None:
    assert store.get_public_url(key="uploads/a b") == "http://files.local/blobs/uploads/a%20b"


def test_signed_url_verifies_until_expiry(store: LocalBlobStore) -> None:
    url = store.get_download_url(key="abc", expires_in_seconds=60)
    assert url.startswith("http://files.local/blobs/abc?")

    query = parse_qs(urlsplit(url).query)
    expires = int(query["expires"][0])
    signature = query["signature"][0]

    now = time.time()
    assert store.verify_signature("abc", expires=expires, signature=signature, now_ts=now)
    assert not store.verify_signature("abd", expires=expires, signature=signature, now_ts=now)
    assert not store.verify_signature(
        "abc", expires=expires, signature=signature, now_ts=expires + 1
    )


def test_keys_with_nul_bytes_are_rejected(store: LocalBlobStore) -> None:
    assert store.exists(key="abc\x00def") is False
    with pytest.raises(BlobStoreError):
        store.get_bytes(key="abc\x00def")
    with pytest.raises(BlobStoreError):
        store.put_bytes(key="abc\x00def", data=b"x", content_type=None)


def test_delete_removes_object_and_sidecar(store: LocalBlobStore) -> None:
    store.put_bytes(key="gone", data=b"x", content_type="application/pdf", metadata={"name": "g"})
    store.delete(key="gone")

    assert store.exists(key="gone") is False
    assert store.list_objects() == []
    with pytest.raises(BlobNotFoundError):
        store.get_metadata(key="gone")
    store.delete(key="gone")
