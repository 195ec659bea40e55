from __future__ import annotations

import boto3
import pytest
from botocore.stub import Stubber

from upload_api.storage.base import BlobNotFoundError, BlobStoreError
from upload_api.storage.s3 import S3BlobStore, S3Config


def _client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="test-key",
        aws_secret_access_key="test-secret",
    )


def _store(client, **config_overrides) -> S3BlobStore:
    config = S3Config(
        bucket="uploads",
        access_key_id="test-key",
        secret_access_key="test-secret",
        **config_overrides,
    )
    return S3BlobStore(config, client=client)


def test_put_bytes_sends_content_type_and_encoded_metadata() -> None:
    client = _client()
    store = _store(client)
    with Stubber(client) as stubber:
        stubber.add_response(
            "put_object",
            {},
            {
                "Bucket": "uploads",
                "Key": "abc",
                "Body": b"%PDF",
                "ContentType": "application/pdf",
                "Metadata": {"name": "r%C3%A9sum%C3%A9%20v2.pdf"},
            },
        )
        stored = store.put_bytes(
            key="abc",
            data=b"%PDF",
            content_type="application/pdf",
            metadata={"name": "résumé v2.pdf"},
        )
        stubber.assert_no_pending_responses()
    assert stored.size_bytes == 4


def test_put_bytes_wraps_client_errors() -> None:
    client = _client()
    store = _store(client)
    with Stubber(client) as stubber:
        stubber.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
        with pytest.raises(BlobStoreError):
            store.put_bytes(key="abc", data=b"x", content_type=None)


def test_exists_false_on_404() -> None:
    client = _client()
    store = _store(client)
    with Stubber(client) as stubber:
        stubber.add_client_error(
            "head_object",
            service_error_code="404",
            http_status_code=404,
            expected_params={"Bucket": "uploads", "Key": "missing"},
        )
        assert store.exists(key="missing") is False


def test_exists_raises_on_other_errors() -> None:
    client = _client()
    store = _store(client)
    with Stubber(client) as stubber:
        stubber.add_client_error("head_object", service_error_code="403", http_status_code=403)
        with pytest.raises(BlobStoreError):
            store.exists(key="abc")


def test_get_metadata_decodes_original_name() -> None:
    client = _client()
    store = _store(client)
    with Stubber(client) as stubber:
        stubber.add_response(
            "head_object",
            {"ContentLength": 12, "ContentType": "image/png", "Metadata": {"name": "my%20logo.png"}},
            {"Bucket": "uploads", "Key": "abc"},
        )
        info = store.get_metadata(key="abc")
    assert info.content_type == "image/png"
    assert info.size_bytes == 12
    assert info.metadata == {"name": "my logo.png"}


def test_list_objects_follows_listing_order() -> None:
    client = _client()
    store = _store(client)
    with Stubber(client) as stubber:
        stubber.add_response(
            "list_objects_v2",
            {
                "IsTruncated": False,
                "Contents": [{"Key": "a", "Size": 1}, {"Key": "b", "Size": 2}],
            },
            {"Bucket": "uploads", "Prefix": ""},
        )
        listing = store.list_objects()
    assert [(info.key, info.size_bytes) for info in listing] == [("a", 1), ("b", 2)]


def test_list_objects_of_empty_bucket() -> None:
    client = _client()
    store = _store(client)
    with Stubber(client) as stubber:
        stubber.add_response(
            "list_objects_v2", {"IsTruncated": False}, {"Bucket": "uploads", "Prefix": "p/"}
        )
        assert store.list_objects(prefix="p/") == []


def test_download_url_is_presigned() -> None:
    store = _store(_client())
    url = store.get_download_url(key="abc", expires_in_seconds=600)
    assert "uploads" in url
    assert "abc" in url
    assert "Signature" in url


def test_public_url_variants() -> None:
    assert (
        _store(_client(), region="eu-west-1").get_public_url(key="a b")
        == "https://uploads.s3.eu-west-1.amazonaws.com/a%20b"
    )
    assert (
        _store(_client(), endpoint_url="http://minio:9000/").get_public_url(key="abc")
        == "http://minio:9000/uploads/abc"
    )
    assert (
        _store(_client(), public_base_url="https://cdn.example.com/").get_public_url(key="abc")
        == "https://cdn.example.com/abc"
    )


def test_get_metadata_of_missing_key_is_not_found() -> None:
    client = _client()
    store = _store(client)
    with Stubber(client) as stubber:
        stubber.add_client_error("head_object", service_error_code="404", http_status_code=404)
        with pytest.raises(BlobNotFoundError):
            store.get_metadata(key="gone")


def test_delete_removes_object() -> None:
    client = _client()
    store = _store(client)
    with Stubber(client) as stubber:
        stubber.add_response("delete_object", {}, {"Bucket": "uploads", "Key": "abc"})
        store.delete(key="abc")
        stubber.assert_no_pending_responses()


def test_client_uses_single_attempt_bounded_by_timeout() -> None:
    store = _store(None, region="us-east-1", timeout_seconds=7.5)
    config = store._client.meta.config
    assert config.connect_timeout == 7.5
    assert config.read_timeout == 7.5
    assert config.retries["total_max_attempts"] == 1
