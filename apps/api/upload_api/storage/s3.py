from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, unquote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from upload_api.storage.base import (
    BlobInfo,
    BlobNotFoundError,
    BlobStore,
    BlobStoreError,
    StoredBlob,
)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


@dataclass(frozen=True)
class S3Config:
    bucket: str
    access_key_id: str
    secret_access_key: str
    endpoint_url: str | None = None
    region: str | None = None
    public_base_url: str | None = None
    timeout_seconds: float | None = None


class S3BlobStore(BlobStore):
    def __init__(self, config: S3Config, *, client: Any | None = None) -> None:
        self._bucket = config.bucket
        self._endpoint_url = config.endpoint_url
        self._region = config.region
        self._public_base_url = config.public_base_url
        self._client = client or boto3.client(
            "s3",
            endpoint_url=config.endpoint_url,
            region_name=config.region,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            config=_client_config(config.timeout_seconds),
        )

    def put_bytes(
        self,
        *,
        key: str,
        data: bytes,
        content_type: str | None,
        metadata: Mapping[str, str] | None = None,
    ) -> StoredBlob:
        extra_args: dict[str, Any] = {}
        if content_type:
            extra_args["ContentType"] = content_type
        if metadata:
            extra_args["Metadata"] = _encode_metadata(metadata)
        try:
            self._client.put_object(Bucket=self._bucket, Key=key, Body=data, **extra_args)
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(str(e)) from e
        return StoredBlob(storage_key=key, size_bytes=len(data))

    def get_bytes(self, *, key: str) -> bytes:
        try:
            res = self._client.get_object(Bucket=self._bucket, Key=key)
            body = res["Body"].read()
            if not isinstance(body, (bytes, bytearray)):
                raise BlobStoreError("S3 returned non-bytes body")
            return bytes(body)
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(str(e)) from e

    def delete(self, *, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(str(e)) from e

    def exists(self, *, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            raise BlobStoreError(str(e)) from e
        except BotoCoreError as e:
            raise BlobStoreError(str(e)) from e
        return True

    def get_metadata(self, *, key: str) -> BlobInfo:
        try:
            res = self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise BlobNotFoundError(str(e)) from e
            raise BlobStoreError(str(e)) from e
        except BotoCoreError as e:
            raise BlobStoreError(str(e)) from e
        return BlobInfo(
            key=key,
            size_bytes=int(res.get("ContentLength") or 0),
            content_type=res.get("ContentType"),
            metadata=_decode_metadata(res.get("Metadata") or {}),
        )

    def list_objects(self, *, prefix: str = "") -> list[BlobInfo]:
        out: list[BlobInfo] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                for item in page.get("Contents") or []:
                    out.append(BlobInfo(key=item["Key"], size_bytes=int(item.get("Size") or 0)))
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(str(e)) from e
        return out

    def get_download_url(self, *, key: str, expires_in_seconds: int) -> str:
        try:
            return self._client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self._bucket, "Key": key},
                ExpiresIn=expires_in_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(str(e)) from e

    def get_public_url(self, *, key: str) -> str:
        quoted_key = quote(key, safe="/")
        if self._public_base_url:
            return f"{self._public_base_url.rstrip('/')}/{quoted_key}"
        if self._endpoint_url:
            # Path-style addressing for S3-compatible endpoints (MinIO, R2, ...).
            return f"{self._endpoint_url.rstrip('/')}/{self._bucket}/{quoted_key}"
        region = self._region or "us-east-1"
        return f"https://{self._bucket}.s3.{region}.amazonaws.com/{quoted_key}"

    def check_ready(self) -> None:
        try:
            self._client.head_bucket(Bucket=self._bucket)
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(str(e)) from e


def _client_config(timeout_seconds: float | None) -> Config:
    if timeout_seconds is None:
        return Config(signature_version="s3v4")
    # A single attempt bounded by the socket timeouts, so a slow write fails
    # inside the request instead of finishing after it gave up.
    return Config(
        signature_version="s3v4",
        connect_timeout=timeout_seconds,
        read_timeout=timeout_seconds,
        retries={"total_max_attempts": 1},
    )


def _error_code(exc: ClientError) -> str:
    return str((exc.response.get("Error") or {}).get("Code") or "")


def _encode_metadata(metadata: Mapping[str, str]) -> dict[str, str]:
    # S3 user metadata travels as HTTP headers, so values must stay ASCII.
    return {key: quote(value, safe="") for key, value in metadata.items()}


def _decode_metadata(metadata: Mapping[str, str]) -> dict[str, str]:
    return {key: unquote(value) for key, value in metadata.items()}
