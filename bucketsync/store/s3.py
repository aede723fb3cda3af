"""S3-compatible object store (AWS, MinIO, OVH, ...)."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING, BinaryIO

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import ObjectNotFoundError, StoreError
from ..utils import normalize_etag
from .base import CompletedPart, ObjectStore, RemoteMeta

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _is_not_found(error: ClientError) -> bool:
    code = str(error.response.get("Error", {}).get("Code", ""))
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return code in _NOT_FOUND_CODES or status == 404


class S3ObjectStore(ObjectStore):
    """Object store backed by a boto3 S3 client.

    Transient failures are retried by botocore according to ``max_attempts``;
    whatever still fails surfaces as ``StoreError``.
    """

    def __init__(
        self,
        bucket: str,
        region: str | None = None,
        endpoint_url: str | None = None,
        max_pool_connections: int = 10,
        max_attempts: int = 10,
        connect_timeout: float = 10.0,
        read_timeout: float = 300.0,
        client: Any | None = None,
    ) -> None:
        """Initialize S3 storage.

        Args:
            bucket: S3 bucket name.
            region: AWS region (None lets boto3 resolve it).
            endpoint_url: Custom endpoint URL (for OVH, MinIO, etc.).
            max_pool_connections: HTTP connection pool size; should cover
                upload workers x part concurrency.
            max_attempts: Total attempts per request, including retries.
            connect_timeout: Connection timeout in seconds.
            read_timeout: Read timeout in seconds.
            client: Pre-built client (used by tests).
        """
        self._bucket = bucket
        self._endpoint_url = endpoint_url
        if client is None:
            boto_config = BotoConfig(
                region_name=region,
                retries={"max_attempts": max_attempts, "mode": "standard"},
                max_pool_connections=max_pool_connections,
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
            )
            client = boto3.client("s3", endpoint_url=endpoint_url, config=boto_config)
        self._client: Any = client

    @property
    def location(self) -> str:
        """Return the S3 bucket location."""
        if self._endpoint_url:
            return f"S3: {self._endpoint_url}/{self._bucket}"
        return f"S3: s3://{self._bucket}"

    def head(self, key: str) -> RemoteMeta:
        """Fetch metadata of ``key``."""
        try:
            response = self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(f"Object not found: {key}") from e
            raise StoreError(f"HEAD {key} failed: {e}") from e
        except BotoCoreError as e:
            raise StoreError(f"HEAD {key} failed: {e}") from e

        return RemoteMeta(
            key=key,
            size=int(response.get("ContentLength", 0)),
            etag=normalize_etag(response.get("ETag")),
            last_modified=response.get("LastModified"),
        )

    def put(self, key: str, body: BinaryIO, size: int) -> None:
        """Upload a single object."""
        try:
            self._client.put_object(
                Bucket=self._bucket, Key=key, Body=body, ContentLength=size
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"PUT {key} failed: {e}") from e

    def create_multipart_upload(self, key: str) -> str:
        """Start a multipart upload."""
        try:
            response = self._client.create_multipart_upload(
                Bucket=self._bucket, Key=key
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Cannot start multipart upload of {key}: {e}") from e
        upload_id: str = response["UploadId"]
        return upload_id

    def upload_part(
        self, key: str, upload_id: str, part_number: int, data: bytes
    ) -> str:
        """Upload one part."""
        try:
            response = self._client.upload_part(
                Bucket=self._bucket,
                Key=key,
                UploadId=upload_id,
                PartNumber=part_number,
                Body=data,
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Part {part_number} of {key} failed: {e}") from e
        return normalize_etag(response.get("ETag"))

    def complete_multipart_upload(
        self, key: str, upload_id: str, parts: list[CompletedPart]
    ) -> None:
        """Compose the parts into the final object."""
        try:
            self._client.complete_multipart_upload(
                Bucket=self._bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={
                    "Parts": [
                        {"PartNumber": p.part_number, "ETag": f'"{p.etag}"'}
                        for p in parts
                    ]
                },
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Cannot complete multipart upload of {key}: {e}") from e

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        """Abort the upload so no parts are left behind."""
        try:
            self._client.abort_multipart_upload(
                Bucket=self._bucket, Key=key, UploadId=upload_id
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Cannot abort multipart upload of {key}: {e}") from e

    def iter_keys(self, prefix: str = "") -> Iterator[str]:
        """Yield every key of the bucket using ListObjectsV2 pagination."""
        paginator = self._client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    yield obj["Key"]
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Listing s3://{self._bucket} failed: {e}") from e

    def delete(self, key: str) -> None:
        """Delete ``key``."""
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"DELETE {key} failed: {e}") from e


def create_store(
    bucket: str,
    region: str | None = None,
    endpoint_url: str | None = None,
    max_pool_connections: int = 10,
) -> S3ObjectStore:
    """Factory used by the CLI to build the S3 store for a config.

    Args:
        bucket: Bucket name.
        region: Optional region.
        endpoint_url: Optional custom endpoint.
        max_pool_connections: Connection pool size.

    Returns:
        Configured S3ObjectStore instance.
    """
    logger.debug(
        "Creating S3 store for bucket=%s region=%s endpoint=%s pool=%d",
        bucket,
        region,
        endpoint_url,
        max_pool_connections,
    )
    return S3ObjectStore(
        bucket=bucket,
        region=region,
        endpoint_url=endpoint_url,
        max_pool_connections=max_pool_connections,
    )
