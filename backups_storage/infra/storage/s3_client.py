"""S3-compatible object store client implementation.

This module provides an S3-compatible client that works with
AWS S3, MinIO, and other S3-compatible object storage services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

import io
from typing import TYPE_CHECKING, Any, BinaryIO, Iterable, Iterator, Sequence

from backups_storage.infra.storage.client import (
    CompletedPart,
    MultipartUpload,
    ObjectNotFoundError,
    ObjectSummary,
    StorageError,
)

if TYPE_CHECKING:
    from backups_storage.common.config import Settings

# DeleteObjects accepts at most this many keys per request
MAX_DELETE_BATCH = 1000

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


def _error_code(exc: Exception) -> str | None:
    response = getattr(exc, "response", None)
    if not isinstance(response, dict):
        return None
    return response.get("Error", {}).get("Code")


class S3ObjectStoreClient:
    """S3-compatible object store client.

    Supports AWS S3, MinIO, and other S3-compatible services.
    Uses boto3 for all storage operations.
    """

    def __init__(self, *, settings: "Settings") -> None:
        """Initialize the S3 client with configuration from settings.

        Args:
            settings: Application settings containing S3 configuration.

        Raises:
            StorageError: If boto3 is not installed.
        """
        self._settings = settings
        self._client = self._build_client(settings)

    @staticmethod
    def _build_client(settings: "Settings") -> Any:
        """Create a boto3 S3 client from settings."""
        try:
            import boto3
            from botocore.config import Config
        except ImportError as exc:
            raise StorageError(
                "boto3 and botocore are required for S3 storage backend. "
                "Install with: pip install boto3"
            ) from exc

        addressing_style = (settings.S3_ADDRESSING_STYLE or "auto").strip().lower()
        config = Config(s3={"addressing_style": addressing_style})

        return boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            region_name=settings.S3_REGION,
            aws_access_key_id=settings.S3_ACCESS_KEY_ID,
            aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            use_ssl=bool(settings.S3_USE_SSL),
            config=config,
        )

    def list_objects(self, *, bucket: str, prefix: str) -> Iterator[list[ObjectSummary]]:
        """Iterate over list_objects_v2 pages scoped to prefix."""
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            pages = paginator.paginate(Bucket=bucket, Prefix=prefix)
            for page in pages:
                yield [
                    ObjectSummary(
                        key=str(obj["Key"]),
                        size_bytes=int(obj.get("Size") or 0),
                        last_modified=obj["LastModified"],
                    )
                    for obj in page.get("Contents", [])
                ]
        except Exception as exc:
            raise StorageError(f"Failed to list objects: {exc}") from exc

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: bytes,
        content_type: str | None = None,
    ) -> None:
        """Store body as a single object."""
        params: dict[str, Any] = {
            "Bucket": bucket,
            "Key": object_key,
            "Body": io.BytesIO(body),
            "ContentLength": len(body),
        }
        if content_type:
            params["ContentType"] = content_type

        try:
            self._client.put_object(**params)
        except Exception as exc:
            raise StorageError(f"Failed to put object: {exc}") from exc

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if content_type:
            params["ContentType"] = content_type

        try:
            response = self._client.create_multipart_upload(**params)
        except Exception as exc:
            raise StorageError(f"Failed to create multipart upload: {exc}") from exc

        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError("S3 response missing UploadId")

        return MultipartUpload(
            upload_id=str(upload_id),
            bucket=bucket,
            object_key=object_key,
        )

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> CompletedPart:
        """Upload one part and return its completion token."""
        try:
            response = self._client.upload_part(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                PartNumber=int(part_number),
                Body=io.BytesIO(body),
                ContentLength=len(body),
            )
        except Exception as exc:
            raise StorageError(
                f"Failed to upload part {part_number}: {exc}"
            ) from exc

        etag = response.get("ETag")
        if not etag:
            raise StorageError(f"S3 response missing ETag for part {part_number}")

        return CompletedPart(part_number=int(part_number), etag=str(etag))

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        """Complete a multipart upload by combining all parts."""
        multipart_payload = {
            "Parts": [
                {"ETag": part.etag, "PartNumber": int(part.part_number)}
                for part in sorted(parts, key=lambda p: p.part_number)
            ]
        }

        try:
            self._client.complete_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                MultipartUpload=multipart_payload,
            )
        except Exception as exc:
            raise StorageError(f"Failed to complete multipart upload: {exc}") from exc

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts."""
        try:
            self._client.abort_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
            )
        except Exception as exc:
            raise StorageError(f"Failed to abort multipart upload: {exc}") from exc

    def get_object(self, *, bucket: str, object_key: str) -> BinaryIO:
        """Open the object body as a stream."""
        try:
            response = self._client.get_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            if _error_code(exc) in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(f"Object not found: {object_key}") from exc
            raise StorageError(f"Failed to get object: {exc}") from exc

        return response["Body"]

    def delete_objects(self, *, bucket: str, object_keys: Iterable[str]) -> None:
        """Delete keys in batches of at most MAX_DELETE_BATCH."""
        keys = list(object_keys)
        for start in range(0, len(keys), MAX_DELETE_BATCH):
            batch = keys[start : start + MAX_DELETE_BATCH]
            try:
                response = self._client.delete_objects(
                    Bucket=bucket,
                    Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
                )
            except Exception as exc:
                raise StorageError(f"Failed to delete objects: {exc}") from exc

            errors = response.get("Errors") or []
            if errors:
                first = errors[0]
                raise StorageError(
                    f"Failed to delete {len(errors)} object(s), first "
                    f"{first.get('Key')}: {first.get('Code')} {first.get('Message')}"
                )
