"""Object store client protocol and data types.

This module defines the capability the storage adapter needs from a remote
object store: paginated listing, single-request puts, multipart uploads,
streaming gets and batch deletes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, Iterable, Iterator, Protocol, Sequence


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""


class ObjectNotFoundError(StorageError):
    """Raised when the requested object key does not exist."""


@dataclass(frozen=True, slots=True)
class ObjectSummary:
    """One entry of a listing page."""

    key: str
    size_bytes: int
    last_modified: datetime


@dataclass(frozen=True, slots=True)
class CompletedPart:
    """Represents a completed part in a multipart upload."""

    part_number: int
    etag: str


@dataclass(frozen=True, slots=True)
class MultipartUpload:
    """Result of initiating a multipart upload."""

    upload_id: str
    bucket: str
    object_key: str


class ObjectStoreClient(Protocol):
    """Protocol defining the interface for object storage backends.

    Implementations must provide all methods defined here.
    Currently supports S3-compatible storage services.
    """

    def list_objects(self, *, bucket: str, prefix: str) -> Iterator[list[ObjectSummary]]:
        """Iterate over listing pages for every key starting with prefix.

        Args:
            bucket: Bucket name.
            prefix: Key prefix to scope the listing to.

        Returns:
            Iterator of pages; callers must drain it to see every object.

        Raises:
            StorageError: If a page request fails.
        """
        ...

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: bytes,
        content_type: str | None = None,
    ) -> None:
        """Store body as a single object.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            content_type: MIME type of the object.

        Returns:
            MultipartUpload containing the upload_id for subsequent operations.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> CompletedPart:
        """Upload one part of a multipart session.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            upload_id: Multipart upload ID from init_multipart_upload.
            part_number: Part number (1-based, max 10000).
            body: Part content.

        Returns:
            CompletedPart carrying the ETag reported by the store.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        """Complete a multipart upload by combining all parts.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def get_object(self, *, bucket: str, object_key: str) -> BinaryIO:
        """Open a readable stream over the object content.

        The caller is responsible for closing the returned stream.

        Raises:
            ObjectNotFoundError: If the key does not exist.
            StorageError: If the operation fails.
        """
        ...

    def delete_objects(self, *, bucket: str, object_keys: Iterable[str]) -> None:
        """Delete every listed key.

        Raises:
            StorageError: If the request fails or any key could not be deleted.
        """
        ...
