"""Storage backed by an S3-compatible object store.

The store has a flat key namespace. Directories are derived from key
prefixes on every listing and never written to the store. Uploads are read
in fixed-size chunks: payloads smaller than one chunk go out as a single
put, anything larger goes through a multipart session.
"""

from __future__ import annotations

import logging
import posixpath
import time
from contextlib import closing
from typing import BinaryIO

from backups_storage.common.config import DEFAULT_PART_SIZE_BYTES
from backups_storage.infra.observability.metrics import (
    LATENCY,
    OPERATIONS,
    TRANSFERRED_BYTES,
)
from backups_storage.infra.storage.client import (
    CompletedPart,
    MultipartUpload,
    ObjectStoreClient,
)
from backups_storage.storage.base import SEPARATOR, FileInfo
from backups_storage.storage.content_type import detect_content_type

logger = logging.getLogger("storage")


def _parent_dir(name: str) -> str | None:
    """Return the containing path of ``name`` with a trailing separator."""
    parent = posixpath.dirname(name)
    if not parent:
        return None
    return parent + SEPARATOR


def _normalize_prefix(prefix: str) -> str:
    """Return the prefix in the same canonical form keys are joined into."""
    if not prefix:
        return ""
    normalized = posixpath.normpath(prefix)
    if normalized == ".":
        return ""
    return normalized.rstrip(SEPARATOR)


def _read_chunk(reader: BinaryIO, size: int) -> bytes:
    """Read exactly ``size`` bytes unless the stream ends first."""
    chunk = reader.read(size)
    if not chunk or len(chunk) >= size:
        return chunk or b""
    buffer = bytearray(chunk)
    while len(buffer) < size:
        data = reader.read(size - len(buffer))
        if not data:
            break
        buffer += data
    return bytes(buffer)


class S3Storage:
    """Storage implementation over an S3-compatible object store.

    All keys live under ``prefix``. ``part_size`` is both the multipart
    threshold and part length for uploads and the read size for downloads,
    so neither direction holds more than one chunk in memory.
    """

    def __init__(
        self,
        client: ObjectStoreClient,
        *,
        bucket: str,
        prefix: str = "",
        part_size: int = DEFAULT_PART_SIZE_BYTES,
        enable_metrics: bool = True,
    ) -> None:
        if not bucket:
            raise ValueError("bucket is required")
        if part_size <= 0:
            raise ValueError("part_size must be positive")
        self._client = client
        self._bucket = bucket
        self._prefix = _normalize_prefix(prefix)
        self._part_size = int(part_size)
        self._enable_metrics = enable_metrics

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def part_size(self) -> int:
        return self._part_size

    def _root(self) -> str:
        return self._prefix + SEPARATOR if self._prefix else ""

    def _key(self, name: str) -> str:
        cleaned = name.strip(SEPARATOR)
        if not cleaned:
            raise ValueError("name must not be empty")
        root = self._root()
        key = posixpath.normpath(root + cleaned)
        if key in (".", "..") or key.startswith("../") or not key.startswith(root):
            raise ValueError(f"name escapes the storage prefix: {name!r}")
        return key

    def _observe(
        self,
        operation: str,
        status: str,
        started: float,
        *,
        direction: str | None = None,
        size: int = 0,
    ) -> None:
        if not self._enable_metrics:
            return
        OPERATIONS.labels(operation, status).inc()
        LATENCY.labels(operation).observe(time.perf_counter() - started)
        if direction and size:
            TRANSFERRED_BYTES.labels(direction).inc(size)

    def list(self) -> list[FileInfo]:
        """Return objects and synthesized directories, sorted by name descending."""
        started = time.perf_counter()
        try:
            entries = self._list(self._root())
        except Exception:
            self._observe("list", "error", started)
            raise
        self._observe("list", "ok", started)
        return entries

    def _objects(self, prefix: str) -> list[FileInfo]:
        return [
            FileInfo(
                name=obj.key,
                size=obj.size_bytes,
                mod_time=obj.last_modified,
            )
            for page in self._client.list_objects(bucket=self._bucket, prefix=prefix)
            for obj in page
        ]

    def _list(self, prefix: str) -> list[FileInfo]:
        objects = self._objects(prefix)
        objects.sort(key=lambda entry: entry.mod_time)

        # ascending scan: the last child written to the map is the newest one
        directories: dict[str, FileInfo] = {}
        for obj in objects:
            parent = _parent_dir(obj.name)
            if parent is None:
                continue
            directories[parent] = FileInfo(
                name=parent,
                size=0,
                mod_time=obj.mod_time,
                is_dir=True,
            )

        entries = objects + list(directories.values())
        entries.sort(key=lambda entry: entry.name, reverse=True)
        logger.debug(
            "list prefix=%s objects=%s directories=%s",
            prefix,
            len(objects),
            len(directories),
        )
        return entries

    def delete(self, name: str) -> None:
        """Delete the key ``name`` and every key nested under it.

        Deleting a name that matches nothing is not an error.
        """
        started = time.perf_counter()
        target = self._key(name)
        nested = target + SEPARATOR
        try:
            keys = [
                obj.name
                for obj in self._objects(target)
                if obj.name == target or obj.name.startswith(nested)
            ]
            if keys:
                self._client.delete_objects(bucket=self._bucket, object_keys=keys)
        except Exception:
            self._observe("delete", "error", started)
            raise

        self._observe("delete", "ok", started)
        logger.info(
            "delete key=%s removed=%s",
            target,
            len(keys),
            extra={"extra": {"bucket": self._bucket, "key": target, "removed": len(keys)}},
        )

    def upload(self, name: str, reader: BinaryIO) -> None:
        """Stream ``reader`` to ``name`` until it is exhausted.

        Reads happen ``part_size`` bytes at a time. A multipart session is
        opened on the first full chunk; the short (possibly empty) chunk that
        ends the stream becomes either the whole object or the last part.
        """
        started = time.perf_counter()
        key = self._key(name)
        upload: MultipartUpload | None = None
        parts: list[CompletedPart] = []
        total = 0
        try:
            while True:
                chunk = _read_chunk(reader, self._part_size)
                total += len(chunk)
                if len(chunk) < self._part_size:
                    break
                if upload is None:
                    upload = self._client.init_multipart_upload(
                        bucket=self._bucket,
                        object_key=key,
                        content_type=detect_content_type(chunk),
                    )
                parts.append(self._upload_part(upload, len(parts) + 1, chunk))

            if upload is None:
                self._client.put_object(
                    bucket=self._bucket,
                    object_key=key,
                    body=chunk,
                    content_type=detect_content_type(chunk),
                )
            else:
                parts.append(self._upload_part(upload, len(parts) + 1, chunk))
                self._client.complete_multipart_upload(
                    bucket=self._bucket,
                    object_key=key,
                    upload_id=upload.upload_id,
                    parts=parts,
                )
        except Exception:
            if upload is not None:
                self._abort(upload)
            self._observe("upload", "error", started)
            raise

        self._observe("upload", "ok", started, direction="upload", size=total)
        logger.info(
            "upload key=%s bytes=%s parts=%s",
            key,
            total,
            len(parts),
            extra={
                "extra": {
                    "bucket": self._bucket,
                    "key": key,
                    "bytes": total,
                    "parts": len(parts),
                    "multipart": upload is not None,
                }
            },
        )

    def _upload_part(
        self, upload: MultipartUpload, part_number: int, body: bytes
    ) -> CompletedPart:
        part = self._client.upload_part(
            bucket=upload.bucket,
            object_key=upload.object_key,
            upload_id=upload.upload_id,
            part_number=part_number,
            body=body,
        )
        logger.debug(
            "upload_part key=%s part=%s bytes=%s",
            upload.object_key,
            part_number,
            len(body),
        )
        return part

    def _abort(self, upload: MultipartUpload) -> None:
        try:
            self._client.abort_multipart_upload(
                bucket=upload.bucket,
                object_key=upload.object_key,
                upload_id=upload.upload_id,
            )
        except Exception as exc:
            logger.warning(
                "abort_multipart_failed key=%s upload_id=%s error=%s",
                upload.object_key,
                upload.upload_id,
                exc,
                extra={
                    "extra": {
                        "bucket": upload.bucket,
                        "key": upload.object_key,
                        "upload_id": upload.upload_id,
                    }
                },
            )

    def download(self, name: str, writer: BinaryIO) -> None:
        """Copy the content of ``name`` into ``writer`` one chunk at a time."""
        started = time.perf_counter()
        key = self._key(name)
        total = 0
        try:
            body = self._client.get_object(bucket=self._bucket, object_key=key)
            with closing(body):
                while True:
                    chunk = body.read(self._part_size)
                    if not chunk:
                        break
                    writer.write(chunk)
                    total += len(chunk)
        except Exception:
            self._observe("download", "error", started)
            raise

        self._observe("download", "ok", started, direction="download", size=total)
        logger.info(
            "download key=%s bytes=%s",
            key,
            total,
            extra={"extra": {"bucket": self._bucket, "key": key, "bytes": total}},
        )
