from __future__ import annotations

from backups_storage.common.config import Settings, get_settings
from backups_storage.infra.storage.client import ObjectStoreClient
from backups_storage.infra.storage.s3_client import S3ObjectStoreClient
from backups_storage.storage.s3 import S3Storage


class StorageBackendNotConfiguredError(Exception):
    """Raised when the storage backend is not properly configured."""


def build_storage(
    settings: Settings | None = None,
    *,
    client: ObjectStoreClient | None = None,
) -> S3Storage:
    """Build the S3 storage adapter from settings.

    ``client`` replaces the boto3 client, which is how tests run the adapter
    against an in-memory store.
    """
    settings = settings or get_settings()
    if not settings.S3_BUCKET:
        raise StorageBackendNotConfiguredError("S3_BUCKET is required")
    if bool(settings.S3_ACCESS_KEY_ID) != bool(settings.S3_SECRET_ACCESS_KEY):
        raise StorageBackendNotConfiguredError(
            "S3_ACCESS_KEY_ID and S3_SECRET_ACCESS_KEY must be set together"
        )
    return S3Storage(
        client or S3ObjectStoreClient(settings=settings),
        bucket=settings.S3_BUCKET,
        prefix=settings.S3_PREFIX,
        part_size=settings.STORAGE_PART_SIZE_BYTES,
        enable_metrics=settings.ENABLE_METRICS,
    )
