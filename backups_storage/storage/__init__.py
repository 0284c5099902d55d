"""File storage contract and its object store backend."""

from .base import FileInfo, Storage
from .factory import StorageBackendNotConfiguredError, build_storage
from .s3 import S3Storage

__all__ = [
    "FileInfo",
    "S3Storage",
    "Storage",
    "StorageBackendNotConfiguredError",
    "build_storage",
]
