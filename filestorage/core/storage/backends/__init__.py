"""Storage backend implementations."""

from filestorage.core.storage.backends.azure_backend import (
    AzureContainerBackend,
    AzureFileBackend,
)
from filestorage.core.storage.backends.mock_backend import (
    MockContainerBackend,
    MockFileBackend,
    MockStore,
)
from filestorage.core.storage.backends.s3_backend import S3ContainerBackend, S3FileBackend

__all__ = [
    "AzureContainerBackend",
    "AzureFileBackend",
    "MockContainerBackend",
    "MockFileBackend",
    "MockStore",
    "S3ContainerBackend",
    "S3FileBackend",
]
