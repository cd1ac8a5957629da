"""Storage facade, backend contract and connection registry."""

from filestorage.core.storage.facade import FileStorage, UploadState, get_default_storage
from filestorage.core.storage.file import (
    BackendKind,
    BackendPair,
    BlobNotFoundError,
    ContainerBackend,
    ContainerNotFoundError,
    ContainerSpec,
    FileBackend,
    FileReference,
    FileStorageError,
    FileUploadError,
    InvalidWindowError,
    SignedUrlWindow,
    StorageConnectionError,
    UnsupportedOperationError,
    UploadOptions,
)
from filestorage.core.storage.registry import (
    ConnectionConfigError,
    ConnectionNotFoundError,
    ConnectionRegistry,
    get_default_registry,
    set_default_registry,
)

__all__ = [
    # Facade
    "FileStorage",
    "UploadState",
    "get_default_storage",
    # Contract
    "BackendKind",
    "BackendPair",
    "FileBackend",
    "ContainerBackend",
    "FileReference",
    "ContainerSpec",
    "UploadOptions",
    "SignedUrlWindow",
    # Errors
    "FileStorageError",
    "ContainerNotFoundError",
    "BlobNotFoundError",
    "StorageConnectionError",
    "FileUploadError",
    "InvalidWindowError",
    "UnsupportedOperationError",
    # Registry
    "ConnectionRegistry",
    "ConnectionConfigError",
    "ConnectionNotFoundError",
    "get_default_registry",
    "set_default_registry",
]
