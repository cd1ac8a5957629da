"""Uniform file storage over S3, Azure Blob Storage and an in-memory mock.

Callers name a connection instead of a provider; the connection registry
decides which backend serves each call.

    import filestorage

    ref = filestorage.upload("avatars", "/tmp/me.png", "users/me.png", public=True)
    url = filestorage.public_url("avatars", ref.name)
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from filestorage.core.storage import (
    BackendKind,
    BlobNotFoundError,
    ConnectionConfigError,
    ConnectionNotFoundError,
    ConnectionRegistry,
    ContainerNotFoundError,
    FileReference,
    FileStorage,
    FileStorageError,
    FileUploadError,
    InvalidWindowError,
    UnsupportedOperationError,
    get_default_registry,
    get_default_storage,
    set_default_registry,
)
from filestorage.core.storage.file import DEFAULT_CONNECTION
from filestorage.core.utils.naming import sanitize


def upload(
    container_name: str, filename: str | Path, blob_name: str | None = None, **opts: Any
) -> FileReference:
    """Upload a file on the connection given by ``opts["connection"]``."""
    return get_default_storage().upload(container_name, filename, blob_name, **opts)


def delete(
    container_name: str, filename: str, connection: str = DEFAULT_CONNECTION
) -> dict[str, Any]:
    """Delete a stored file."""
    return get_default_storage().delete(container_name, filename, connection)


def public_url(
    container_name: str,
    file_path: str,
    start_time: datetime | None = None,
    expire_time: datetime | None = None,
    connection: str = DEFAULT_CONNECTION,
) -> str:
    """Signed URL for a stored file, valid for one day unless a window is given."""
    return get_default_storage().public_url(
        container_name, file_path, start_time, expire_time, connection
    )


def last_modified(file: FileReference, connection: str = DEFAULT_CONNECTION) -> datetime:
    """When a stored file was last modified."""
    return get_default_storage().last_modified(file, connection)


def upload_file_from_content(
    filename: str,
    container_name: str,
    content: bytes | str,
    blob_name: str | None = None,
    **opts: Any,
) -> FileReference:
    """Upload in-memory content through a temporary file."""
    return get_default_storage().upload_file_from_content(
        filename, container_name, content, blob_name, **opts
    )


__all__ = [
    "upload",
    "delete",
    "public_url",
    "last_modified",
    "upload_file_from_content",
    "sanitize",
    "FileStorage",
    "FileReference",
    "BackendKind",
    "ConnectionRegistry",
    "get_default_registry",
    "set_default_registry",
    "FileStorageError",
    "FileUploadError",
    "ContainerNotFoundError",
    "BlobNotFoundError",
    "InvalidWindowError",
    "UnsupportedOperationError",
    "ConnectionConfigError",
    "ConnectionNotFoundError",
]
