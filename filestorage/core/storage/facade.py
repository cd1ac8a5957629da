"""Storage facade dispatching file operations to the backend of a connection.

The facade never branches on provider: it asks the registry for the backend
pair of the requested connection and talks to the capability interfaces in
``filestorage.core.storage.file``.
"""

from __future__ import annotations

import logging
import tempfile
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from filestorage.core.storage.file import (
    DEFAULT_CONNECTION,
    DEFAULT_URL_VALIDITY,
    BackendPair,
    ContainerNotFoundError,
    FileReference,
    FileStorageError,
    FileUploadError,
    SignedUrlWindow,
    UploadOptions,
)
from filestorage.core.storage.registry import ConnectionRegistry, get_default_registry

logger = logging.getLogger(__name__)

TEMP_DIR_PREFIX = "file-cache"
# Used when the given filename has no usable basename
DEFAULT_CONTENT_FILENAME = "content"


class UploadState(Enum):
    """Steps of an upload with container fallback."""

    ATTEMPTING = "attempting"
    CREATING_CONTAINER = "creating_container"


class FileStorage:
    """Upload, delete and sign URLs for blobs on named connections.

    Examples:
        >>> storage = FileStorage(ConnectionRegistry({"default": {"type": "mock"}}))
        >>> ref = storage.upload("avatars", "/tmp/me.png", "users/me.png")
        >>> url = storage.public_url("avatars", ref.name)
    """

    def __init__(self, registry: ConnectionRegistry | None = None):
        """Initialize the facade.

        Args:
            registry: Connection registry to resolve backends with. If None,
                the global default registry is looked up on every call
        """
        self._registry = registry

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry or get_default_registry()

    def _backends(self, connection: str) -> BackendPair:
        return self.registry.get_backends(connection)

    def upload(
        self,
        container_name: str,
        filename: str | Path,
        blob_name: str | None = None,
        **opts: Any,
    ) -> FileReference:
        """Upload a local file, creating the container once if it is missing.

        Args:
            container_name: Name of the container
            filename: Path to the file with the data to store
            blob_name: Name of the blob after storage; defaults to the file's basename
            **opts: Upload options. ``force_container`` (default True) enables
                creating a missing container and retrying once, ``connection``
                selects the connection, ``public`` and ``cors_policy`` are applied
                to a container created on the way. Unknown options are ignored.

        Returns:
            Reference to the stored file

        Raises:
            FileUploadError: If the file could not be stored
            ConnectionNotFoundError: If the connection is not configured
        """
        options = UploadOptions.from_kwargs(**opts)
        backends = self._backends(options.connection)
        may_create_container = options.force_container
        state = UploadState.ATTEMPTING

        while True:
            if state is UploadState.CREATING_CONTAINER:
                self._create_container(backends, container_name, options)
                # The retry is final even if the container is still missing
                may_create_container = False
                state = UploadState.ATTEMPTING
                continue

            try:
                return backends.files.upload(
                    container_name, options.connection, filename, blob_name
                )
            except ContainerNotFoundError as e:
                if not may_create_container:
                    raise FileUploadError(e, container_name, blob_name) from e
                logger.info(f"Container {container_name} missing, creating it before retrying")
                state = UploadState.CREATING_CONTAINER
            except FileStorageError as e:
                raise FileUploadError(e, container_name, blob_name) from e

    def _create_container(
        self, backends: BackendPair, container_name: str, options: UploadOptions
    ) -> None:
        # Failures are not reported; the retried upload decides the outcome.
        try:
            backends.containers.create(
                container_name, options.connection, options.container_spec()
            )
        except FileStorageError as e:
            logger.warning(f"Could not create container {container_name}: {e}")

    def delete(
        self, container_name: str, filename: str, connection: str = DEFAULT_CONNECTION
    ) -> dict[str, Any]:
        """Delete a stored file.

        Args:
            container_name: Name of the container the file is stored in
            filename: Reference path of the file within the container
            connection: Connection name

        Raises:
            UnsupportedOperationError: If the connection's backend cannot delete
        """
        return self._backends(connection).files.delete(container_name, filename)

    def public_url(
        self,
        container_name: str,
        file_path: str,
        start_time: datetime | None = None,
        expire_time: datetime | None = None,
        connection: str = DEFAULT_CONNECTION,
    ) -> str:
        """Return a signed URL to fetch the file, valid for one day by default.

        A leading "/" in ``file_path`` is ignored.

        Raises:
            InvalidWindowError: If ``start_time`` is after ``expire_time``
        """
        now = datetime.now(timezone.utc)
        window = SignedUrlWindow(
            start=start_time or now,
            expiry=expire_time or now + DEFAULT_URL_VALIDITY,
        )
        return self._backends(connection).files.public_url(
            container_name, file_path, window.start, window.expiry, connection
        )

    def last_modified(
        self, file: FileReference, connection: str = DEFAULT_CONNECTION
    ) -> datetime:
        """Return when a stored file was last modified."""
        return self._backends(connection).files.last_modified(file, connection)

    def upload_file_from_content(
        self,
        filename: str,
        container_name: str,
        content: bytes | str,
        blob_name: str | None = None,
        **opts: Any,
    ) -> FileReference:
        """Write content to a temporary file and upload it.

        The temporary directory is removed before returning, whether or not
        the upload succeeded. Options are described at ``upload``.

        Args:
            filename: Name of the temporary file; also the blob name when
                ``blob_name`` is not given. Only its basename is used, and
                ``"content"`` replaces a basename that is empty or a dot-name
            container_name: Name of the container
            content: Data to store; text is encoded as UTF-8
            blob_name: Name of the blob after storage

        Raises:
            FileUploadError: If the content could not be written or stored
        """
        data = content.encode("utf-8") if isinstance(content, str) else bytes(content)
        name = Path(filename).name
        if name in ("", ".", ".."):
            name = DEFAULT_CONTENT_FILENAME

        with tempfile.TemporaryDirectory(prefix=TEMP_DIR_PREFIX) as dir_path:
            file_path = Path(dir_path) / name
            try:
                file_path.write_bytes(data)
            except OSError as e:
                raise FileUploadError(e, container_name, blob_name) from e
            return self.upload(container_name, file_path, blob_name, **opts)


_default_storage: FileStorage | None = None


def get_default_storage() -> FileStorage:
    """Get the facade bound to the default registry."""
    global _default_storage
    if _default_storage is None:
        _default_storage = FileStorage()
    return _default_storage
