"""In-memory backend for tests and local development.

Provides upload, signed URLs and container creation. ``delete`` and
``last_modified`` are not available on mock connections.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from urllib.parse import quote, urlencode

from filestorage.core.storage.file import (
    BackendKind,
    ContainerBackend,
    ContainerNotFoundError,
    ContainerSpec,
    FileBackend,
    FileReference,
    FileStorageError,
    SignedUrlWindow,
    default_blob_name,
    normalize_blob_path,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://mock.storage.local"


class MockStore:
    """Containers and blobs held in memory, shared by the file and container sides."""

    def __init__(self, require_container: bool = False):
        """Initialize the store.

        Args:
            require_container: Reject uploads into containers that were never
                created, like a real provider would
        """
        self.require_container = require_container
        self.containers: dict[str, dict[str, bytes]] = {}
        self.container_specs: dict[str, ContainerSpec] = {}


class MockFileBackend(FileBackend):
    """File operations against a ``MockStore``."""

    kind = BackendKind.MOCK

    def __init__(self, store: MockStore, base_url: str = DEFAULT_BASE_URL):
        self._store = store
        self._base_url = base_url.rstrip("/")

    def upload(
        self,
        container_name: str,
        connection_name: str,
        source_path: str | Path,
        blob_name: str | None,
    ) -> FileReference:
        name = default_blob_name(source_path, blob_name)
        if container_name not in self._store.containers:
            if self._store.require_container:
                raise ContainerNotFoundError(f"Container not found: {container_name}")
            self._store.containers[container_name] = {}

        try:
            data = Path(source_path).read_bytes()
        except OSError as e:
            raise FileStorageError(f"Failed to read {source_path}: {e}")

        self._store.containers[container_name][name] = data
        logger.info(f"Stored {len(data)} bytes at mock://{container_name}/{name}")
        return FileReference(
            name=name,
            properties={
                "container": container_name,
                "connection": connection_name,
                "size": len(data),
            },
        )

    def public_url(
        self,
        container_name: str,
        file_path: str,
        start_time: datetime,
        expiry_time: datetime,
        connection_name: str,
    ) -> str:
        window = SignedUrlWindow(start_time, expiry_time)
        path = quote(f"/{container_name}/{normalize_blob_path(file_path)}")
        query = urlencode(
            {
                "X-Mock-Date": window.start.strftime("%Y%m%dT%H%M%SZ"),
                "X-Mock-Expires": window.seconds,
            }
        )
        return f"{self._base_url}{path}?{query}"


class MockContainerBackend(ContainerBackend):
    """Container creation against a ``MockStore``; the spec is recorded per container."""

    kind = BackendKind.MOCK

    def __init__(self, store: MockStore):
        self._store = store

    def create(self, container_name: str, connection_name: str, spec: ContainerSpec) -> None:
        self._store.containers.setdefault(container_name, {})
        self._store.container_specs[container_name] = spec
        logger.info(f"Created mock container {container_name}")
