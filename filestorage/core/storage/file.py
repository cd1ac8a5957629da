"""File storage contract shared by every storage backend.

Defines the data types passed between the facade and the backends, the
capability interfaces a backend implements (file operations and container
operations), and the exception hierarchy backends translate provider
errors into.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any

DEFAULT_CONNECTION = "default"
DEFAULT_URL_VALIDITY = timedelta(days=1)


class BackendKind(str, Enum):
    """Storage providers a connection can resolve to."""

    S3 = "s3"
    AZURE = "azure"
    MOCK = "mock"


@dataclass
class FileReference:
    """Handle to a stored object returned by a successful upload."""

    name: str
    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def container(self) -> str | None:
        return self.properties.get("container")


@dataclass
class ContainerSpec:
    """Policy applied when a missing container is created.

    ``None`` means the caller did not ask for the setting and the backend
    leaves the provider default in place.
    """

    cors_policy: bool | dict[str, Any] | None = None
    public: bool | None = None


@dataclass
class UploadOptions:
    """Options recognized by ``FileStorage.upload``."""

    force_container: bool = True
    connection: str = DEFAULT_CONNECTION
    cors_policy: bool | dict[str, Any] | None = None
    public: bool | None = None

    @classmethod
    def from_kwargs(cls, **opts: Any) -> UploadOptions:
        """Build options from keyword arguments, ignoring unknown keys."""
        known = {name: opts[name] for name in cls.__dataclass_fields__ if name in opts}
        return cls(**known)

    def container_spec(self) -> ContainerSpec:
        return ContainerSpec(cors_policy=self.cors_policy, public=self.public)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class SignedUrlWindow:
    """Validity window of a signed URL.

    Naive datetimes are interpreted as UTC.

    Raises:
        InvalidWindowError: If ``start`` is after ``expiry``
    """

    start: datetime
    expiry: datetime

    def __post_init__(self) -> None:
        if not isinstance(self.start, datetime) or not isinstance(self.expiry, datetime):
            raise InvalidWindowError("Signed URL window bounds must be datetimes")
        object.__setattr__(self, "start", _as_utc(self.start))
        object.__setattr__(self, "expiry", _as_utc(self.expiry))
        if self.start > self.expiry:
            raise InvalidWindowError(
                f"Signed URL window starts after it expires: {self.start} > {self.expiry}"
            )

    @classmethod
    def from_now(cls, validity: timedelta = DEFAULT_URL_VALIDITY) -> SignedUrlWindow:
        """Window starting now, evaluated at call time."""
        now = datetime.now(timezone.utc)
        return cls(start=now, expiry=now + validity)

    @property
    def duration(self) -> timedelta:
        return self.expiry - self.start

    @property
    def seconds(self) -> int:
        return int(self.duration.total_seconds())


def normalize_blob_path(path: str) -> str:
    """Strip leading separators so ``/a.png`` and ``a.png`` address the same blob."""
    return path.lstrip("/")


def default_blob_name(source_path: str | Path, blob_name: str | None) -> str:
    """Blob name to store under, falling back to the source file's basename."""
    if blob_name:
        return normalize_blob_path(blob_name)
    return Path(source_path).name


class FileBackend(ABC):
    """File operations a storage backend provides.

    ``upload`` and ``public_url`` are required from every backend. ``delete``
    and ``last_modified`` fail with ``UnsupportedOperationError`` unless the
    backend overrides them.
    """

    kind: BackendKind

    @abstractmethod
    def upload(
        self,
        container_name: str,
        connection_name: str,
        source_path: str | Path,
        blob_name: str | None,
    ) -> FileReference:
        """Upload a local file.

        Args:
            container_name: Container (bucket) to write into
            connection_name: Connection the backend was resolved for
            source_path: Local file with the data to store
            blob_name: Name of the stored blob; defaults to the basename of
                ``source_path``

        Returns:
            Reference to the stored blob

        Raises:
            ContainerNotFoundError: If the container does not exist
            FileStorageError: For any other failure
        """
        pass

    @abstractmethod
    def public_url(
        self,
        container_name: str,
        file_path: str,
        start_time: datetime,
        expiry_time: datetime,
        connection_name: str,
    ) -> str:
        """Build a signed URL granting read access within the given window."""
        pass

    def delete(self, container_name: str, blob_path: str) -> dict[str, Any]:
        """Remove a stored blob."""
        raise UnsupportedOperationError(f"{self.kind.value} backend does not support delete")

    def last_modified(self, file: FileReference, connection_name: str) -> datetime:
        """Return the provider's last-modified timestamp for a blob."""
        raise UnsupportedOperationError(
            f"{self.kind.value} backend does not support last_modified"
        )


class ContainerBackend(ABC):
    """Container management a storage backend provides."""

    kind: BackendKind

    @abstractmethod
    def create(self, container_name: str, connection_name: str, spec: ContainerSpec) -> None:
        """Create a container, succeeding if it already exists.

        Args:
            container_name: Container (bucket) to create
            connection_name: Connection the backend was resolved for
            spec: Access and CORS policy for the new container
        """
        pass


@dataclass(frozen=True)
class BackendPair:
    """File and container operations selected for one connection."""

    kind: BackendKind
    files: FileBackend
    containers: ContainerBackend


# Custom exceptions


class FileStorageError(Exception):
    """Base exception for file storage errors."""

    pass


class ContainerNotFoundError(FileStorageError):
    """Raised by a backend when the target container does not exist."""

    pass


class BlobNotFoundError(FileStorageError):
    """Raised when a blob is not found."""

    pass


class StorageConnectionError(FileStorageError):
    """Raised when connection to a storage provider fails."""

    pass


class InvalidWindowError(FileStorageError, ValueError):
    """Raised when a signed URL window starts after it expires."""

    pass


class UnsupportedOperationError(FileStorageError, NotImplementedError):
    """Raised when the resolved backend has no implementation for an operation."""

    pass


class FileUploadError(FileStorageError):
    """Raised when a file could not be stored.

    Attributes:
        error: The backend exception that ended the upload
        container_name: Target container
        blob_name: Target blob name, if one was given
    """

    def __init__(self, error: Exception, container_name: str, blob_name: str | None = None):
        self.error = error
        self.container_name = container_name
        self.blob_name = blob_name
        target = f"{container_name}/{blob_name}" if blob_name else container_name
        super().__init__(f"Failed to upload file to {target}: {error}")
