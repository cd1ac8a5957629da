from __future__ import annotations

from datetime import datetime
from pathlib import Path
from unittest.mock import Mock

import pytest
from minio.error import S3Error

from filestorage.core.storage import (
    BackendKind,
    BackendPair,
    ConnectionRegistry,
    ContainerBackend,
    ContainerNotFoundError,
    ContainerSpec,
    FileBackend,
    FileReference,
    FileStorageError,
    set_default_registry,
)

AZURITE_ACCOUNT_KEY = (
    "Eby8vdM02xNOcqFlqUwJPLlmEtlCDXJ1OUzFT50uSRZ6IFsuFq2UVErCz4I6tq/K1SZFPTOtr/KBHBeksoGMGw=="
)
AZURITE_CONNECTION_STRING = (
    "DefaultEndpointsProtocol=http;AccountName=devstoreaccount1;"
    f"AccountKey={AZURITE_ACCOUNT_KEY};"
    "BlobEndpoint=http://127.0.0.1:10000/devstoreaccount1;"
)


def make_s3_error(code: str) -> S3Error:
    """Build an S3Error the way the MinIO client raises it."""
    return S3Error(
        code=code,
        message=f"{code} error",
        resource="/",
        request_id="",
        host_id="",
        response=None,
    )


class ScriptedFileBackend(FileBackend):
    """File backend that replays a list of upload outcomes.

    Each entry is either an exception to raise or ``None`` for success. The
    last entry repeats once the script runs out.
    """

    def __init__(self, outcomes: list[Exception | None], kind: BackendKind = BackendKind.S3):
        self.kind = kind
        self.outcomes = list(outcomes)
        self.upload_calls: list[tuple] = []
        self.source_existed: list[bool] = []

    def upload(self, container_name, connection_name, source_path, blob_name):
        self.upload_calls.append((container_name, connection_name, source_path, blob_name))
        self.source_existed.append(Path(source_path).exists())
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if outcome is not None:
            raise outcome
        return FileReference(
            name=blob_name or Path(source_path).name,
            properties={"container": container_name, "connection": connection_name},
        )

    def public_url(self, container_name, file_path, start_time, expiry_time, connection_name):
        return f"https://{self.kind.value}.example/{container_name}/{file_path.lstrip('/')}"


class RecordingContainerBackend(ContainerBackend):
    """Container backend recording create calls, optionally failing them."""

    def __init__(self, error: Exception | None = None, kind: BackendKind = BackendKind.S3):
        self.kind = kind
        self.error = error
        self.created: list[tuple[str, str, ContainerSpec]] = []

    def create(self, container_name, connection_name, spec):
        self.created.append((container_name, connection_name, spec))
        if self.error is not None:
            raise self.error


def stub_registry(pairs: dict[str, BackendPair]) -> Mock:
    """Registry double resolving connection names to fixed backend pairs."""
    registry = Mock(spec=ConnectionRegistry)
    registry.get_backends.side_effect = lambda name: pairs[name]
    registry.resolve.side_effect = lambda name: pairs[name].kind
    return registry


@pytest.fixture
def source_file(tmp_path):
    """A small PNG-named file to upload."""
    path = tmp_path / "test_icon.png"
    path.write_bytes(b"\x89PNG\r\n\x1a\nfake")
    return path


@pytest.fixture
def missing_container_backends():
    """Backend pair whose uploads always report a missing container."""
    files = ScriptedFileBackend([ContainerNotFoundError("no such container")])
    containers = RecordingContainerBackend()
    return BackendPair(kind=BackendKind.S3, files=files, containers=containers)


@pytest.fixture
def failing_backends():
    """Backend pair whose uploads fail for reasons other than a missing container."""
    files = ScriptedFileBackend([FileStorageError("access denied")])
    containers = RecordingContainerBackend()
    return BackendPair(kind=BackendKind.S3, files=files, containers=containers)


@pytest.fixture
def mock_registry():
    """Registry with in-memory connections, one of which enforces containers."""
    return ConnectionRegistry(
        {
            "default": {"type": "mock"},
            "strict": {"type": "mock", "require_container": True},
        }
    )


@pytest.fixture
def default_registry(mock_registry):
    """Install ``mock_registry`` as the global registry for module-level calls."""
    set_default_registry(mock_registry)
    yield mock_registry
    set_default_registry(None)


@pytest.fixture
def window():
    """A fixed one-hour signing window."""
    start = datetime(2024, 1, 15, 9, 0, 0)
    return start, datetime(2024, 1, 15, 10, 0, 0)
