"""Azure Blob Storage backend implementation."""

from __future__ import annotations

import logging
import mimetypes
from datetime import datetime
from pathlib import Path
from typing import Any

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import (
    BlobSasPermissions,
    BlobServiceClient,
    ContentSettings,
    CorsRule,
    PublicAccess,
    generate_blob_sas,
)

from filestorage.core.storage.file import (
    BackendKind,
    BlobNotFoundError,
    ContainerBackend,
    ContainerNotFoundError,
    ContainerSpec,
    FileBackend,
    FileReference,
    FileStorageError,
    SignedUrlWindow,
    StorageConnectionError,
    default_blob_name,
    normalize_blob_path,
)

logger = logging.getLogger(__name__)

# Applied when a container is created with ``cors_policy=True``
DEFAULT_CORS_RULE = {
    "allowed_origins": ["*"],
    "allowed_methods": ["GET", "HEAD"],
    "allowed_headers": ["*"],
    "exposed_headers": ["*"],
    "max_age_in_seconds": 3600,
}


def create_service_client(
    connection_string: str | None = None,
    account_name: str | None = None,
    account_key: str | None = None,
    account_url: str | None = None,
) -> BlobServiceClient:
    """Create a blob service client from a connection string or account key.

    Raises:
        StorageConnectionError: If the credentials cannot be parsed
    """
    try:
        if connection_string:
            return BlobServiceClient.from_connection_string(connection_string)
        url = account_url or f"https://{account_name}.blob.core.windows.net"
        return BlobServiceClient(
            account_url=url,
            credential={"account_name": account_name, "account_key": account_key},
        )
    except (ValueError, AzureError) as e:
        raise StorageConnectionError(f"Failed to configure Azure blob client: {e}")


def _error_code(error: AzureError) -> str | None:
    code = getattr(error, "error_code", None)
    return str(code.value if hasattr(code, "value") else code) if code else None


def _translate(error: AzureError, action: str, container_name: str) -> FileStorageError:
    """Map an Azure SDK error onto the storage error hierarchy."""
    code = _error_code(error)
    if isinstance(error, ResourceNotFoundError):
        if code == "ContainerNotFound":
            return ContainerNotFoundError(f"Container not found: {container_name}")
        if code == "BlobNotFound":
            return BlobNotFoundError(f"Blob not found while trying to {action}")
    return FileStorageError(f"Failed to {action}: {error}")


def cors_rules(policy: bool | dict[str, Any] | list[dict[str, Any]]) -> list[CorsRule]:
    """Build CORS rules from ``True``, a rule mapping, or a list of mappings."""
    if policy is True:
        policy = DEFAULT_CORS_RULE
    rules = policy if isinstance(policy, list) else [policy]
    return [CorsRule(**rule) for rule in rules]


class AzureFileBackend(FileBackend):
    """File operations against Azure Blob Storage."""

    kind = BackendKind.AZURE

    def __init__(self, client: BlobServiceClient):
        """Initialize Azure file backend.

        Args:
            client: Configured blob service client
        """
        self._client = client

    def upload(
        self,
        container_name: str,
        connection_name: str,
        source_path: str | Path,
        blob_name: str | None,
    ) -> FileReference:
        """Upload a local file as a block blob, replacing any existing blob."""
        name = default_blob_name(source_path, blob_name)
        content_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
        blob_client = self._client.get_blob_client(container=container_name, blob=name)

        try:
            with open(source_path, "rb") as f:
                result = blob_client.upload_blob(
                    f,
                    overwrite=True,
                    content_settings=ContentSettings(content_type=content_type),
                )
        except AzureError as e:
            raise _translate(e, f"upload {name}", container_name)
        except OSError as e:
            raise FileStorageError(f"Failed to read {source_path}: {e}")

        logger.info(f"Uploaded {source_path} to azure://{container_name}/{name}")
        return FileReference(
            name=name,
            properties={
                "container": container_name,
                "connection": connection_name,
                "etag": result.get("etag"),
                "content_type": content_type,
                "last_modified": result.get("last_modified"),
            },
        )

    def delete(self, container_name: str, blob_path: str) -> dict[str, Any]:
        """Delete a blob and its snapshots."""
        name = normalize_blob_path(blob_path)
        blob_client = self._client.get_blob_client(container=container_name, blob=name)
        try:
            blob_client.delete_blob(delete_snapshots="include")
        except AzureError as e:
            raise _translate(e, f"delete {name}", container_name)

        logger.info(f"Deleted azure://{container_name}/{name}")
        return {"container": container_name, "name": name}

    def public_url(
        self,
        container_name: str,
        file_path: str,
        start_time: datetime,
        expiry_time: datetime,
        connection_name: str,
    ) -> str:
        """Blob URL carrying a read-only SAS token for the window."""
        window = SignedUrlWindow(start_time, expiry_time)
        name = normalize_blob_path(file_path)
        blob_client = self._client.get_blob_client(container=container_name, blob=name)
        credential = self._client.credential
        account_key = getattr(credential, "account_key", None)
        if not account_key:
            raise FileStorageError(
                f"Connection '{connection_name}' has no account key to sign URLs with"
            )

        sas = generate_blob_sas(
            account_name=self._client.account_name,
            container_name=container_name,
            blob_name=name,
            account_key=account_key,
            permission=BlobSasPermissions(read=True),
            start=window.start,
            expiry=window.expiry,
        )
        return f"{blob_client.url}?{sas}"

    def last_modified(self, file: FileReference, connection_name: str) -> datetime:
        """Return the blob's current last-modified time from the provider.

        The timestamp recorded at upload is only used for references that
        carry no container to look the blob up in.
        """
        if not file.container:
            known = file.properties.get("last_modified")
            if isinstance(known, datetime):
                return known
            raise FileStorageError(f"File reference {file.name!r} has no container")

        blob_client = self._client.get_blob_client(container=file.container, blob=file.name)
        try:
            return blob_client.get_blob_properties().last_modified
        except AzureError as e:
            raise _translate(e, f"read properties of {file.name}", file.container)


class AzureContainerBackend(ContainerBackend):
    """Container management against Azure Blob Storage."""

    kind = BackendKind.AZURE

    def __init__(self, client: BlobServiceClient):
        self._client = client

    def create(self, container_name: str, connection_name: str, spec: ContainerSpec) -> None:
        """Create a container, optionally with public blob access and CORS.

        CORS rules are an account-level setting in Azure, so a ``cors_policy``
        replaces the rules of the whole storage account.
        """
        public_access = PublicAccess.BLOB if spec.public else None
        container_client = self._client.get_container_client(container_name)

        try:
            container_client.create_container(public_access=public_access)
            logger.info(f"Created container {container_name} on connection '{connection_name}'")
        except ResourceExistsError:
            logger.info(f"Container already exists: {container_name}")
            return
        except AzureError as e:
            raise FileStorageError(f"Failed to create container {container_name}: {e}")

        if spec.cors_policy:
            try:
                self._client.set_service_properties(cors=cors_rules(spec.cors_policy))
            except (AzureError, TypeError) as e:
                raise FileStorageError(f"Failed to apply CORS policy for {container_name}: {e}")
