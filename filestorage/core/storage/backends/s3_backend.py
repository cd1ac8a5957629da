"""S3 backend implementation using the MinIO client."""

from __future__ import annotations

import json
import logging
import mimetypes
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from minio import Minio
from minio.error import MinioException, S3Error
from urllib3.exceptions import HTTPError

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

DEFAULT_REGION = "us-east-1"
# Presigned URLs must be valid for at least one second
MIN_PRESIGN_SECONDS = 1

_MISSING_BUCKET_CODES = {"NoSuchBucket"}
_MISSING_KEY_CODES = {"NoSuchKey", "NoSuchObject"}
_EXISTING_BUCKET_CODES = {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}


def create_client(
    endpoint: str,
    access_key: str,
    secret_key: str,
    secure: bool = True,
    region: str | None = DEFAULT_REGION,
) -> Minio:
    """Create a MinIO client for an S3-compatible endpoint.

    A region is always set so signing URLs never has to look up the bucket
    location over the network.
    """
    try:
        return Minio(
            endpoint=endpoint,
            access_key=access_key,
            secret_key=secret_key,
            secure=secure,
            region=region or DEFAULT_REGION,
        )
    except ValueError as e:
        raise StorageConnectionError(f"Invalid S3 endpoint {endpoint!r}: {e}")


def public_read_policy(bucket: str) -> dict[str, Any]:
    """Bucket policy allowing anonymous reads of every object."""
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {"AWS": ["*"]},
                "Action": ["s3:GetObject"],
                "Resource": [f"arn:aws:s3:::{bucket}/*"],
            }
        ],
    }


class S3FileBackend(FileBackend):
    """File operations against an S3-compatible provider."""

    kind = BackendKind.S3

    def __init__(self, client: Minio):
        """Initialize S3 file backend.

        Args:
            client: Configured MinIO client
        """
        self._client = client

    def upload(
        self,
        container_name: str,
        connection_name: str,
        source_path: str | Path,
        blob_name: str | None,
    ) -> FileReference:
        """Upload a local file to a bucket."""
        object_name = default_blob_name(source_path, blob_name)
        content_type = mimetypes.guess_type(object_name)[0] or "application/octet-stream"

        try:
            result = self._client.fput_object(
                bucket_name=container_name,
                object_name=object_name,
                file_path=str(source_path),
                content_type=content_type,
            )
        except S3Error as e:
            if e.code in _MISSING_BUCKET_CODES:
                raise ContainerNotFoundError(f"Bucket not found: {container_name}")
            raise FileStorageError(f"Failed to upload {object_name}: {e}")
        except (MinioException, HTTPError, OSError, ValueError) as e:
            raise FileStorageError(f"Failed to upload {object_name}: {e}")

        logger.info(f"Uploaded {source_path} to s3://{container_name}/{object_name}")
        return FileReference(
            name=object_name,
            properties={
                "container": container_name,
                "connection": connection_name,
                "etag": result.etag,
                "content_type": content_type,
                "last_modified": result.last_modified,
            },
        )

    def delete(self, container_name: str, blob_path: str) -> dict[str, Any]:
        """Remove an object from a bucket."""
        object_name = normalize_blob_path(blob_path)
        try:
            self._client.remove_object(container_name, object_name)
        except S3Error as e:
            if e.code in _MISSING_BUCKET_CODES:
                raise ContainerNotFoundError(f"Bucket not found: {container_name}")
            raise FileStorageError(f"Failed to delete {object_name}: {e}")
        except (MinioException, HTTPError, ValueError) as e:
            raise FileStorageError(f"Failed to delete {object_name}: {e}")

        logger.info(f"Deleted s3://{container_name}/{object_name}")
        return {"container": container_name, "name": object_name}

    def public_url(
        self,
        container_name: str,
        file_path: str,
        start_time: datetime,
        expiry_time: datetime,
        connection_name: str,
    ) -> str:
        """Presign a GET URL whose ``X-Amz-Expires`` is the window length."""
        window = SignedUrlWindow(start_time, expiry_time)
        seconds = max(window.seconds, MIN_PRESIGN_SECONDS)

        try:
            return self._client.presigned_get_object(
                bucket_name=container_name,
                object_name=normalize_blob_path(file_path),
                expires=timedelta(seconds=seconds),
                request_date=window.start,
            )
        except (MinioException, HTTPError, ValueError) as e:
            raise FileStorageError(f"Failed to presign URL for {file_path}: {e}")

    def last_modified(self, file: FileReference, connection_name: str) -> datetime:
        """Return the object's current last-modified time from the provider.

        The timestamp recorded at upload is only used for references that
        carry no container to look the object up in.
        """
        if not file.container:
            known = file.properties.get("last_modified")
            if isinstance(known, datetime):
                return known
            raise FileStorageError(f"File reference {file.name!r} has no container")

        try:
            stat = self._client.stat_object(file.container, file.name)
        except S3Error as e:
            if e.code in _MISSING_KEY_CODES:
                raise BlobNotFoundError(f"Blob not found: {file.name}")
            if e.code in _MISSING_BUCKET_CODES:
                raise ContainerNotFoundError(f"Bucket not found: {file.container}")
            raise FileStorageError(f"Failed to stat {file.name}: {e}")
        except (MinioException, HTTPError, ValueError) as e:
            raise FileStorageError(f"Failed to stat {file.name}: {e}")

        return stat.last_modified


class S3ContainerBackend(ContainerBackend):
    """Bucket management against an S3-compatible provider."""

    kind = BackendKind.S3

    def __init__(self, client: Minio, region: str | None = DEFAULT_REGION):
        self._client = client
        self._region = region or DEFAULT_REGION

    def create(self, container_name: str, connection_name: str, spec: ContainerSpec) -> None:
        """Create a bucket and apply its access policy."""
        try:
            self._client.make_bucket(container_name, location=self._region)
        except S3Error as e:
            if e.code in _EXISTING_BUCKET_CODES:
                logger.info(f"Bucket already exists: {container_name}")
                return
            raise FileStorageError(f"Failed to create bucket {container_name}: {e}")
        except (MinioException, HTTPError, ValueError) as e:
            raise FileStorageError(f"Failed to create bucket {container_name}: {e}")

        logger.info(f"Created bucket {container_name} on connection '{connection_name}'")

        if spec.public:
            try:
                self._client.set_bucket_policy(
                    container_name, json.dumps(public_read_policy(container_name))
                )
            except (MinioException, HTTPError, ValueError) as e:
                raise FileStorageError(f"Failed to make bucket {container_name} public: {e}")

        if spec.cors_policy:
            logger.warning(
                f"CORS policy for bucket {container_name} skipped: "
                "not supported by the S3 client"
            )
