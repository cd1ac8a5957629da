"""Tests for the S3 backend implementation."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch
from urllib.parse import parse_qs, urlparse

import pytest
from conftest import make_s3_error

from filestorage.core.storage.backends.s3_backend import (
    S3ContainerBackend,
    S3FileBackend,
    create_client,
    public_read_policy,
)
from filestorage.core.storage.file import (
    BlobNotFoundError,
    ContainerNotFoundError,
    ContainerSpec,
    FileReference,
    FileStorageError,
    StorageConnectionError,
)


@pytest.fixture
def signing_backend():
    """S3 file backend with a real client; signing needs no network."""
    client = create_client(
        endpoint="localhost:9000",
        access_key="minioadmin",
        secret_key="minioadmin",
        secure=False,
    )
    return S3FileBackend(client)


@pytest.fixture
def mock_client():
    return Mock()


class TestS3PublicUrl:
    """Presigned URLs produced with the MinIO signer."""

    def test_public_url_path(self, signing_backend):
        """Test that the URL addresses the object path-style."""
        now = datetime.now(timezone.utc)
        url = signing_backend.public_url(
            "block-store-container", "test.png", now, now + timedelta(days=1), "default"
        )

        assert urlparse(url).path == "/block-store-container/test.png"

    def test_public_url_with_leading_slash(self, signing_backend):
        """Test that a leading slash resolves to the same object."""
        now = datetime.now(timezone.utc)
        url = signing_backend.public_url(
            "block-store-container", "/test.png", now, now + timedelta(days=1), "default"
        )

        assert urlparse(url).path == "/block-store-container/test.png"

    def test_one_hour_window_sets_expires(self, signing_backend):
        """Test that a one-hour window is encoded as X-Amz-Expires=3600."""
        start = datetime.now(timezone.utc)
        url = signing_backend.public_url(
            "block-store-container", "test.png", start, start + timedelta(hours=1), "default"
        )

        query = parse_qs(urlparse(url).query)
        assert query["X-Amz-Expires"] == ["3600"]

    def test_one_day_window_sets_expires(self, signing_backend):
        """Test that a one-day window is encoded as X-Amz-Expires=86400."""
        start = datetime.now(timezone.utc)
        url = signing_backend.public_url(
            "block-store-container", "test.png", start, start + timedelta(days=1), "default"
        )

        assert parse_qs(urlparse(url).query)["X-Amz-Expires"] == ["86400"]

    def test_window_start_is_signing_date(self, signing_backend):
        """Test that the window start becomes X-Amz-Date."""
        start = datetime(2024, 1, 15, 9, 30, 0, tzinfo=timezone.utc)
        url = signing_backend.public_url(
            "c", "test.png", start, start + timedelta(hours=1), "default"
        )

        assert parse_qs(urlparse(url).query)["X-Amz-Date"] == ["20240115T093000Z"]

    def test_zero_length_window_is_clamped(self, signing_backend):
        """Test that an empty window still produces a valid one-second URL."""
        start = datetime.now(timezone.utc)
        url = signing_backend.public_url("c", "test.png", start, start, "default")

        assert parse_qs(urlparse(url).query)["X-Amz-Expires"] == ["1"]

    def test_window_over_seven_days_fails(self, signing_backend):
        """Test that S3's seven-day presign limit surfaces as a storage error."""
        start = datetime.now(timezone.utc)

        with pytest.raises(FileStorageError):
            signing_backend.public_url("c", "test.png", start, start + timedelta(days=8), "default")


class TestS3Upload:
    """Uploads through a mocked MinIO client."""

    def test_upload_with_mime_type(self, mock_client, source_file):
        """Test that uploads without a blob name use the basename and guessed type."""
        mock_client.fput_object.return_value = Mock(etag="abc123", last_modified=None)
        backend = S3FileBackend(mock_client)

        ref = backend.upload("block-store-container", "default", source_file, None)

        mock_client.fput_object.assert_called_once_with(
            bucket_name="block-store-container",
            object_name="test_icon.png",
            file_path=str(source_file),
            content_type="image/png",
        )
        assert ref.name == "test_icon.png"
        assert ref.properties["etag"] == "abc123"
        assert ref.container == "block-store-container"

    def test_upload_unknown_extension_is_octet_stream(self, mock_client, source_file):
        """Test the fallback content type."""
        mock_client.fput_object.return_value = Mock(etag="e", last_modified=None)

        S3FileBackend(mock_client).upload("c", "default", source_file, "blob.unknownext")

        kwargs = mock_client.fput_object.call_args.kwargs
        assert kwargs["content_type"] == "application/octet-stream"

    def test_upload_missing_bucket(self, mock_client, source_file):
        """Test that NoSuchBucket is reported as ContainerNotFoundError."""
        mock_client.fput_object.side_effect = make_s3_error("NoSuchBucket")

        with pytest.raises(ContainerNotFoundError):
            S3FileBackend(mock_client).upload("c", "default", source_file, None)

    def test_failing_upload_raises_storage_error(self, mock_client, source_file):
        """Test that other S3 errors are generic storage errors."""
        mock_client.fput_object.side_effect = make_s3_error("AccessDenied")

        with pytest.raises(FileStorageError) as exc_info:
            S3FileBackend(mock_client).upload("c", "default", source_file, None)

        assert not isinstance(exc_info.value, ContainerNotFoundError)

    def test_unreadable_source_raises_storage_error(self, mock_client, tmp_path):
        """Test that a missing source file does not escape as OSError."""
        mock_client.fput_object.side_effect = FileNotFoundError("gone")

        with pytest.raises(FileStorageError):
            S3FileBackend(mock_client).upload("c", "default", tmp_path / "gone.png", None)


class TestS3DeleteAndMetadata:
    """Delete and last-modified lookups."""

    def test_delete_object(self, mock_client):
        """Test that delete removes the normalized key."""
        result = S3FileBackend(mock_client).delete("block-store-container", "/awesome/test.png")

        mock_client.remove_object.assert_called_once_with(
            "block-store-container", "awesome/test.png"
        )
        assert result == {"container": "block-store-container", "name": "awesome/test.png"}

    @pytest.mark.parametrize("method", ["fput_object", "remove_object", "stat_object"])
    def test_argument_errors_are_storage_errors(self, mock_client, source_file, method):
        """Test that ValueError from client argument checks never escapes."""
        getattr(mock_client, method).side_effect = ValueError("object name cannot be empty")
        backend = S3FileBackend(mock_client)
        ref = FileReference(name="a.png", properties={"container": "c"})

        with pytest.raises(FileStorageError, match="cannot be empty"):
            if method == "fput_object":
                backend.upload("c", "default", source_file, "a.png")
            elif method == "remove_object":
                backend.delete("c", "a.png")
            else:
                backend.last_modified(ref, "default")

    def test_delete_error(self, mock_client):
        """Test that delete failures are storage errors."""
        mock_client.remove_object.side_effect = make_s3_error("AccessDenied")

        with pytest.raises(FileStorageError):
            S3FileBackend(mock_client).delete("c", "a.png")

    def test_last_modified_ignores_recorded_timestamp(self, mock_client):
        """Test that an object overwritten after upload reports its new time."""
        uploaded = datetime(2024, 1, 15, tzinfo=timezone.utc)
        overwritten = datetime(2024, 2, 1, tzinfo=timezone.utc)
        mock_client.stat_object.return_value = Mock(last_modified=overwritten)
        ref = FileReference(name="a.png", properties={"container": "c", "last_modified": uploaded})

        assert S3FileBackend(mock_client).last_modified(ref, "default") == overwritten
        mock_client.stat_object.assert_called_once_with("c", "a.png")

    def test_last_modified_recorded_without_container(self, mock_client):
        """Test that a detached reference falls back to its recorded timestamp."""
        stamp = datetime(2024, 1, 15, tzinfo=timezone.utc)
        ref = FileReference(name="a.png", properties={"last_modified": stamp})

        assert S3FileBackend(mock_client).last_modified(ref, "default") == stamp
        mock_client.stat_object.assert_not_called()

    def test_last_modified_from_stat(self, mock_client):
        """Test that the provider is asked when the reference has no timestamp."""
        stamp = datetime(2024, 1, 15, tzinfo=timezone.utc)
        mock_client.stat_object.return_value = Mock(last_modified=stamp)
        ref = FileReference(name="a.png", properties={"container": "c"})

        assert S3FileBackend(mock_client).last_modified(ref, "default") == stamp
        mock_client.stat_object.assert_called_once_with("c", "a.png")

    def test_last_modified_missing_blob(self, mock_client):
        """Test that a missing object raises BlobNotFoundError."""
        mock_client.stat_object.side_effect = make_s3_error("NoSuchKey")
        ref = FileReference(name="a.png", properties={"container": "c"})

        with pytest.raises(BlobNotFoundError):
            S3FileBackend(mock_client).last_modified(ref, "default")

    def test_last_modified_without_container(self, mock_client):
        """Test that a reference without container cannot be looked up."""
        with pytest.raises(FileStorageError, match="no container"):
            S3FileBackend(mock_client).last_modified(FileReference(name="a.png"), "default")


class TestS3Containers:
    """Bucket creation."""

    def test_create_bucket(self, mock_client):
        """Test that create makes the bucket in the configured region."""
        S3ContainerBackend(mock_client, region="eu-west-1").create("c", "default", ContainerSpec())

        mock_client.make_bucket.assert_called_once_with("c", location="eu-west-1")
        mock_client.set_bucket_policy.assert_not_called()

    def test_create_public_bucket(self, mock_client):
        """Test that public buckets get a public-read policy."""
        S3ContainerBackend(mock_client).create("c", "default", ContainerSpec(public=True))

        bucket, policy = mock_client.set_bucket_policy.call_args.args
        assert bucket == "c"
        assert json.loads(policy) == public_read_policy("c")

    def test_create_existing_bucket_is_success(self, mock_client):
        """Test that an already owned bucket is not an error."""
        mock_client.make_bucket.side_effect = make_s3_error("BucketAlreadyOwnedByYou")

        S3ContainerBackend(mock_client).create("c", "default", ContainerSpec(public=True))

        mock_client.set_bucket_policy.assert_not_called()

    def test_create_invalid_bucket_name(self):
        """Test that client-side name validation is reported as a storage error."""
        client = create_client(
            endpoint="localhost:9000",
            access_key="minioadmin",
            secret_key="minioadmin",
            secure=False,
        )

        with pytest.raises(FileStorageError, match="Invalid_Bucket!"):
            S3ContainerBackend(client).create("Invalid_Bucket!", "default", ContainerSpec())

    def test_create_failure(self, mock_client):
        """Test that other creation errors are storage errors."""
        mock_client.make_bucket.side_effect = make_s3_error("AccessDenied")

        with pytest.raises(FileStorageError):
            S3ContainerBackend(mock_client).create("c", "default", ContainerSpec())

    def test_cors_policy_is_skipped_with_warning(self, mock_client, caplog):
        """Test that CORS requests are logged since the client cannot apply them."""
        with caplog.at_level("WARNING"):
            S3ContainerBackend(mock_client).create("c", "default", ContainerSpec(cors_policy=True))

        assert "CORS policy for bucket c skipped" in caplog.text


class TestCreateClient:
    @patch("filestorage.core.storage.backends.s3_backend.Minio")
    def test_default_region(self, mock_minio_class):
        """Test that a missing region falls back to us-east-1."""
        create_client("localhost:9000", "key", "secret", secure=False, region=None)

        mock_minio_class.assert_called_once_with(
            endpoint="localhost:9000",
            access_key="key",
            secret_key="secret",
            secure=False,
            region="us-east-1",
        )

    @patch("filestorage.core.storage.backends.s3_backend.Minio")
    def test_invalid_endpoint(self, mock_minio_class):
        """Test that client construction errors are connection errors."""
        mock_minio_class.side_effect = ValueError("path in endpoint is not allowed")

        with pytest.raises(StorageConnectionError):
            create_client("localhost:9000/bad", "key", "secret")
