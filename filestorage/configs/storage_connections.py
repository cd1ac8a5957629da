"""Storage connection configuration.

This module defines the CONFIGURATION dict which maps connection names to a
backend type and its connection parameters. Point the library at another
module with the FILESTORAGE_CONFIG_MODULE environment variable.

Example usage:
    import filestorage

    filestorage.upload("reports", "/tmp/report.pdf")                      # "default"
    filestorage.upload("reports", "/tmp/report.pdf", connection="azure")

Environment overrides:
    # Switch the default connection between mock, s3 and azure
    export FILESTORAGE_DEFAULT_BACKEND=s3

Configuration inheritance:
    "s3": {"type": "s3", "endpoint": "localhost:9000", ...},
    "s3-eu": {
        "__inherits__": "s3",   # Inherits all settings from s3
        "region": "eu-west-1",  # Override only the region
    }
"""

from __future__ import annotations

import os
from typing import Any

from filestorage.core.utils.env import env_flag, load_env_file_if_present

load_env_file_if_present()  # Load .env file if present


def _build_s3_config() -> dict[str, Any]:
    """Return an S3-compatible connection configuration."""
    return {
        "type": "s3",
        "endpoint": os.getenv("S3_ENDPOINT", "localhost:9000"),
        "access_key": os.getenv("S3_ACCESS_KEY_ID", "minioadmin"),
        "secret_key": os.getenv("S3_SECRET_ACCESS_KEY", "minioadmin"),
        "region": os.getenv("S3_REGION", "us-east-1"),
        "secure": env_flag("S3_SECURE", default=False),
    }


def _build_azure_config() -> dict[str, Any]:
    """Return an Azure Blob Storage connection configuration."""
    connection_string = os.getenv("AZURE_STORAGE_CONNECTION_STRING")
    if connection_string:
        return {"type": "azure", "connection_string": connection_string}

    return {
        "type": "azure",
        "account_name": os.getenv("AZURE_STORAGE_ACCOUNT", "devstoreaccount1"),
        "account_key": os.getenv("AZURE_STORAGE_KEY", ""),
        "account_url": os.getenv("AZURE_STORAGE_URL"),
    }


def _build_default_config() -> dict[str, Any]:
    """Determine the configuration behind the default connection."""
    backend_type = os.getenv("FILESTORAGE_DEFAULT_BACKEND", "mock").strip().lower()
    if backend_type == "s3":
        return {"__inherits__": "s3"}
    if backend_type == "azure":
        return {"__inherits__": "azure"}
    return {"__inherits__": "mock"}


CONFIGURATION = {
    # Connection used when callers do not name one
    "default": _build_default_config(),
    # S3-compatible storage (AWS S3, MinIO, R2, ...)
    "s3": _build_s3_config(),
    # Azure Blob Storage (or Azurite)
    "azure": _build_azure_config(),
    # In-memory storage for tests and demos
    "mock": {
        "type": "mock",
        "base_url": "https://mock.storage.local",
    },
}
