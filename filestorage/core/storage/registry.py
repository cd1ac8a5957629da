"""Connection registry resolving connection names to storage backends."""

from __future__ import annotations

import logging
from typing import Any

from filestorage.core.storage.backends.azure_backend import (
    AzureContainerBackend,
    AzureFileBackend,
    create_service_client,
)
from filestorage.core.storage.backends.mock_backend import (
    DEFAULT_BASE_URL,
    MockContainerBackend,
    MockFileBackend,
    MockStore,
)
from filestorage.core.storage.backends.s3_backend import (
    DEFAULT_REGION,
    S3ContainerBackend,
    S3FileBackend,
    create_client,
)
from filestorage.core.storage.file import BackendKind, BackendPair
from filestorage.core.utils.config import load_and_resolve_config

logger = logging.getLogger(__name__)


class ConnectionConfigError(Exception):
    """Raised when connection configuration is invalid."""

    pass


class ConnectionNotFoundError(Exception):
    """Raised when a named connection is not found in configuration."""

    pass


class ConnectionRegistry:
    """Registry for named storage connections.

    Every lookup reads the current configuration, so re-registering a
    connection takes effect on the next call. Only mock stores are kept
    between calls since they hold the mock provider's data.

    Examples:
        >>> registry = ConnectionRegistry({"default": {"type": "mock"}})
        >>> registry.resolve("default")
        <BackendKind.MOCK: 'mock'>
    """

    def __init__(self, configuration: dict[str, dict[str, Any]] | None = None):
        """Initialize the registry.

        Args:
            configuration: Connection configuration dict. If None, loads and
                resolves the module named by ``FILESTORAGE_CONFIG_MODULE``
                (default ``filestorage.configs.storage_connections``)
        """
        if configuration is None:
            configuration = load_and_resolve_config(default={})

        self._config = configuration
        self._mock_stores: dict[str, MockStore] = {}

    def _connection_config(self, name: str) -> dict[str, Any]:
        if name not in self._config:
            available = ", ".join(self._config.keys())
            raise ConnectionNotFoundError(
                f"Connection '{name}' not found in configuration. "
                f"Available connections: {available or 'none'}"
            )
        return self._config[name]

    def resolve(self, name: str) -> BackendKind:
        """Resolve a connection name to its backend kind.

        Raises:
            ConnectionNotFoundError: If the name is not configured
            ConnectionConfigError: If the entry has no valid ``type``
        """
        backend_type = self._connection_config(name).get("type")
        if not backend_type:
            raise ConnectionConfigError(f"Connection '{name}' must specify 'type'")

        try:
            return BackendKind(str(backend_type).lower())
        except ValueError:
            raise ConnectionConfigError(
                f"Unknown backend type for connection '{name}': {backend_type}"
            )

    def get_backends(self, name: str) -> BackendPair:
        """Create the file and container backends for a connection.

        Args:
            name: Connection name

        Returns:
            Backend pair for the connection's kind

        Raises:
            ConnectionNotFoundError: If the name is not configured
            ConnectionConfigError: If the configuration is invalid
        """
        kind = self.resolve(name)
        config = self._connection_config(name)

        if kind is BackendKind.S3:
            pair = self._create_s3(name, config)
        elif kind is BackendKind.AZURE:
            pair = self._create_azure(name, config)
        else:
            pair = self._create_mock(name, config)

        logger.debug(f"Resolved connection '{name}' to {kind.value} backend")
        return pair

    def _create_s3(self, name: str, config: dict[str, Any]) -> BackendPair:
        required_fields = ["endpoint", "access_key", "secret_key"]
        missing = [f for f in required_fields if not config.get(f)]
        if missing:
            raise ConnectionConfigError(
                f"S3 connection '{name}' missing required fields: {', '.join(missing)}"
            )

        region = config.get("region") or DEFAULT_REGION
        client = create_client(
            endpoint=config["endpoint"],
            access_key=config["access_key"],
            secret_key=config["secret_key"],
            secure=config.get("secure", True),
            region=region,
        )
        return BackendPair(
            kind=BackendKind.S3,
            files=S3FileBackend(client),
            containers=S3ContainerBackend(client, region=region),
        )

    def _create_azure(self, name: str, config: dict[str, Any]) -> BackendPair:
        has_key = config.get("account_name") and config.get("account_key")
        if not config.get("connection_string") and not has_key:
            raise ConnectionConfigError(
                f"Azure connection '{name}' requires 'connection_string' "
                "or 'account_name' and 'account_key'"
            )

        client = create_service_client(
            connection_string=config.get("connection_string"),
            account_name=config.get("account_name"),
            account_key=config.get("account_key"),
            account_url=config.get("account_url"),
        )
        return BackendPair(
            kind=BackendKind.AZURE,
            files=AzureFileBackend(client),
            containers=AzureContainerBackend(client),
        )

    def _create_mock(self, name: str, config: dict[str, Any]) -> BackendPair:
        store = self.mock_store(name)
        return BackendPair(
            kind=BackendKind.MOCK,
            files=MockFileBackend(store, base_url=config.get("base_url", DEFAULT_BASE_URL)),
            containers=MockContainerBackend(store),
        )

    def mock_store(self, name: str) -> MockStore:
        """Return the in-memory store behind a mock connection."""
        if self.resolve(name) is not BackendKind.MOCK:
            raise ConnectionConfigError(f"Connection '{name}' is not a mock connection")

        store = self._mock_stores.get(name)
        if store is None:
            config = self._connection_config(name)
            store = MockStore(require_container=config.get("require_container", False))
            self._mock_stores[name] = store
        return store

    def list_connections(self) -> list[str]:
        """List all configured connection names."""
        return list(self._config.keys())

    def register(self, name: str, config: dict[str, Any]) -> None:
        """Register or replace a connection configuration.

        Args:
            name: Connection name
            config: Connection configuration dict
        """
        self._config[name] = config
        self._mock_stores.pop(name, None)
        logger.info(f"Registered connection '{name}' ({config.get('type')})")


# Global registry instance
_default_registry: ConnectionRegistry | None = None


def get_default_registry() -> ConnectionRegistry:
    """Get the default global registry instance."""
    global _default_registry
    if _default_registry is None:
        _default_registry = ConnectionRegistry()
    return _default_registry


def set_default_registry(registry: ConnectionRegistry | None) -> None:
    """Replace the global registry; ``None`` reloads configuration on next use."""
    global _default_registry
    _default_registry = registry
