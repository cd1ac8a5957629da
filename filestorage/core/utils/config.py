"""Connection configuration loading.

Connection definitions live in plain Python modules exposing a dict (by
default named ``CONFIGURATION``). The module is imported with importlib so
deployments can point the library at their own configuration without code
changes. Entries may inherit from one another with the ``__inherits__`` key.
"""

from __future__ import annotations

import importlib
import logging
import os
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_MODULE = "filestorage.configs.storage_connections"
CONFIG_MODULE_ENV = "FILESTORAGE_CONFIG_MODULE"
INHERITS_KEY = "__inherits__"


class ConfigError(Exception):
    """Raised when configuration loading or resolution fails."""

    pass


def config_module_path() -> str:
    """Module holding the connection configuration, honoring the env override."""
    return os.environ.get(CONFIG_MODULE_ENV) or DEFAULT_CONFIG_MODULE


def load_config_from_module(
    module_path: str,
    config_name: str = "CONFIGURATION",
    default: Any | None = None,
) -> Any:
    """Load a configuration object from a Python module using importlib.

    Args:
        module_path: Dotted module path (e.g., "filestorage.configs.storage_connections")
        config_name: Name of the attribute holding the configuration
        default: Value returned when the module or attribute is missing

    Returns:
        The configuration object, or ``default``

    Examples:
        >>> config = load_config_from_module("filestorage.configs.storage_connections")
        >>> custom = load_config_from_module("myapp.storage", "CONNECTIONS")
    """
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        logger.warning(f"Could not import module '{module_path}': {e}")
        return default

    if not hasattr(module, config_name):
        logger.warning(f"Module '{module_path}' does not have attribute '{config_name}'")
        return default

    logger.debug(f"Loaded configuration from {module_path}.{config_name}")
    return getattr(module, config_name)


def resolve_config_inheritance(config_dict: dict[str, dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Resolve ``__inherits__`` references in a configuration dictionary.

    A child entry starts from its fully resolved parent and overrides keys it
    defines itself. The returned entries never contain ``__inherits__``.

    Args:
        config_dict: Configuration dictionary with potential inheritance relationships

    Returns:
        Fully resolved configuration dictionary

    Raises:
        ConfigError: If circular inheritance is detected or a parent is missing

    Examples:
        >>> config = {
        ...     "s3": {"type": "s3", "endpoint": "localhost:9000"},
        ...     "s3-eu": {"__inherits__": "s3", "region": "eu-west-1"},
        ... }
        >>> resolve_config_inheritance(config)["s3-eu"]["endpoint"]
        'localhost:9000'
    """
    resolved_configs: dict[str, dict[str, Any]] = {}

    def _resolve_single(name: str, chain: list[str]) -> dict[str, Any]:
        if name in chain:
            cycle = " -> ".join(chain + [name])
            raise ConfigError(f"Circular inheritance detected: {cycle}")

        if name in resolved_configs:
            return resolved_configs[name]

        config = config_dict[name]
        parent_name = config.get(INHERITS_KEY)
        if parent_name is None:
            resolved = dict(config)
        else:
            if parent_name not in config_dict:
                raise ConfigError(
                    f"Configuration '{name}' inherits from '{parent_name}', "
                    f"but '{parent_name}' not found"
                )
            resolved = dict(_resolve_single(parent_name, chain + [name]))
            resolved.update({k: v for k, v in config.items() if k != INHERITS_KEY})
            logger.debug(f"Resolved inheritance for '{name}' from '{parent_name}'")

        resolved_configs[name] = resolved
        return resolved

    for name in config_dict:
        _resolve_single(name, [])

    return resolved_configs


def load_and_resolve_config(
    module_path: str | None = None,
    config_name: str = "CONFIGURATION",
    default: dict[str, dict[str, Any]] | None = None,
) -> dict[str, dict[str, Any]]:
    """Load connection configuration and resolve inheritance.

    Args:
        module_path: Dotted module path; defaults to ``config_module_path()``
        config_name: Name of the attribute holding the configuration
        default: Configuration used when loading fails

    Returns:
        Fully resolved configuration dictionary
    """
    module_path = module_path or config_module_path()
    raw_config = load_config_from_module(module_path, config_name, default)

    if not isinstance(raw_config, dict):
        logger.warning(f"Invalid configuration loaded from {module_path}, using default")
        return dict(default or {})

    resolved = resolve_config_inheritance(raw_config)
    logger.info(f"Loaded {len(resolved)} storage connections from {module_path}")
    return resolved
