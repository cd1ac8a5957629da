"""Utility functions for filestorage."""

from filestorage.core.utils.config import (
    ConfigError,
    config_module_path,
    load_and_resolve_config,
    load_config_from_module,
    resolve_config_inheritance,
)
from filestorage.core.utils.env import env_flag, load_env_file_if_present
from filestorage.core.utils.naming import sanitize, to_kebab

__all__ = [
    "load_env_file_if_present",
    "env_flag",
    "load_config_from_module",
    "load_and_resolve_config",
    "resolve_config_inheritance",
    "config_module_path",
    "ConfigError",
    "sanitize",
    "to_kebab",
]
