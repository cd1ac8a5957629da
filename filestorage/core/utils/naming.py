"""Blob and container name helpers."""

from __future__ import annotations

import re

_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_SEPARATORS = re.compile(r"[\s._\-/\\]+")
_DISALLOWED = re.compile(r"[^0-9a-z\-]")


def to_kebab(value: str) -> str:
    """Convert camelCase, snake_case and spaced words to kebab-case.

    >>> to_kebab("myHTTPFile name_v2")
    'my-http-file-name-v2'
    """
    value = _ACRONYM_BOUNDARY.sub(r"\1-\2", value)
    value = _CASE_BOUNDARY.sub(r"\1-\2", value)
    value = _SEPARATORS.sub("-", value)
    return value.lower()


def sanitize(name: str) -> str:
    """Turn an arbitrary string into a storage-safe name.

    The result only contains ``[0-9a-z-]`` and never starts or ends with a
    hyphen. It can be empty when nothing usable is left, e.g. ``sanitize("!!")``.

    >>> sanitize("  My Upload_File.PNG ")
    'my-upload-file-png'
    """
    kebab = to_kebab(name.strip())
    return _DISALLOWED.sub("", kebab).strip("-")
