"""Conversion between absolute and warehouse-relative locations.

A location is absolute when it carries a URI scheme (``s3://bucket/wh``,
``file:///tmp/wh``) or is an absolute filesystem path (``/tmp/wh``). Any
other location is relative and is resolved against the warehouse root.

Relativization is a textual prefix match on the normalized warehouse root,
trailing separator included. It is not URI-aware containment: two roots
whose strings share a prefix (``s3://bucket/wh/`` and ``s3://bucket/wh/a/``)
are not told apart.

Example:
    >>> root = normalize_warehouse("s3://bucket/wh")
    >>> absolutize("bronze/customers", root)
    's3://bucket/wh/bronze/customers'
    >>> relativize("s3://bucket/wh/bronze/customers", root)
    'bronze/customers'
"""

from __future__ import annotations

import re
from collections.abc import Iterable

SEPARATOR = "/"

# RFC 3986 scheme followed by ':'
_SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")


def strip_trailing_separator(location: str) -> str:
    """Remove trailing separators, keeping a bare ``scheme://`` intact."""
    result = location
    while result.endswith(SEPARATOR) and not result.endswith("://"):
        result = result[:-1]
    return result


def normalize_warehouse(location: str) -> str:
    """Normalize a warehouse root to end with exactly one separator.

    Args:
        location: Warehouse location as configured.

    Returns:
        The location with a single trailing separator.

    Raises:
        ValueError: If the location is empty.
    """
    if not location:
        msg = "Warehouse location must not be empty"
        raise ValueError(msg)
    stripped = strip_trailing_separator(location)
    if stripped.endswith(SEPARATOR):
        return stripped
    return stripped + SEPARATOR


def is_absolute(location: str) -> bool:
    """Return True if the location carries a scheme or is an absolute path."""
    return location.startswith(SEPARATOR) or _SCHEME_PATTERN.match(location) is not None


def absolutize(location: str, root: str) -> str:
    """Resolve a location against the warehouse root.

    Absolute locations are returned unchanged, so resolving twice never
    prefixes the root twice.

    Args:
        location: Absolute or relative location.
        root: Normalized warehouse root.

    Returns:
        Absolute location.
    """
    if is_absolute(location):
        return location
    return root + location


def relativize(location: str, root: str) -> str:
    """Strip the warehouse root prefix from a location.

    Locations outside the root (for example files of another warehouse
    during a copy) are returned unchanged.

    Args:
        location: Absolute or relative location.
        root: Normalized warehouse root.

    Returns:
        The location relative to the root, or the input itself.
    """
    if location.startswith(root):
        return location[len(root) :]
    return location


def join(*segments: str) -> str:
    """Join path segments with the separator, without a trailing separator."""
    return SEPARATOR.join(segments)


def join_levels(levels: Iterable[str]) -> str:
    """Join identifier levels into a relative directory path."""
    return join(*levels)
