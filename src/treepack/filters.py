from __future__ import annotations

import os
from typing import Callable, Collection

from treepack.exceptions import ArchiveFormatError

__all__ = [
    "PathFilter",
    "is_excluded_name",
    "is_excluded_path",
    "create_path_filter",
    "sanitize_member_path",
]

PathFilter = Callable[[str], bool]


def is_excluded_name(segment: str, excluded_names: Collection[str]) -> bool:
    """Return True if a single path segment names an excluded subtree root."""
    return segment in excluded_names


def _split_segments(path: str) -> list[str]:
    separators = {os.sep, "/"}
    if os.altsep:
        separators.add(os.altsep)
    for sep in separators:
        path = path.replace(sep, "/")
    return [segment for segment in path.split("/") if segment]


def is_excluded_path(path: str, excluded_names: Collection[str]) -> bool:
    """Return True if any segment of ``path`` is an excluded name."""
    return any(
        is_excluded_name(segment, excluded_names) for segment in _split_segments(path)
    )


def create_path_filter(excluded_names: Collection[str]) -> PathFilter:
    """Build a predicate returning True for paths that belong in the archive."""
    excluded = frozenset(excluded_names)

    def _filter(path: str) -> bool:
        return not is_excluded_path(path, excluded)

    return _filter


def sanitize_member_path(name: str, dest_path: str | os.PathLike[str]) -> str:
    """Resolve an archived path below ``dest_path``.

    Raises ArchiveFormatError for absolute paths, empty paths and paths that
    would end up outside the destination directory.
    """
    if not name or os.path.isabs(name) or name.startswith(("/", "\\")):
        raise ArchiveFormatError(f"Absolute or empty path not allowed: {name!r}")

    dest_real = os.path.realpath(dest_path)
    target = os.path.realpath(os.path.join(dest_real, name))
    if target == dest_real or os.path.commonpath([dest_real, target]) != dest_real:
        raise ArchiveFormatError(f"Extraction outside destination: {name!r}")
    return target
