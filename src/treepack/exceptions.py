"""Defines custom exceptions used throughout the treepack library."""

from typing import Optional


class ArchiveError(Exception):
    """Base exception for all archive-related errors encountered by treepack."""

    archive_path: Optional[str] = None
    member_name: Optional[str] = None


class ArchiveFormatError(ArchiveError):
    """
    Raised when a frame header cannot be parsed, or when a path cannot be
    represented in (or safely extracted from) an archive.
    """

    pass


class ArchiveCorruptedError(ArchiveError):
    """Raised when archive data is invalid, e.g. bad base64 or compressed data."""

    pass


class ArchiveIntegrityError(ArchiveCorruptedError):
    """Raised when a decoded file does not match the tag stored in its header."""

    pass


class ArchiveEOFError(ArchiveError):
    """Raised when an unexpected end-of-file is encountered while reading an archive."""

    pass


class ArchiveIOError(ArchiveError):
    """Raised for general input/output errors during archive operations."""

    pass


class ArchiveNotSupportedError(ArchiveError):
    """Raised when a compression format has no registered handler."""

    pass


class PackageNotInstalledError(ArchiveError):
    """
    Raised when a third-party library needed for a specific compression format
    is not installed in the environment.
    """

    pass
