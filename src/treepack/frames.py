"""Frame header grammar.

Every file in an archive starts with a header line::

    ====<path>|<tag>====\\n

or, with sized framing, ``====<path>|<tag>|<size>====\\n`` where ``size`` is
the number of encoded payload bytes that follow the header (not counting the
newline that terminates the payload).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from treepack.exceptions import ArchiveFormatError
from treepack.tagging import format_tag
from treepack.types import FrameFormat

HEADER_PREFIX = b"===="
HEADER_SUFFIX = b"====\n"
FIELD_SEPARATOR = b"|"
PAYLOAD_TERMINATOR = b"\n"

_MIN_HEADER_LENGTH = len(HEADER_PREFIX) + len(HEADER_SUFFIX)


@dataclass(frozen=True)
class FrameHeader:
    path: str
    tag: int
    size: Optional[int] = None


def format_header(path: str, tag: int, size: int | None = None) -> bytes:
    encoded_path = os.fsencode(path)
    if b"\n" in encoded_path:
        raise ArchiveFormatError(f"Path cannot contain a newline: {path!r}")

    fields = [encoded_path, format_tag(tag).encode("ascii")]
    if size is not None:
        fields.append(str(size).encode("ascii"))
    return HEADER_PREFIX + FIELD_SEPARATOR.join(fields) + HEADER_SUFFIX


def is_header_line(line: bytes) -> bool:
    return (
        len(line) >= _MIN_HEADER_LENGTH
        and line.startswith(HEADER_PREFIX)
        and line.endswith(HEADER_SUFFIX)
    )


def _parse_number(value: bytes, what: str, line: bytes) -> int:
    if not value.isdigit():
        raise ArchiveFormatError(f"Invalid {what} {value!r} in frame header {line!r}")
    return int(value)


def parse_header(line: bytes, frame_format: FrameFormat = FrameFormat.LINE) -> FrameHeader:
    """Parse a line for which :func:`is_header_line` is true."""
    body = line[len(HEADER_PREFIX) : -len(HEADER_SUFFIX)]

    if frame_format == FrameFormat.SIZED:
        parts = body.rsplit(FIELD_SEPARATOR, 2)
        if len(parts) != 3:
            raise ArchiveFormatError(f"Malformed sized frame header: {line!r}")
        raw_path, raw_tag, raw_size = parts
        size: int | None = _parse_number(raw_size, "size", line)
    else:
        parts = body.split(FIELD_SEPARATOR, 1)
        if len(parts) != 2:
            raise ArchiveFormatError(f"Malformed frame header: {line!r}")
        raw_path, raw_tag = parts
        size = None

    if not raw_path:
        raise ArchiveFormatError(f"Empty path in frame header: {line!r}")

    return FrameHeader(
        path=os.fsdecode(raw_path),
        tag=_parse_number(raw_tag, "tag", line),
        size=size,
    )
