import logging
from typing import IO, Optional

from treepack.formats.registry import stream_handlers
from treepack.internal.io_helpers import peek_bytes
from treepack.types import StreamFormat

logger = logging.getLogger(__name__)

_MAX_MAGIC_LENGTH = 8


def detect_stream_format_by_signature(header: bytes) -> Optional[StreamFormat]:
    """Return the compression format whose magic bytes start ``header``, if any."""
    for format, handler in stream_handlers.items():
        if any(header.startswith(magic) for magic in handler.magic_bytes):
            return format
    return None


def detect_stream_format(stream: IO[bytes]) -> Optional[StreamFormat]:
    """Detect the compression format of ``stream`` without consuming any data."""
    header = peek_bytes(stream, _MAX_MAGIC_LENGTH)
    format = detect_stream_format_by_signature(header)
    logger.debug("Detected stream format %s from header %r", format, header)
    return format
