from __future__ import annotations

import io
from typing import IO

from treepack.config import TreepackConfig, get_default_config
from treepack.exceptions import ArchiveNotSupportedError
from treepack.formats.registry import Compressor, StreamHandler, get_stream_handler
from treepack.internal.io_helpers import ExceptionTranslatingIO
from treepack.types import StreamFormat


def _get_handler(format: StreamFormat) -> StreamHandler:
    handler = get_stream_handler(format)
    if handler is None:
        raise ArchiveNotSupportedError(f"Unsupported compression format: {format}")
    return handler


def open_compressor(format: StreamFormat, level: int | None = None) -> Compressor:
    return _get_handler(format).compressor_factory(level)


def open_decompressed_stream(
    format: StreamFormat,
    stream: IO[bytes],
    config: TreepackConfig | None = None,
    archive_path: str | None = None,
) -> io.BufferedReader:
    """Open a buffered reader returning the decompressed contents of ``stream``.

    Errors raised by the compression library are translated to ArchiveError
    subclasses. Closing the returned reader does not close ``stream``.
    """
    if config is None:
        config = get_default_config()
    open_fn, exception_translator = _get_handler(format).handler_factory(config)
    raw = ExceptionTranslatingIO(
        lambda: open_fn(stream),
        exception_translator,
        archive_path=archive_path,
    )
    return io.BufferedReader(raw)
