from __future__ import annotations

import gzip
import zlib
from typing import IO, TYPE_CHECKING, BinaryIO, Callable

from treepack.exceptions import ArchiveCorruptedError, ArchiveEOFError
from treepack.formats.registry import Compressor, StreamHandler, register_stream_handler
from treepack.internal.io_helpers import ExceptionTranslatorFn
from treepack.types import StreamFormat

if TYPE_CHECKING:
    from treepack.config import TreepackConfig

# zlib writes a gzip container (with a zeroed header) for wbits 16 + 15.
_GZIP_WBITS = 31


def _translate_gzip_exception(
    e: Exception,
) -> ArchiveCorruptedError | ArchiveEOFError | None:
    if isinstance(e, (gzip.BadGzipFile, zlib.error)):
        return ArchiveCorruptedError(f"Error reading GZIP stream: {repr(e)}")
    if isinstance(e, EOFError):
        return ArchiveEOFError(f"GZIP stream is truncated: {repr(e)}")
    return None  # pragma: no cover


def open_gzip_stream(stream: IO[bytes]) -> BinaryIO:
    return gzip.GzipFile(fileobj=stream, mode="rb")  # type: ignore[return-value]


def create_gzip_compressor(level: int | None) -> Compressor:
    return zlib.compressobj(
        zlib.Z_DEFAULT_COMPRESSION if level is None else level,
        zlib.DEFLATED,
        _GZIP_WBITS,
    )


def _handler_factory(
    config: TreepackConfig,
) -> tuple[Callable[[IO[bytes]], BinaryIO], ExceptionTranslatorFn]:
    return open_gzip_stream, _translate_gzip_exception


register_stream_handler(
    StreamFormat.GZIP,
    StreamHandler(
        handler_factory=_handler_factory,
        compressor_factory=create_gzip_compressor,
        magic_bytes=[b"\x1f\x8b"],
    ),
)
