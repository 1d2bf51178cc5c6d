from __future__ import annotations

import zlib
from typing import IO, TYPE_CHECKING, BinaryIO, Callable

from treepack.exceptions import ArchiveCorruptedError, ArchiveEOFError
from treepack.formats.decompressors import DecompressorStream
from treepack.formats.registry import Compressor, StreamHandler, register_stream_handler
from treepack.internal.io_helpers import ExceptionTranslatorFn
from treepack.types import StreamFormat

if TYPE_CHECKING:
    from treepack.config import TreepackConfig


def open_zlib_stream(stream: IO[bytes]) -> BinaryIO:
    return DecompressorStream(stream, zlib.decompressobj())


def create_zlib_compressor(level: int | None) -> Compressor:
    return zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION if level is None else level)


def _translate_zlib_exception(
    e: Exception,
) -> ArchiveCorruptedError | ArchiveEOFError | None:
    if isinstance(e, zlib.error):
        if "incomplete" in str(e) or "truncated" in str(e):
            return ArchiveEOFError(f"Zlib stream is truncated: {repr(e)}")
        return ArchiveCorruptedError(f"Error reading Zlib stream: {repr(e)}")
    if isinstance(e, EOFError):
        return ArchiveEOFError(f"Zlib stream is truncated: {repr(e)}")
    return None


def _handler_factory(
    config: TreepackConfig,
) -> tuple[Callable[[IO[bytes]], BinaryIO], ExceptionTranslatorFn]:
    return open_zlib_stream, _translate_zlib_exception


register_stream_handler(
    StreamFormat.ZLIB,
    StreamHandler(
        handler_factory=_handler_factory,
        compressor_factory=create_zlib_compressor,
        magic_bytes=[b"\x78\x01", b"\x78\x5e", b"\x78\x9c", b"\x78\xda"],
    ),
)
