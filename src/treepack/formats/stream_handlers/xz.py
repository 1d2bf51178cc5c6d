from __future__ import annotations

import lzma
from typing import IO, TYPE_CHECKING, BinaryIO, Callable

from treepack.exceptions import ArchiveCorruptedError, ArchiveEOFError
from treepack.formats.registry import Compressor, StreamHandler, register_stream_handler
from treepack.internal.io_helpers import ExceptionTranslatorFn
from treepack.types import StreamFormat

if TYPE_CHECKING:
    from treepack.config import TreepackConfig


def _translate_lzma_exception(
    e: Exception,
) -> ArchiveCorruptedError | ArchiveEOFError | None:
    if isinstance(e, lzma.LZMAError):
        return ArchiveCorruptedError(f"Error reading XZ stream: {repr(e)}")
    if isinstance(e, EOFError):
        return ArchiveEOFError(f"XZ stream is truncated: {repr(e)}")
    return None


def open_lzma_stream(stream: IO[bytes]) -> BinaryIO:
    return lzma.LZMAFile(stream, mode="rb")  # type: ignore[return-value]


def create_lzma_compressor(level: int | None) -> Compressor:
    return lzma.LZMACompressor(format=lzma.FORMAT_XZ, preset=level)


def _handler_factory(
    config: TreepackConfig,
) -> tuple[Callable[[IO[bytes]], BinaryIO], ExceptionTranslatorFn]:
    return open_lzma_stream, _translate_lzma_exception


register_stream_handler(
    StreamFormat.XZ,
    StreamHandler(
        handler_factory=_handler_factory,
        compressor_factory=create_lzma_compressor,
        magic_bytes=[b"\xfd\x37\x7a\x58\x5a\x00"],
    ),
)
