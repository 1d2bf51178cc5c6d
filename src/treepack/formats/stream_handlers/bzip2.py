from __future__ import annotations

import bz2
from typing import IO, TYPE_CHECKING, BinaryIO, Callable

from treepack.exceptions import ArchiveCorruptedError, ArchiveEOFError
from treepack.formats.registry import Compressor, StreamHandler, register_stream_handler
from treepack.internal.io_helpers import ExceptionTranslatorFn
from treepack.types import StreamFormat

if TYPE_CHECKING:
    from treepack.config import TreepackConfig


def _translate_bz2_exception(
    e: Exception,
) -> ArchiveCorruptedError | ArchiveEOFError | None:
    exc_text = str(e)
    if isinstance(e, OSError) and "Invalid data stream" in exc_text:
        return ArchiveCorruptedError(f"BZ2 stream is corrupted: {repr(e)}")
    if isinstance(e, EOFError):
        return ArchiveEOFError(f"BZ2 stream is truncated: {repr(e)}")
    return None


def open_bzip2_stream(stream: IO[bytes]) -> BinaryIO:
    return bz2.BZ2File(stream, mode="rb")  # type: ignore[return-value]


def create_bzip2_compressor(level: int | None) -> Compressor:
    return bz2.BZ2Compressor(9 if level is None else level)


def _handler_factory(
    config: TreepackConfig,
) -> tuple[Callable[[IO[bytes]], BinaryIO], ExceptionTranslatorFn]:
    return open_bzip2_stream, _translate_bz2_exception


register_stream_handler(
    StreamFormat.BZIP2,
    StreamHandler(
        handler_factory=_handler_factory,
        compressor_factory=create_bzip2_compressor,
        magic_bytes=[b"BZh"],
    ),
)
