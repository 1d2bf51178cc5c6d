from __future__ import annotations

from typing import IO, TYPE_CHECKING, BinaryIO, Callable, cast

from treepack.exceptions import (
    ArchiveCorruptedError,
    ArchiveEOFError,
    PackageNotInstalledError,
)
from treepack.formats.registry import Compressor, StreamHandler, register_stream_handler
from treepack.internal.io_helpers import ExceptionTranslatorFn
from treepack.types import StreamFormat

if TYPE_CHECKING:
    import lz4.frame as lz4_frame

    from treepack.config import TreepackConfig
else:  # pragma: no cover - optional dependency
    try:
        import lz4.frame as lz4_frame
    except ImportError:
        lz4_frame = None  # type: ignore[assignment]


def _require_lz4() -> None:
    if lz4_frame is None:
        raise PackageNotInstalledError(
            "lz4 package is not installed, required for LZ4 compression"
        ) from None


class LZ4Compressor:
    """Adapts LZ4FrameCompressor to the compress()/flush() interface."""

    def __init__(self, level: int | None):
        self._compressor = lz4_frame.LZ4FrameCompressor(
            compression_level=0 if level is None else level
        )
        self._started = False

    def _begin(self) -> bytes:
        if self._started:
            return b""
        self._started = True
        return self._compressor.begin()

    def compress(self, data: bytes, /) -> bytes:
        header = self._begin()
        return header + self._compressor.compress(data)

    def flush(self) -> bytes:
        header = self._begin()
        return header + self._compressor.flush()


def _translate_lz4_exception(
    e: Exception,
) -> ArchiveCorruptedError | ArchiveEOFError | None:
    if isinstance(e, RuntimeError) and str(e).startswith("LZ4"):
        return ArchiveCorruptedError(f"Error reading LZ4 stream: {repr(e)}")
    if isinstance(e, EOFError):
        return ArchiveEOFError(f"LZ4 stream is truncated: {repr(e)}")
    return None


def open_lz4_stream(stream: IO[bytes]) -> BinaryIO:
    _require_lz4()
    return cast(BinaryIO, lz4_frame.LZ4FrameFile(stream, mode="rb"))


def create_lz4_compressor(level: int | None) -> Compressor:
    _require_lz4()
    return LZ4Compressor(level)


def _handler_factory(
    config: TreepackConfig,
) -> tuple[Callable[[IO[bytes]], BinaryIO], ExceptionTranslatorFn]:
    return open_lz4_stream, _translate_lz4_exception


register_stream_handler(
    StreamFormat.LZ4,
    StreamHandler(
        handler_factory=_handler_factory,
        compressor_factory=create_lz4_compressor,
        magic_bytes=[b"\x04\x22\x4d\x18"],
    ),
)
