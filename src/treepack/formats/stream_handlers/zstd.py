from __future__ import annotations

from typing import IO, TYPE_CHECKING, BinaryIO, Callable, cast

from treepack.exceptions import ArchiveCorruptedError, PackageNotInstalledError
from treepack.formats.registry import Compressor, StreamHandler, register_stream_handler
from treepack.internal.io_helpers import ExceptionTranslatorFn
from treepack.types import StreamFormat

if TYPE_CHECKING:
    import zstandard

    from treepack.config import TreepackConfig
else:  # pragma: no cover - optional dependency
    try:
        import zstandard
    except ImportError:
        zstandard = None  # type: ignore[assignment]

_DEFAULT_LEVEL = 3


def _require_zstandard() -> None:
    if zstandard is None:
        raise PackageNotInstalledError(
            "zstandard package is not installed, required for Zstandard compression"
        ) from None


def _translate_zstandard_exception(e: Exception) -> ArchiveCorruptedError | None:
    if zstandard is not None and isinstance(e, zstandard.ZstdError):
        return ArchiveCorruptedError(f"Error reading Zstandard stream: {repr(e)}")
    return None


def open_zstandard_stream(stream: IO[bytes]) -> BinaryIO:
    _require_zstandard()
    return cast(
        BinaryIO, zstandard.ZstdDecompressor().stream_reader(stream, closefd=False)
    )


def create_zstandard_compressor(level: int | None) -> Compressor:
    _require_zstandard()
    compressor = zstandard.ZstdCompressor(
        level=_DEFAULT_LEVEL if level is None else level
    )
    return compressor.compressobj()


def _handler_factory(
    config: TreepackConfig,
) -> tuple[Callable[[IO[bytes]], BinaryIO], ExceptionTranslatorFn]:
    return open_zstandard_stream, _translate_zstandard_exception


register_stream_handler(
    StreamFormat.ZSTD,
    StreamHandler(
        handler_factory=_handler_factory,
        compressor_factory=create_zstandard_compressor,
        magic_bytes=[b"\x28\xb5\x2f\xfd"],
    ),
)
