"""Registry for whole-stream compression handlers."""

from __future__ import annotations

from dataclasses import dataclass
from importlib import import_module
from typing import IO, TYPE_CHECKING, BinaryIO, Callable, Dict, List, Optional, Protocol, Tuple

from treepack.internal.io_helpers import ExceptionTranslatorFn

if TYPE_CHECKING:
    from treepack.config import TreepackConfig
    from treepack.types import StreamFormat


class Compressor(Protocol):
    """Incremental compressor, as returned by ``zlib.compressobj()`` and friends."""

    def compress(self, data: bytes, /) -> bytes: ...

    def flush(self) -> bytes: ...


OpenFn = Callable[[IO[bytes]], BinaryIO]
HandlerFactory = Callable[["TreepackConfig"], Tuple[OpenFn, ExceptionTranslatorFn]]
CompressorFactory = Callable[[Optional[int]], Compressor]


@dataclass
class StreamHandler:
    handler_factory: HandlerFactory
    compressor_factory: CompressorFactory
    magic_bytes: List[bytes]


_stream_handlers: Dict["StreamFormat", StreamHandler] = {}


def register_stream_handler(format: "StreamFormat", handler: StreamHandler) -> None:
    _stream_handlers[format] = handler


def get_stream_handler(format: "StreamFormat") -> StreamHandler | None:
    return _stream_handlers.get(format)


# Import built-in handlers to populate the registry. Handlers for optional
# libraries register themselves even when the library is missing, and raise
# PackageNotInstalledError when used.
for _mod in (
    "treepack.formats.stream_handlers.zlib",
    "treepack.formats.stream_handlers.gzip",
    "treepack.formats.stream_handlers.bzip2",
    "treepack.formats.stream_handlers.xz",
    "treepack.formats.stream_handlers.zstd",
    "treepack.formats.stream_handlers.lz4",
):
    import_module(_mod)

stream_handlers = _stream_handlers
