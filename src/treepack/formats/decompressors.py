"""Readable stream over a compressed stream, for libraries without a file API."""

from __future__ import annotations

import io
from typing import IO, Any, BinaryIO, Protocol

from treepack.exceptions import ArchiveEOFError

CHUNK_SIZE = 65536


class Decompressor(Protocol):
    """Incremental decompressor, as returned by ``zlib.decompressobj()``."""

    eof: bool

    def decompress(self, data: bytes, /) -> bytes: ...

    def flush(self) -> bytes: ...


class DecompressorStream(io.RawIOBase, BinaryIO):
    """Forward-only reader feeding ``inner`` through ``decompressor``.

    Reaching the end of ``inner`` before the decompressor has seen the end of
    the compressed data raises ArchiveEOFError. Data after the end of the
    compressed data is ignored.
    """

    def __init__(
        self, inner: IO[bytes], decompressor: Decompressor, chunk_size: int = CHUNK_SIZE
    ) -> None:
        super().__init__()
        self._inner = inner
        self._decompressor = decompressor
        self._chunk_size = chunk_size
        self._pending = bytearray()
        self._input_done = False

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def _fill(self, n: int) -> None:
        """Decompress until ``n`` bytes are pending (all of them if ``n`` < 0)."""
        while (n < 0 or len(self._pending) < n) and not self._input_done:
            chunk = self._inner.read(self._chunk_size)
            if chunk:
                self._pending += self._decompressor.decompress(chunk)
                continue

            self._input_done = True
            self._pending += self._decompressor.flush()
            if not self._decompressor.eof:
                raise ArchiveEOFError("Compressed stream is truncated")

    def read(self, n: int | None = -1) -> bytes:
        if n is None:
            n = -1
        if n == 0:
            return b""
        self._fill(n)
        if n < 0:
            n = len(self._pending)
        data = bytes(self._pending[:n])
        del self._pending[:n]
        return data

    def readall(self) -> bytes:
        return self.read(-1)

    def readinto(self, b: Any) -> int:
        data = self.read(len(b))
        b[: len(data)] = data
        return len(data)
