"""Provides I/O helpers, including exception translation for compression libraries."""

import io
import logging
from typing import IO, Any, BinaryIO, Callable, NoReturn, Optional

from treepack.exceptions import ArchiveError

logger = logging.getLogger(__name__)

ExceptionTranslatorFn = Callable[[Exception], Optional[ArchiveError]]


def read_exact(stream: IO[bytes], n: int) -> bytes:
    """Read exactly ``n`` bytes, or all available bytes if the file ends."""

    if n < 0:
        raise ValueError("n must be non-negative")

    data = bytearray()
    while len(data) < n:
        chunk = stream.read(n - len(data))
        if not chunk:
            break
        data.extend(chunk)
    return bytes(data)


def is_seekable(stream: IO[bytes]) -> bool:
    try:
        return stream.seekable()
    except AttributeError as e:
        logger.debug("Stream %s does not have a seekable method: %s", stream, e)
        return False


def peek_bytes(stream: IO[bytes], n: int) -> bytes:
    """Return up to ``n`` bytes from the start of ``stream`` without consuming them.

    Returns an empty string if the stream can neither peek nor seek.
    """
    peek = getattr(stream, "peek", None)
    if peek is not None:
        return peek(n)[:n]
    if is_seekable(stream):
        data = read_exact(stream, n)
        stream.seek(-len(data), io.SEEK_CUR)
        return data
    return b""


class ExceptionTranslatingIO(io.RawIOBase, BinaryIO):
    """
    Wraps a readable stream to translate specific exceptions from an underlying
    library into ArchiveError subclasses.
    """

    def __init__(
        self,
        inner: IO[bytes] | Callable[[], IO[bytes]],
        exception_translator: ExceptionTranslatorFn,
        archive_path: str | None = None,
    ):
        """
        Initialize the ExceptionTranslatingIO wrapper.

        Args:
            inner: The underlying binary stream (e.g. a decompressor opened by a
                third-party library), or a callable returning such a stream. A
                callable lets errors raised while opening be translated too.
            exception_translator: Takes an exception raised by ``inner`` and
                returns the ArchiveError to raise in its place, or None to
                re-raise the original exception.
            archive_path: Recorded on translated errors.
        """
        super().__init__()
        self._translate = exception_translator
        self._inner: IO[bytes]
        self.archive_path = archive_path

        if callable(inner):
            try:
                self._inner = inner()
            except Exception as e:  # noqa: BLE001
                # Translation exists to turn any library exception into an
                # ArchiveError, so everything is caught here.
                self._translate_exception(e)
        else:
            self._inner = inner

    def _translate_exception(self, e: Exception) -> NoReturn:
        translated = self._translate(e)
        if translated is not None:
            translated.archive_path = self.archive_path
            logger.debug("Translated exception: %r -> %r", e, translated)
            raise translated from e

        if not isinstance(e, ArchiveError):
            logger.error("Unknown exception when reading IO: %s", e, exc_info=e)
        raise e

    def readable(self) -> bool:
        return True

    def read(self, n: int = -1) -> bytes:
        if self.closed:
            raise ValueError("I/O operation on closed file.")
        try:
            return self._inner.read(n)
        except Exception as e:  # noqa: BLE001
            self._translate_exception(e)

    def readinto(self, b: Any) -> int:
        data = self.read(len(b))
        b[: len(data)] = data
        return len(data)

    def close(self) -> None:
        # __init__ may have failed before _inner was set, and IOBase.__del__
        # still calls close().
        if not hasattr(self, "_inner"):
            return

        try:
            self._inner.close()
        except Exception as e:  # noqa: BLE001
            self._translate_exception(e)
        finally:
            super().close()

    def __repr__(self) -> str:
        return f"ExceptionTranslatingIO({self._inner!r})"
