from __future__ import annotations

import base64
import binascii
import io
import logging
import os
from typing import IO, Callable, Iterator, Optional

from tqdm import tqdm

from treepack.config import TreepackConfig, get_default_config
from treepack.exceptions import (
    ArchiveCorruptedError,
    ArchiveEOFError,
    ArchiveError,
    ArchiveIntegrityError,
    ArchiveIOError,
)
from treepack.filters import PathFilter, create_path_filter, sanitize_member_path
from treepack.formats.compressed_streams import open_decompressed_stream
from treepack.formats.format_detection import detect_stream_format
from treepack.frames import (
    PAYLOAD_TERMINATOR,
    FrameHeader,
    is_header_line,
    parse_header,
)
from treepack.internal.io_helpers import read_exact
from treepack.tagging import compute_tag
from treepack.types import (
    ArchiveMode,
    ArchiveReport,
    DecodedFrame,
    ErrorPolicy,
    FailedEntry,
    FrameFormat,
    FrameInfo,
)

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[Optional[str], ArchiveError], None]


def _b64decode(data: bytes, what: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ArchiveCorruptedError(f"Invalid base64 data in {what}: {e}") from e


class StreamDecoder:
    """Reads the frames of an archive from a binary stream.

    The outer layers (base64 text, compression) are removed according to the
    mode, then the frame stream is scanned forward once. Lines before the
    first header are ignored.
    """

    def __init__(
        self,
        stream: IO[bytes],
        mode: ArchiveMode,
        config: Optional[TreepackConfig] = None,
        archive_path: Optional[str] = None,
    ):
        self.mode = ArchiveMode(mode)
        self.config = config if config is not None else get_default_config()
        self.archive_path = archive_path
        self._stream = stream

    def open_frame_stream(self) -> IO[bytes]:
        """Return a readable stream over the plaintext frames."""
        if not self.mode.is_compressed:
            return self._stream

        if self.mode == ArchiveMode.COMPRESSED_TEXT:
            text = self._stream.read()
            compressed: IO[bytes] = io.BytesIO(
                _b64decode(b"".join(text.split()), "archive text layer")
            )
        else:
            compressed = self._stream

        format = detect_stream_format(compressed) or self.config.compression
        logger.debug("Decompressing archive as %s", format)
        return open_decompressed_stream(
            format, compressed, self.config, archive_path=self.archive_path
        )

    def _decode_payload(self, payload: bytes, path: str) -> bytes:
        if self.mode.has_base64_payload:
            return _b64decode(payload, path)
        return payload

    def _finish_frame(self, header: FrameHeader, data: bytes) -> DecodedFrame:
        if self.config.verify_tags:
            actual = compute_tag(data)
            if actual != header.tag:
                raise ArchiveIntegrityError(
                    f"Tag mismatch for {header.path}: expected {header.tag}, got {actual}"
                )
        return DecodedFrame(path=header.path, tag=header.tag, data=data)

    def _read_sized_payload(self, frames: IO[bytes], header: FrameHeader) -> bytes:
        assert header.size is not None
        payload = read_exact(frames, header.size)
        terminator = read_exact(frames, len(PAYLOAD_TERMINATOR))
        if len(payload) != header.size or terminator != PAYLOAD_TERMINATOR:
            raise ArchiveEOFError(f"Archive ends inside the frame for {header.path}")
        return payload

    def _join_line_payload(self, lines: list[bytes]) -> bytes:
        if self.mode.has_base64_payload:
            return b"".join(line.rstrip(b"\r\n") for line in lines)
        # The newline after a plain payload is the frame terminator, not data.
        data = b"".join(lines)
        if data.endswith(PAYLOAD_TERMINATOR):
            data = data[: -len(PAYLOAD_TERMINATOR)]
        return data

    def iter_frames(self, on_error: Optional[ErrorCallback] = None) -> Iterator[DecodedFrame]:
        """Yield each file stored in the archive, in archive order.

        Errors are raised, unless ``on_error`` is given: then per-frame errors
        (malformed headers, bad payloads, tag mismatches) are passed to it and
        the frame is dropped. Truncation and outer-layer errors are always
        raised.
        """

        def _fail(path: Optional[str], error: ArchiveError) -> None:
            if on_error is None:
                raise error
            on_error(path, error)

        sized = self.config.frame_format == FrameFormat.SIZED
        frames = self.open_frame_stream()
        current: Optional[FrameHeader] = None
        lines: list[bytes] = []

        def _close_current() -> Optional[DecodedFrame]:
            assert current is not None
            try:
                data = self._decode_payload(self._join_line_payload(lines), current.path)
                return self._finish_frame(current, data)
            except ArchiveCorruptedError as e:
                _fail(current.path, e)
                return None

        try:
            for line in iter(frames.readline, b""):
                if not is_header_line(line):
                    if current is not None:
                        lines.append(line)
                    else:
                        logger.debug("Discarding line outside of any frame: %r", line[:80])
                    continue

                if current is not None:
                    frame = _close_current()
                    if frame is not None:
                        yield frame
                    current = None
                lines = []

                try:
                    header = parse_header(line, self.config.frame_format)
                except ArchiveError as e:
                    _fail(None, e)
                    continue

                if not sized:
                    current = header
                    continue

                payload = self._read_sized_payload(frames, header)
                try:
                    yield self._finish_frame(
                        header, self._decode_payload(payload, header.path)
                    )
                except ArchiveCorruptedError as e:
                    _fail(header.path, e)

            if current is not None:
                frame = _close_current()
                if frame is not None:
                    yield frame
        finally:
            if frames is not self._stream:
                frames.close()


def _write_file(target: str, data: bytes) -> None:
    try:
        os.makedirs(os.path.dirname(target), exist_ok=True)
        with open(target, "wb") as f:
            f.write(data)
    except OSError as e:
        raise ArchiveIOError(f"Cannot write {target}: {e}") from e


def decode_archive(
    archive_path: str | os.PathLike[str] | None = None,
    dest: str | os.PathLike[str] | None = None,
    mode: ArchiveMode = ArchiveMode.PLAIN,
    config: Optional[TreepackConfig] = None,
    *,
    progress: bool = False,
) -> ArchiveReport:
    """Recreate the files stored in an archive below ``dest``.

    ``archive_path`` and ``dest`` default to the configured archive name and
    output root, relative to the current directory. Existing files are
    overwritten. Frames whose path contains an excluded name are skipped.
    """
    if config is None:
        config = get_default_config()
    archive_path = os.fspath(archive_path if archive_path is not None else config.archive_name)
    dest = os.fspath(dest if dest is not None else config.output_root)
    keep: PathFilter = create_path_filter(config.effective_excluded_names)
    report = ArchiveReport(mode=ArchiveMode(mode), archive_path=archive_path)

    def _record(path: Optional[str], error: ArchiveError) -> None:
        if config.error_policy == ErrorPolicy.FAIL_FAST:
            raise error
        logger.warning("Skipping %s: %s", path or "<header>", error)
        report.failures.append(FailedEntry(path=path, error=error))

    try:
        archive = open(archive_path, "rb")
    except OSError as e:
        raise ArchiveIOError(f"Cannot open archive {archive_path}: {e}") from e

    with archive:
        decoder = StreamDecoder(archive, mode, config, archive_path=archive_path)
        frames = decoder.iter_frames(
            on_error=_record if config.error_policy == ErrorPolicy.REPORT else None
        )
        for frame in tqdm(frames, desc="Decoding", unit="file", disable=not progress):
            if not keep(frame.path):
                logger.debug("Skipping excluded path %s", frame.path)
                report.skipped.append(frame.path)
                continue
            try:
                target = sanitize_member_path(frame.path, dest)
                _write_file(target, frame.data)
            except ArchiveError as e:
                _record(frame.path, e)
                continue
            logger.debug("Decoded %s (%d bytes)", frame.path, len(frame.data))
            report.frames.append(
                FrameInfo(path=frame.path, tag=frame.tag, size=len(frame.data))
            )

    logger.info(
        "Extracted %d files (%d bytes) from %s to %s",
        len(report.frames),
        report.total_size,
        archive_path,
        dest,
    )
    return report
