from __future__ import annotations

import base64
import logging
import os
from typing import BinaryIO, Iterable, Optional

from tqdm import tqdm

from treepack.config import TreepackConfig, get_default_config
from treepack.exceptions import ArchiveError, ArchiveIOError
from treepack.formats.compressed_streams import open_compressor
from treepack.frames import PAYLOAD_TERMINATOR, format_header
from treepack.tagging import compute_tag
from treepack.types import (
    ArchiveMode,
    ArchiveReport,
    Entry,
    ErrorPolicy,
    FailedEntry,
    FrameFormat,
    FrameInfo,
)
from treepack.walker import iter_entries

logger = logging.getLogger(__name__)


class StreamEncoder:
    """Writes entries as frames to a binary stream.

    In the compressed modes every frame goes through a single compressor that
    is finalized by :meth:`close`; nothing is guaranteed to reach the stream
    before that. The stream itself is not closed.
    """

    def __init__(
        self,
        stream: BinaryIO,
        mode: ArchiveMode,
        config: Optional[TreepackConfig] = None,
    ):
        self.mode = ArchiveMode(mode)
        self.config = config if config is not None else get_default_config()
        self._stream = stream
        self._compressor = (
            open_compressor(self.config.compression, self.config.compression_level)
            if self.mode.is_compressed
            else None
        )
        # Compressed bytes not yet written in text mode, always fewer than 3.
        self._base64_pending = b""
        self._closed = False

    def __enter__(self) -> "StreamEncoder":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        # On error the compressor is left unfinished: the archive stays truncated.
        if exc_type is None:
            self.close()
        else:
            self._closed = True

    def _write_output(self, data: bytes) -> None:
        if not data:
            return
        if self.mode == ArchiveMode.COMPRESSED_TEXT:
            data = self._base64_pending + data
            usable = len(data) - len(data) % 3
            self._base64_pending = data[usable:]
            data = base64.b64encode(data[:usable])
        try:
            self._stream.write(data)
        except OSError as e:
            raise ArchiveIOError(f"Cannot write archive: {e}") from e

    def _write(self, data: bytes) -> None:
        if self._compressor is not None:
            data = self._compressor.compress(data)
        self._write_output(data)

    def encode_payload(self, data: bytes) -> bytes:
        if self.mode.has_base64_payload:
            return base64.b64encode(data)
        return data

    def write_entry(self, entry: Entry) -> FrameInfo:
        if self._closed:
            raise ValueError("Cannot write to a closed encoder")

        tag = compute_tag(entry.data)
        payload = self.encode_payload(entry.data)
        size = len(payload) if self.config.frame_format == FrameFormat.SIZED else None
        # Built before anything is written, so a rejected path leaves no partial frame.
        header = format_header(entry.path, tag, size)

        self._write(header)
        self._write(payload)
        self._write(PAYLOAD_TERMINATOR)
        logger.debug("Encoded %s (%d bytes, tag %d)", entry.path, len(entry.data), tag)
        return FrameInfo(path=entry.path, tag=tag, size=len(entry.data))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._compressor is not None:
            self._write_output(self._compressor.flush())
        if self._base64_pending:
            pending, self._base64_pending = self._base64_pending, b""
            try:
                self._stream.write(base64.b64encode(pending))
            except OSError as e:
                raise ArchiveIOError(f"Cannot write archive: {e}") from e


def encode_entries(
    entries: Iterable[Entry],
    stream: BinaryIO,
    mode: ArchiveMode,
    config: Optional[TreepackConfig] = None,
    report: Optional[ArchiveReport] = None,
) -> ArchiveReport:
    """Encode ``entries`` into ``stream`` and return a report of what was written."""
    if config is None:
        config = get_default_config()
    if report is None:
        report = ArchiveReport(mode=ArchiveMode(mode), archive_path="<stream>")

    with StreamEncoder(stream, mode, config) as encoder:
        for entry in entries:
            try:
                report.frames.append(encoder.write_entry(entry))
            except ArchiveIOError:
                raise
            except ArchiveError as e:
                if config.error_policy == ErrorPolicy.FAIL_FAST:
                    raise
                logger.warning("Skipping %s: %s", entry.path, e)
                report.failures.append(FailedEntry(path=entry.path, error=e))
    return report


def encode_directory(
    root: str | os.PathLike[str] = ".",
    mode: ArchiveMode = ArchiveMode.PLAIN,
    config: Optional[TreepackConfig] = None,
    *,
    archive_path: str | os.PathLike[str] | None = None,
    progress: bool = False,
) -> ArchiveReport:
    """Pack every non-excluded file under ``root`` into one archive file.

    The archive is written to ``archive_path``, by default the configured
    archive name inside ``root``, replacing any existing file. A failure
    part-way leaves a truncated archive behind.
    """
    if config is None:
        config = get_default_config()
    if archive_path is None:
        archive_path = os.path.join(root, config.archive_name)
    archive_path = os.fspath(archive_path)

    report = ArchiveReport(mode=ArchiveMode(mode), archive_path=archive_path)

    def _on_error(path: str, error: ArchiveError) -> None:
        logger.warning("Skipping %s: %s", path, error)
        report.failures.append(FailedEntry(path=path, error=error))

    entries = iter_entries(
        root,
        config,
        on_error=_on_error if config.error_policy == ErrorPolicy.REPORT else None,
    )

    try:
        archive = open(archive_path, "wb")
    except OSError as e:
        raise ArchiveIOError(f"Cannot create archive {archive_path}: {e}") from e

    with archive:
        encode_entries(
            tqdm(entries, desc="Encoding", unit="file", disable=not progress),
            archive,
            mode,
            config,
            report,
        )

    logger.info(
        "Wrote %d files (%d bytes) to %s in %s mode",
        len(report.frames),
        report.total_size,
        archive_path,
        report.mode,
    )
    return report
