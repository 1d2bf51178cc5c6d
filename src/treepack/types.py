import sys
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from enum import StrEnum
elif sys.version_info >= (3, 11):
    from enum import StrEnum
else:
    from backports.strenum import StrEnum

if TYPE_CHECKING:
    from treepack.exceptions import ArchiveError


class ArchiveMode(StrEnum):
    """Encoding used for a whole archive."""

    PLAIN = "plain"
    BASE64 = "base64"
    COMPRESSED_TEXT = "text"
    COMPRESSED_BINARY = "binary"

    @property
    def is_compressed(self) -> bool:
        return self in (ArchiveMode.COMPRESSED_TEXT, ArchiveMode.COMPRESSED_BINARY)

    @property
    def has_base64_payload(self) -> bool:
        return self != ArchiveMode.PLAIN


class FrameFormat(StrEnum):
    """How frame boundaries are recovered when decoding.

    LINE frames are found only by recognizing the next header line. SIZED
    frames carry the encoded payload size in the header, so payload bytes are
    never scanned for headers.
    """

    LINE = "line"
    SIZED = "sized"


class StreamFormat(StrEnum):
    """Whole-stream compression formats usable by the compressed modes."""

    ZLIB = "zlib"
    GZIP = "gz"
    BZIP2 = "bz2"
    XZ = "xz"
    ZSTD = "zstd"
    LZ4 = "lz4"


class ErrorPolicy(StrEnum):
    FAIL_FAST = "fail_fast"
    REPORT = "report"


@dataclass(frozen=True)
class Entry:
    """A file discovered in the source tree, with its full contents."""

    path: str
    data: bytes


@dataclass(frozen=True)
class FrameInfo:
    """Summary of one frame written to or read from an archive."""

    path: str
    tag: int
    size: int


@dataclass(frozen=True)
class DecodedFrame:
    path: str
    tag: int
    data: bytes


@dataclass
class FailedEntry:
    path: Optional[str]
    error: "ArchiveError"


@dataclass
class ArchiveReport:
    """Outcome of a pack or unpack run.

    With ``ErrorPolicy.FAIL_FAST`` the first error is raised instead, so
    ``failures`` is always empty.
    """

    mode: ArchiveMode
    archive_path: str
    frames: list[FrameInfo] = field(default_factory=list)
    failures: list[FailedEntry] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def total_size(self) -> int:
        return sum(frame.size for frame in self.frames)
