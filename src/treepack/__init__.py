from treepack.config import (
    DEFAULT_EXCLUDED_NAMES,
    TreepackConfig,
    default_config,
    get_default_config,
    set_default_config,
)
from treepack.decoder import StreamDecoder, decode_archive
from treepack.encoder import StreamEncoder, encode_directory, encode_entries
from treepack.exceptions import (
    ArchiveCorruptedError,
    ArchiveEOFError,
    ArchiveError,
    ArchiveFormatError,
    ArchiveIntegrityError,
    ArchiveIOError,
    ArchiveNotSupportedError,
    PackageNotInstalledError,
)
from treepack.filters import create_path_filter, is_excluded_name, is_excluded_path
from treepack.frames import FrameHeader, format_header, is_header_line, parse_header
from treepack.tagging import compute_tag
from treepack.types import (
    ArchiveMode,
    ArchiveReport,
    DecodedFrame,
    Entry,
    ErrorPolicy,
    FailedEntry,
    FrameFormat,
    FrameInfo,
    StreamFormat,
)
from treepack.walker import iter_entries

__all__ = [
    # Core
    "encode_directory",
    "encode_entries",
    "decode_archive",
    "iter_entries",
    "StreamEncoder",
    "StreamDecoder",
    "compute_tag",
    # Frames
    "FrameHeader",
    "format_header",
    "is_header_line",
    "parse_header",
    # Filters
    "create_path_filter",
    "is_excluded_name",
    "is_excluded_path",
    # Types
    "ArchiveMode",
    "ArchiveReport",
    "DecodedFrame",
    "Entry",
    "ErrorPolicy",
    "FailedEntry",
    "FrameFormat",
    "FrameInfo",
    "StreamFormat",
    # Config
    "DEFAULT_EXCLUDED_NAMES",
    "TreepackConfig",
    "default_config",
    "get_default_config",
    "set_default_config",
    # Exceptions
    "ArchiveError",
    "ArchiveFormatError",
    "ArchiveCorruptedError",
    "ArchiveIntegrityError",
    "ArchiveEOFError",
    "ArchiveIOError",
    "ArchiveNotSupportedError",
    "PackageNotInstalledError",
]

__version__ = "0.1.0"
