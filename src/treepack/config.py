from __future__ import annotations

import contextvars
import os
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any, Optional

from treepack.types import ErrorPolicy, FrameFormat, StreamFormat

DEFAULT_ARCHIVE_NAME = "out.out"
DEFAULT_OUTPUT_ROOT = "output"

DEFAULT_EXCLUDED_NAMES: frozenset[str] = frozenset(
    {
        ".git",
        "Cargo.lock",
        "target",
        "node_modules",
        DEFAULT_ARCHIVE_NAME,
        DEFAULT_OUTPUT_ROOT,
    }
)


@dataclass(frozen=True)
class TreepackConfig:
    """Configuration for :func:`treepack.encode_directory` and
    :func:`treepack.decode_archive`.
    """

    archive_name: str = DEFAULT_ARCHIVE_NAME
    "File written by encode and read by decode, relative to the working root."

    output_root: str = DEFAULT_OUTPUT_ROOT
    "Directory under which decode recreates the archived files."

    excluded_names: frozenset[str] = DEFAULT_EXCLUDED_NAMES
    "Path segments that exclude an entry (and its whole subtree) when matched exactly."

    frame_format: FrameFormat = FrameFormat.LINE
    "LINE writes the classic ``====path|tag====`` headers. SIZED also records the payload size, so any payload content round-trips, including newlines and header-like lines in plain mode."

    compression: StreamFormat = StreamFormat.ZLIB
    "Compression used by the text and binary modes. When decoding, the format is detected from the stream's magic bytes and this is only the fallback."

    compression_level: Optional[int] = None
    "Compression level passed to the compressor; None uses the library default."

    verify_tags: bool = False
    "If set, decode recomputes each file's tag and raises ArchiveIntegrityError on a mismatch."

    error_policy: ErrorPolicy = ErrorPolicy.FAIL_FAST
    "FAIL_FAST raises the first error. REPORT records per-file errors in the returned report and carries on with the next file."

    @property
    def effective_excluded_names(self) -> frozenset[str]:
        """Excluded names plus the configured archive and output names."""
        own_names = {
            os.path.basename(os.path.normpath(self.archive_name)),
            os.path.basename(os.path.normpath(self.output_root)),
        }
        return self.excluded_names | own_names


_default_config_var: contextvars.ContextVar[TreepackConfig] = contextvars.ContextVar(
    "treepack_default_config", default=TreepackConfig()
)


def get_default_config() -> TreepackConfig:
    """Return the current default configuration."""
    return _default_config_var.get()


def set_default_config(config: TreepackConfig) -> None:
    """Set the default configuration used when no config is passed explicitly."""
    _default_config_var.set(config)


def set_default_config_fields(**kwargs: Any) -> None:
    config = get_default_config()
    config = replace(config, **kwargs)
    set_default_config(config)


@contextmanager
def default_config(config: TreepackConfig | None = None, **kwargs: Any):
    """Temporarily use ``config`` as the default configuration."""
    if config is None:
        config = get_default_config()

    if kwargs:
        config = replace(config, **kwargs)

    token = _default_config_var.set(config)
    try:
        yield config
    finally:
        _default_config_var.reset(token)
