import logging
import os
from typing import Callable, Iterator, Optional

from treepack.config import TreepackConfig, get_default_config
from treepack.exceptions import ArchiveError, ArchiveIOError
from treepack.filters import is_excluded_name
from treepack.types import Entry

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[str, ArchiveError], None]


def _scandir(path: str) -> "Iterator[os.DirEntry[str]]":
    try:
        return os.scandir(path)
    except OSError as e:
        raise ArchiveIOError(f"Cannot list directory {path}: {e}") from e


def _read_file(path: str) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        raise ArchiveIOError(f"Cannot read {path}: {e}") from e


def iter_entries(
    root: str | os.PathLike[str] = ".",
    config: Optional[TreepackConfig] = None,
    on_error: Optional[ErrorCallback] = None,
) -> Iterator[Entry]:
    """Yield every file under ``root`` that is not excluded, depth first.

    Files are yielded in the order the directory listing returns them, and a
    subdirectory is walked completely at the point where it is listed. Paths
    are relative to ``root``. Each file is read only when its entry is
    yielded.

    Errors are raised as ArchiveIOError, unless ``on_error`` is given, in
    which case it is called with the relative path and the error and the file
    (or directory) is skipped.
    """
    if config is None:
        config = get_default_config()
    excluded = config.effective_excluded_names
    root = os.fspath(root)

    stack = [_scandir(root)]
    try:
        while stack:
            entry = next(stack[-1], None)
            if entry is None:
                stack.pop().close()
                continue

            rel_path = os.path.relpath(entry.path, root)
            if is_excluded_name(entry.name, excluded):
                logger.debug("Skipping excluded entry %s", rel_path)
                continue

            try:
                if entry.is_dir(follow_symlinks=False):
                    stack.append(_scandir(entry.path))
                    continue
                if not entry.is_file():
                    logger.warning("Skipping %s: not a regular file", rel_path)
                    continue
                data = _read_file(entry.path)
            except ArchiveError as e:
                if on_error is None:
                    raise
                on_error(rel_path, e)
                continue

            yield Entry(path=rel_path, data=data)
    finally:
        for it in stack:
            it.close()
