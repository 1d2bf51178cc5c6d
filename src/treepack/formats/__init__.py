from treepack.formats.compressed_streams import (
    open_compressor,
    open_decompressed_stream,
)
from treepack.formats.format_detection import (
    detect_stream_format,
    detect_stream_format_by_signature,
)

__all__ = [
    "open_compressor",
    "open_decompressed_stream",
    "detect_stream_format",
    "detect_stream_format_by_signature",
]
