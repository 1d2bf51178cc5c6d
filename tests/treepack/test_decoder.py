import base64
import io
import zlib

import pytest

from treepack.config import TreepackConfig
from treepack.decoder import StreamDecoder, decode_archive
from treepack.encoder import encode_entries
from treepack.exceptions import (
    ArchiveCorruptedError,
    ArchiveEOFError,
    ArchiveError,
    ArchiveFormatError,
    ArchiveIntegrityError,
    ArchiveIOError,
)
from treepack.frames import format_header
from treepack.tagging import compute_tag
from treepack.types import ArchiveMode, Entry, ErrorPolicy, FrameFormat, StreamFormat
from tests.treepack.testing_utils import read_tree, skip_if_package_missing


def _header(path: str, data: bytes, size=None) -> bytes:
    return format_header(path, compute_tag(data), size)


def _frames(data: bytes, mode: ArchiveMode, config=None) -> dict[str, bytes]:
    decoder = StreamDecoder(io.BytesIO(data), mode, config)
    return {frame.path: frame.data for frame in decoder.iter_frames()}


def test_plain_frames():
    archive = _header("a/b.txt", b"hi") + b"hi\n" + _header("c.txt", b"") + b"\n"
    assert _frames(archive, ArchiveMode.PLAIN) == {"a/b.txt": b"hi", "c.txt": b""}


def test_plain_payload_keeps_inner_newlines():
    data = b"line one\n\nline three\r\n"
    archive = _header("f", data) + data + b"\n"
    assert _frames(archive, ArchiveMode.PLAIN) == {"f": data}


def test_plain_payload_without_terminator_at_end_of_archive():
    archive = _header("f", b"abc") + b"abc"
    assert _frames(archive, ArchiveMode.PLAIN) == {"f": b"abc"}


def test_lines_before_first_header_are_discarded():
    archive = b"garbage\nmore garbage\n" + _header("f", b"x") + b"x\n"
    assert _frames(archive, ArchiveMode.PLAIN) == {"f": b"x"}


def test_empty_archive_has_no_frames():
    assert _frames(b"", ArchiveMode.PLAIN) == {}
    assert _frames(b"", ArchiveMode.BASE64) == {}


def test_header_without_payload():
    archive = _header("first", b"") + _header("second", b"y") + b"y\n"
    assert _frames(archive, ArchiveMode.PLAIN) == {"first": b"", "second": b"y"}


def test_base64_frames():
    archive = (
        _header("a", b"\x00\xff")
        + base64.b64encode(b"\x00\xff")
        + b"\n"
        + _header("b", b"")
        + b"\n"
    )
    assert _frames(archive, ArchiveMode.BASE64) == {"a": b"\x00\xff", "b": b""}


def test_invalid_base64_payload():
    archive = _header("a", b"") + b"not base64!\n"
    with pytest.raises(ArchiveCorruptedError):
        _frames(archive, ArchiveMode.BASE64)


def test_malformed_header():
    archive = b"====no-separator====\n" + b"x\n"
    with pytest.raises(ArchiveFormatError):
        _frames(archive, ArchiveMode.PLAIN)


def test_tags_are_not_checked_by_default():
    archive = format_header("f", 12345) + b"data\n"
    assert _frames(archive, ArchiveMode.PLAIN) == {"f": b"data"}


def test_tag_verification():
    config = TreepackConfig(verify_tags=True)
    good = _header("good", b"data") + b"data\n"
    assert _frames(good, ArchiveMode.PLAIN, config) == {"good": b"data"}

    bad = format_header("bad", 12345) + b"data\n"
    with pytest.raises(ArchiveIntegrityError):
        _frames(bad, ArchiveMode.PLAIN, config)


def test_header_like_payload_is_caught_by_verification():
    data = b"before\n====fake.txt|1====\nafter"
    stream = io.BytesIO()
    encode_entries([Entry("tricky.txt", data)], stream, ArchiveMode.PLAIN)
    archive = stream.getvalue()

    # Without verification the header-like line silently splits the file.
    assert _frames(archive, ArchiveMode.PLAIN) == {
        "tricky.txt": b"before",
        "fake.txt": b"after",
    }
    with pytest.raises(ArchiveIntegrityError):
        _frames(archive, ArchiveMode.PLAIN, TreepackConfig(verify_tags=True))


@pytest.mark.parametrize("mode", [ArchiveMode.PLAIN, ArchiveMode.BASE64])
def test_sized_frames_roundtrip_any_content(mode: ArchiveMode):
    config = TreepackConfig(frame_format=FrameFormat.SIZED, verify_tags=True)
    entries = [
        Entry("tricky|name====.txt", b"before\n====fake.txt|1====\nafter"),
        Entry("trailing", b"\n"),
        Entry("empty", b""),
    ]
    stream = io.BytesIO()
    encode_entries(entries, stream, mode, config)

    assert _frames(stream.getvalue(), mode, config) == {e.path: e.data for e in entries}


def test_sized_frame_truncated():
    config = TreepackConfig(frame_format=FrameFormat.SIZED)
    archive = _header("f", b"0123456789", 10) + b"0123"
    with pytest.raises(ArchiveEOFError):
        _frames(archive, ArchiveMode.PLAIN, config)


def test_sized_frame_missing_terminator():
    config = TreepackConfig(frame_format=FrameFormat.SIZED)
    archive = _header("f", b"0123", 4) + b"0123X"
    with pytest.raises(ArchiveEOFError):
        _frames(archive, ArchiveMode.PLAIN, config)


def test_report_policy_collects_frame_errors():
    archive = (
        _header("good1", b"a")
        + base64.b64encode(b"a")
        + b"\n"
        + _header("bad", b"")
        + b"@@@@\n"
        + b"====broken header====\n"
        + b"QQ==\n"
        + _header("good2", b"b")
        + base64.b64encode(b"b")
        + b"\n"
    )
    errors = []
    decoder = StreamDecoder(io.BytesIO(archive), ArchiveMode.BASE64)

    frames = list(decoder.iter_frames(on_error=lambda path, e: errors.append((path, e))))

    assert [frame.path for frame in frames] == ["good1", "good2"]
    assert [path for path, _ in errors] == ["bad", None]
    assert isinstance(errors[0][1], ArchiveCorruptedError)
    assert isinstance(errors[1][1], ArchiveFormatError)


def test_compressed_binary_frames():
    frames = _header("f", b"x") + base64.b64encode(b"x") + b"\n"
    archive = zlib.compress(frames)
    assert _frames(archive, ArchiveMode.COMPRESSED_BINARY) == {"f": b"x"}


def test_compressed_text_frames():
    frames = _header("f", b"x") + base64.b64encode(b"x") + b"\n"
    archive = base64.b64encode(zlib.compress(frames))
    assert _frames(archive + b"\n", ArchiveMode.COMPRESSED_TEXT) == {"f": b"x"}


def test_compressed_binary_detects_format():
    frames = _header("f", b"x") + base64.b64encode(b"x") + b"\n"
    compressor = zlib.compressobj(6, zlib.DEFLATED, 31)
    archive = compressor.compress(frames) + compressor.flush()
    # The configured compression is only a fallback.
    assert _frames(archive, ArchiveMode.COMPRESSED_BINARY) == {"f": b"x"}


@pytest.mark.parametrize("compression", list(StreamFormat))
def test_decoding_leaves_archive_stream_open(compression: StreamFormat):
    skip_if_package_missing(compression)
    config = TreepackConfig(compression=compression)
    stream = io.BytesIO()
    encode_entries([Entry("f", b"x")], stream, ArchiveMode.COMPRESSED_BINARY, config)
    stream.seek(0)

    frames = list(StreamDecoder(stream, ArchiveMode.COMPRESSED_BINARY, config).iter_frames())

    assert [(frame.path, frame.data) for frame in frames] == [("f", b"x")]
    assert not stream.closed


def test_compressed_binary_truncated():
    frames = (_header("f", b"x") + base64.b64encode(b"x") + b"\n") * 100
    archive = zlib.compress(frames)[:-10]
    with pytest.raises(ArchiveEOFError):
        _frames(archive, ArchiveMode.COMPRESSED_BINARY)


def test_compressed_binary_not_compressed():
    with pytest.raises(ArchiveCorruptedError):
        _frames(b"this is not compressed data\n", ArchiveMode.COMPRESSED_BINARY)


def test_compressed_text_invalid_base64():
    with pytest.raises(ArchiveCorruptedError):
        _frames(b"\x78\x9c\x00\x01", ArchiveMode.COMPRESSED_TEXT)


def test_empty_compressed_archive_is_truncated():
    with pytest.raises(ArchiveEOFError):
        _frames(b"", ArchiveMode.COMPRESSED_BINARY)


def test_decode_archive_writes_files(tmp_path):
    archive_path = tmp_path / "out.out"
    archive_path.write_bytes(
        _header("a/b.txt", b"hi") + b"hi\n" + _header("c.txt", b"") + b"\n"
    )
    dest = tmp_path / "output"

    report = decode_archive(archive_path, dest, ArchiveMode.PLAIN)

    assert read_tree(dest) == {"a/b.txt": b"hi", "c.txt": b""}
    assert report.ok
    assert [frame.path for frame in report.frames] == ["a/b.txt", "c.txt"]


def test_decode_archive_uses_configured_names(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "bundle.pack").write_bytes(_header("x", b"1") + b"1\n")
    config = TreepackConfig(archive_name="bundle.pack", output_root="restored")

    decode_archive(config=config)

    assert read_tree(tmp_path / "restored") == {"x": b"1"}


def test_decode_archive_default_names(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "out.out").write_bytes(_header("x", b"1") + b"1\n")

    decode_archive()

    assert read_tree(tmp_path / "output") == {"x": b"1"}


def test_decode_archive_overwrites_existing_files(tmp_path):
    dest = tmp_path / "output"
    dest.mkdir()
    (dest / "x").write_bytes(b"old contents")
    archive_path = tmp_path / "out.out"
    archive_path.write_bytes(_header("x", b"new") + b"new\n")

    decode_archive(archive_path, dest)

    assert (dest / "x").read_bytes() == b"new"


def test_decode_archive_skips_excluded_paths(tmp_path):
    archive_path = tmp_path / "out.out"
    archive_path.write_bytes(
        _header(".git/config", b"c")
        + b"c\n"
        + _header("node_modules/m.js", b"m")
        + b"m\n"
        + _header("kept.txt", b"k")
        + b"k\n"
    )
    dest = tmp_path / "output"

    report = decode_archive(archive_path, dest)

    assert read_tree(dest) == {"kept.txt": b"k"}
    assert report.skipped == [".git/config", "node_modules/m.js"]


def test_decode_archive_rejects_path_traversal(tmp_path):
    archive_path = tmp_path / "out.out"
    archive_path.write_bytes(_header("../evil.txt", b"x") + b"x\n")

    with pytest.raises(ArchiveFormatError):
        decode_archive(archive_path, tmp_path / "output")
    assert not (tmp_path / "evil.txt").exists()


def test_decode_archive_reports_unsafe_paths(tmp_path):
    archive_path = tmp_path / "out.out"
    archive_path.write_bytes(
        _header("../evil.txt", b"x") + b"x\n" + _header("ok.txt", b"y") + b"y\n"
    )
    config = TreepackConfig(error_policy=ErrorPolicy.REPORT)

    report = decode_archive(archive_path, tmp_path / "output", config=config)

    assert read_tree(tmp_path / "output") == {"ok.txt": b"y"}
    assert [failure.path for failure in report.failures] == ["../evil.txt"]
    assert isinstance(report.failures[0].error, ArchiveFormatError)


def test_decode_archive_reports_bad_payloads(tmp_path):
    archive_path = tmp_path / "out.out"
    archive_path.write_bytes(
        _header("bad", b"") + b"%%%\n" + _header("ok", b"y") + b"eQ==\n"
    )
    config = TreepackConfig(error_policy=ErrorPolicy.REPORT)

    report = decode_archive(archive_path, tmp_path / "output", ArchiveMode.BASE64, config)

    assert read_tree(tmp_path / "output") == {"ok": b"y"}
    assert not report.ok
    assert report.failures[0].path == "bad"


def test_decode_archive_missing_archive(tmp_path):
    with pytest.raises(ArchiveIOError):
        decode_archive(tmp_path / "missing.out", tmp_path / "output")


def test_decode_archive_unwritable_destination(tmp_path):
    archive_path = tmp_path / "out.out"
    archive_path.write_bytes(_header("a/b", b"x") + b"x\n")
    dest = tmp_path / "output"
    dest.mkdir()
    # A file where a directory is needed.
    (dest / "a").write_bytes(b"")

    with pytest.raises(ArchiveError):
        decode_archive(archive_path, dest)
