# Command line entry point: treepack <encode|decode> [--plain|--base64|--text|--binary]

import argparse
import logging
import os
import sys
from dataclasses import replace
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as package_version
from typing import Optional, Sequence

from treepack.config import TreepackConfig, get_default_config
from treepack.decoder import decode_archive
from treepack.encoder import encode_directory
from treepack.exceptions import ArchiveError
from treepack.internal.dependency_checker import (
    format_dependency_versions,
    get_dependency_versions,
)
from treepack.types import ArchiveMode, ArchiveReport, ErrorPolicy, FrameFormat, StreamFormat

logger = logging.getLogger(__name__)

COMMANDS = ("encode", "decode")
USAGE_HINT = "command is `decode` or `encode`"
# Needed only for the zstd and lz4 compression formats.
OPTIONAL_PACKAGES = ("zstandard", "lz4")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="treepack",
        description="Pack a directory tree into a single archive file, or unpack it.",
    )
    parser.add_argument("command", nargs="?", help="encode or decode")

    modes = parser.add_mutually_exclusive_group()
    for flag, mode, help_text in [
        ("--plain", ArchiveMode.PLAIN, "store file contents as-is (default)"),
        ("--base64", ArchiveMode.BASE64, "store each file as base64 text"),
        ("--text", ArchiveMode.COMPRESSED_TEXT, "compress the archive and store it as base64 text"),
        ("--binary", ArchiveMode.COMPRESSED_BINARY, "compress the archive"),
    ]:
        modes.add_argument(flag, dest="mode", action="store_const", const=mode, help=help_text)
    parser.set_defaults(mode=ArchiveMode.PLAIN)

    parser.add_argument(
        "-C", "--directory", default=".", help="Directory to pack, or to unpack in"
    )
    parser.add_argument("--archive", help="Archive file name (default: out.out)")
    parser.add_argument("--output", help="Directory to unpack into (default: output)")
    parser.add_argument(
        "--sized",
        action="store_true",
        help="Record payload sizes in frame headers, so any file content round-trips",
    )
    parser.add_argument(
        "--verify", action="store_true", help="Check file tags when decoding"
    )
    parser.add_argument(
        "--keep-going",
        action="store_true",
        help="Skip files that cannot be processed and report them at the end",
    )
    parser.add_argument(
        "--compression",
        choices=[f.value for f in StreamFormat],
        default=StreamFormat.ZLIB.value,
        help="Compression used by --text and --binary",
    )
    parser.add_argument("--level", type=int, help="Compression level")
    parser.add_argument("--hide-progress", action="store_true", help="Hide progress bar")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    parser.add_argument("--version", action="store_true", help="Print version information")
    return parser


def build_config(args: argparse.Namespace) -> TreepackConfig:
    config = get_default_config()
    overrides = {
        "frame_format": FrameFormat.SIZED if args.sized else config.frame_format,
        "verify_tags": args.verify or config.verify_tags,
        "error_policy": ErrorPolicy.REPORT if args.keep_going else config.error_policy,
        "compression": StreamFormat(args.compression),
        "compression_level": args.level,
    }
    if args.archive:
        overrides["archive_name"] = args.archive
    if args.output:
        overrides["output_root"] = args.output
    return replace(config, **overrides)


def print_report(report: ArchiveReport) -> None:
    for failure in report.failures:
        print(f"FAILED  {failure.path or '<header>'}: {failure.error}", file=sys.stderr)
    if report.failures:
        print(
            f"{len(report.failures)} file(s) failed, {len(report.frames)} processed",
            file=sys.stderr,
        )


def get_version() -> str:
    try:
        return package_version("treepack")
    except PackageNotFoundError:
        return "unknown"


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    if args.version:
        versions = get_dependency_versions()
        print(f"treepack {get_version()}")
        print(format_dependency_versions(versions))
        missing = [name for name in versions.missing() if name in OPTIONAL_PACKAGES]
        if missing:
            print(f"Optional packages not installed: {', '.join(missing)}")
        return 0

    if args.command not in COMMANDS:
        print(USAGE_HINT, file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 0

    config = build_config(args)
    progress = not args.hide_progress

    try:
        if args.command == "encode":
            report = encode_directory(
                args.directory, args.mode, config, progress=progress
            )
        else:
            report = decode_archive(
                os.path.join(args.directory, config.archive_name),
                os.path.join(args.directory, config.output_root),
                args.mode,
                config,
                progress=progress,
            )
    except ArchiveError as e:
        logger.error("%s failed: %s", args.command, e)
        return 1

    print_report(report)
    return 0 if report.ok else 1
