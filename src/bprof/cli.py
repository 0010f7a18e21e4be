from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from bprof.config import WriterConfig, load_config
from bprof.consistency import ConsistencyError, check_profile_consistency
from bprof.errors import ProfileWriteError, SnapshotError
from bprof.snapshot import load_snapshot
from bprof.writer import ProfileWriter


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def write(
    snapshot: str,
    output: str,
    fmt: str | None,
    codec: str | None,
    config: WriterConfig,
) -> int:
    source = Path(snapshot)
    if not source.exists():
        print(f"Snapshot not found: {source}", file=sys.stderr)
        return 2
    try:
        context, reader = load_snapshot(source, codec, default_codec=config.codec)
    except SnapshotError as exc:
        print(f"Invalid snapshot: {exc}", file=sys.stderr)
        return 2
    writer = ProfileWriter(
        output,
        fmt=fmt or config.format,  # type: ignore[arg-type]
        version=config.version,
    )
    try:
        profile = writer.write_profile(context, reader)
    except ProfileWriteError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    print(f"Wrote profile for {len(profile.functions)} functions to {output}")
    return 0


def check(snapshot: str, codec: str | None, config: WriterConfig) -> int:
    source = Path(snapshot)
    if not source.exists():
        print(f"Snapshot not found: {source}", file=sys.stderr)
        return 2
    try:
        context, _ = load_snapshot(source, codec, default_codec=config.codec)
    except SnapshotError as exc:
        print(f"Invalid snapshot: {exc}", file=sys.stderr)
        return 2
    result = check_profile_consistency(context.functions())
    if isinstance(result, ConsistencyError):
        print(f"Inconsistent profile: {result.describe()}", file=sys.stderr)
        return 1
    print(f"profile-flags: {int(result.flags)}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="bprof")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )
    subparsers = parser.add_subparsers(dest="command")

    write_parser = subparsers.add_parser(
        "write", help="Encode a binary snapshot into a profile document"
    )
    write_parser.add_argument("snapshot", help="Snapshot file (json/msgpack/cbor)")
    write_parser.add_argument(
        "-o", "--output", required=True, help="Destination profile path."
    )
    write_parser.add_argument(
        "--format",
        choices=["yaml", "json"],
        default=None,
        help="Output document format (default from config: yaml).",
    )
    write_parser.add_argument(
        "--codec",
        choices=["json", "msgpack", "cbor"],
        default=None,
        help="Snapshot codec (default: inferred from the file suffix).",
    )

    check_parser = subparsers.add_parser(
        "check", help="Verify profile flags agree across all functions"
    )
    check_parser.add_argument("snapshot", help="Snapshot file (json/msgpack/cbor)")
    check_parser.add_argument(
        "--codec",
        choices=["json", "msgpack", "cbor"],
        default=None,
        help="Snapshot codec (default: inferred from the file suffix).",
    )

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    try:
        config = load_config()
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    if args.command == "write":
        return write(args.snapshot, args.output, args.format, args.codec, config)
    if args.command == "check":
        return check(args.snapshot, args.codec, config)

    parser.print_help(sys.stderr)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
