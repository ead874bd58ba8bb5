"""Command line helpers operating on a raw database environment."""

from __future__ import annotations

import argparse
import logging
import re
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import BinaryIO, Sequence

import lmdb

_UNITS = {"": 1, "b": 1}
for _power, _letter in enumerate("kmgtpe", start=1):
    _UNITS[_letter] = 1000**_power
    _UNITS[f"{_letter}b"] = 1000**_power
    _UNITS[f"{_letter}i"] = 1024**_power
    _UNITS[f"{_letter}ib"] = 1024**_power

_SIZE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*$")

_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO, logging.DEBUG)


def _parse_byte_size(text: str) -> int:
    """Parse a size such as "100 GiB", "10 MB" or "4096" into a number of bytes."""
    match = _SIZE.match(text)
    unit = match[2].lower() if match else None
    if match is None or unit not in _UNITS:
        raise argparse.ArgumentTypeError(f"invalid byte size: {text!r}")
    try:
        return int(Decimal(match[1]) * _UNITS[unit])
    except InvalidOperation as error:
        raise argparse.ArgumentTypeError(f"invalid byte size: {text!r}") from error


def _configure_logging(verbosity: int) -> None:
    level = _LEVELS[min(verbosity, len(_LEVELS) - 1)]
    if verbosity >= len(_LEVELS):
        level = logging.NOTSET
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)


def copy_main_database(
    path: str | Path, map_size: int, compact: bool, out: BinaryIO | int
) -> None:
    """Copy the whole environment at path to a file descriptor or binary file.

    Raises FileNotFoundError when the environment does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"The database ({path}) does not exist.")
    if isinstance(out, int):
        fd = out
    else:
        out.flush()
        fd = out.fileno()
    env = lmdb.open(str(path), map_size=map_size, create=False)
    try:
        env.copyfd(fd, compact=compact)
    finally:
        env.close()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="helpers", description="Helper commands for an index.")
    parser.add_argument("--db", required=True, type=Path, help="The database path.")
    parser.add_argument(
        "--db-size",
        type=_parse_byte_size,
        default=_parse_byte_size("100 GiB"),
        help="The maximum size the database can take on disk.",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Verbose mode.")
    commands = parser.add_subparsers(dest="command", required=True)
    copy = commands.add_parser(
        "copy-main-database", help="Outputs the main database to stdout."
    )
    copy.add_argument(
        "-c",
        "--enable-compaction",
        action="store_true",
        help="Whether to compact the database while copying it.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line tool; returns the exit status."""
    args = _build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    try:
        sys.stdout.flush()
        copy_main_database(args.db, args.db_size, args.enable_compaction, 1)
    except (OSError, lmdb.Error) as error:
        print(f"Error: {error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())