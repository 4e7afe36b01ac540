"""Command-line interface for generating typed TypeScript Twirp clients from *.proto schemas.

Notes:
    - Called without a descriptor set, the generator acts as protoc plugin and talks to protoc via stdin/stdout.
    - The generated modules import `createTwirpRequest`, `throwTwirpError` and `Fetch` from a `./twirp` module.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Sequence

from twirp_ts_generator.run import run, run_plugin

logger = logging.getLogger(__name__)


def setup_parser() -> argparse.ArgumentParser:
    """Setup for the parser.

    Returns:
        argparse.ArgumentParser: The parser after setup.
    """
    parser = argparse.ArgumentParser(description="Generate typed TypeScript Twirp clients for protobuf schema files.")

    parser.add_argument(
        "-d",
        "--descriptor-set",
        dest="descriptor_set",
        type=str,
        default="",
        help="serialized FileDescriptorSet (protoc --descriptor_set_out); runs as protoc plugin if omitted.",
    )

    parser.add_argument(
        "-f",
        "--files",
        type=str,
        nargs="+",
        default=[],
        help="schema files of the descriptor set to generate clients for; defaults to all files with services.",
    )

    parser.add_argument(
        "-o",
        "--output-dir",
        type=str,
        default="",
        help="directory to write all generated clients; defaults to the working directory.",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        default=False,
        action="store_true",
        help="log debug output.",
    )

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point of the client generator.

    Args:
        argv (Sequence[str] | None, optional): Run arguments. Defaults to None.

    Returns:
        int: Error code.
    """
    parser = setup_parser()
    args = parser.parse_args(argv)

    # protoc shows the plugin's stderr, so the plugin only reports warnings unless asked otherwise
    if args.verbose:
        level = logging.DEBUG
    elif args.descriptor_set:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level)

    if not args.descriptor_set:
        run_plugin(sys.stdin.buffer, sys.stdout.buffer)
        return 0

    root_directory = os.getcwd()
    logging.info("Working from root directory: %s", root_directory)

    return run(args, root_directory)

