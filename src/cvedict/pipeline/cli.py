#!/usr/bin/env python3

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from cvedict.pipeline.manager import Command, default_options, process_path
from cvedict.utils.common import add_common_args, setup_logging

logger = logging.getLogger(__name__)

_COMMANDS = [c.value for c in Command]


def parse_cli_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cve-dictionaries",
        description="Validate, generate or update derived dictionaries in cve.json documents",
    )
    parser.add_argument(
        "args",
        nargs="+",
        metavar="[command] path",
        help=f"Optional command ({', '.join(_COMMANDS)}; default validate) and a file or directory",
    )
    add_common_args(parser)
    parser.add_argument(
        "--nvd",
        action="store_true",
        help="Also consult NVD for CVEs missing from the MSRC bulletin",
    )

    args = parser.parse_args(argv)
    positional: list[str] = args.args
    if len(positional) == 1:
        command, path = Command.VALIDATE.value, positional[0]
    elif len(positional) == 2 and positional[0] in _COMMANDS:
        command, path = positional
    else:
        parser.error(f"expected '[{'|'.join(_COMMANDS)}] <path>'")
    args.command = Command(command)
    args.path = Path(path)
    return args


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_cli_args(argv)
    setup_logging(args.log_level, args.log_file)

    if not args.path.exists():
        print(f"Path not found: {args.path}", file=sys.stderr)
        return 1

    options = default_options(skip_network=args.skip_urls, quiet=args.quiet, use_nvd=args.nvd)
    summary = process_path(args.path, args.command, options)
    if not summary.results:
        print(f"No cve.json found under {args.path}", file=sys.stderr)
    return summary.exit_code


if __name__ == "__main__":
    sys.exit(main())
