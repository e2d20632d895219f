#!/usr/bin/env python3
"""
Common utilities shared across cve-dictionaries entry points.
"""

import argparse
import logging
import sys
from pathlib import Path

from cvedict.constants import LOG_FORMAT


def setup_logging(log_level: str | int = "INFO", log_file: str | None = None) -> None:
    """Setup logging configuration consistently across scripts.

    Args:
        log_level: Logging level as string ("INFO", "DEBUG") or integer constant
        log_file: Optional path to log file for file output
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            # Invalid path: keep console logging only
            pass
        else:
            handlers.append(logging.FileHandler(log_file))

    if isinstance(log_level, int):
        level = log_level
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def add_common_args(parser: argparse.ArgumentParser) -> None:
    """Add common command-line arguments to an ArgumentParser.

    Args:
        parser: ArgumentParser instance to add arguments to
    """
    parser.add_argument(
        "--skip-urls",
        action="store_true",
        help="Skip network checks (URL liveness, package registry, advisory reconciliation)",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Only print files with findings and the summary"
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    parser.add_argument("--log-file", help="Optional log file")
