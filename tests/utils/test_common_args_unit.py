#!/usr/bin/env python3

import argparse
import logging


def test_add_common_args_defaults():
    from cvedict.utils.common import add_common_args

    parser = argparse.ArgumentParser()
    add_common_args(parser)
    args = parser.parse_args([])

    assert args.skip_urls is False
    assert args.quiet is False
    assert args.log_level == "WARNING"
    assert args.log_file is None


def test_add_common_args_flags():
    from cvedict.utils.common import add_common_args

    parser = argparse.ArgumentParser()
    add_common_args(parser)
    args = parser.parse_args(["--skip-urls", "-q", "--log-level", "DEBUG"])

    assert args.skip_urls is True
    assert args.quiet is True
    assert args.log_level == "DEBUG"


def test_setup_logging_writes_file(tmp_path):
    from cvedict.utils.common import setup_logging

    log_file = tmp_path / "logs" / "run.log"
    setup_logging("info", str(log_file))
    logging.getLogger("cvedict.test").info("hello from test")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert logging.getLogger().level == logging.INFO
    assert "hello from test" in log_file.read_text(encoding="utf-8")
    setup_logging(logging.WARNING)
