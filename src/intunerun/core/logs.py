"""Logging setup for runbook runs.

Adds a DRYRUN level between INFO and WARNING so would-be mutations stand out
in runbook output and can be filtered on their own.
"""
from __future__ import annotations
import logging
import sys
from typing import Optional

DRYRUN = 25
logging.addLevelName(DRYRUN, "DRYRUN")

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def log_dry_run(logger: logging.Logger, msg: str, *args) -> None:
    logger.log(DRYRUN, msg, *args)


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_format: str = DEFAULT_LOG_FORMAT,
) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    formatter = logging.Formatter(log_format)
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(formatter)
        root.addHandler(fh)
    # requests/urllib3 chatter drowns out retry warnings at DEBUG
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))
