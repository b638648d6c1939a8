from __future__ import annotations

import os
import sys

from loguru import logger

from .app import run

LOG_LEVEL_ENV = "COGTRAIN_LOG_LEVEL"


def configure_logging() -> None:
    """Replace loguru's default sink with one at the configured level."""
    level = os.environ.get(LOG_LEVEL_ENV, "").strip().upper() or "WARNING"
    logger.remove()
    logger.add(sys.stderr, level=level)


def main() -> int:
    """Entry point for running the trainer from the command line."""
    configure_logging()
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
