# src/config/logging_config.py

"""Per-run logging for grocery_scout.

Every launch writes a dedicated ``logs/run_YYYYmmdd_HHMMSS.log`` file
that receives all ``grocery_scout.*`` records at DEBUG.  The console
only shows warnings and errors so that JSON written to stdout by the
CLI stays clean.

History trimming, rejected queries, and provider failures are logged
at WARNING so they surface on the console as well as in the run file.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from src.config.settings import Settings

ROOT_LOGGER_NAME = "grocery_scout"

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)
_CONSOLE_FORMAT = "%(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty third-party loggers kept out of the run file
_QUIET_LOGGERS: tuple[str, ...] = ("curl_cffi", "urllib3", "asyncio")


def setup_logging(
    logs_dir: Path | None = None,
    console_level: int = logging.WARNING,
) -> Path:
    """Attach the file and console handlers to the project logger.

    Args:
        logs_dir: Directory for the run file (defaults to
            ``Settings.LOGS_DIR``).
        console_level: Minimum level echoed to stderr.

    Returns:
        The path of the log file for this run.
    """
    directory = logs_dir or Settings.LOGS_DIR
    directory.mkdir(parents=True, exist_ok=True)
    log_file = directory / (
        f"run_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    )

    project_logger = logging.getLogger(ROOT_LOGGER_NAME)
    project_logger.setLevel(logging.DEBUG)

    # Repeated calls (tests, re-entrant CLI) keep the first handlers
    if project_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    project_logger.addHandler(file_handler)
    project_logger.addHandler(console_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    project_logger.info("Logging initialised, run file: %s", log_file)
    return log_file
