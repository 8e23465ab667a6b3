# tests/test_logging_config.py

"""Tests for the per-run logging configuration."""

import logging
import tempfile
import unittest
from pathlib import Path

from src.config.logging_config import ROOT_LOGGER_NAME, setup_logging


class TestLoggingConfig(unittest.TestCase):
    """Verify logging setup behaviour."""

    def setUp(self) -> None:
        """Start each test with a clean project logger and temp dir."""
        self._tmp = tempfile.TemporaryDirectory()
        self.logs_dir = Path(self._tmp.name) / "logs"
        self._clear_handlers()

    def tearDown(self) -> None:
        """Close handlers so the temp dir can be removed."""
        self._clear_handlers()
        self._tmp.cleanup()

    @staticmethod
    def _clear_handlers() -> None:
        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        for handler in list(root_logger.handlers):
            handler.close()
            root_logger.removeHandler(handler)

    def test_setup_creates_log_file(self) -> None:
        """setup_logging returns a path that exists on disk."""
        log_path = setup_logging(self.logs_dir)
        self.assertTrue(log_path.exists())

    def test_log_file_naming_convention(self) -> None:
        """Log file name matches run_YYYYMMDD_HHMMSS.log format."""
        log_path = setup_logging(self.logs_dir)
        self.assertRegex(log_path.name, r"^run_\d{8}_\d{6}\.log$")

    def test_log_file_inside_logs_dir(self) -> None:
        """Log file is created inside the requested directory."""
        log_path = setup_logging(self.logs_dir)
        self.assertEqual(log_path.parent, self.logs_dir)

    def test_file_handler_level_debug(self) -> None:
        """File handler should be set to DEBUG level."""
        setup_logging(self.logs_dir)
        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        file_handlers = [
            h
            for h in root_logger.handlers
            if isinstance(h, logging.FileHandler)
        ]
        self.assertEqual(len(file_handlers), 1)
        self.assertEqual(file_handlers[0].level, logging.DEBUG)

    def test_console_handler_level_warning(self) -> None:
        """Console handler should be set to WARNING level."""
        setup_logging(self.logs_dir)
        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        stream_handlers = [
            h
            for h in root_logger.handlers
            if isinstance(h, logging.StreamHandler)
            and not isinstance(h, logging.FileHandler)
        ]
        self.assertEqual(len(stream_handlers), 1)
        self.assertEqual(stream_handlers[0].level, logging.WARNING)

    def test_repeated_calls_no_duplicate_handlers(self) -> None:
        """Calling setup_logging twice does not duplicate handlers."""
        setup_logging(self.logs_dir)
        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        count_before = len(root_logger.handlers)
        setup_logging(self.logs_dir)
        self.assertEqual(len(root_logger.handlers), count_before)

    def test_root_logger_level_is_debug(self) -> None:
        """The project logger is set to DEBUG."""
        setup_logging(self.logs_dir)
        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        self.assertEqual(root_logger.level, logging.DEBUG)

    def test_child_records_reach_file(self) -> None:
        """Module loggers under the project name write to the run file."""
        log_path = setup_logging(self.logs_dir)
        logging.getLogger(f"{ROOT_LOGGER_NAME}.history").debug(
            "trim check"
        )
        for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
            handler.flush()
        self.assertIn("trim check", log_path.read_text(encoding="utf-8"))


if __name__ == "__main__":
    unittest.main()
