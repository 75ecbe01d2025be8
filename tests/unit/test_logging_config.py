"""Tests for logging configuration."""

from pathlib import Path

from loguru import logger

from filemarks.logging_config import configure_logging


def test_log_file_receives_debug_messages(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "filemarks.log"
    configure_logging(verbose=False, log_file=log_file)
    try:
        logger.debug("pending deletion of {}", "a.py")
    finally:
        logger.remove()
    assert "pending deletion of a.py" in log_file.read_text()
