"""Tests for logging system"""

import json
from pathlib import Path

from gridbot.utils.logger import get_logger, log_context, setup_logging


class TestLogger:
    """Test logging functionality"""

    def test_get_logger(self, tmp_path: Path):
        setup_logging(
            log_level="INFO",
            log_dir=tmp_path / "logs",
            log_to_console=False,
            log_to_file=False,
        )
        logger = get_logger("test")
        assert logger is not None
        assert hasattr(logger, "info")
        # No file logging, no directory
        assert not (tmp_path / "logs").exists()

    def test_setup_logging_creates_files(self, tmp_path: Path):
        log_dir = tmp_path / "logs"
        setup_logging(
            log_level="DEBUG",
            log_dir=log_dir,
            log_to_console=False,
            log_to_file=True,
        )

        get_logger("test_setup").info("test message")

        assert (log_dir / "gridbot.log").exists()
        assert (log_dir / "error.log").exists()

    def test_json_logs_carry_context(self, tmp_path: Path):
        log_dir = tmp_path / "logs"
        setup_logging(
            log_level="INFO",
            log_dir=log_dir,
            log_to_console=False,
            log_to_file=True,
            json_logs=True,
        )

        logger = get_logger("test_json")
        with log_context(symbol="EURUSD", instance_id="a1"):
            logger.info("Position opened", volume=1000)
        logger.info("Outside context")

        lines = (log_dir / "gridbot.log").read_text(encoding="utf-8").splitlines()
        events = [json.loads(line) for line in lines]
        opened = next(e for e in events if e["event"] == "Position opened")
        assert opened["symbol"] == "EURUSD"
        assert opened["volume"] == 1000
        outside = next(e for e in events if e["event"] == "Outside context")
        assert "symbol" not in outside

    def test_errors_go_to_error_log(self, tmp_path: Path):
        log_dir = tmp_path / "logs"
        setup_logging(log_level="INFO", log_dir=log_dir, log_to_console=False, json_logs=True)

        logger = get_logger("test_errors")
        logger.info("routine")
        logger.error("Opening stopped: not enough money")

        error_log = (log_dir / "error.log").read_text(encoding="utf-8")
        assert "Opening stopped" in error_log
        assert "routine" not in error_log
