"""Utility modules"""

from gridbot.utils.logger import get_logger, log_context, setup_logging

__all__ = [
    "setup_logging",
    "get_logger",
    "log_context",
]
