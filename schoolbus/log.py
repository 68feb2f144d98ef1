"""Console logging setup."""
import logging
import os
from typing import Optional, Union


class Colors:
    """ANSI color codes for prettier output."""
    CYAN = '\033[36m'
    YELLOW = '\033[33m'
    RED = '\033[31m'
    GRAY = '\033[37m'
    BOLD = '\033[1m'
    RESET = '\033[0m'


class SimpleFormatter(logging.Formatter):
    """Message-only formatter, colored by level."""
    def format(self, record):
        color = {
            'DEBUG': Colors.GRAY,
            'INFO': Colors.CYAN,
            'WARNING': Colors.YELLOW,
            'ERROR': Colors.RED,
            'CRITICAL': Colors.RED + Colors.BOLD,
        }.get(record.levelname, Colors.RESET)

        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"{color}{message}{Colors.RESET}"


def setup_logging(level: Optional[Union[int, str]] = None) -> None:
    """
    Install a single console handler on the root logger.
    Level defaults to SCHOOLBUS_LOG_LEVEL, then INFO.
    """
    level = level or os.getenv("SCHOOLBUS_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger()
    logger.setLevel(level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console = logging.StreamHandler()
    console.setFormatter(SimpleFormatter())
    logger.addHandler(console)
