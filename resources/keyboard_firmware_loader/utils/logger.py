"""
Logging setup for Keyboard Firmware Loader.

Console output goes through the standard logging module with a colored
formatter; the same records are written uncolored to a log file.
"""

import sys
import logging
from pathlib import Path
from typing import Dict, Optional, Any


LOGGER_NAME = "keyboard_firmware_loader"

DEFAULT_LEVEL_COLORS = {
    "DEBUG": "GRAY",
    "INFO": "",
    "WARNING": "YELLOW",
    "ERROR": "RED",
    "CRITICAL": "RED",
}

class ColoredFormatter(logging.Formatter):
    """
    Formatter that wraps console messages in ANSI color codes.

    A record may carry an explicit ``color`` attribute (passed through
    ``extra={"color": "GREEN"}``) which overrides the per-level color.
    """

    def __init__(self, colors: Dict[str, str], fmt: str = "%(message)s",
                 level_colors: Optional[Dict[str, str]] = None):
        super().__init__(fmt)
        self.colors = colors
        self.level_colors = level_colors or DEFAULT_LEVEL_COLORS

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color_name = getattr(record, "color", None) or self.level_colors.get(record.levelname, "")
        code = self.colors.get(color_name, "")
        if not code:
            return message
        return f"{code}{message}{self.colors.get('NC', '')}"


def _level_value(level: Any) -> int:
    # Accepts LogLevel enums, level names and ints
    if hasattr(level, "value"):
        level = level.value
    if isinstance(level, str):
        return logging.getLevelName(level.upper())
    return int(level)


def setup_logging(colored: bool = True,
                  log_file: Optional[Path] = None,
                  level: Any = logging.INFO,
                  colors: Optional[Dict[str, str]] = None) -> logging.Logger:
    """
    Configure the application logger.

    Args:
        colored: Whether console output should use ANSI colors
        log_file: Optional file receiving all records at DEBUG level
        level: Console log level (LogLevel, name or int)
        colors: Color name to ANSI code table

    Returns:
        The configured application logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(_level_value(level))
    if colored and colors and sys.stdout.isatty():
        console.setFormatter(ColoredFormatter(colors))
    else:
        console.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console)

    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
            ))
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Could not open log file {log_file}: {e}")

    return logger

