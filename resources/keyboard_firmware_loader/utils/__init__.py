"""
Utility modules for Keyboard Firmware Loader.

This module provides common utilities including logging, validation,
progress display, prompts and platform helpers used throughout the application.
"""

from .logger import setup_logging
from .validators import Validator

__all__ = ["setup_logging", "Validator"]
