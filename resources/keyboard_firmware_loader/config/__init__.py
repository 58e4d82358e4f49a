"""
Configuration module for Keyboard Firmware Loader.

This module handles application settings, user preferences, and configuration
file management with proper validation and error handling.
"""

from .settings import AppConfig, load_config

__all__ = ["AppConfig", "load_config"]
