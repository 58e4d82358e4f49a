"""
Platform-specific utilities for Keyboard Firmware Loader.

This module provides cross-platform functions for determining OS-specific paths
for configuration, logs, downloaded archives and the bootloader volume, so the
application behaves correctly on Windows, macOS, and Linux.
"""

import os
import sys
import getpass
from pathlib import Path


BOOTLOADER_VOLUME_LABEL = "NICENANO"


def is_windows() -> bool:
    """Check if the current operating system is Windows."""
    return os.name == 'nt'


def get_platform_config_dir(app_name: str) -> Path:
    """
    Get the platform-appropriate configuration directory for the application.

    Args:
        app_name: The name of the application.

    Returns:
        A Path object pointing to the configuration directory.
    """
    if is_windows():
        # Windows: %APPDATA%\app_name
        config_dir = Path(os.getenv('APPDATA', '')) / app_name
    elif sys.platform == 'darwin':  # macOS
        # macOS: ~/Library/Application Support/app_name
        config_dir = Path.home() / 'Library' / 'Application Support' / app_name
    else:  # Linux and other Unix-like
        # Linux: ~/.config/app_name
        config_dir = Path.home() / '.config' / app_name

    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_platform_log_dir(app_name: str) -> Path:
    """
    Get the platform-appropriate log directory for the application.

    Args:
        app_name: The name of the application.

    Returns:
        A Path object pointing to the log directory.
    """
    if is_windows():
        # Windows: %LOCALAPPDATA%\app_name\Logs
        log_dir = Path(os.getenv('LOCALAPPDATA', '')) / app_name / 'Logs'
    elif sys.platform == 'darwin':  # macOS
        # macOS: ~/Library/Logs/app_name
        log_dir = Path.home() / 'Library' / 'Logs' / app_name
    else:  # Linux and other Unix-like
        # Linux: ~/.local/share/app_name/logs
        log_dir = Path.home() / '.local' / 'share' / app_name / 'logs'

    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def get_default_archive_dir() -> Path:
    """Directory scanned for firmware archives (the user's Downloads folder)."""
    return Path.home() / 'Downloads'


def get_default_mount_path(volume_label: str = BOOTLOADER_VOLUME_LABEL) -> Path:
    """
    Get the path where the OS mounts the bootloader mass-storage volume.

    Args:
        volume_label: Volume label the bootloader reports.

    Returns:
        Expected mount point. Windows assigns drive letters dynamically, so
        the first removable letter is only a guess there.
    """
    if is_windows():
        return Path('D:\\')
    elif sys.platform == 'darwin':
        return Path('/Volumes') / volume_label
    else:
        # udisks2 mounts removable media per user
        return Path('/media') / getpass.getuser() / volume_label
