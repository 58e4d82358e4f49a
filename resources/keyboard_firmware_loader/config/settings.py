"""
Configuration management system for Keyboard Firmware Loader.

This module handles application settings, user preferences, default values,
and configuration file loading/saving with proper error handling.
"""

import os
import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional, Union
from dataclasses import dataclass, asdict, field
from enum import Enum

from ..utils.platform_utils import (
    get_default_archive_dir, get_default_mount_path, get_platform_config_dir
)


APP_DIR_NAME = "keyboard-firmware-loader"


def _get_version_from_file() -> str:
    """Read version from VERSION file in resources directory."""
    try:
        version_file = Path(__file__).parent.parent / "VERSION"
        if version_file.exists():
            return version_file.read_text().strip()
    except OSError:
        pass
    # Fallback to hardcoded version if file doesn't exist
    return "1.0.0"


def _env_flag(value: str) -> bool:
    return value.lower() in ("true", "1", "yes", "on")


class LogLevel(Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass
class PathConfig:
    """File and directory path configuration."""
    archive_dir: str = field(default_factory=lambda: str(get_default_archive_dir()))
    mount_path: str = field(default_factory=lambda: str(get_default_mount_path()))
    scratch_prefix: str = "keyboard-firmware-"
    log_file: str = "loader.log"


@dataclass
class FirmwareConfig:
    """Archive and firmware filename matching."""
    archive_extension: str = ".zip"
    left_pattern: str = r"sofle_left.*\.uf2$"
    right_pattern: str = r"sofle_right.*\.uf2$"


@dataclass
class TransferConfig:
    """Bootloader wait and copy retry timings (seconds)."""
    poll_interval: float = 1.0
    settle_delay: float = 1.5
    prepare_delay: float = 0.5
    post_copy_delay: float = 1.0
    retry_delay: float = 1.0
    max_attempts: int = 5

    # None waits for the bootloader volume indefinitely
    wait_timeout: Optional[float] = None


@dataclass
class UIConfig:
    """User interface configuration."""
    show_progress: bool = True
    colored_output: bool = True

    colors: Dict[str, str] = field(default_factory=lambda: {
        "RED": "\033[0;31m",
        "GREEN": "\033[0;32m",
        "YELLOW": "\033[1;33m",
        "BLUE": "\033[0;34m",
        "GRAY": "\033[0;90m",
        "BOLD": "\033[1m",
        "NC": "\033[0m"  # No Color
    })


@dataclass
class AppConfig:
    """Main application configuration container."""

    paths: PathConfig = field(default_factory=PathConfig)
    firmware: FirmwareConfig = field(default_factory=FirmwareConfig)
    transfer: TransferConfig = field(default_factory=TransferConfig)
    ui: UIConfig = field(default_factory=UIConfig)

    # Application metadata
    version: str = field(default_factory=_get_version_from_file)
    app_name: str = "Keyboard Firmware Loader"
    config_version: str = "1.0"

    # Runtime settings
    debug_mode: bool = False
    log_level: LogLevel = LogLevel.INFO

    def __post_init__(self):
        """Post-initialization processing."""
        self._load_environment_variables()
        self._validate_config()

    def _load_environment_variables(self) -> None:
        """Load configuration from environment variables."""
        if env_archive_dir := os.getenv("KFL_ARCHIVE_DIR"):
            self.paths.archive_dir = env_archive_dir

        if env_mount_path := os.getenv("KFL_MOUNT_PATH"):
            self.paths.mount_path = env_mount_path

        if env_debug := os.getenv("KFL_DEBUG"):
            self.debug_mode = _env_flag(env_debug)
            if self.debug_mode:
                self.log_level = LogLevel.DEBUG

        if env_log_level := os.getenv("KFL_LOG_LEVEL"):
            try:
                self.log_level = LogLevel(env_log_level.upper())
            except ValueError:
                logging.warning(f"Invalid log level in environment: {env_log_level}")

        if env_no_progress := os.getenv("KFL_NO_PROGRESS"):
            self.ui.show_progress = not _env_flag(env_no_progress)

    def _validate_config(self) -> None:
        """Validate configuration values."""
        transfer = self.transfer

        if transfer.max_attempts <= 0:
            raise ValueError("Max attempts must be positive")

        for name in ("poll_interval", "settle_delay", "prepare_delay",
                     "post_copy_delay", "retry_delay"):
            if getattr(transfer, name) < 0:
                raise ValueError(f"{name} cannot be negative")

        if transfer.wait_timeout is not None and transfer.wait_timeout <= 0:
            raise ValueError("Wait timeout must be positive")

        if not self.paths.archive_dir:
            raise ValueError("Archive directory cannot be empty")

        if not self.paths.mount_path:
            raise ValueError("Mount path cannot be empty")

        if not self.firmware.left_pattern or not self.firmware.right_pattern:
            raise ValueError("Firmware patterns cannot be empty")

    def get_config_dir(self) -> Path:
        """Get the application configuration directory."""
        return get_platform_config_dir(APP_DIR_NAME)

    def get_config_file_path(self) -> Path:
        """Get the path to the configuration file."""
        return self.get_config_dir() / 'config.json'

    def get_archive_directory(self) -> Path:
        """Get the archive directory path (expanded, not created)."""
        return Path(self.paths.archive_dir).expanduser()

    def get_mount_path(self) -> Path:
        return Path(self.paths.mount_path).expanduser()

    def save_to_file(self, file_path: Optional[Union[str, Path]] = None) -> None:
        """
        Save configuration to a JSON file.

        Args:
            file_path: Path to save the config file. If None, uses default location.

        Raises:
            IOError: If the file cannot be written
        """
        if file_path is None:
            file_path = self.get_config_file_path()
        else:
            file_path = Path(file_path)

        try:
            config_dict = self._to_serializable_dict()

            file_path.parent.mkdir(parents=True, exist_ok=True)

            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(config_dict, f, indent=2, ensure_ascii=False)

            logging.info(f"Configuration saved to {file_path}")

        except (OSError, TypeError) as e:
            raise IOError(f"Failed to save configuration to {file_path}: {e}")

    def _to_serializable_dict(self) -> Dict[str, Any]:
        """Convert configuration to a JSON-serializable dictionary."""
        config_dict = asdict(self)
        config_dict['log_level'] = self.log_level.value
        return config_dict

    @classmethod
    def load_from_file(cls, file_path: Union[str, Path]) -> 'AppConfig':
        """
        Load configuration from a JSON file.

        Args:
            file_path: Path to load the config file from

        Returns:
            AppConfig instance loaded from file

        Raises:
            FileNotFoundError: If the config file doesn't exist
            ValueError: If the config file is invalid
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                config_dict = json.load(f)

            return cls._from_dict(config_dict)

        except (OSError, TypeError, ValueError) as e:
            raise ValueError(f"Failed to load configuration from {file_path}: {e}")

    @classmethod
    def _from_dict(cls, config_dict: Dict[str, Any]) -> 'AppConfig':
        """Create AppConfig instance from dictionary."""
        log_level = LogLevel.INFO
        if log_level_str := config_dict.get('log_level'):
            try:
                log_level = LogLevel(log_level_str)
            except ValueError:
                logging.warning(f"Invalid log level in config: {log_level_str}")

        return cls(
            paths=PathConfig(**config_dict.get('paths', {})),
            firmware=FirmwareConfig(**config_dict.get('firmware', {})),
            transfer=TransferConfig(**config_dict.get('transfer', {})),
            ui=UIConfig(**config_dict.get('ui', {})),
            version=config_dict.get('version', _get_version_from_file()),
            app_name=config_dict.get('app_name', 'Keyboard Firmware Loader'),
            config_version=config_dict.get('config_version', '1.0'),
            debug_mode=config_dict.get('debug_mode', False),
            log_level=log_level
        )


def load_config(config_file: Optional[Union[str, Path]] = None) -> AppConfig:
    """
    Load the application configuration.

    Args:
        config_file: Optional path to config file. If None, uses the default
            location when present, otherwise built-in defaults.

    Returns:
        AppConfig instance
    """
    try:
        if config_file:
            return AppConfig.load_from_file(config_file)

        default_path = get_platform_config_dir(APP_DIR_NAME) / 'config.json'
        if default_path.exists():
            return AppConfig.load_from_file(default_path)

        logging.debug("No configuration file found, using defaults")
    except (FileNotFoundError, ValueError) as e:
        logging.warning(f"Failed to load configuration: {e}. Using defaults.")

    return AppConfig()
