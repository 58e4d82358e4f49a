"""
Service modules for Keyboard Firmware Loader.

This module provides service layers for archive handling, bootloader device
transfers and the two-half flashing sequence.
"""

from .archive_service import ArchiveService, ArchiveError, FirmwareNotFoundError
from .device_service import (
    DeviceService, DeviceError, DeviceNotWritableError, DeviceWaitTimeoutError,
    OperationCancelledError, is_volume_ready
)
from .flash_service import FlashService

__all__ = [
    "ArchiveService",
    "ArchiveError",
    "FirmwareNotFoundError",
    "DeviceService",
    "DeviceError",
    "DeviceNotWritableError",
    "DeviceWaitTimeoutError",
    "OperationCancelledError",
    "is_volume_ready",
    "FlashService",
]
