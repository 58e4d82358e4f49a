"""
Keyboard Firmware Loader

Copies firmware images from a build archive onto both halves of a split
keyboard, waiting for each half to mount as a bootloader volume.
"""

from .config.settings import _get_version_from_file

__version__ = _get_version_from_file()
__description__ = "Flash split keyboard halves from a firmware archive"

# Package-level imports for convenience
from .config.settings import AppConfig
from .models.firmware import FirmwareAsset, FirmwarePair, KeyboardSide
from .services.archive_service import ArchiveService
from .services.device_service import DeviceService
from .services.flash_service import FlashService

__all__ = [
    "AppConfig",
    "FirmwareAsset",
    "FirmwarePair",
    "KeyboardSide",
    "ArchiveService",
    "DeviceService",
    "FlashService",
]
