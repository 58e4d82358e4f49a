"""
Data models for Keyboard Firmware Loader.

This module contains core data structures representing firmware images,
archive candidates, and transfer results used throughout the application.
"""

from .firmware import KeyboardSide, FirmwareAsset, FirmwarePair, ArchiveCandidate
from .transfer import TransferStatus, TransferResult, FlashStep, FlashReport

__all__ = [
    "KeyboardSide",
    "FirmwareAsset",
    "FirmwarePair",
    "ArchiveCandidate",
    "TransferStatus",
    "TransferResult",
    "FlashStep",
    "FlashReport",
]
