"""
Firmware data structures for Keyboard Firmware Loader.

This module contains the keyboard side enumeration, the firmware image assets
pulled out of an archive, and the archive candidates offered to the user.
"""

from pathlib import Path
from typing import Optional
from dataclasses import dataclass
from enum import Enum
from datetime import datetime


class KeyboardSide(Enum):
    """Halves of a split keyboard, in flashing order."""
    LEFT = "left"
    RIGHT = "right"

    @property
    def display_name(self) -> str:
        return self.value.upper()

    @classmethod
    def from_name(cls, name: str) -> Optional['KeyboardSide']:
        """Get a side from its name ('left', 'RIGHT', ...)."""
        try:
            return cls(name.strip().lower())
        except ValueError:
            return None


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit if count == 1 else unit + 's'} ago"


def format_relative_time(moment: datetime, now: Optional[datetime] = None) -> str:
    """
    Format a timestamp relative to now ('2 hours ago', '5 minutes ago').

    Whole units are floored; anything under a minute (or in the future)
    is 'just now'.
    """
    now = now or datetime.now()
    diff_sec = int((now - moment).total_seconds())
    diff_min = diff_sec // 60
    diff_hour = diff_min // 60
    diff_day = diff_hour // 24

    if diff_day > 0:
        return _plural(diff_day, "day")
    elif diff_hour > 0:
        return _plural(diff_hour, "hour")
    elif diff_min > 0:
        return _plural(diff_min, "minute")
    else:
        return "just now"


@dataclass(frozen=True)
class FirmwareAsset:
    """A firmware image destined for one keyboard half."""
    side: KeyboardSide
    path: Path

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def size(self) -> Optional[int]:
        try:
            return self.path.stat().st_size
        except OSError:
            return None


@dataclass(frozen=True)
class FirmwarePair:
    """Left and right firmware images extracted from one archive."""
    left: FirmwareAsset
    right: FirmwareAsset
    source_dir: Optional[Path] = None

    def for_side(self, side: KeyboardSide) -> FirmwareAsset:
        """Get the asset for a keyboard side."""
        return self.left if side is KeyboardSide.LEFT else self.right


@dataclass(frozen=True)
class ArchiveCandidate:
    """A firmware archive found in the archive directory."""
    name: str
    path: Path
    mtime: datetime

    @property
    def relative_time(self) -> str:
        return format_relative_time(self.mtime)

    @property
    def label(self) -> str:
        """Label shown in the selection prompt."""
        return f"{self.name} ({self.relative_time})"

    @classmethod
    def from_path(cls, path: Path) -> 'ArchiveCandidate':
        """Build a candidate from a file path, reading its modification time."""
        stat = path.stat()
        return cls(name=path.name, path=path, mtime=datetime.fromtimestamp(stat.st_mtime))
