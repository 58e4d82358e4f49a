"""
Firmware archive service for Keyboard Firmware Loader.

This module lists candidate firmware archives, extracts a chosen archive into
a fresh scratch directory, identifies the left and right firmware images in
it, and cleans up scratch directories and consumed archives.
"""

import re
import shutil
import tempfile
import zipfile
import logging
from pathlib import Path
from typing import Optional, Callable, Dict, List, Union

from ..models.firmware import ArchiveCandidate, FirmwareAsset, FirmwarePair, KeyboardSide


class ArchiveError(Exception):
    """Raised when an archive cannot be read or extracted."""
    pass


class FirmwareNotFoundError(ArchiveError):
    """Raised when an extracted archive lacks a firmware image for a side."""

    def __init__(self, missing: Dict[KeyboardSide, str], directory: Path):
        self.missing = missing
        self.directory = directory
        described = ", ".join(
            f"{side.value} (pattern '{pattern}')" for side, pattern in missing.items()
        )
        super().__init__(f"Could not find firmware for {described} in {directory}")


class ArchiveService:
    """
    Archive Resolver: finds firmware archives and the firmware images inside.

    All locations and patterns are passed in at construction time; the service
    keeps track of the scratch directories it creates so they can be removed
    on shutdown.
    """

    def __init__(self, archive_dir: Path,
                 left_pattern: str = r"sofle_left.*\.uf2$",
                 right_pattern: str = r"sofle_right.*\.uf2$",
                 archive_extension: str = ".zip",
                 scratch_prefix: str = "keyboard-firmware-",
                 temp_dir: Optional[Path] = None):
        """
        Initialize archive service.

        Args:
            archive_dir: Directory scanned for firmware archives
            left_pattern: Regex identifying the left firmware filename
            right_pattern: Regex identifying the right firmware filename
            archive_extension: Filename suffix of candidate archives
            scratch_prefix: Prefix of per-run extraction directories
            temp_dir: Parent of scratch directories (default: system temp)
        """
        self.archive_dir = Path(archive_dir)
        self.archive_extension = archive_extension
        self.scratch_prefix = scratch_prefix
        self.temp_dir = temp_dir

        self.patterns: Dict[KeyboardSide, re.Pattern] = {
            KeyboardSide.LEFT: re.compile(left_pattern, re.IGNORECASE),
            KeyboardSide.RIGHT: re.compile(right_pattern, re.IGNORECASE),
        }

        self.scratch_dirs: List[Path] = []

        self._logger = logging.getLogger(__name__)

    def list_archives(self) -> List[ArchiveCandidate]:
        """
        List candidate archives, newest first.

        A directory that cannot be read yields an empty list.
        """
        try:
            entries = [
                entry for entry in self.archive_dir.iterdir()
                if entry.name.endswith(self.archive_extension) and entry.is_file()
            ]
            candidates = [ArchiveCandidate.from_path(entry) for entry in entries]
        except OSError as e:
            self._logger.error(f"Error reading archive folder {self.archive_dir}: {e}")
            return []

        candidates.sort(key=lambda candidate: candidate.mtime, reverse=True)
        self._logger.debug(f"Found {len(candidates)} archive(s) in {self.archive_dir}")
        return candidates

    def create_scratch_dir(self) -> Path:
        """Create a fresh, uniquely named extraction directory."""
        scratch = Path(tempfile.mkdtemp(prefix=self.scratch_prefix, dir=self.temp_dir))
        self.scratch_dirs.append(scratch)
        self._logger.debug(f"Created scratch directory: {scratch}")
        return scratch

    def extract_firmware(self, archive_path: Union[str, Path],
                         progress_callback: Optional[Callable[[str, int, int], None]] = None) -> FirmwarePair:
        """
        Extract an archive and identify its left and right firmware images.

        Args:
            archive_path: Path to the firmware archive
            progress_callback: Optional callback for extraction progress (filename, current, total)

        Returns:
            FirmwarePair pointing into the scratch directory

        Raises:
            ArchiveError: If the archive is missing or corrupted
            FirmwareNotFoundError: If either side's firmware is missing
        """
        archive_path = Path(archive_path)
        scratch = self.create_scratch_dir()

        try:
            self._extract_zip(archive_path, scratch, progress_callback)
            return self.identify_firmware(scratch)
        except Exception:
            self.remove_scratch_dir(scratch)
            raise

    def _extract_zip(self, zip_path: Path, destination: Path,
                     progress_callback: Optional[Callable[[str, int, int], None]] = None) -> Path:
        """Extract ZIP archive with progress tracking."""
        if not zip_path.is_file():
            raise ArchiveError(f"Archive not found: {zip_path}")

        self._logger.debug(f"Extracting {zip_path} to {destination}")

        try:
            with zipfile.ZipFile(zip_path, 'r') as zip_ref:
                members = zip_ref.infolist()
                total_files = len(members)

                for i, member in enumerate(members):
                    if progress_callback:
                        progress_callback(member.filename, i + 1, total_files)
                    zip_ref.extract(member, destination)

        except zipfile.BadZipFile as e:
            raise ArchiveError(f"Corrupted ZIP file: {zip_path}") from e
        except (RuntimeError, NotImplementedError) as e:
            # Encrypted members or unsupported compression methods
            raise ArchiveError(f"Cannot extract {zip_path}: {e}") from e
        except OSError as e:
            raise ArchiveError(f"Failed to extract {zip_path}: {e}") from e

        self._logger.debug(f"Extracted {total_files} files to {destination}")
        return destination

    def identify_firmware(self, directory: Path) -> FirmwarePair:
        """
        Find the left and right firmware images under a directory.

        Files are matched by name, searched recursively in sorted order; the
        first match per side wins.

        Raises:
            FirmwareNotFoundError: If either side has no match
        """
        directory = Path(directory)
        files = sorted(
            (path for path in directory.rglob("*") if path.is_file()),
            key=lambda path: path.relative_to(directory).as_posix().lower()
        )

        found: Dict[KeyboardSide, Path] = {}
        missing: Dict[KeyboardSide, str] = {}

        for side, pattern in self.patterns.items():
            matches = [path for path in files if pattern.search(path.name)]
            if not matches:
                missing[side] = pattern.pattern
                continue
            if len(matches) > 1:
                self._logger.warning(
                    f"Multiple {side.value} firmware files found, using {matches[0].name}: "
                    f"{', '.join(path.name for path in matches)}"
                )
            found[side] = matches[0]

        if missing:
            raise FirmwareNotFoundError(missing, directory)

        return FirmwarePair(
            left=FirmwareAsset(KeyboardSide.LEFT, found[KeyboardSide.LEFT]),
            right=FirmwareAsset(KeyboardSide.RIGHT, found[KeyboardSide.RIGHT]),
            source_dir=directory
        )

    def delete_archive(self, archive_path: Union[str, Path]) -> bool:
        """
        Delete a consumed archive.

        Returns:
            True if deleted, False if deletion failed (the error is logged)
        """
        archive_path = Path(archive_path)
        try:
            archive_path.unlink()
        except OSError as e:
            self._logger.error(f"Error deleting archive file: {e}")
            return False

        self._logger.info(f"Deleted archive file: {archive_path.name}", extra={"color": "GREEN"})
        return True

    def remove_scratch_dir(self, scratch: Path) -> None:
        try:
            if scratch.exists():
                shutil.rmtree(scratch)
                self._logger.debug(f"Removed scratch directory: {scratch}")
        except OSError as e:
            self._logger.warning(f"Failed to remove scratch directory {scratch}: {e}")
        if scratch in self.scratch_dirs:
            self.scratch_dirs.remove(scratch)

    def cleanup(self) -> int:
        """
        Remove all scratch directories created by this service.

        Returns:
            Number of directories handled
        """
        count = 0
        for scratch in self.scratch_dirs[:]:
            self.remove_scratch_dir(scratch)
            count += 1
        return count

    @classmethod
    def from_config(cls, config) -> 'ArchiveService':
        """Build the service from an AppConfig."""
        return cls(
            archive_dir=config.get_archive_directory(),
            left_pattern=config.firmware.left_pattern,
            right_pattern=config.firmware.right_pattern,
            archive_extension=config.firmware.archive_extension,
            scratch_prefix=config.paths.scratch_prefix
        )
