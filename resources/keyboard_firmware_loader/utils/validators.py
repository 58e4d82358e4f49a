"""
Input validation utilities for Keyboard Firmware Loader.

This module provides validation functions for archive directories, archive
files, bootloader mount paths and firmware filename patterns.
"""

import os
import re
import logging
from pathlib import Path
from typing import Union, Optional, Dict, Any


class ValidationResult:
    """Result of a validation operation."""

    def __init__(self, is_valid: bool, message: str = "", details: Optional[Dict[str, Any]] = None):
        self.is_valid = is_valid
        self.message = message
        self.details = details or {}

    def __bool__(self) -> bool:
        return self.is_valid

    def __str__(self) -> str:
        return f"ValidationResult(valid={self.is_valid}, message='{self.message}')"


class Validator:
    """
    Validator for user-supplied paths and patterns.

    Checks run before a flashing session so that configuration mistakes show up
    as warnings instead of an endless wait for a volume that never appears.
    """

    def __init__(self):
        self._logger = logging.getLogger(__name__)

    def validate_file_path(self, file_path: Union[str, Path],
                           must_exist: bool = False,
                           must_be_file: bool = False,
                           must_be_readable: bool = False) -> ValidationResult:
        """
        Validate file path and check various conditions.

        Args:
            file_path: Path to validate
            must_exist: Whether the path must exist
            must_be_file: Whether the path must be a file
            must_be_readable: Whether the path must be readable

        Returns:
            ValidationResult with validation status and path details
        """
        if not file_path:
            return ValidationResult(False, "File path cannot be empty")

        try:
            path_obj = Path(file_path).expanduser()

            exists = path_obj.exists()
            if must_exist and not exists:
                return ValidationResult(False, f"Path does not exist: {file_path}")

            details = {
                "path_object": path_obj,
                "exists": exists,
                "is_absolute": path_obj.is_absolute(),
                "parent_exists": path_obj.parent.exists() if path_obj.parent != path_obj else True
            }

            if exists:
                is_file = path_obj.is_file()
                is_dir = path_obj.is_dir()

                details.update({
                    "is_file": is_file,
                    "is_dir": is_dir,
                    "size_bytes": path_obj.stat().st_size if is_file else None
                })

                if must_be_file and not is_file:
                    return ValidationResult(False, f"Path is not a file: {file_path}")

                if must_be_readable and not os.access(path_obj, os.R_OK):
                    return ValidationResult(False, f"Path is not readable: {file_path}")

            return ValidationResult(True, "Valid file path", details)

        except (OSError, ValueError) as e:
            return ValidationResult(False, f"Invalid file path: {e}")

    def validate_archive_file(self, archive: Union[str, Path],
                              extension: str = ".zip") -> ValidationResult:
        """Check that an archive path points at a readable file with the right extension."""
        result = self.validate_file_path(archive, must_exist=True, must_be_file=True,
                                         must_be_readable=True)
        if not result:
            return result

        if not str(archive).endswith(extension):
            return ValidationResult(False, f"Not a {extension} archive: {archive}", result.details)

        return ValidationResult(True, "Valid archive", result.details)

    def validate_mount_path(self, mount_path: Union[str, Path]) -> ValidationResult:
        """
        Check that a bootloader mount path is plausible.

        The volume itself is usually absent until the keyboard is reset, so
        only the parent directory has to exist. An existing path must be a
        directory.
        """
        result = self.validate_file_path(mount_path)
        if not result:
            return result

        details = result.details
        if details["exists"] and not details.get("is_dir"):
            return ValidationResult(False, f"Mount path is not a directory: {mount_path}", details)

        if not details["parent_exists"]:
            return ValidationResult(
                False,
                f"Parent of mount path does not exist, the volume can never appear there: {mount_path}",
                details
            )

        return ValidationResult(True, "Valid mount path", details)

    def validate_pattern(self, pattern: str) -> ValidationResult:
        """Check that a firmware filename pattern is a valid regular expression."""
        if not pattern:
            return ValidationResult(False, "Pattern cannot be empty")

        try:
            compiled = re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            return ValidationResult(False, f"Invalid pattern '{pattern}': {e}")

        return ValidationResult(True, "Valid pattern", {"compiled": compiled})


def get_validator() -> Validator:
    """Get a validator instance."""
    return Validator()
