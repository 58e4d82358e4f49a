"""
Bootloader device service for Keyboard Firmware Loader.

This module watches the configured mount path for a keyboard half in
bootloader mode and copies firmware images onto the mounted volume with
bounded, constant-delay retries. All waits go through a cancel event so an
interrupt ends them immediately.
"""

import os
import time
import shutil
import threading
import logging
from pathlib import Path
from typing import Optional, Callable, Union

from ..models.firmware import FirmwareAsset, KeyboardSide
from ..models.transfer import TransferResult, TransferStatus
from ..utils.progress import pause, AttemptProgress


class DeviceError(Exception):
    """Base class for bootloader device errors."""
    pass


class DeviceNotWritableError(DeviceError):
    """Raised when the bootloader volume is absent or read-only."""
    pass


class DeviceWaitTimeoutError(DeviceError):
    """Raised when the bootloader volume does not appear in time."""

    def __init__(self, mount_path: Path, timeout: float):
        self.mount_path = mount_path
        self.timeout = timeout
        super().__init__(
            f"No bootloader volume appeared at {mount_path} within {timeout:g} seconds; "
            f"check the configured mount path"
        )


class OperationCancelledError(Exception):
    """Raised when a wait or retry loop is cancelled by the user."""
    pass


def is_volume_ready(mount_path: Union[str, Path]) -> bool:
    """
    Check that a volume is mounted, listable and writable right now.

    Never raises; any failure reads as not ready.
    """
    try:
        if not os.path.exists(mount_path):
            return False
        os.listdir(mount_path)
        return os.access(mount_path, os.W_OK)
    except (OSError, ValueError):
        return False


def is_volume_writable(mount_path: Union[str, Path]) -> bool:
    """Check that a volume exists and accepts writes."""
    try:
        return os.path.isdir(mount_path) and os.access(mount_path, os.W_OK)
    except (OSError, ValueError):
        return False


class DeviceService:
    """
    Device Transfer Loop for one bootloader mount path.

    The same path is reused for both halves since only one half is connected
    at a time.
    """

    def __init__(self, mount_path: Union[str, Path],
                 poll_interval: float = 1.0,
                 settle_delay: float = 1.5,
                 prepare_delay: float = 0.5,
                 post_copy_delay: float = 1.0,
                 retry_delay: float = 1.0,
                 max_attempts: int = 5,
                 wait_timeout: Optional[float] = None,
                 show_progress: bool = False,
                 cancel_event: Optional[threading.Event] = None,
                 readiness_check: Optional[Callable[[Path], bool]] = None):
        """
        Initialize device service.

        Args:
            mount_path: Path where the bootloader volume is mounted
            poll_interval: Seconds between readiness checks
            settle_delay: Seconds to wait after the volume first reads as ready
            prepare_delay: Seconds to wait before each copy attempt
            post_copy_delay: Seconds to wait after a successful copy
            retry_delay: Constant seconds between failed copy attempts
            max_attempts: Copy attempts before giving up
            wait_timeout: Seconds before waiting for the volume fails (None = forever)
            show_progress: Render delays as progress bars
            cancel_event: Event that aborts waits and retries when set
            readiness_check: Replacement for is_volume_ready
        """
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")

        self.mount_path = Path(mount_path)
        self.poll_interval = poll_interval
        self.settle_delay = settle_delay
        self.prepare_delay = prepare_delay
        self.post_copy_delay = post_copy_delay
        self.retry_delay = retry_delay
        self.max_attempts = max_attempts
        self.wait_timeout = wait_timeout
        self.show_progress = show_progress
        self.cancel_event = cancel_event or threading.Event()
        self.readiness_check = readiness_check or is_volume_ready

        self.output_callback: Optional[Callable[[str], None]] = None

        self._logger = logging.getLogger(__name__)

    def set_output_callback(self, callback: Callable[[str], None]) -> None:
        """Set output callback for operator-facing messages."""
        self.output_callback = callback

    def _log_output(self, message: str, color: str = "", level: int = logging.INFO) -> None:
        self._logger.log(level, message, extra={"color": color})
        if self.output_callback:
            self.output_callback(message)

    def cancel(self) -> None:
        """Request cancellation of the current wait or retry loop."""
        self.cancel_event.set()

    def _pause(self, seconds: float, status: str = "") -> None:
        if not pause(seconds, self.cancel_event, status, self.show_progress):
            raise OperationCancelledError("Operation cancelled by user")

    def is_ready(self) -> bool:
        """Point-in-time readiness check of the mount path."""
        return self.readiness_check(self.mount_path)

    def wait_for_bootloader(self, side: KeyboardSide) -> None:
        """
        Block until the bootloader volume is mounted, listable and writable.

        The volume is checked every poll interval; after the first ready
        reading the call waits the settle delay and returns without probing
        again.

        Raises:
            OperationCancelledError: If the cancel event is set
            DeviceWaitTimeoutError: If wait_timeout is set and runs out
        """
        self._log_output(f"Waiting for {side.value} keyboard to be in bootloader mode...", "YELLOW")
        self._log_output(
            f"Please put the {side.value} keyboard in bootloader mode by pressing and holding "
            f"the reset button while plugging in the USB cable.", "BLUE"
        )

        started = time.monotonic()
        polls = 0

        while True:
            if self.cancel_event.is_set():
                raise OperationCancelledError("Operation cancelled by user")

            polls += 1
            if self.is_ready():
                self._log_output(f"{side.display_name} keyboard detected in bootloader mode!", "GREEN")
                self._logger.debug(f"Volume {self.mount_path} ready after {polls} poll(s)")
                self._pause(self.settle_delay)
                return

            if self.wait_timeout is not None and time.monotonic() - started >= self.wait_timeout:
                raise DeviceWaitTimeoutError(self.mount_path, self.wait_timeout)

            if self.cancel_event.wait(self.poll_interval):
                raise OperationCancelledError("Operation cancelled by user")

    def copy_firmware(self, asset: FirmwareAsset) -> TransferResult:
        """
        Copy a firmware image onto the bootloader volume, retrying on failure.

        Each attempt re-checks that the volume is writable, then copies the
        file under its own name, replacing any existing file.

        Returns:
            TransferResult with SUCCESS, or EXHAUSTED and the last error

        Raises:
            OperationCancelledError: If the cancel event is set during a delay
        """
        side = asset.side
        destination = self.mount_path / asset.filename
        tracker = AttemptProgress(self.max_attempts, self.retry_delay)
        started = time.monotonic()
        attempts = 0

        while True:
            attempts += 1
            try:
                self._log_output(f"Copying {side.value} firmware to keyboard...", "YELLOW")
                self._log_output("Ensuring the keyboard is ready for writing...", "BLUE")
                self._pause(self.prepare_delay, "Preparing keyboard for writing...")

                if not is_volume_writable(self.mount_path):
                    raise DeviceNotWritableError(f"Volume is not writable: {self.mount_path}")

                shutil.copyfile(asset.path, destination)

            except (OSError, DeviceError) as e:
                tracker.record(attempts, time.monotonic() - started)

                if attempts >= self.max_attempts:
                    self._log_output(
                        f"Error copying {side.value} firmware after {self.max_attempts} attempts: {e}",
                        "RED", logging.ERROR
                    )
                    return TransferResult(
                        status=TransferStatus.EXHAUSTED,
                        attempts=attempts,
                        last_error=e,
                        elapsed_seconds=time.monotonic() - started
                    )

                self._log_output(
                    f"Error copying {side.value} firmware ({tracker.describe()}): {e}. "
                    f"Retrying in {self.retry_delay:g} seconds...",
                    "YELLOW", logging.WARNING
                )
                self._pause(self.retry_delay, f"Retry attempt {attempts}/{self.max_attempts}...")
                continue

            self._log_output(f"{side.display_name} firmware copied successfully!", "GREEN")
            self._log_output("Waiting for keyboard to restart...", "BLUE")
            self._pause(self.post_copy_delay, "Restarting keyboard...")

            return TransferResult(
                status=TransferStatus.SUCCESS,
                attempts=attempts,
                destination=destination,
                elapsed_seconds=time.monotonic() - started
            )

    @classmethod
    def from_config(cls, config, cancel_event: Optional[threading.Event] = None) -> 'DeviceService':
        """Build the service from an AppConfig."""
        transfer = config.transfer
        return cls(
            mount_path=config.get_mount_path(),
            poll_interval=transfer.poll_interval,
            settle_delay=transfer.settle_delay,
            prepare_delay=transfer.prepare_delay,
            post_copy_delay=transfer.post_copy_delay,
            retry_delay=transfer.retry_delay,
            max_attempts=transfer.max_attempts,
            wait_timeout=transfer.wait_timeout,
            show_progress=config.ui.show_progress,
            cancel_event=cancel_event
        )
