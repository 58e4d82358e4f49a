"""
Keyboard Firmware Loader - Main Application Entry Point

Picks a firmware archive, extracts the left and right images, then waits for
each keyboard half to mount in bootloader mode and copies its image over.
"""

import sys
import signal
import argparse
import logging
import threading
import traceback
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Sequence, Tuple

from keyboard_firmware_loader.config.settings import APP_DIR_NAME, AppConfig, LogLevel, load_config
from keyboard_firmware_loader.models.firmware import ArchiveCandidate, KeyboardSide
from keyboard_firmware_loader.models.transfer import FlashStep, StepStatus
from keyboard_firmware_loader.services.archive_service import ArchiveService, ArchiveError
from keyboard_firmware_loader.services.device_service import (
    DeviceService, DeviceWaitTimeoutError, OperationCancelledError
)
from keyboard_firmware_loader.services.flash_service import DEFAULT_SIDES, FlashService
from keyboard_firmware_loader.utils.logger import setup_logging
from keyboard_firmware_loader.utils.platform_utils import get_platform_log_dir
from keyboard_firmware_loader.utils.prompts import confirm, select_option
from keyboard_firmware_loader.utils.validators import get_validator


EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130

SIDE_CHOICES = ("left", "right", "both")


def resolve_sides(choice: str) -> Tuple[KeyboardSide, ...]:
    """Map a --side choice to the halves to flash, in order."""
    if choice == "both":
        return DEFAULT_SIDES
    side = KeyboardSide.from_name(choice)
    if side is None:
        raise ValueError(f"Unknown keyboard side: {choice}")
    return (side,)


class FirmwareLoaderApp:
    """Main application class for Keyboard Firmware Loader."""

    def __init__(self, config: Optional[AppConfig] = None, input_func=input):
        self.config = config
        self.logger: Optional[logging.Logger] = None
        self.cancel_event = threading.Event()
        self.input_func = input_func

        self.archive_service: Optional[ArchiveService] = None
        self.device_service: Optional[DeviceService] = None

    def initialize(self, log_file: Optional[Path] = None) -> None:
        """Set up logging and services from the loaded configuration."""
        if self.config is None:
            self.config = AppConfig()

        self.logger = setup_logging(
            colored=self.config.ui.colored_output,
            log_file=log_file,
            level=self.config.log_level,
            colors=self.config.ui.colors
        )
        self.logger.debug(f"Starting {self.config.app_name} v{self.config.version}")

        validator = get_validator()
        for pattern in (self.config.firmware.left_pattern, self.config.firmware.right_pattern):
            result = validator.validate_pattern(pattern)
            if not result:
                raise ValueError(result.message)

        mount_check = validator.validate_mount_path(self.config.get_mount_path())
        if not mount_check:
            self.logger.warning(mount_check.message)

        self.archive_service = ArchiveService.from_config(self.config)
        self.device_service = DeviceService.from_config(self.config, cancel_event=self.cancel_event)

    def _say(self, message: str, color: str = "") -> None:
        self.logger.info(message, extra={"color": color})

    @contextmanager
    def _interrupt_cancels(self):
        """Turn Ctrl+C into a cancel request for the device wait/retry loops."""
        def handler(signum, frame):
            self.cancel_event.set()

        installed = False
        previous = None
        try:
            previous = signal.signal(signal.SIGINT, handler)
            installed = True
        except ValueError:
            # Not on the main thread; leave the default handler in place
            pass

        try:
            yield
        finally:
            if installed:
                signal.signal(signal.SIGINT, previous or signal.default_int_handler)

    def list_archives(self) -> int:
        """Print candidate archives, newest first."""
        candidates = self.archive_service.list_archives()
        if not candidates:
            self.logger.error(f"No archive files found in {self.archive_service.archive_dir}.")
            return EXIT_FAILURE

        for candidate in candidates:
            self._say(candidate.label)
        return EXIT_SUCCESS

    def choose_archive(self, archive: Optional[str] = None) -> Optional[Path]:
        """Resolve the archive to flash, prompting when none was given."""
        if archive:
            check = get_validator().validate_archive_file(
                archive, self.config.firmware.archive_extension
            )
            if not check:
                self.logger.error(check.message)
                return None
            return Path(archive).expanduser()

        candidates = self.archive_service.list_archives()
        if not candidates:
            self.logger.error(f"No archive files found in {self.archive_service.archive_dir}.")
            return None

        chosen: ArchiveCandidate = select_option(
            "Select the firmware zip file:",
            candidates,
            labels=[candidate.label for candidate in candidates],
            input_func=self.input_func
        )
        return chosen.path

    def _report_step(self, step: FlashStep) -> None:
        if step.status == StepStatus.SKIPPED:
            self.logger.warning(f"Skipping {step.side.value} half: {step.error_message}")
        elif step.status == StepStatus.COMPLETED and step.result:
            self.logger.debug(
                f"{step.side.value} half done in {step.result.attempts} attempt(s), "
                f"{step.duration_seconds():.1f}s"
            )
        elif step.status == StepStatus.FAILED:
            self.logger.debug(f"{step.side.value} half failed after {step.duration_seconds():.1f}s")

    def run_flash(self, archive: Optional[str] = None,
                  sides: Sequence[KeyboardSide] = DEFAULT_SIDES,
                  delete_archive: Optional[bool] = None) -> int:
        """
        Run a complete flashing session.

        Args:
            archive: Archive path; prompts from the archive directory when None
            sides: Halves to flash, in order
            delete_archive: Answer to the deletion prompt; asks when None

        Returns:
            Process exit code

        Raises:
            OperationCancelledError: If the user cancels while waiting or retrying
        """
        self._say("Keyboard Firmware Loader", "BOLD")
        self._say("This tool will help you load firmware to your split keyboard.", "GRAY")

        archive_path = self.choose_archive(archive)
        if archive_path is None:
            return EXIT_FAILURE

        self._say("Extracting firmware files...", "YELLOW")
        try:
            firmware = self.archive_service.extract_firmware(archive_path)
        except ArchiveError as e:
            self.logger.error(f"Error: {e}")
            return EXIT_FAILURE

        self._say("Firmware files extracted successfully!", "GREEN")
        self._say(f"Left firmware: {firmware.left.filename}")
        self._say(f"Right firmware: {firmware.right.filename}")
        for asset in (firmware.left, firmware.right):
            self.logger.debug(f"{asset.filename}: {asset.size} bytes")

        flash_service = FlashService(self.device_service, sides)
        flash_service.set_step_callback(self._report_step)

        try:
            with self._interrupt_cancels():
                report = flash_service.flash(firmware)
        except DeviceWaitTimeoutError as e:
            self.logger.error(f"Error: {e}")
            return EXIT_FAILURE

        if not report.success:
            return EXIT_FAILURE

        self._say("Firmware loading completed successfully!", "GREEN")
        self._offer_archive_deletion(archive_path, delete_archive)
        return EXIT_SUCCESS

    def _offer_archive_deletion(self, archive_path: Path, delete_archive: Optional[bool]) -> None:
        """Ask whether to delete the consumed archive; never affects the outcome."""
        if delete_archive is None:
            delete_archive = confirm(
                "Do you want to delete the firmware zip file?",
                default=False,
                input_func=self.input_func
            )

        if delete_archive:
            self.archive_service.delete_archive(archive_path)
        else:
            self.logger.debug(f"Keeping archive {archive_path.name}")

    def cleanup(self) -> None:
        """Remove scratch directories."""
        if self.archive_service:
            self.archive_service.cleanup()


def positive_float(value: str) -> float:
    """argparse type for strictly positive seconds."""
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value}")
    return number


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the command line argument parser."""
    parser = argparse.ArgumentParser(
        prog="keyboard-firmware-loader",
        description="Copy split keyboard firmware from a build archive onto each half in bootloader mode",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                  # Pick an archive from Downloads, flash both halves
  %(prog)s --archive firmware.zip           # Flash a specific archive
  %(prog)s --side right                     # Reflash the right half only
  %(prog)s --list                           # Show candidate archives
  %(prog)s --mount-path /media/me/NICENANO  # Use a different bootloader volume
  %(prog)s --mount-path D:\\ --save-config   # Remember the bootloader volume

Press Ctrl+C while waiting for a keyboard to cancel (exit status 130).
        """)

    source_group = parser.add_argument_group('Firmware Source')
    source_group.add_argument(
        '-a', '--archive',
        metavar='PATH',
        help='Firmware archive to flash (skips the selection prompt)'
    )
    source_group.add_argument(
        '--archive-dir',
        metavar='DIR',
        help='Directory scanned for firmware archives'
    )
    source_group.add_argument(
        '-l', '--list',
        action='store_true',
        help='List candidate archives and exit'
    )

    device_group = parser.add_argument_group('Device')
    device_group.add_argument(
        '-m', '--mount-path',
        metavar='DIR',
        help='Mount point of the bootloader volume'
    )
    device_group.add_argument(
        '--side',
        choices=SIDE_CHOICES,
        default='both',
        help='Keyboard half to flash (default: both, left first)'
    )
    device_group.add_argument(
        '--wait-timeout',
        type=positive_float,
        metavar='SECONDS',
        help='Give up waiting for the bootloader volume after this many seconds'
    )

    archive_group = parser.add_argument_group('After Flashing')
    deletion = archive_group.add_mutually_exclusive_group()
    deletion.add_argument(
        '--delete-archive',
        action='store_true',
        help='Delete the archive after a successful run without asking'
    )
    deletion.add_argument(
        '--keep-archive',
        action='store_true',
        help='Keep the archive without asking'
    )

    config_group = parser.add_argument_group('Configuration')
    config_group.add_argument(
        '--config',
        metavar='CONFIG_FILE',
        help='Path to configuration file'
    )
    config_group.add_argument(
        '--save-config',
        action='store_true',
        help='Write the effective configuration (file, environment and options) to the config file and exit'
    )
    config_group.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    config_group.add_argument(
        '--no-color',
        action='store_true',
        help='Disable colored output'
    )
    config_group.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable progress bars'
    )

    return parser


def apply_arguments(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Override configuration values from command line arguments."""
    if args.archive_dir:
        config.paths.archive_dir = args.archive_dir

    if args.mount_path:
        config.paths.mount_path = args.mount_path

    if args.wait_timeout:
        config.transfer.wait_timeout = args.wait_timeout

    if args.debug:
        config.debug_mode = True
        config.log_level = LogLevel.DEBUG

    if args.no_color:
        config.ui.colored_output = False

    if args.no_progress:
        config.ui.show_progress = False

    return config


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main application entry point."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    config = apply_arguments(load_config(args.config), args)
    app = FirmwareLoaderApp(config)
    exit_code = EXIT_SUCCESS

    try:
        app.initialize(log_file=get_platform_log_dir(APP_DIR_NAME) / config.paths.log_file)

        if args.save_config:
            target = Path(args.config) if args.config else config.get_config_file_path()
            config.save_to_file(target)
            app.logger.info(f"Configuration saved to {target}")
        elif args.list:
            exit_code = app.list_archives()
        else:
            delete_archive = True if args.delete_archive else (False if args.keep_archive else None)
            exit_code = app.run_flash(
                archive=args.archive,
                sides=resolve_sides(args.side),
                delete_archive=delete_archive
            )

    except (KeyboardInterrupt, OperationCancelledError):
        if app.logger:
            app.logger.warning("Cancelled by user")
        else:
            print("\nCancelled by user")
        exit_code = EXIT_CANCELLED

    except Exception as e:
        if app.logger:
            app.logger.error(f"Unexpected error: {e}")
            app.logger.debug(traceback.format_exc())
        else:
            print(f"Unexpected error: {e}")
        exit_code = EXIT_FAILURE

    finally:
        app.cleanup()

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
