"""
Flashing orchestration service for Keyboard Firmware Loader.

Runs the wait-then-copy sequence for each keyboard half in order and stops at
the first half whose copy runs out of attempts.
"""

import logging
from typing import Optional, Callable, Sequence

from .device_service import DeviceService
from ..models.firmware import FirmwarePair, KeyboardSide
from ..models.transfer import FlashReport, FlashStep


DEFAULT_SIDES = (KeyboardSide.LEFT, KeyboardSide.RIGHT)


class FlashService:
    """
    Coordinates flashing of both keyboard halves.

    Halves are handled strictly one after the other; a failed half ends the
    run and the remaining halves are marked as skipped.
    """

    def __init__(self, device_service: DeviceService,
                 sides: Sequence[KeyboardSide] = DEFAULT_SIDES):
        """
        Initialize flash service.

        Args:
            device_service: Device Transfer Loop for the bootloader mount path
            sides: Halves to flash, in order
        """
        if not sides:
            raise ValueError("At least one keyboard side is required")

        self.device_service = device_service
        self.sides = tuple(sides)
        self.step_callback: Optional[Callable[[FlashStep], None]] = None

        self._logger = logging.getLogger(__name__)

    def set_step_callback(self, callback: Callable[[FlashStep], None]) -> None:
        """Set callback invoked whenever a side's step changes state."""
        self.step_callback = callback

    def _notify(self, step: FlashStep) -> None:
        if self.step_callback:
            self.step_callback(step)

    def flash(self, firmware: FirmwarePair) -> FlashReport:
        """
        Flash each configured side with its firmware image.

        Returns:
            FlashReport; ``report.success`` is True only if every side copied

        Raises:
            OperationCancelledError: If the user cancels a wait or retry
            DeviceWaitTimeoutError: If a bootloader wait times out
        """
        report = FlashReport(steps=[FlashStep(side) for side in self.sides])

        for index, step in enumerate(report.steps):
            asset = firmware.for_side(step.side)

            step.start()
            self._notify(step)
            try:
                self.device_service.wait_for_bootloader(step.side)
                step.copying()
                self._notify(step)
                result = self.device_service.copy_firmware(asset)
            except Exception as e:
                step.fail(str(e))
                self._notify(step)
                raise

            step.finish(result)
            self._notify(step)

            if not result.success:
                self._logger.error(f"Flashing {step.side.value} half failed: {result}")
                for remaining in report.steps[index + 1:]:
                    remaining.skip(f"{step.side.value} half failed")
                    self._notify(remaining)
                return report

            self._logger.debug(f"{step.side.value} half {result}")

        return report
