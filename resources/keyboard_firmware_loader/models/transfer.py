"""
Transfer state for Keyboard Firmware Loader.

This module holds the outcome of copying a firmware image onto a bootloader
volume and the per-side bookkeeping of a complete flashing run.
"""

from pathlib import Path
from typing import Optional, List
from dataclasses import dataclass, field
from enum import Enum
from datetime import datetime

from .firmware import KeyboardSide


class TransferStatus(Enum):
    """Result of a copy-with-retry operation."""
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


class StepStatus(Enum):
    """Status of one side within a flashing run."""
    PENDING = "pending"
    WAITING = "waiting"
    COPYING = "copying"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class TransferResult:
    """Outcome of copying a firmware file to a device."""
    status: TransferStatus
    attempts: int
    destination: Optional[Path] = None
    last_error: Optional[BaseException] = None
    elapsed_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == TransferStatus.SUCCESS

    def __bool__(self) -> bool:
        return self.success

    def __str__(self) -> str:
        if self.success:
            return f"copied to {self.destination} in {self.attempts} attempt(s)"
        return f"gave up after {self.attempts} attempt(s): {self.last_error}"


@dataclass
class FlashStep:
    """Progress of flashing one keyboard half."""
    side: KeyboardSide
    status: StepStatus = StepStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    result: Optional[TransferResult] = None
    error_message: Optional[str] = None

    def start(self) -> None:
        """Mark step as waiting for the device."""
        self.status = StepStatus.WAITING
        self.started_at = datetime.now()

    def copying(self) -> None:
        self.status = StepStatus.COPYING

    def finish(self, result: TransferResult) -> None:
        """Record the transfer result."""
        self.result = result
        self.completed_at = datetime.now()
        if result.success:
            self.status = StepStatus.COMPLETED
            self.error_message = None
        else:
            self.status = StepStatus.FAILED
            self.error_message = str(result.last_error)

    def fail(self, error_message: str) -> None:
        self.status = StepStatus.FAILED
        self.completed_at = datetime.now()
        self.error_message = error_message

    def skip(self, reason: str = "") -> None:
        self.status = StepStatus.SKIPPED
        self.error_message = reason

    def is_complete(self) -> bool:
        return self.status == StepStatus.COMPLETED

    def duration_seconds(self) -> Optional[float]:
        """Get step duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None


@dataclass
class FlashReport:
    """Per-side results of a flashing run."""
    steps: List[FlashStep] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.steps) and all(step.is_complete() for step in self.steps)

    def step_for(self, side: KeyboardSide) -> Optional[FlashStep]:
        for step in self.steps:
            if step.side is side:
                return step
        return None

    def failed_step(self) -> Optional[FlashStep]:
        """Get the first failed step, if any."""
        for step in self.steps:
            if step.status == StepStatus.FAILED:
                return step
        return None
