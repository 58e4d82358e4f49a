"""
Timed progress bars for Keyboard Firmware Loader.

Settle, preparation and retry delays are shown as a bar filling up over the
delay. Every step waits on the cancel event, so a pause ends as soon as
cancellation is requested.
"""

import threading
from typing import Optional

from tqdm import tqdm


BAR_FORMAT = "{bar} {percentage:3.0f}% | {elapsed}<{remaining} | {desc}"


def pause(seconds: float, cancel_event: threading.Event,
          status: str = "", show_progress: bool = False, steps: int = 20) -> bool:
    """
    Wait for a number of seconds unless cancelled.

    Args:
        seconds: Total delay
        cancel_event: Event that interrupts the wait when set
        status: Text shown next to the bar
        show_progress: Render a tqdm bar on stderr
        steps: Number of bar updates over the delay

    Returns:
        True if the full delay elapsed, False if cancelled
    """
    if seconds <= 0:
        return not cancel_event.is_set()

    if not show_progress:
        return not cancel_event.wait(seconds)

    step_time = seconds / steps
    with tqdm(total=steps, desc=status, bar_format=BAR_FORMAT,
              ascii=" ░█", leave=False) as bar:
        for _ in range(steps):
            if cancel_event.wait(step_time):
                return False
            bar.update(1)
    return True


class AttemptProgress:
    """Tracks retry attempts and estimates time left until attempts run out."""

    def __init__(self, max_attempts: int, retry_delay: float):
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.attempt = 0
        self.elapsed = 0.0

    def record(self, attempt: int, elapsed: float) -> None:
        self.attempt = attempt
        self.elapsed = elapsed

    @property
    def remaining_attempts(self) -> int:
        return max(self.max_attempts - self.attempt, 0)

    def estimated_remaining(self) -> Optional[float]:
        """Worst-case seconds until the last attempt, from the average so far."""
        if self.attempt <= 0:
            return None
        per_attempt = self.elapsed / self.attempt
        return self.remaining_attempts * max(per_attempt, self.retry_delay)

    def describe(self) -> str:
        text = f"attempt {self.attempt}/{self.max_attempts}, {self.elapsed:.1f}s elapsed"
        estimate = self.estimated_remaining()
        if estimate is not None and self.remaining_attempts:
            text += f", up to {estimate:.1f}s left"
        return text
