"""Session clock and break reminders."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from backend.config import settings

logger = logging.getLogger(__name__)


@dataclass
class SessionClock:
    """Elapsed study time with a periodic, advisory break reminder.

    The reminder fires once per crossed interval boundary. ``last_boundary``
    remembers the highest boundary already raised, so a coarse tick that
    jumps several intervals still raises only one reminder.
    """

    interval_seconds: int = settings.break_reminder_interval_seconds
    elapsed_seconds: int = 0
    last_boundary: int = 0
    reminder_pending: bool = False

    def __post_init__(self) -> None:
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

    def tick(self, seconds: int = 1) -> bool:
        """Advance by ``seconds``. Returns True if a reminder was raised."""
        if seconds < 0:
            raise ValueError("clock cannot run backwards")
        return self.advance_to(self.elapsed_seconds + seconds)

    def advance_to(self, elapsed_seconds: int) -> bool:
        """Move the clock forward to an absolute elapsed time.

        Earlier values are ignored; elapsed time only increases.
        """
        if elapsed_seconds <= self.elapsed_seconds:
            return False
        self.elapsed_seconds = elapsed_seconds
        boundary = elapsed_seconds // self.interval_seconds
        if boundary > self.last_boundary:
            self.last_boundary = boundary
            self.reminder_pending = True
            logger.info("Break reminder after %d seconds of study", elapsed_seconds)
            return True
        return False

    def dismiss(self) -> None:
        self.reminder_pending = False


async def run_clock(clock: SessionClock, stop: asyncio.Event, period: float = 1.0) -> None:
    """Tick ``clock`` once per ``period`` seconds until ``stop`` is set."""
    while not stop.is_set():
        try:
            await asyncio.wait_for(stop.wait(), timeout=period)
        except TimeoutError:
            clock.tick()
