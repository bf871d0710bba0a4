"""Fan speed command debounce state machine.

Rapid speed requests (a user dragging a slider, several automations firing
at once) are coalesced into a single bus write of the last requested value.
A request is only written once it has been left alone for the cooldown
period; until then each write attempt is re-armed after a short delay.

The machine has no clock or timers of its own: the dispatcher passes the
current time in and arms the retry timers it asks for.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingSpeedCommand:
    """A requested speed waiting to be written."""
    speed: int
    requested_at: float


@dataclass(frozen=True)
class ConfirmedSpeed:
    """The speed the device is believed to run at."""
    speed: int
    confirmed_at: float


class WriteAction(Enum):
    """Outcome of a write attempt."""
    IDLE = "idle"
    WAIT = "wait"
    SATISFIED = "satisfied"
    WRITE = "write"


@dataclass(frozen=True)
class WriteDecision:
    action: WriteAction
    speed: Optional[int] = None


class SpeedDebouncer:
    """Coalesce speed requests into debounced bus writes.

    States are Idle (no pending command) and PendingWrite.
    """

    def __init__(self, cooldown: float = 5.0, grace: float = 10.0):
        """Initialize the debouncer.

        Args:
            cooldown: Seconds a request must stay unchanged before it is written
            grace: Seconds a confirmed speed suppresses identical requests
        """
        self.cooldown = cooldown
        self.grace = grace
        self.pending: Optional[PendingSpeedCommand] = None
        self.confirmed: Optional[ConfirmedSpeed] = None
        self._attempt_armed = False

    @property
    def idle(self) -> bool:
        return self.pending is None

    def is_recently_confirmed(self, speed: int, now: float) -> bool:
        """Check if the device is believed to be at speed within the grace window."""
        return (
            self.confirmed is not None
            and self.confirmed.speed == speed
            and now - self.confirmed.confirmed_at < self.grace
        )

    def request(self, speed: int, now: float) -> bool:
        """Register a speed request.

        Returns:
            True if the caller must arm a write attempt
        """
        if self.idle and self.is_recently_confirmed(speed, now):
            logger.debug(f"Speed {speed} already confirmed, ignoring request")
            return False

        if self.pending is not None and self.pending.speed != speed:
            logger.debug(f"Speed request {self.pending.speed} superseded by {speed}")
        self.pending = PendingSpeedCommand(speed=speed, requested_at=now)

        if self._attempt_armed:
            return False
        self._attempt_armed = True
        return True

    def attempt(self, now: float) -> WriteDecision:
        """Decide what an armed write attempt does.

        WAIT means the caller re-arms the attempt after the retry delay.
        WRITE means the caller writes the speed, then queries it back.
        """
        pending = self.pending
        if pending is None:
            self._attempt_armed = False
            return WriteDecision(WriteAction.IDLE)

        if now - pending.requested_at < self.cooldown:
            return WriteDecision(WriteAction.WAIT, pending.speed)

        self.pending = None
        self._attempt_armed = False

        if self.is_recently_confirmed(pending.speed, now):
            logger.debug(f"Speed {pending.speed} already confirmed, skipping write")
            return WriteDecision(WriteAction.SATISFIED, pending.speed)

        # Provisional until the device echoes the new speed back
        self.confirmed = ConfirmedSpeed(speed=pending.speed, confirmed_at=now)
        return WriteDecision(WriteAction.WRITE, pending.speed)

    def confirm(self, speed: int, now: float) -> None:
        """Record a speed reported by the device."""
        self.confirmed = ConfirmedSpeed(speed=speed, confirmed_at=now)
