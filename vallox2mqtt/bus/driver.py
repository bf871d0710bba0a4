"""Vallox device facade over the RS-485 connection."""

import logging
from typing import AsyncIterator

from ..protocol.constants import (
    ALL_MAINBOARDS,
    ALL_PANELS,
    FAN_SPEED,
    MAINBOARD_1,
    QUERY_REGISTER,
)
from ..protocol.message import Frame
from ..protocol.values import encode_speed
from ..models.register import RegisterValue
from .connection import RS485Connection

logger = logging.getLogger(__name__)


class BusWriteDisabled(Exception):
    """Raised when a write is attempted while writes are disabled."""


class ValloxDevice:
    """Register-level view of a Vallox mainboard.

    Acts as a control panel on the bus: receives panel broadcasts and
    answers to its own queries, and can query registers and set the
    fan speed.
    """

    def __init__(
        self,
        connection: RS485Connection,
        panel_address: int,
        enable_write: bool = False,
    ):
        """Initialize the device.

        Args:
            connection: Serial connection to the bus
            panel_address: Address this bridge uses on the bus
            enable_write: Whether speed changes may be sent
        """
        self.connection = connection
        self.panel_address = panel_address
        self.enable_write = enable_write

    async def events(self) -> AsyncIterator[RegisterValue]:
        """Yield register values seen on the bus.

        Query frames and frames sent by this bridge are skipped.
        """
        async for frame in self.connection.frames():
            if frame.is_query or frame.sender == self.panel_address:
                continue
            yield RegisterValue.from_frame(frame)

    def is_for_me(self, event: RegisterValue) -> bool:
        """Check if a value was broadcast to panels or sent to this bridge."""
        return event.destination in (ALL_PANELS, self.panel_address)

    async def query(self, register: int) -> None:
        """Ask the mainboard for the current value of a register."""
        logger.debug(f"Querying register 0x{register:02x}")
        await self.connection.send(Frame(
            sender=self.panel_address,
            receiver=MAINBOARD_1,
            register=QUERY_REGISTER,
            value=register,
        ))

    async def set_speed(self, speed: int) -> None:
        """Write a new fan speed to all mainboards and panels.

        Raises:
            BusWriteDisabled: If writes are not enabled
            ValueError: If speed is outside 1-8
        """
        if not self.enable_write:
            raise BusWriteDisabled(f"Write disabled, not setting speed {speed}")

        mask = encode_speed(speed)
        logger.info(f"Setting fan speed to {speed}")
        for receiver in (ALL_MAINBOARDS, ALL_PANELS):
            await self.connection.send(Frame(
                sender=self.panel_address,
                receiver=receiver,
                register=FAN_SPEED,
                value=mask,
            ))
