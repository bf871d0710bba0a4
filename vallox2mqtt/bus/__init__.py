"""RS-485 bus access for the Vallox mainboard."""

from .buffer import FrameBuffer
from .connection import RS485Connection
from .driver import BusWriteDisabled, ValloxDevice

__all__ = ["FrameBuffer", "RS485Connection", "BusWriteDisabled", "ValloxDevice"]
