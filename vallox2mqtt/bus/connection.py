"""Async RS-485 serial connection for the Vallox bus."""

import asyncio
import logging
from typing import AsyncIterator, Optional

import serial_asyncio

from ..config import SerialConfig
from ..protocol.message import Frame
from .buffer import FrameBuffer

logger = logging.getLogger(__name__)


class RS485Connection:
    """Async RS-485 serial connection manager.

    Handles connecting to the serial port, sending frames,
    and yielding complete frames from the byte stream.
    """

    def __init__(self, config: SerialConfig):
        """Initialize the connection manager.

        Args:
            config: Serial port configuration
        """
        self.config = config
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._buffer = FrameBuffer()
        self._connected = False

    @property
    def connected(self) -> bool:
        """Check if connected to serial port."""
        return self._connected

    async def connect(self) -> None:
        """Open the serial port connection.

        Raises:
            SerialException: If connection fails
        """
        logger.info(f"Connecting to {self.config.device} at {self.config.baudrate} baud")

        try:
            self._reader, self._writer = await serial_asyncio.open_serial_connection(
                url=self.config.device,
                baudrate=self.config.baudrate,
                bytesize=8,
                parity="N",
                stopbits=1,
            )
            self._connected = True
            logger.info(f"Connected to {self.config.device}")

        except Exception as e:
            logger.error(f"Failed to connect to {self.config.device}: {e}")
            raise

    async def disconnect(self) -> None:
        """Close the serial port connection."""
        if self._writer:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except Exception as e:
                logger.debug(f"Error closing serial port: {e}")
            self._writer = None

        self._reader = None
        self._connected = False
        self._buffer.clear()
        logger.info("Disconnected from serial port")

    async def send(self, frame: Frame) -> None:
        """Send a frame over the serial connection.

        Args:
            frame: Frame to send

        Raises:
            ConnectionError: If not connected
        """
        if not self._writer or not self._connected:
            raise ConnectionError("Not connected to serial port")

        data = frame.to_bytes()
        logger.debug(f"Sending {frame}: {data.hex()}")
        self._writer.write(data)
        await self._writer.drain()

    async def frames(self) -> AsyncIterator[Frame]:
        """Yield frames from the bus until the connection is closed.

        Raises:
            ConnectionError: If not connected or the port reaches EOF
        """
        if not self._reader or not self._connected:
            raise ConnectionError("Not connected to serial port")

        while self._connected and self._reader:
            data = await self._reader.read(64)
            if not data:
                raise ConnectionError(f"Serial port {self.config.device} closed")

            self._buffer.add_bytes(data)
            while True:
                frame = self._buffer.get_frame()
                if frame is None:
                    break
                yield frame

    @property
    def stats(self) -> dict:
        """Get connection statistics."""
        return {
            "connected": self._connected,
            "device": self.config.device,
            **self._buffer.stats,
        }
