"""Frame buffer for RS-485 byte stream assembly."""

import logging
from typing import Optional

from ..protocol.constants import DOMAIN, FRAME_LENGTH
from ..protocol.message import Frame

logger = logging.getLogger(__name__)


class FrameBuffer:
    """Buffer for assembling complete frames from the byte stream.

    The bus delivers bytes in arbitrary chunks and has no preamble, so
    frames are found by scanning for a domain byte followed by five bytes
    with a matching checksum.

    Frame format:
        [DOMAIN, SENDER, RECEIVER, REGISTER, VALUE, CHECKSUM]
    """

    MAX_BUFFER = 1024

    def __init__(self):
        """Initialize an empty frame buffer."""
        self._buffer = bytearray()
        self._stats = {
            "frames_received": 0,
            "bytes_received": 0,
            "bytes_discarded": 0,
            "buffer_overflows": 0,
        }

    def add_bytes(self, data: bytes) -> None:
        """Add received bytes to the buffer.

        Args:
            data: Bytes received from serial port
        """
        self._buffer.extend(data)
        self._stats["bytes_received"] += len(data)

        if len(self._buffer) > self.MAX_BUFFER:
            logger.warning("Buffer overflow, clearing old data")
            self._stats["buffer_overflows"] += 1
            self._buffer = self._buffer[-FRAME_LENGTH:]

    def get_frame(self) -> Optional[Frame]:
        """Extract a complete frame from the buffer if available.

        Returns:
            Frame if available, None otherwise
        """
        while len(self._buffer) >= FRAME_LENGTH:
            if self._buffer[0] == DOMAIN:
                packet = bytes(self._buffer[:FRAME_LENGTH])
                if Frame.validate_checksum(packet):
                    del self._buffer[:FRAME_LENGTH]
                    self._stats["frames_received"] += 1
                    return Frame.from_bytes(packet)
                logger.debug(f"Checksum mismatch, resyncing: {packet.hex()}")

            # Not a frame start, drop one byte and rescan
            del self._buffer[0]
            self._stats["bytes_discarded"] += 1

        return None

    def clear(self) -> None:
        """Clear the buffer."""
        self._buffer.clear()

    @property
    def stats(self) -> dict:
        """Get buffer statistics."""
        return self._stats.copy()

    @property
    def pending_bytes(self) -> int:
        """Get number of bytes pending in buffer."""
        return len(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)
