"""Frame class for Vallox RS-485 protocol packets."""

from .constants import DOMAIN, FRAME_LENGTH, QUERY_REGISTER


class Frame:
    """A single 6-byte Vallox bus frame."""

    def __init__(
        self,
        sender: int,
        receiver: int,
        register: int,
        value: int,
        domain: int = DOMAIN,
    ):
        """Initialize a frame.

        Args:
            sender: Sending address (0x11 mainboard, 0x2X panel)
            receiver: Receiving address (0x10/0x20 for broadcasts)
            register: Register number, 0 for a query
            value: Register value, or the queried register for a query
            domain: Protocol domain byte (always 1 on Digit SE)
        """
        self.domain = domain
        self.sender = sender
        self.receiver = receiver
        self.register = register
        self.value = value

    @property
    def checksum(self) -> int:
        """Calculate checksum as the low byte of the sum of the first five bytes."""
        return (self.domain + self.sender + self.receiver + self.register + self.value) & 0xFF

    @property
    def is_query(self) -> bool:
        """Check if this frame asks for a register value."""
        return self.register == QUERY_REGISTER

    def to_bytes(self) -> bytes:
        """Serialize the frame to bytes."""
        return bytes([
            self.domain,
            self.sender,
            self.receiver,
            self.register,
            self.value,
            self.checksum,
        ])

    @classmethod
    def from_bytes(cls, packet: bytes) -> "Frame":
        """Build a frame from raw bytes.

        Raises:
            ValueError: If the packet has the wrong length or checksum
        """
        if not cls.validate_checksum(packet):
            raise ValueError(f"Invalid frame: {packet.hex()}")
        return cls(
            domain=packet[0],
            sender=packet[1],
            receiver=packet[2],
            register=packet[3],
            value=packet[4],
        )

    @staticmethod
    def validate_checksum(packet: bytes) -> bool:
        """Validate a packet's checksum.

        Args:
            packet: Complete 6-byte frame

        Returns:
            True if checksum is valid, False otherwise
        """
        if len(packet) != FRAME_LENGTH:
            return False
        return (sum(packet[:5]) & 0xFF) == packet[5]

    def __repr__(self) -> str:
        return (
            f"Frame(sender=0x{self.sender:02x}, receiver=0x{self.receiver:02x}, "
            f"register=0x{self.register:02x}, value=0x{self.value:02x})"
        )
