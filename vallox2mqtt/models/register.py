"""Pydantic data models for Vallox register values."""

from pydantic import BaseModel, Field

from ..protocol.message import Frame
from ..protocol.values import decode_value


class RegisterValue(BaseModel):
    """A decoded register value received from the bus."""

    model_config = {"frozen": True}

    source: int = Field(
        default=0,
        ge=0,
        le=255,
        description="Address of the sending device"
    )
    destination: int = Field(
        default=0,
        ge=0,
        le=255,
        description="Address the frame was sent to"
    )
    address: int = Field(
        ...,
        ge=0,
        le=255,
        description="Register number"
    )
    value: int = Field(
        ...,
        description="Decoded, unit-scaled value"
    )
    raw_value: int = Field(
        ...,
        ge=0,
        le=255,
        description="Raw byte as transmitted on the bus"
    )

    @classmethod
    def from_frame(cls, frame: Frame) -> "RegisterValue":
        """Decode a bus frame carrying a register value."""
        return cls(
            source=frame.sender,
            destination=frame.receiver,
            address=frame.register,
            value=decode_value(frame.register, frame.value),
            raw_value=frame.value,
        )

    def __str__(self) -> str:
        return f"register 0x{self.address:02x}={self.value} (raw 0x{self.raw_value:02x})"
