"""Command validation models for MQTT input validation.

These Pydantic models validate incoming MQTT command payloads before
they are handed to the dispatcher.
"""

from pydantic import BaseModel, Field, field_validator

from ..protocol.constants import SPEED_MIN, SPEED_MAX


class SetSpeedCommand(BaseModel):
    """Validate fan speed change request."""

    speed: int = Field(
        ...,
        ge=SPEED_MIN,
        le=SPEED_MAX,
        description=f"Fan speed step ({SPEED_MIN}-{SPEED_MAX})"
    )

    @field_validator('speed', mode='before')
    @classmethod
    def parse_speed(cls, v):
        """Parse an integer literal (decimal, 0x, 0o or 0b prefixed)."""
        if isinstance(v, bytes):
            v = v.decode("utf-8")
        if isinstance(v, str):
            return int(v.strip(), 0)
        return v


def validate_speed(payload) -> SetSpeedCommand:
    """Validate a speed command payload.

    Args:
        payload: Raw payload from MQTT (str or bytes)

    Returns:
        Validated command model

    Raises:
        pydantic.ValidationError: If payload is not a speed 1-8
    """
    return SetSpeedCommand(speed=payload)
