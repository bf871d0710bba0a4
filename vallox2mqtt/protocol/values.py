"""Register value decoding and encoding."""

import logging
from typing import Optional

from .constants import (
    FAN_SPEED,
    SPEED_MASKS,
    SPEED_MIN,
    SPEED_MAX,
    TEMPERATURE_REGISTERS,
    TEMPERATURE_TABLE,
)

logger = logging.getLogger(__name__)

_MASK_TO_SPEED = {mask: speed for speed, mask in SPEED_MASKS.items()}


def decode_speed(raw: int) -> Optional[int]:
    """Convert a fan speed bit mask to a speed step.

    Returns:
        Speed 1-8, or None if the mask is not a valid speed
    """
    return _MASK_TO_SPEED.get(raw)


def encode_speed(speed: int) -> int:
    """Convert a speed step to the bit mask sent on the bus.

    Raises:
        ValueError: If speed is outside 1-8
    """
    if speed not in SPEED_MASKS:
        raise ValueError(f"Speed must be {SPEED_MIN}-{SPEED_MAX}, got {speed}")
    return SPEED_MASKS[speed]


def decode_temperature(raw: int) -> int:
    """Convert an NTC sensor byte to degrees Celsius."""
    return TEMPERATURE_TABLE[raw & 0xFF]


def decode_value(register: int, raw: int) -> int:
    """Decode a raw register byte to its unit-scaled value.

    Registers without a known scaling are passed through unchanged.
    """
    if register == FAN_SPEED:
        speed = decode_speed(raw)
        if speed is None:
            logger.debug(f"Unexpected fan speed mask 0x{raw:02x}")
            return raw
        return speed
    if register in TEMPERATURE_REGISTERS:
        return decode_temperature(raw)
    return raw
