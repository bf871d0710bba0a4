"""Vallox RS-485 protocol encoding and decoding."""

from .constants import (
    ALL_MAINBOARDS,
    ALL_PANELS,
    DEFAULT_PANEL_ADDRESS,
    FAN_SPEED,
    MAINBOARD_1,
)
from .message import Frame
from .values import decode_value, encode_speed, decode_speed, decode_temperature

__all__ = [
    "ALL_MAINBOARDS",
    "ALL_PANELS",
    "DEFAULT_PANEL_ADDRESS",
    "FAN_SPEED",
    "MAINBOARD_1",
    "Frame",
    "decode_value",
    "encode_speed",
    "decode_speed",
    "decode_temperature",
]
