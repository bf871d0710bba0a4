"""Data models for register values and commands."""

from .register import RegisterValue
from .commands import SetSpeedCommand, validate_speed

__all__ = [
    "RegisterValue",
    "SetSpeedCommand",
    "validate_speed",
]
