"""Vallox Digit SE RS-485 to MQTT bridge."""

__version__ = "0.3.0"
