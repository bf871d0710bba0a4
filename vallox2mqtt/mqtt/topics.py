"""MQTT topic layout, relative to the device id prefix."""

from typing import Dict

from ..protocol import constants as c

FAN_SPEED = "fan/speed"
FAN_SPEED_SET = "fan/set"
TEMP_INCOMING_INSIDE = "temp/incoming/inside"
TEMP_INCOMING_OUTSIDE = "temp/incoming/outside"
TEMP_OUTGOING_INSIDE = "temp/outgoing/inside"
TEMP_OUTGOING_OUTSIDE = "temp/outgoing/outside"
AVAILABILITY = "availability"
RAW = "raw/{:x}"

TOPIC_MAP_OLD: Dict[int, str] = {
    c.FAN_SPEED: FAN_SPEED,
    c.TEMP_INCOMING_INSIDE: TEMP_INCOMING_INSIDE,
    c.TEMP_INCOMING_OUTSIDE: TEMP_INCOMING_OUTSIDE,
    c.TEMP_OUTGOING_INSIDE: TEMP_OUTGOING_INSIDE,
    c.TEMP_OUTGOING_OUTSIDE: TEMP_OUTGOING_OUTSIDE,
}

TOPIC_MAP_NEW: Dict[int, str] = {
    c.FAN_SPEED: FAN_SPEED,
    c.TEMP_INCOMING_INSIDE_NEW: TEMP_INCOMING_INSIDE,
    c.TEMP_INCOMING_OUTSIDE_NEW: TEMP_INCOMING_OUTSIDE,
    c.TEMP_OUTGOING_INSIDE_NEW: TEMP_OUTGOING_INSIDE,
    c.TEMP_OUTGOING_OUTSIDE_NEW: TEMP_OUTGOING_OUTSIDE,
}


def topic_map(new_protocol: bool) -> Dict[int, str]:
    """Registers with a named state topic for the given protocol variant."""
    return TOPIC_MAP_NEW if new_protocol else TOPIC_MAP_OLD


def raw_topic(register: int) -> str:
    return RAW.format(register)
