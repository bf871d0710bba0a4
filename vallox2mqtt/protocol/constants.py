"""Vallox Digit SE RS-485 protocol constants."""

# Frame layout: [domain, sender, receiver, register, value, checksum]
FRAME_LENGTH = 6
DOMAIN = 0x01

# Bus addresses
ALL_MAINBOARDS = 0x10
MAINBOARD_1 = 0x11
ALL_PANELS = 0x20
DEFAULT_PANEL_ADDRESS = 0x22

# A register byte of zero marks a query; the value byte names the register
QUERY_REGISTER = 0x00

# Registers
FAN_SPEED = 0x29

TEMP_INCOMING_OUTSIDE = 0x32
TEMP_OUTGOING_OUTSIDE = 0x33
TEMP_OUTGOING_INSIDE = 0x34
TEMP_INCOMING_INSIDE = 0x35

# Newer mainboard firmware reports the same temperatures on these registers
TEMP_INCOMING_OUTSIDE_NEW = 0x58
TEMP_OUTGOING_INSIDE_NEW = 0x5A
TEMP_INCOMING_INSIDE_NEW = 0x5B
TEMP_OUTGOING_OUTSIDE_NEW = 0x5C

OLD_TEMPERATURE_REGISTERS = frozenset({
    TEMP_INCOMING_OUTSIDE,
    TEMP_OUTGOING_OUTSIDE,
    TEMP_OUTGOING_INSIDE,
    TEMP_INCOMING_INSIDE,
})

NEW_TEMPERATURE_REGISTERS = frozenset({
    TEMP_INCOMING_OUTSIDE_NEW,
    TEMP_OUTGOING_INSIDE_NEW,
    TEMP_INCOMING_INSIDE_NEW,
    TEMP_OUTGOING_OUTSIDE_NEW,
})

TEMPERATURE_REGISTERS = OLD_TEMPERATURE_REGISTERS | NEW_TEMPERATURE_REGISTERS

# Fan speed limits
SPEED_MIN = 1
SPEED_MAX = 8

# Fan speed is transmitted as a bit mask, one bit per step
SPEED_MASKS = {speed: (1 << speed) - 1 for speed in range(SPEED_MIN, SPEED_MAX + 1)}

# NTC sensor lookup table, raw byte -> degrees Celsius
TEMPERATURE_TABLE = (
    -74, -70, -66, -62, -59, -56, -54, -52, -50, -48,
    -47, -46, -44, -43, -42, -41, -40, -39, -38, -37,
    -36, -35, -34, -33, -33, -32, -31, -30, -30, -29,
    -28, -28, -27, -27, -26, -25, -25, -24, -24, -23,
    -23, -22, -22, -21, -21, -20, -20, -19, -19, -19,
    -18, -18, -17, -17, -16, -16, -16, -15, -15, -14,
    -14, -14, -13, -13, -12, -12, -12, -11, -11, -11,
    -10, -10, -9, -9, -9, -8, -8, -8, -7, -7,
    -7, -6, -6, -6, -5, -5, -5, -4, -4, -4,
    -3, -3, -3, -2, -2, -2, -1, -1, -1, -1,
    0, 0, 0, 1, 1, 1, 2, 2, 2, 3,
    3, 3, 4, 4, 4, 5, 5, 5, 5, 6,
    6, 6, 7, 7, 7, 8, 8, 8, 9, 9,
    9, 10, 10, 10, 11, 11, 11, 12, 12, 12,
    13, 13, 13, 14, 14, 14, 15, 15, 15, 16,
    16, 16, 17, 17, 18, 18, 18, 19, 19, 19,
    20, 20, 21, 21, 21, 22, 22, 22, 23, 23,
    24, 24, 24, 25, 25, 26, 26, 27, 27, 27,
    28, 28, 29, 29, 30, 30, 31, 31, 32, 32,
    33, 33, 34, 34, 35, 35, 36, 36, 37, 37,
    38, 38, 39, 40, 40, 41, 41, 42, 43, 43,
    44, 45, 45, 46, 47, 48, 48, 49, 50, 51,
    52, 53, 53, 54, 55, 56, 57, 59, 60, 61,
    62, 63, 65, 66, 68, 69, 71, 73, 75, 77,
    79, 81, 82, 86, 90, 93, 97, 100, 100, 100,
    100, 100, 100, 100, 100, 100,
)
