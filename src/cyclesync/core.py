"""
Core constants for the Cycling Speed and Cadence (CSC) BLE profile.
"""

# CSC service and CSC Measurement characteristic (16-bit UUIDs 0x1816 / 0x2A5B)
CSC_SERVICE_UUID = "00001816-0000-1000-8000-00805f9b34fb"
CSC_MEASUREMENT_UUID = "00002a5b-0000-1000-8000-00805f9b34fb"

# CSC Measurement flags
WHEEL_REVOLUTION_DATA_PRESENT = 0x01

# flags (1) + cumulative wheel revolutions (4) + last wheel event time (2)
WHEEL_DATA_LENGTH = 7

# Wheel event time is in units of 1/1024 s and wraps at 16 bits
WHEEL_EVENT_TIME_MODULUS = 0x10000
WHEEL_REVOLUTIONS_MODULUS = 0x100000000

# Speed units and the factor turning mm per 1/1024 s into that unit
UNITS_KMH = "km/h"
UNITS_MPH = "mph"
SPEED_CONVERSION = {
    UNITS_KMH: 3.6,
    UNITS_MPH: 2.23694,
}

# Application metadata
__version__ = "0.1.0"
__description__ = (
    "Syncs ride video playback to a BLE cycling speed and cadence sensor"
)
