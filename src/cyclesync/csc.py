"""
CSC Measurement decoding.

Turns raw CSC Measurement notification payloads into an instantaneous
wheel speed. Payload layout (little-endian):

    byte 0      flags (bit 0 = wheel revolution data present)
    bytes 1-4   cumulative wheel revolutions, uint32
    bytes 5-6   last wheel event time, uint16, 1/1024 s units

Decoding state is held per monitoring session, never process-wide.
"""

import struct
from dataclasses import dataclass
from typing import Optional

from .core import (
    SPEED_CONVERSION,
    WHEEL_DATA_LENGTH,
    WHEEL_EVENT_TIME_MODULUS,
    WHEEL_REVOLUTION_DATA_PRESENT,
    WHEEL_REVOLUTIONS_MODULUS,
)

_WHEEL_DATA = struct.Struct("<BIH")


@dataclass(frozen=True)
class CscSample:
    """Wheel fields of one CSC Measurement notification."""

    flags: int
    cumulative_wheel_revolutions: int
    last_wheel_event_time: int

    @classmethod
    def parse(cls, payload: bytes) -> Optional["CscSample"]:
        """Extract wheel revolution data from a notification payload.

        Args:
            payload: Raw notification bytes

        Returns:
            CscSample, or None if the payload carries no usable wheel data
        """
        if len(payload) < 1:
            return None

        flags = payload[0]
        if not flags & WHEEL_REVOLUTION_DATA_PRESENT or len(payload) < WHEEL_DATA_LENGTH:
            return None

        flags, revolutions, event_time = _WHEEL_DATA.unpack_from(payload)
        return cls(flags, revolutions, event_time)


@dataclass(frozen=True)
class DecoderState:
    """Previous wheel sample; an event time of 0 means no baseline yet."""

    previous_wheel_revolutions: int = 0
    previous_wheel_event_time: int = 0


def _signed_revolution_delta(current: int, previous: int) -> int:
    delta = (current - previous) % WHEEL_REVOLUTIONS_MODULUS
    if delta >= WHEEL_REVOLUTIONS_MODULUS // 2:
        delta -= WHEEL_REVOLUTIONS_MODULUS
    return delta


def decode_speed(
    payload: bytes,
    state: DecoderState,
    wheel_circumference_mm: float,
    units: str,
) -> tuple[float, DecoderState]:
    """Decode one notification into an instantaneous speed.

    Pure function of its arguments: the returned state replaces ``state``
    for the next call.

    Args:
        payload: Raw CSC Measurement payload
        state: Previous wheel sample of this session
        wheel_circumference_mm: Wheel circumference in millimeters
        units: "km/h" or "mph"

    Returns:
        (speed, new_state). Speed is 0.0 when the payload has no wheel data,
        when it establishes the session baseline, or when no time elapsed.
    """
    sample = CscSample.parse(payload)
    if sample is None:
        return 0.0, state

    current = DecoderState(
        previous_wheel_revolutions=sample.cumulative_wheel_revolutions,
        previous_wheel_event_time=sample.last_wheel_event_time,
    )

    if state.previous_wheel_event_time == 0:
        return 0.0, current

    time_diff = (
        sample.last_wheel_event_time - state.previous_wheel_event_time
    ) % WHEEL_EVENT_TIME_MODULUS
    if time_diff == 0:
        # Hold the baseline until the event time advances
        return 0.0, state

    rev_diff = _signed_revolution_delta(
        sample.cumulative_wheel_revolutions, state.previous_wheel_revolutions
    )
    speed = rev_diff * wheel_circumference_mm * SPEED_CONVERSION[units] / time_diff
    return speed, current


class CscDecoder:
    """Stateful decoder owned by a single monitoring session."""

    def __init__(self, wheel_circumference_mm: float, units: str) -> None:
        if units not in SPEED_CONVERSION:
            raise ValueError(f"Unsupported speed units: {units}")
        self.wheel_circumference_mm = wheel_circumference_mm
        self.units = units
        self.state = DecoderState()

    def process(self, payload: bytes) -> float:
        """Decode a notification and advance this session's state.

        Args:
            payload: Raw CSC Measurement payload

        Returns:
            Instantaneous speed in the configured units
        """
        speed, self.state = decode_speed(
            payload, self.state, self.wheel_circumference_mm, self.units
        )
        return speed
