"""
CycleSync - BLE cycling sensor driven video playback

Reads wheel revolutions from a Bluetooth Cycling Speed and Cadence sensor
and keeps a video playing at the rider's real-world speed.
"""

__version__ = "0.1.0"
__description__ = (
    "Syncs ride video playback to a BLE cycling speed and cadence sensor"
)

from .app import AppState, SyncCycleApp
from .csc import CscDecoder, decode_speed
from .speed import SpeedController

__all__ = ["AppState", "SyncCycleApp", "CscDecoder", "decode_speed", "SpeedController"]
