"""
Speed smoothing shared between the BLE notification path and playback.
"""

import threading
from collections import deque


class SpeedController:
    """Moving average over the last ``window_size`` speed samples.

    ``update_speed`` may be called from the BLE stack's delivery thread while
    ``current_smoothed_speed`` is read from the playback loop, so both go
    through one lock.
    """

    def __init__(self, window_size: int) -> None:
        if window_size < 1:
            raise ValueError(f"Smoothing window must be >= 1, got {window_size}")
        self._window: deque[float] = deque(maxlen=window_size)
        self._smoothed = 0.0
        self._lock = threading.Lock()

    @property
    def window_size(self) -> int:
        return self._window.maxlen or 0

    def update_speed(self, speed: float) -> None:
        """Add an instantaneous speed sample, evicting the oldest when full.

        Args:
            speed: Instantaneous speed in the configured units
        """
        with self._lock:
            self._window.append(float(speed))
            self._smoothed = sum(self._window) / len(self._window)

    def current_smoothed_speed(self) -> float:
        """Get the mean of the current window (0.0 before any sample)."""
        with self._lock:
            return self._smoothed
