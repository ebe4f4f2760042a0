"""
Playback loop that keeps the video in step with the rider.

At a fixed cadence the smoothed sensor speed is turned into a playback
rate and pushed to a PlaybackBackend. Below the speed threshold the video
is paused.
"""

import asyncio
import logging
from typing import Protocol

from .config import SpeedConfig, VideoConfig
from .speed import SpeedController

logger = logging.getLogger(__name__)


class PlaybackBackend(Protocol):
    """Surface the playback loop drives (a video player or a dashboard)."""

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def set_rate(self, rate: float) -> None: ...

    def show_osd(self, lines: list[str]) -> None: ...


class PlaybackController:
    """Drives a PlaybackBackend from the SpeedController's smoothed speed."""

    def __init__(
        self,
        video_config: VideoConfig,
        speed_config: SpeedConfig,
        backend: PlaybackBackend,
    ) -> None:
        self._video_config = video_config
        self._speed_config = speed_config
        self._backend = backend
        self._paused = False

    @property
    def is_paused(self) -> bool:
        return self._paused

    def playback_rate(self, speed: float) -> float:
        """Map a rider speed to a playback rate (1.0 = normal speed)."""
        return (
            speed / self._video_config.reference_speed
        ) * self._video_config.speed_multiplier

    def osd_lines(self, speed: float, rate: float) -> list[str]:
        osd = self._video_config.osd
        lines = []
        if osd.display_cycle_speed:
            lines.append(f"Cycle Speed: {speed:.1f} {self._speed_config.speed_units}")
        if osd.display_playback_speed:
            lines.append(f"Playback Speed: {rate:.2f}x")
        return lines

    async def run(
        self, stop_event: asyncio.Event, speed_controller: SpeedController
    ) -> None:
        """Update playback every video.update_interval_secs until stopped.

        Args:
            stop_event: Shared cancellation event
            speed_controller: Source of the smoothed speed

        Raises:
            Any error raised by the backend; the backend is stopped regardless.
        """
        interval = self._video_config.update_interval_secs
        logger.info(f"Starting video playback ({self._video_config.file_path or 'no file'})")
        self._backend.start()
        try:
            while not stop_event.is_set():
                self.update(speed_controller.current_smoothed_speed())
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    continue
        finally:
            self._backend.stop()
            logger.info("Video playback stopped")

    def update(self, speed: float) -> None:
        """Apply one smoothed speed reading to the backend."""
        if speed < self._speed_config.speed_threshold:
            rate = 0.0
            if not self._paused:
                logger.debug("Speed below threshold, pausing playback")
                self._backend.pause()
                self._paused = True
        else:
            rate = self.playback_rate(speed)
            if self._paused:
                logger.debug("Resuming playback")
                self._backend.resume()
                self._paused = False
            self._backend.set_rate(rate)

        logger.debug(
            f"Smoothed speed {speed:.2f} {self._speed_config.speed_units}, "
            f"playback rate {rate:.2f}x"
        )
        self._backend.show_osd(self.osd_lines(speed, rate))
