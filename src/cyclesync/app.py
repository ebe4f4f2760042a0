"""
Application orchestration.

Resolves the sensor, then runs BLE monitoring and video playback side by
side under one stop event. The first activity to fail (or an OS signal)
shuts both down; that first error is what ``SyncCycleApp.run`` raises.
"""

import asyncio
import logging
import signal
from enum import Enum
from typing import Any, Awaitable, Optional

from .ble import BLEController, CharacteristicHandle
from .config import Config
from .errors import ContextCancelled
from .playback import PlaybackBackend, PlaybackController
from .speed import SpeedController

logger = logging.getLogger(__name__)

# How long activities get to unwind after the stop event is set
SHUTDOWN_GRACE_SECONDS = 5.0


class AppState(Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


class SyncCycleApp:
    """Runs sensor monitoring and playback until shutdown."""

    def __init__(
        self,
        ble_controller: BLEController,
        speed_controller: SpeedController,
        playback_controller: PlaybackController,
        install_signal_handlers: bool = True,
    ) -> None:
        """Initialize application.

        Args:
            ble_controller: Resolves and monitors the sensor
            speed_controller: Shared smoothed speed
            playback_controller: Drives the video backend
            install_signal_handlers: Treat SIGINT/SIGTERM as a stop request
        """
        self.ble = ble_controller
        self.speed = speed_controller
        self.player = playback_controller
        self.state = AppState.IDLE
        self.stop_event = asyncio.Event()
        self._install_signal_handlers = install_signal_handlers

    @classmethod
    def from_config(cls, config: Config, backend: PlaybackBackend) -> "SyncCycleApp":
        """Wire up controllers from a validated Config."""
        return cls(
            BLEController(config.ble, config.speed),
            SpeedController(config.speed.smoothing_window),
            PlaybackController(config.video, config.speed, backend),
        )

    def stop(self) -> None:
        """Request shutdown; safe to call more than once."""
        self.stop_event.set()

    async def run(self) -> None:
        """Resolve the sensor and run until stopped or an activity fails.

        Raises:
            ResolutionError: The sensor could not be resolved; nothing was started
            Exception: The first error raised by monitoring or playback
        """
        if self.state is not AppState.IDLE:
            raise RuntimeError(f"Application already {self.state.value}")

        loop = asyncio.get_running_loop()
        signals = self._add_signal_handlers(loop)
        try:
            self._set_state(AppState.RESOLVING)
            try:
                handle = await self.ble.resolve_characteristic(self.stop_event)
            except ContextCancelled:
                logger.info("Shutdown requested while resolving the sensor")
                return

            try:
                self._set_state(AppState.RUNNING)
                await self._run_activities(handle)
            finally:
                await handle.close()
        finally:
            self.stop_event.set()
            for sig in signals:
                loop.remove_signal_handler(sig)
            self._set_state(AppState.TERMINATED)

    async def _run_activities(self, handle: CharacteristicHandle) -> None:
        completions: asyncio.Queue[tuple[str, Optional[Exception]]] = asyncio.Queue()

        async def supervise(name: str, activity: Awaitable[None]) -> None:
            error = None
            try:
                await activity
            except Exception as e:
                error = e
            completions.put_nowait((name, error))

        tasks = [
            asyncio.create_task(
                supervise("BLE monitor", self.ble.monitor(self.stop_event, handle, self.speed)),
                name="ble-monitor",
            ),
            asyncio.create_task(
                supervise("Video playback", self.player.run(self.stop_event, self.speed)),
                name="video-playback",
            ),
        ]

        first = asyncio.ensure_future(completions.get())
        stop_wait = asyncio.ensure_future(self.stop_event.wait())
        try:
            await asyncio.wait({first, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_wait.cancel()
            if not first.done():
                first.cancel()
            self._set_state(AppState.SHUTTING_DOWN)
            self.stop_event.set()
            await self._drain(tasks, completions)

        if not first.done() or first.cancelled():
            return

        name, error = first.result()
        if error is not None:
            logger.error(f"{name} failed, shutting down: {error}")
            raise error
        logger.info(f"{name} finished, shutting down")

    async def _drain(
        self,
        tasks: list[asyncio.Task],
        completions: asyncio.Queue,
    ) -> None:
        """Wait for activities to unwind; later completions are only logged."""
        _, pending = await asyncio.wait(tasks, timeout=SHUTDOWN_GRACE_SECONDS)
        for task in pending:
            logger.warning(f"{task.get_name()} did not stop in time, cancelling")
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        while not completions.empty():
            name, error = completions.get_nowait()
            if error is not None:
                logger.debug(f"Ignoring {name} error during shutdown: {error}")

    def _add_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> list[Any]:
        if not self._install_signal_handlers:
            return []

        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
                installed.append(sig)
            except (NotImplementedError, RuntimeError):
                # Not available on this platform/loop; KeyboardInterrupt still applies
                logger.debug(f"Cannot install handler for {sig.name}")
        return installed

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}, shutting down...")
        self.stop_event.set()

    def _set_state(self, state: AppState) -> None:
        if state is not self.state:
            logger.debug(f"Application state: {self.state.value} -> {state.value}")
            self.state = state
