"""
Rich-based console output and the live playback dashboard.

DisplayManager handles one-off console messages and tables. DashboardBackend
is the default PlaybackBackend: a live table showing what the video player
would be doing (status, playback rate and on-screen display text).
"""

import logging
from pathlib import Path
from typing import Any, Optional

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from .core import __version__

logger = logging.getLogger(__name__)


class DisplayManager:
    """Manages console output with Rich library."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize display manager.

        Args:
            console: Rich Console instance (creates one if None)
        """
        self.console = console or Console()

    def print_banner(self) -> None:
        """Print startup banner."""
        panel = Panel(
            f"[bold cyan]CycleSync {__version__}[/bold cyan]\n"
            "[dim]Press Ctrl+C to stop[/dim]",
            expand=False,
        )
        self.console.print(panel)

    def print_error(self, message: str) -> None:
        """Print red error message."""
        self.console.print(f"[red]Error:[/red] {message}", highlight=False)

    def print_info(self, message: str) -> None:
        """Print blue info message."""
        self.console.print(f"[cyan]Info:[/cyan] {message}", highlight=False)

    def print_sensors(self, sensors: list) -> None:
        """Display sensors found by a CSC scan.

        Args:
            sensors: (BLEDevice, AdvertisementData) pairs
        """
        if not sensors:
            self.print_info("No CSC sensors found. Spin the wheel to wake the sensor.")
            return

        table = Table(title="CSC Sensors", show_header=True, header_style="bold cyan")
        table.add_column("Name", style="cyan")
        table.add_column("Address", style="yellow")
        table.add_column("RSSI", style="magenta", justify="right")

        for device, adv in sensors:
            table.add_row(device.name or "Unknown", device.address, f"{adv.rssi} dBm")

        self.console.print(table)
        self.console.print("[dim]Set ble.sensor_address in the config file[/dim]")


class DashboardBackend:
    """PlaybackBackend rendering playback state as a live Rich table."""

    def __init__(self, video_path: str = "", console: Optional[Console] = None):
        self.console = console or Console()
        self.title = Path(video_path).name if video_path else "Ride"
        self._live: Optional[Live] = None
        self._data: dict[str, Any] = {
            "status": "STOPPED",
            "rate": 0.0,
            "osd": [],
        }

    @property
    def status(self) -> str:
        return self._data["status"]

    @property
    def rate(self) -> float:
        return self._data["rate"]

    def start(self) -> None:
        """Start live display refresh mode."""
        if self._live is not None:
            return

        self._data["status"] = "PLAYING"
        self._live = Live(
            self._create_table(), console=self.console, refresh_per_second=4
        )
        self._live.start()

    def stop(self) -> None:
        """Stop live display refresh mode."""
        self._data["status"] = "STOPPED"
        if self._live is not None:
            self._live.update(self._create_table())
            self._live.stop()
            self._live = None

    def pause(self) -> None:
        self._data["status"] = "PAUSED"
        self._refresh()

    def resume(self) -> None:
        self._data["status"] = "PLAYING"
        self._refresh()

    def set_rate(self, rate: float) -> None:
        self._data["rate"] = rate
        self._refresh()

    def show_osd(self, lines: list[str]) -> None:
        self._data["osd"] = list(lines)
        self._refresh()

    def _refresh(self) -> None:
        if self._live is None:
            return
        try:
            self._live.update(self._create_table())
        except Exception as e:
            logger.error(f"Live update error: {e}")

    def _create_table(self) -> Table:
        """Create the live display table.

        Returns:
            Rich Table with current playback state
        """
        table = Table(title=self.title, show_header=True, header_style="bold cyan")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="yellow")

        table.add_row("Status", self._data["status"])
        table.add_row("Rate", self.format_rate(self._data["rate"]))
        for line in self._data["osd"]:
            label, _, value = line.partition(": ")
            table.add_row(label, value)

        return table

    @staticmethod
    def format_rate(rate: float) -> str:
        """Format playback rate.

        Args:
            rate: Playback rate (1.0 = normal speed)

        Returns:
            Formatted rate string
        """
        return f"{rate:.2f}x"
