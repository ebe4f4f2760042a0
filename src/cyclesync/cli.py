"""
Command line entry point.

Loads the configuration, sets up logging and runs the application until
Ctrl+C / SIGTERM, or lists nearby CSC sensors with ``--scan``.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .app import SyncCycleApp
from .ble import discover_csc_sensors
from .config import LOG_LEVELS, Config, load_config
from .core import __description__, __version__
from .display import DashboardBackend, DisplayManager
from .errors import ConfigError, ResolutionError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"


def setup_logging(level: str, console: Optional[Console] = None) -> None:
    """Route log records through Rich so they render above the live dashboard.

    Args:
        level: One of debug, info, warning, error
        console: Console shared with the dashboard
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    if level != "debug":
        logging.getLogger("bleak").setLevel(logging.WARNING)


async def run_scan(timeout: float, display: DisplayManager) -> None:
    """List nearby CSC sensors."""
    display.print_info(f"Scanning {timeout:.0f}s for CSC sensors...")
    sensors = await discover_csc_sensors(timeout)
    display.print_sensors(sensors)


async def run_app(config: Config, display: DisplayManager) -> int:
    """Run the application and map its outcome to an exit code.

    Returns:
        0 on clean shutdown, 1 if resolution or a running component failed
    """
    backend = DashboardBackend(config.video.file_path, console=display.console)
    app = SyncCycleApp.from_config(config, backend)

    try:
        await app.run()
    except ResolutionError as e:
        logger.critical(f"BLE peripheral scan failed: {e}")
        return 1
    except Exception:
        # Already logged by the application as the shutdown cause
        logger.debug("Shutdown cause", exc_info=True)
        return 1

    logger.info("Application shutdown complete... goodbye!")
    return 0


def main() -> None:
    """Entry point for the cyclesync command."""
    parser = argparse.ArgumentParser(
        description=__description__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  cyclesync                          # Run with ./config.yaml
  cyclesync --config ride.yaml       # Run with another config file
  cyclesync --log-level debug        # Override app.log_level
  cyclesync --scan                   # List nearby CSC sensors
        """,
    )

    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to YAML config file (default: {DEFAULT_CONFIG_PATH})",
    )

    parser.add_argument(
        "--log-level", choices=LOG_LEVELS, help="Override app.log_level"
    )

    parser.add_argument(
        "--scan", action="store_true", help="List nearby CSC sensors and exit"
    )

    parser.add_argument(
        "--scan-timeout",
        type=float,
        default=10.0,
        help="Seconds to scan with --scan (default: 10)",
    )

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args()
    display = DisplayManager()

    if args.scan:
        setup_logging(args.log_level or "warning", display.console)
        try:
            asyncio.run(run_scan(args.scan_timeout, display))
        except KeyboardInterrupt:
            print("\nInterrupted")
            sys.exit(1)
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        return

    try:
        config = load_config(args.config)
    except ConfigError as e:
        display.print_error(str(e))
        sys.exit(1)

    setup_logging(args.log_level or config.app.log_level, display.console)
    display.print_banner()

    try:
        exit_code = asyncio.run(run_app(config, display))
    except KeyboardInterrupt:
        print("\nInterrupted")
        exit_code = 0
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
