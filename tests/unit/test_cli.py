"""Command line entry point and exit codes."""

import io
import logging

import pytest
from rich.console import Console

from cyclesync import cli
from cyclesync.display import DisplayManager
from cyclesync.errors import ConnectionLost, ScanTimeout


class StubApp:
    def __init__(self, error=None):
        self.error = error

    async def run(self):
        if self.error:
            raise self.error


def _display() -> DisplayManager:
    return DisplayManager(console=Console(file=io.StringIO(), force_terminal=False))


@pytest.fixture
def stub_app(monkeypatch):
    holder = {}

    def from_config(config, backend):
        holder["backend"] = backend
        return holder["app"]

    monkeypatch.setattr(cli.SyncCycleApp, "from_config", staticmethod(from_config))
    return holder


@pytest.mark.asyncio
async def test_clean_shutdown_exits_zero(config, stub_app):
    stub_app["app"] = StubApp()
    assert await cli.run_app(config, _display()) == 0
    assert stub_app["backend"].title == "ride.mp4"


@pytest.mark.asyncio
async def test_resolution_failure_is_fatal(config, stub_app, caplog):
    stub_app["app"] = StubApp(ScanTimeout("Sensor not found within 1s"))
    with caplog.at_level(logging.CRITICAL):
        assert await cli.run_app(config, _display()) == 1
    assert "Sensor not found" in caplog.text


@pytest.mark.asyncio
async def test_component_failure_exits_one(config, stub_app):
    stub_app["app"] = StubApp(ConnectionLost("sensor gone"))
    assert await cli.run_app(config, _display()) == 1


def test_setup_logging_level():
    cli.setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG
    cli.setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger("bleak").level == logging.WARNING


def test_missing_config_exits_one(monkeypatch, tmp_path):
    monkeypatch.setattr("sys.argv", ["cyclesync", "--config", str(tmp_path / "none.yaml")])
    with pytest.raises(SystemExit) as excinfo:
        cli.main()
    assert excinfo.value.code == 1


def test_scan_lists_sensors(monkeypatch, capsys):
    from conftest import FakeAdvertisement, FakeDevice

    async def fake_discover(timeout):
        return [(FakeDevice("F1:42:D8:DE:35:16", "Wahoo SPEED"), FakeAdvertisement(-50))]

    monkeypatch.setattr(cli, "discover_csc_sensors", fake_discover)
    monkeypatch.setattr("sys.argv", ["cyclesync", "--scan", "--scan-timeout", "1"])
    cli.main()

    assert "F1:42:D8:DE:35:16" in capsys.readouterr().out
