"""Bleak stand-ins and shared fixtures for unit tests (no BLE adapter needed)."""

import asyncio
import struct
from functools import partial
from typing import Optional

import pytest

from cyclesync.config import Config
from cyclesync.core import CSC_MEASUREMENT_UUID, CSC_SERVICE_UUID

SENSOR_ADDRESS = "F1:42:D8:DE:35:16"


def csc_payload(revolutions: int, event_time: int, flags: int = 0x01) -> bytes:
    """Build a CSC Measurement payload with wheel data."""
    return struct.pack("<BIH", flags, revolutions, event_time)


class FakeDevice:
    def __init__(self, address: str, name: Optional[str] = None):
        self.address = address
        self.name = name


class FakeAdvertisement:
    def __init__(self, rssi: int = -60):
        self.rssi = rssi


class FakeScanner:
    """BleakScanner look-alike that 'advertises' ``devices`` after ``delay``."""

    instances: list = []

    def __init__(
        self,
        detection_callback=None,
        devices=(),
        delay: float = 0.01,
        start_error: Optional[Exception] = None,
        stop_error: Optional[Exception] = None,
    ):
        self.detection_callback = detection_callback
        self.devices = list(devices)
        self.delay = delay
        self.start_error = start_error
        self.stop_error = stop_error
        self.started = False
        self.stopped = False
        self._handle = None
        FakeScanner.instances.append(self)

    async def start(self):
        if self.start_error:
            raise self.start_error
        self.started = True
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._advertise)

    async def stop(self):
        self.stopped = True
        if self._handle:
            self._handle.cancel()
        if self.stop_error:
            raise self.stop_error

    def _advertise(self):
        for device in self.devices:
            if self.stopped:
                return
            self.detection_callback(device, FakeAdvertisement())


class FakeCharacteristic:
    def __init__(self, uuid: str = CSC_MEASUREMENT_UUID, properties=("notify",)):
        self.uuid = uuid
        self.properties = list(properties)


class FakeService:
    def __init__(self, uuid: str = CSC_SERVICE_UUID, characteristics=None):
        self.uuid = uuid
        if characteristics is None:
            characteristics = [FakeCharacteristic()]
        self.characteristics = characteristics

    def get_characteristic(self, uuid: str):
        for characteristic in self.characteristics:
            if characteristic.uuid == uuid:
                return characteristic
        return None


class FakeServiceCollection:
    def __init__(self, services):
        self.services = services

    def get_service(self, uuid: str):
        for service in self.services:
            if service.uuid == uuid:
                return service
        return None


class FakeClient:
    """BleakClient look-alike with hooks to push notifications or drop the link."""

    def __init__(
        self,
        device,
        disconnected_callback=None,
        timeout: float = 10.0,
        services=None,
        connect_error: Optional[Exception] = None,
        connect_delay: float = 0.0,
        notify_error: Optional[Exception] = None,
    ):
        self.device = device
        self.disconnected_callback = disconnected_callback
        self.timeout = timeout
        self.services = FakeServiceCollection(
            [FakeService()] if services is None else services
        )
        self.connect_error = connect_error
        self.connect_delay = connect_delay
        self.notify_error = notify_error
        self.is_connected = False
        self.notify_callback = None
        self.stop_notify_calls = 0

    async def connect(self):
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.connect_error:
            raise self.connect_error
        self.is_connected = True

    async def disconnect(self):
        if self.is_connected:
            self.is_connected = False
            if self.disconnected_callback:
                self.disconnected_callback(self)

    async def start_notify(self, characteristic, callback):
        if self.notify_error:
            raise self.notify_error
        self.notify_callback = callback
        self.characteristic = characteristic

    async def stop_notify(self, characteristic):
        self.stop_notify_calls += 1
        self.notify_callback = None

    def notify(self, payload: bytes):
        self.notify_callback(self.characteristic, bytearray(payload))

    def drop(self):
        """Simulate the sensor going out of range."""
        self.is_connected = False
        if self.disconnected_callback:
            self.disconnected_callback(self)


class ClientFactory:
    """Creates FakeClients with fixed options and remembers them."""

    def __init__(self, **options):
        self.options = options
        self.clients: list[FakeClient] = []

    def __call__(self, device, **kwargs):
        client = FakeClient(device, **kwargs, **self.options)
        self.clients.append(client)
        return client

    @property
    def last(self) -> FakeClient:
        return self.clients[-1]


def scanner_with(*devices, **options):
    return partial(FakeScanner, devices=devices, **options)


async def wait_until(predicate, timeout_s: float = 2.0, step_s: float = 0.005) -> bool:
    """Poll *predicate* until it returns truthy, or *timeout_s* expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_s
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(step_s)
    return False


@pytest.fixture(autouse=True)
def _reset_scanners():
    FakeScanner.instances.clear()
    yield
    FakeScanner.instances.clear()


@pytest.fixture
def config() -> Config:
    return Config.from_dict(
        {
            "ble": {"sensor_address": SENSOR_ADDRESS, "scan_timeout_secs": 1},
            "speed": {
                "smoothing_window": 1,
                "wheel_circumference_mm": 2105,
                "speed_units": "km/h",
            },
            "video": {"file_path": "ride.mp4", "update_interval_secs": 0.01},
        }
    )
