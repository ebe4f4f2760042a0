"""
BLE access to a Cycling Speed and Cadence sensor.

Resolves the CSC Measurement characteristic of the configured peripheral
(scan, connect, service and characteristic discovery) and monitors its
notifications, feeding decoded speeds into a SpeedController.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from .config import BLEConfig, SpeedConfig
from .core import CSC_MEASUREMENT_UUID, CSC_SERVICE_UUID
from .csc import CscDecoder
from .errors import (
    CharacteristicNotFound,
    ConnectionFailed,
    ConnectionLost,
    ContextCancelled,
    ResolutionError,
    ScanTimeout,
    ServiceNotFound,
    SubscriptionFailed,
)
from .speed import SpeedController

logger = logging.getLogger(__name__)

# Failures bleak surfaces from scanning, connecting and GATT operations
BLE_ERRORS = (BleakError, asyncio.TimeoutError, OSError)

T = TypeVar("T")


@dataclass
class CharacteristicHandle:
    """Resolved CSC Measurement characteristic and the connection it lives on.

    ``disconnected`` is set by the client's disconnect callback; once set the
    characteristic can no longer be used. ``closing`` marks a disconnect we
    asked for, so the callback does not report it as a lost link.
    """

    address: str
    client: Any
    characteristic: BleakGATTCharacteristic
    disconnected: asyncio.Event = field(default_factory=asyncio.Event)
    closing: asyncio.Event = field(default_factory=asyncio.Event)

    async def close(self) -> None:
        """Disconnect from the peripheral, logging (not raising) failures."""
        await _disconnect(self.client, self.closing)


async def _disconnect(client: Any, closing: asyncio.Event) -> None:
    closing.set()
    try:
        if client.is_connected:
            await client.disconnect()
            logger.info("Disconnected from BLE peripheral")
    except BLE_ERRORS as e:
        logger.warning(f"Disconnect failed: {e}")


async def _wait_any(*events: asyncio.Event) -> None:
    waiters = [asyncio.ensure_future(event.wait()) for event in events]
    try:
        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for waiter in waiters:
            waiter.cancel()


async def _until_stopped(aw: Awaitable[T], stop_event: asyncio.Event, step: str) -> T:
    """Await ``aw`` unless ``stop_event`` is set first.

    Raises:
        ContextCancelled: If the stop event fires before ``aw`` completes, or
            together with a failure of ``aw``
    """
    task = asyncio.ensure_future(aw)
    stop_wait = asyncio.ensure_future(stop_event.wait())
    try:
        await asyncio.wait({task, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        stop_wait.cancel()
        if not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    if task.cancelled() or (stop_event.is_set() and task.exception() is not None):
        raise ContextCancelled(f"Cancelled while {step}")
    return task.result()


class BLEController:
    """Resolves and monitors the configured CSC sensor."""

    def __init__(
        self,
        ble_config: BLEConfig,
        speed_config: SpeedConfig,
        scanner_factory: Callable[..., Any] = BleakScanner,
        client_factory: Callable[..., Any] = BleakClient,
    ) -> None:
        """Initialize controller.

        Args:
            ble_config: Sensor address and timeouts
            speed_config: Wheel circumference and speed units for decoding
            scanner_factory: BleakScanner-compatible class
            client_factory: BleakClient-compatible class
        """
        self._ble_config = ble_config
        self._speed_config = speed_config
        self._scanner_factory = scanner_factory
        self._client_factory = client_factory

    async def resolve_characteristic(
        self, stop_event: asyncio.Event
    ) -> CharacteristicHandle:
        """Scan for the sensor, connect and locate the CSC Measurement characteristic.

        Args:
            stop_event: Shared cancellation event

        Returns:
            Handle to the characteristic on a live connection

        Raises:
            ScanTimeout: Sensor not seen within ble.scan_timeout_secs
            ConnectionFailed: Connecting to the sensor failed
            ServiceNotFound: Sensor has no CSC service
            CharacteristicNotFound: CSC service has no measurement characteristic
            ContextCancelled: stop_event was set during resolution
        """
        device = await self._scan_for_peripheral(stop_event)

        logger.info(f"Connecting to BLE peripheral {device.address}")
        disconnected = asyncio.Event()
        closing = asyncio.Event()

        def on_disconnect(_client: Any) -> None:
            if closing.is_set():
                logger.debug(f"BLE peripheral {device.address} disconnected")
            else:
                logger.warning(f"BLE peripheral {device.address} disconnected unexpectedly")
            disconnected.set()

        client = self._client_factory(
            device,
            disconnected_callback=on_disconnect,
            timeout=self._ble_config.connect_timeout_secs,
        )

        try:
            await _until_stopped(client.connect(), stop_event, "connecting")
        except ContextCancelled:
            await _disconnect(client, closing)
            raise
        except BLE_ERRORS as e:
            raise ConnectionFailed(
                f"Failed to connect to {device.address}: {e}"
            ) from e

        logger.info("BLE peripheral connected")

        try:
            if stop_event.is_set():
                raise ContextCancelled("Cancelled during service discovery")
            characteristic = self._discover_characteristic(client)
        except (ResolutionError, ContextCancelled):
            await _disconnect(client, closing)
            raise

        return CharacteristicHandle(
            address=device.address,
            client=client,
            characteristic=characteristic,
            disconnected=disconnected,
            closing=closing,
        )

    async def monitor(
        self,
        stop_event: asyncio.Event,
        handle: CharacteristicHandle,
        speed_controller: SpeedController,
    ) -> None:
        """Feed CSC notifications into the speed controller until stopped.

        Args:
            stop_event: Shared cancellation event
            handle: Resolved characteristic
            speed_controller: Receives one instantaneous speed per notification

        Raises:
            SubscriptionFailed: Notifications could not be enabled
            ConnectionLost: Sensor disconnected before stop_event was set
        """
        decoder = CscDecoder(
            self._speed_config.wheel_circumference_mm,
            self._speed_config.speed_units,
        )

        def on_notification(_sender: BleakGATTCharacteristic, data: bytearray) -> None:
            # Runs on the BLE delivery path: decode and update only, no I/O
            speed_controller.update_speed(decoder.process(bytes(data)))

        logger.info("Starting real-time monitoring of CSC notifications...")
        try:
            await handle.client.start_notify(handle.characteristic, on_notification)
        except BLE_ERRORS as e:
            raise SubscriptionFailed(f"Failed to enable notifications: {e}") from e

        try:
            await _wait_any(stop_event, handle.disconnected)
        finally:
            await self._stop_notify(handle)

        if not stop_event.is_set():
            raise ConnectionLost(f"Lost connection to {handle.address}")
        logger.info("Stopped monitoring CSC notifications")

    async def _scan_for_peripheral(self, stop_event: asyncio.Event) -> BLEDevice:
        """Scan until the configured address advertises.

        Returns:
            The matching device
        """
        target = self._ble_config.sensor_address.upper()
        timeout = self._ble_config.scan_timeout_secs
        found: asyncio.Future[BLEDevice] = asyncio.get_running_loop().create_future()

        def on_detection(device: BLEDevice, _adv: AdvertisementData) -> None:
            if device.address.upper() == target and not found.done():
                found.set_result(device)

        scanner = self._scanner_factory(detection_callback=on_detection)
        logger.info(f"Scanning for BLE peripheral {target} (timeout {timeout}s)...")
        try:
            await scanner.start()
        except BLE_ERRORS as e:
            raise ResolutionError(f"BLE scan failed to start: {e}") from e

        try:
            device = await _until_stopped(
                asyncio.wait_for(found, timeout=timeout), stop_event, "scanning"
            )
        except asyncio.TimeoutError:
            raise ScanTimeout(
                f"Sensor {target} not found within {timeout}s"
            ) from None
        finally:
            await self._stop_scan(scanner)

        logger.info(f"Found BLE peripheral {device.address}")
        return device

    async def _stop_scan(self, scanner: Any) -> None:
        try:
            await scanner.stop()
        except BLE_ERRORS as e:
            logger.warning(f"Failed to stop scan: {e}")

    def _discover_characteristic(self, client: Any) -> BleakGATTCharacteristic:
        logger.info(f"Discovering CSC service {CSC_SERVICE_UUID}")
        try:
            service = client.services.get_service(CSC_SERVICE_UUID)
        except BleakError as e:
            raise ServiceNotFound(f"CSC service discovery failed: {e}") from e
        if service is None:
            raise ServiceNotFound(f"CSC service {CSC_SERVICE_UUID} not found")
        logger.info(f"Found CSC service {service.uuid}")

        logger.info(f"Discovering CSC characteristic {CSC_MEASUREMENT_UUID}")
        characteristic = service.get_characteristic(CSC_MEASUREMENT_UUID)
        if characteristic is None:
            raise CharacteristicNotFound(
                f"CSC Measurement characteristic {CSC_MEASUREMENT_UUID} not found"
            )
        logger.info(f"Found CSC characteristic {characteristic.uuid}")

        if "notify" not in characteristic.properties:
            logger.warning("CSC characteristic does not advertise notify support")
        return characteristic

    async def _stop_notify(self, handle: CharacteristicHandle) -> None:
        if not handle.client.is_connected:
            return
        try:
            await handle.client.stop_notify(handle.characteristic)
        except BLE_ERRORS as e:
            logger.warning(f"Failed to stop notifications: {e}")


async def discover_csc_sensors(
    timeout: float = 10.0,
    scanner_factory: Any = BleakScanner,
) -> list[tuple[BLEDevice, AdvertisementData]]:
    """Scan for nearby devices advertising the CSC service.

    Args:
        timeout: Scan duration in seconds
        scanner_factory: BleakScanner-compatible class

    Returns:
        (device, advertisement) pairs, strongest signal first
    """
    logger.info(f"Scanning {timeout:.0f}s for CSC sensors...")
    devices = await scanner_factory.discover(
        timeout=timeout, return_adv=True, service_uuids=[CSC_SERVICE_UUID]
    )
    return sorted(devices.values(), key=lambda pair: pair[1].rssi, reverse=True)
