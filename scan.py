import asyncio

from cyclesync.ble import discover_csc_sensors


async def main():
    """Scan for CSC sensors and print their addresses."""
    print("Scanning for CSC sensors (spin the wheel to wake yours)...")
    sensors = await discover_csc_sensors(timeout=10.0)
    print(f"\nFound {len(sensors)} sensor(s):\n")
    for device, adv in sensors:
        print(f"{device.address}  {device.name or 'Unknown'}  {adv.rssi} dBm")


if __name__ == "__main__":
    asyncio.run(main())
