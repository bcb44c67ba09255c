#!/usr/bin/env python3
"""Find BLE motion sensors and print the characteristics usable as notify_uuid."""

import argparse
import asyncio

from bleak import BleakClient, BleakScanner


async def scan(timeout: float, name_filter: str) -> None:
    print(f"Starting BLE scan for {timeout:.0f}s...")
    devices = await BleakScanner.discover(timeout=timeout)
    matches = [d for d in devices if not name_filter or (d.name or "").startswith(name_filter)]
    print(f"Found {len(matches)} of {len(devices)} devices")
    for d in matches:
        rssi = getattr(d, "rssi", None)
        print(f"{d.address}  | {d.name!r} | rssi={rssi}")


async def inspect(address: str) -> None:
    async with BleakClient(address) as client:
        for service in client.services:
            for char in service.characteristics:
                if "notify" in char.properties:
                    print(f"{char.uuid}  | {char.description} | service={service.uuid}")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--timeout", type=float, default=10.0)
    parser.add_argument("--name", default="", help="Only list devices whose name starts with this")
    parser.add_argument("--inspect", metavar="MAC", help="List notify characteristics of one device")
    args = parser.parse_args()

    if args.inspect:
        asyncio.run(inspect(args.inspect))
    else:
        asyncio.run(scan(args.timeout, args.name))


if __name__ == "__main__":
    main()
