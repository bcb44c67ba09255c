"""WitMotion-style BLE accelerometer exposed as a motion platform."""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from typing import Optional

from bleak import BleakClient, BleakError

from ..detector import AccelerationSample
from ..sensors import MotionPlatform
from .wtvb_parse import ACCEL_RANGE_G, g_to_ms2, parse_5561

logger = logging.getLogger(__name__)

_BLEAK_PLATFORMS = ("linux", "darwin", "win32")


class BleMotionSensor(MotionPlatform):
    """BLE client streaming acceleration notifications from a wearable sensor.

    Permission is granted once the device is connected and notifications are
    enabled. A link drop revokes it, which the supervisor picks up as a
    disconnection.
    """

    def __init__(
        self,
        mac_address: str,
        notify_uuid: str,
        adapter: str = "hci0",
        connect_timeout_sec: float = 10.0,
        range_g: float = ACCEL_RANGE_G,
    ) -> None:
        super().__init__()
        self.mac_address = mac_address
        self.notify_uuid = notify_uuid
        self.adapter = adapter
        self.connect_timeout_sec = connect_timeout_sec
        self.range_g = range_g

        self._client: Optional[BleakClient] = None
        self._connected = False

        self._last_sample_ns: Optional[int] = None
        self._sample_count = 0

    @property
    def supported(self) -> bool:
        return bool(self.mac_address) and sys.platform.startswith(_BLEAK_PLATFORMS)

    @property
    def has_permission(self) -> bool:
        return self._connected

    @property
    def sample_count(self) -> int:
        return self._sample_count

    def get_status(self) -> dict:
        """Get sensor status information."""
        return {
            "mac": self.mac_address,
            "connected": self._connected,
            "sample_count": self._sample_count,
            "last_sample_ns": self._last_sample_ns,
        }

    async def request_permission(self) -> bool:
        """Connect and enable notifications; False if the device refuses or is unreachable."""
        if self._connected:
            return True

        try:
            await self._connect()
        except (BleakError, asyncio.TimeoutError, OSError) as e:
            logger.warning(f"Motion sensor {self.mac_address} connection failed: {e}")
            await self._disconnect()
            return False
        return True

    async def close(self) -> None:
        self.remove_all_listeners()
        await self._disconnect()

    async def _connect(self) -> None:
        logger.info(f"Connecting to motion sensor at {self.mac_address}")

        self._client = BleakClient(
            self.mac_address,
            adapter=self.adapter,
            timeout=self.connect_timeout_sec,
            disconnected_callback=self._on_device_disconnect,
        )

        await self._client.connect()
        self._connected = True

        await self._client.start_notify(self.notify_uuid, self._handle_notification)

        logger.info(f"Motion sensor {self.mac_address} connected and notifications enabled")

    async def _disconnect(self) -> None:
        """Disconnect from the device."""
        client = self._client
        self._connected = False
        self._client = None

        if client:
            try:
                if client.is_connected:
                    await client.disconnect()
            except Exception as e:
                logger.warning(f"Error during motion sensor disconnect: {e}")
            else:
                logger.info(f"Motion sensor {self.mac_address} disconnected")

    def _on_device_disconnect(self, client: BleakClient) -> None:
        """Handle device disconnection callback from Bleak."""
        logger.warning(f"Motion sensor {self.mac_address} link lost")
        self._connected = False

    def _handle_notification(self, sender, data: bytearray) -> None:
        """Handle incoming BLE notifications from the sensor."""
        timestamp_ns = time.monotonic_ns()

        frames = parse_5561(bytes(data), self.range_g)
        if not frames:
            logger.debug(f"Motion sensor {self.mac_address} unparsed packet: {bytes(data).hex()}")
            return

        self._last_sample_ns = timestamp_ns
        for accel_g in frames:
            x, y, z = g_to_ms2(accel_g)
            self._sample_count += 1
            self._dispatch(AccelerationSample(x, y, z, timestamp_ns))
