"""Sensor permission handshake and bounded reconnection."""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional

from .detector import AccelerationSample
from .logs import NdjsonLogger
from .notify import Notifier
from .sensors import (
    HandshakeTimeoutError,
    MotionPlatform,
    PermissionDeniedError,
    SampleCallback,
    SensorError,
    SensorUnsupportedError,
)
from .storage import AccelerometerSessionState, SessionStateRepository

logger = logging.getLogger(__name__)


class SensorState(Enum):
    UNREQUESTED = "unrequested"
    REQUESTING = "requesting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    UNSUPPORTED = "unsupported"


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class PermissionSupervisor:
    """Owns the sensor connection lifecycle.

    A handshake asks the platform for permission, installs the sample
    listener and waits for the first sample. Losing permission on a
    connected session triggers up to ``max_reconnect_attempts`` handshakes
    spaced by ``reconnect_delay_sec``; after that only a manual retry
    through ``request_permissions`` restarts the sensor.
    """

    def __init__(
        self,
        platform: MotionPlatform,
        session_repo: SessionStateRepository,
        on_sample: SampleCallback,
        notifier: Optional[Notifier] = None,
        handshake_timeout_sec: float = 5.0,
        max_reconnect_attempts: int = 3,
        reconnect_delay_sec: float = 1.0,
        event_log: Optional[NdjsonLogger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock_ms: Callable[[], int] = _wall_clock_ms,
    ) -> None:
        self.platform = platform
        self.session_repo = session_repo
        self.on_sample = on_sample
        self.notifier = notifier
        self.handshake_timeout_sec = handshake_timeout_sec
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_delay_sec = reconnect_delay_sec
        self.event_log = event_log
        self._sleep = sleep
        self._clock_ms = clock_ms

        self.session = session_repo.load()
        self._state = SensorState.UNREQUESTED
        self._reconnect_attempts = 0
        self._manual_retry_available = False
        self._busy = False
        self._last_error: Optional[str] = None

    @property
    def state(self) -> SensorState:
        return self._state

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def manual_retry_available(self) -> bool:
        return self._manual_retry_available

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def get_status(self) -> dict:
        return {
            "state": self._state.value,
            "reconnect_attempts": self._reconnect_attempts,
            "manual_retry_available": self._manual_retry_available,
            "last_error": self._last_error,
            "session": self.session.to_dict(),
        }

    async def request_permissions(self) -> bool:
        """Explicit (user) request to start the sensor; also the manual retry path."""
        if self._busy:
            return False

        self._reconnect_attempts = 0
        self._manual_retry_available = False

        self._busy = True
        try:
            success = await self._start(reconnecting=False)
        finally:
            self._busy = False

        if not success:
            await self._release()
            self._set_state(SensorState.UNSUPPORTED)
            self._manual_retry_available = True
            if self.notifier:
                self.notifier.error(
                    "Could not start the accelerometer. Check the sensor and permissions and try again."
                )
        return success

    async def resume(self) -> bool:
        """Reattach to a sensor that was initialized in an earlier session."""
        if not self.session.is_initialized:
            return await self.request_permissions()

        if self.session.has_permission:
            self._update_session(has_permission=False)
        self._set_state(SensorState.DISCONNECTED)
        return await self.reconnect()

    async def check_connection(self) -> bool:
        """Detect loss of permission on a connected sensor and try to reconnect.

        Returns True while the sensor is connected.
        """
        if self._state is not SensorState.CONNECTED:
            return False
        if self.platform.has_permission:
            return True

        logger.warning("Motion sensor permission lost")
        self.platform.remove_all_listeners()
        self._update_session(has_permission=False)
        self._set_state(SensorState.DISCONNECTED)
        return await self.reconnect()

    async def reconnect(self) -> bool:
        """Run the bounded automatic reconnection loop."""
        if self._busy:
            return False

        self._busy = True
        try:
            while self._reconnect_attempts < self.max_reconnect_attempts:
                if self._reconnect_attempts > 0:
                    await self._sleep(self.reconnect_delay_sec)

                logger.info(
                    f"Reconnect attempt {self._reconnect_attempts + 1}/{self.max_reconnect_attempts}"
                )
                if await self._start(reconnecting=True):
                    self._reconnect_attempts = 0
                    logger.info("Reconnection succeeded")
                    return True
                self._reconnect_attempts += 1
        finally:
            self._busy = False

        await self._release()
        self._set_state(SensorState.DISCONNECTED)
        self._manual_retry_available = True
        if self.event_log:
            self.event_log.error("Reconnect attempts exhausted", {
                "attempts": self._reconnect_attempts,
                "last_error": self._last_error,
            })
        if self.notifier:
            self.notifier.error("Lost connection to the accelerometer. Try again to reconnect.")
        return False

    async def stop(self) -> None:
        """Deregister the sample listener and release the sensor."""
        self.platform.remove_all_listeners()
        await self.platform.close()

    async def _release(self) -> None:
        """Drop a half-open sensor link after a terminal start failure."""
        try:
            await self.platform.close()
        except Exception as e:
            logger.warning(f"Error releasing motion sensor: {e}")

    async def _start(self, reconnecting: bool) -> bool:
        self._set_state(SensorState.REQUESTING)
        try:
            await self._handshake()
        except SensorError as e:
            self._last_error = f"{type(e).__name__}: {e}"
            logger.warning(f"Sensor handshake failed: {self._last_error}")
            if self.event_log:
                self.event_log.error("Sensor handshake failed", {
                    "error": str(e),
                    "type": type(e).__name__,
                    "reconnecting": reconnecting,
                })
            if not reconnecting and self.notifier:
                self.notifier.error(str(e))
            return False

        self._last_error = None
        self._set_state(SensorState.CONNECTED)
        if not reconnecting and self.notifier:
            self.notifier.success("Accelerometer connected successfully!")
        return True

    async def _handshake(self) -> None:
        if not self.platform.supported:
            raise SensorUnsupportedError("This device does not support motion detection.")

        if not await self.platform.request_permission():
            raise PermissionDeniedError("Permission to use the accelerometer was denied.")

        self.platform.remove_all_listeners()

        first_sample: asyncio.Future = asyncio.get_running_loop().create_future()

        def listener(sample: AccelerationSample) -> None:
            if not first_sample.done() and sample.is_complete:
                first_sample.set_result(sample)
            self.on_sample(sample)

        self.platform.add_listener(listener)

        try:
            await asyncio.wait_for(first_sample, timeout=self.handshake_timeout_sec)
        except asyncio.TimeoutError:
            self.platform.remove_all_listeners()
            raise HandshakeTimeoutError(
                f"No accelerometer data within {self.handshake_timeout_sec:g}s"
            ) from None

        self.session = AccelerometerSessionState(
            is_initialized=True,
            has_permission=True,
            last_init_time_ms=self._clock_ms(),
        )
        self.session_repo.save(self.session)

    def _update_session(self, **changes) -> None:
        for key, value in changes.items():
            setattr(self.session, key, value)
        self.session_repo.save(self.session)

    def _set_state(self, state: SensorState) -> None:
        if state is self._state:
            return
        previous = self._state
        self._state = state
        logger.info(f"Sensor state {previous.value} -> {state.value}")
        if self.event_log:
            self.event_log.status("Sensor state", {"from": previous.value, "to": state.value})
