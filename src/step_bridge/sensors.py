"""Motion sensor platform interface and the file replay source."""

from __future__ import annotations

import asyncio
import csv
import json
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional

from .detector import AccelerationSample

logger = logging.getLogger(__name__)

SampleCallback = Callable[[AccelerationSample], None]


class SensorError(Exception):
    """Base class for sensor handshake failures."""


class SensorUnsupportedError(SensorError):
    """The platform has no motion sensing capability."""


class PermissionDeniedError(SensorError):
    """Access to the motion sensor was refused."""


class HandshakeTimeoutError(SensorError):
    """Permission was granted but no sample arrived in time."""


class MotionPlatform(ABC):
    """Capability-checked access to an acceleration sample stream.

    ``supported`` says whether motion sensing exists at all,
    ``request_permission`` asks for access, and listeners receive every
    sample pushed by the platform until removed.
    """

    def __init__(self) -> None:
        self._listeners: List[SampleCallback] = []

    @property
    def supported(self) -> bool:
        return True

    @property
    @abstractmethod
    def has_permission(self) -> bool:
        ...

    @abstractmethod
    async def request_permission(self) -> bool:
        ...

    def add_listener(self, callback: SampleCallback) -> None:
        self._listeners.append(callback)

    def remove_all_listeners(self) -> None:
        self._listeners.clear()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def close(self) -> None:
        """Release the underlying sensor connection."""
        self.remove_all_listeners()

    def _dispatch(self, sample: AccelerationSample) -> None:
        for callback in list(self._listeners):
            try:
                callback(sample)
            except Exception:
                logger.exception("Sample listener failed")


def load_recording(path: str) -> List[dict]:
    """
    Read recorded acceleration rows from NDJSON or CSV.

    NDJSON rows may be ``{"x", "y", "z"}`` or ``{"acceleration": {"x", "y", "z"}}``,
    optionally with ``t_ms``. CSV files need a header with ``x,y,z`` and may
    carry a ``t_ms`` column.
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Recording not found: {path}")

    rows: List[dict] = []
    if file_path.suffix.lower() == ".csv":
        with file_path.open("r", encoding="utf-8", newline="") as f:
            for row in csv.DictReader(f):
                rows.append({k: (v if v != "" else None) for k, v in row.items()})
        return rows

    with file_path.open("r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except ValueError:
                logger.warning(f"{path}:{line_no}: skipping invalid JSON")
                continue
            if isinstance(record.get("acceleration"), dict):
                accel = dict(record["acceleration"])
                if "t_ms" in record:
                    accel["t_ms"] = record["t_ms"]
                record = accel
            rows.append(record)
    return rows


class ReplayMotionPlatform(MotionPlatform):
    """Replays a recorded sample file as if it came from a live sensor."""

    def __init__(self, recording_path: str, rate_hz: float = 50.0, realtime: bool = True) -> None:
        super().__init__()
        self.recording_path = recording_path
        self.rate_hz = rate_hz
        self.realtime = realtime

        self._granted = False
        self._task: Optional[asyncio.Task] = None
        self._finished = asyncio.Event()
        self._replayed = 0

    @property
    def supported(self) -> bool:
        return Path(self.recording_path).exists()

    @property
    def has_permission(self) -> bool:
        return self._granted

    @property
    def replayed_count(self) -> int:
        return self._replayed

    async def request_permission(self) -> bool:
        self._granted = self.supported
        return self._granted

    def add_listener(self, callback: SampleCallback) -> None:
        super().add_listener(callback)
        if self._task is None or self._task.done():
            self._finished.clear()
            self._task = asyncio.get_running_loop().create_task(self._replay())

    def remove_all_listeners(self) -> None:
        super().remove_all_listeners()
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None

    async def wait_finished(self) -> None:
        await self._finished.wait()

    async def close(self) -> None:
        task = self._task
        self.remove_all_listeners()
        if task:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._granted = False

    async def _replay(self) -> None:
        rows = load_recording(self.recording_path)
        period_ms = 1000.0 / self.rate_hz if self.rate_hz > 0 else 0.0
        start_ns = time.monotonic_ns()
        first_t_ms: Optional[float] = None

        try:
            for i, row in enumerate(rows):
                t_ms = row.get("t_ms")
                if t_ms is not None:
                    t_ms = float(t_ms)
                    if first_t_ms is None:
                        first_t_ms = t_ms
                    offset_ms = t_ms - first_t_ms
                else:
                    offset_ms = i * period_ms

                if self.realtime:
                    delay = start_ns / 1e9 + offset_ms / 1000 - time.monotonic_ns() / 1e9
                    if delay > 0:
                        await asyncio.sleep(delay)
                elif i % 100 == 0:
                    await asyncio.sleep(0)

                sample = AccelerationSample.from_mapping(
                    row, timestamp_ns=start_ns + int(offset_ms * 1_000_000)
                )
                self._replayed += 1
                self._dispatch(sample)
        finally:
            self._finished.set()
        logger.info(f"Replay of {self.recording_path} finished after {self._replayed} samples")
